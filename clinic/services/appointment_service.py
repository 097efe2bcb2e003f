from sqlalchemy.orm import Session
from datetime import datetime, timezone
from typing import List, Optional
import logging

from ..core.config import settings
from ..core.exceptions import InvalidArgumentError, InvalidStateError, NotFoundError
from ..core.security import utcnow
from ..models.appointment import Appointment, AppointmentStatus, DEFAULT_REASON
from ..models.doctor import Doctor
from ..models.patient import Patient
from ..schemas.appointment import AppointmentCreate, AppointmentStatusUpdate

logger = logging.getLogger(__name__)


def parse_appointment_time(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 instant into the naive UTC form appointments are stored in."""
    if not value:
        raise InvalidArgumentError("Date and time are required")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        raise InvalidArgumentError("Invalid date format")

    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


class AppointmentService:
    """Booking, cancellation and status changes of appointments.

    ``scheduled`` is the only non-terminal status. Patients may cancel their
    own future scheduled appointments. The assigned doctor may set any status,
    terminal ones included, and last write wins.
    """

    def __init__(self, db: Session):
        self.db = db

    def book(self, patient_user_id: int, data: AppointmentCreate) -> Appointment:
        patient = self._patient_for_user(patient_user_id)

        doctor = self.db.query(Doctor).filter(Doctor.id == data.doctor_id).first()
        if not doctor:
            raise NotFoundError("Doctor not found")

        date_time = parse_appointment_time(data.date_time)

        if settings.PREVENT_DOUBLE_BOOKING:
            clash = self.db.query(Appointment).filter(
                Appointment.doctor_id == doctor.id,
                Appointment.date_time == date_time,
                Appointment.status == AppointmentStatus.SCHEDULED
            ).first()
            if clash:
                raise InvalidStateError("Time slot is already booked")

        appointment = Appointment(
            patient_id=patient.id,
            doctor_id=doctor.id,
            date_time=date_time,
            reason=data.reason or DEFAULT_REASON,
            status=AppointmentStatus.SCHEDULED
        )

        self.db.add(appointment)
        self.db.commit()
        self.db.refresh(appointment)

        logger.info(
            f"Appointment {appointment.id} booked: patient {patient.id} "
            f"with doctor {doctor.id} at {date_time.isoformat()}"
        )
        return appointment

    def cancel(self, patient_user_id: int, appointment_id: int) -> Appointment:
        patient = self._patient_for_user(patient_user_id, missing="Appointment not found")

        # Another patient's appointment is reported as missing, not forbidden
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.patient_id == patient.id
        ).first()

        if not appointment:
            raise NotFoundError("Appointment not found")

        if appointment.status == AppointmentStatus.COMPLETED:
            raise InvalidStateError("Cannot cancel a completed appointment")

        if appointment.status == AppointmentStatus.CANCELLED:
            raise InvalidStateError("Appointment is already cancelled")

        if appointment.date_time < utcnow():
            raise InvalidStateError("Cannot cancel a past appointment")

        appointment.status = AppointmentStatus.CANCELLED
        self.db.commit()
        self.db.refresh(appointment)

        logger.info(f"Appointment {appointment.id} cancelled by patient {patient.id}")
        return appointment

    def update_status(
        self,
        doctor_user_id: int,
        appointment_id: int,
        data: AppointmentStatusUpdate
    ) -> Appointment:
        doctor = self._doctor_for_user(doctor_user_id, missing="Appointment not found")

        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.doctor_id == doctor.id
        ).first()

        if not appointment:
            raise NotFoundError("Appointment not found")

        try:
            new_status = AppointmentStatus(data.status)
        except ValueError:
            raise InvalidArgumentError("Invalid status value")

        # No transition guard here: a doctor may reopen a terminal appointment
        previous = appointment.status
        appointment.status = new_status
        if data.notes:
            appointment.notes = data.notes

        self.db.commit()
        self.db.refresh(appointment)

        logger.info(
            f"Appointment {appointment.id} status {previous.value} -> {new_status.value} "
            f"by doctor {doctor.id}"
        )
        return appointment

    def get_for_patient(self, patient_user_id: int, appointment_id: int) -> Appointment:
        patient = self._patient_for_user(patient_user_id, missing="Appointment not found")

        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.patient_id == patient.id
        ).first()

        if not appointment:
            raise NotFoundError("Appointment not found")
        return appointment

    def list_for_patient(self, patient_user_id: int, ascending: bool = False) -> List[Appointment]:
        """A patient's appointments, most recent first unless ``ascending``."""
        patient = self._patient_for_user(patient_user_id)
        order = Appointment.date_time.asc() if ascending else Appointment.date_time.desc()

        return self.db.query(Appointment).filter(
            Appointment.patient_id == patient.id
        ).order_by(order).all()

    def list_for_doctor(self, doctor_user_id: int) -> List[Appointment]:
        doctor = self._doctor_for_user(doctor_user_id)

        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor.id
        ).order_by(Appointment.date_time.desc()).all()

    def _patient_for_user(self, user_id: int, missing: str = "Patient profile not found") -> Patient:
        patient = self.db.query(Patient).filter(Patient.user_id == user_id).first()
        if not patient:
            raise NotFoundError(missing)
        return patient

    def _doctor_for_user(self, user_id: int, missing: str = "Doctor profile not found") -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.user_id == user_id).first()
        if not doctor:
            raise NotFoundError(missing)
        return doctor

from sqlalchemy.orm import Session
from datetime import date, datetime, timedelta
from typing import List, Optional, Set
import logging

from ..core.config import SlotWindow
from ..core.exceptions import InvalidArgumentError, NotFoundError
from ..models.appointment import Appointment, AppointmentStatus
from ..models.doctor import Doctor

logger = logging.getLogger(__name__)


def parse_slot_date(value: Optional[str]) -> date:
    """Parse the ``YYYY-MM-DD`` date of a slot query."""
    if not value:
        raise InvalidArgumentError("Date is required")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise InvalidArgumentError("Invalid date format. Use YYYY-MM-DD")


def slot_label(moment: datetime) -> str:
    """Label of the slot an instant falls in, truncated to hour:minute."""
    return moment.strftime("%H:%M")


class SlotCalculator:
    """Free slots of a doctor on one calendar day.

    Candidates come from the configured window alone. Only scheduled
    appointments occupy a slot, so cancelling one frees its slot again.
    With ``respect_availability`` the candidates are also clipped to the
    doctor's weekly open hours for that weekday.
    """

    def __init__(self, db: Session, window: SlotWindow, respect_availability: bool = False):
        self.db = db
        self.window = window
        self.respect_availability = respect_availability

    def available_slots(self, doctor_id: int, day: Optional[str]) -> List[str]:
        selected = parse_slot_date(day)

        doctor = self.db.query(Doctor).filter(Doctor.id == doctor_id).first()
        if not doctor:
            raise NotFoundError("Doctor not found")

        candidates = self.window.labels()
        if self.respect_availability:
            candidates = self._within_availability(doctor, selected, candidates)

        booked = self.booked_labels(doctor.id, selected)
        return [label for label in candidates if label not in booked]

    def booked_labels(self, doctor_id: int, day: date) -> Set[str]:
        start = datetime.combine(day, datetime.min.time())
        end = start + timedelta(days=1)

        appointments = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.date_time >= start,
            Appointment.date_time < end,
            Appointment.status == AppointmentStatus.SCHEDULED
        ).all()

        return {slot_label(appointment.date_time) for appointment in appointments}

    def _within_availability(self, doctor: Doctor, day: date, candidates: List[str]) -> List[str]:
        weekday = day.strftime("%A")
        step = timedelta(minutes=self.window.step_minutes)

        ranges = [
            (entry["startTime"], entry["endTime"])
            for entry in doctor.availability or []
            if entry.get("day", "").capitalize() == weekday
        ]

        result = []
        for label in candidates:
            slot_start = datetime.strptime(label, "%H:%M")
            slot_end = (slot_start + step).strftime("%H:%M")
            # A slot ending at midnight wraps to "00:00" and never fits a range
            if slot_end <= label:
                continue
            if any(start <= label and slot_end <= end for start, end in ranges):
                result.append(label)
        return result

from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional
import logging
import math

from ..core.exceptions import NotFoundError
from ..core.security import Principal, ensure_owner_or_admin, utcnow
from ..models.appointment import Appointment, AppointmentStatus
from ..models.doctor import Doctor, DoctorRating
from ..models.patient import Patient
from ..models.prescription import Prescription, PrescriptionStatus
from ..schemas.appointment import AppointmentResponse
from ..schemas.doctor import (
    AvailabilityEntry, DoctorUpdate, RatingCreate, DoctorListResponse,
    DoctorResponse, DoctorStats, RatingResponse, DashboardStats, DoctorDashboard
)

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5


def average_rating(ratings: List[DoctorRating]) -> float:
    if not ratings:
        return 0.0
    return sum(r.rating for r in ratings) / len(ratings)


class DoctorService:
    def __init__(self, db: Session):
        self.db = db

    def list_doctors(self, page: int = 1, limit: int = 10, specialization: Optional[str] = None) -> DoctorListResponse:
        query = self.db.query(Doctor)
        if specialization:
            query = query.filter(Doctor.specialization == specialization)

        total = query.count()
        doctors = query.order_by(Doctor.created_at.desc(), Doctor.id.desc()).offset(
            (page - 1) * limit
        ).limit(limit).all()

        return DoctorListResponse(
            doctors=[DoctorResponse.model_validate(d) for d in doctors],
            total_pages=math.ceil(total / limit),
            current_page=page,
            total=total
        )

    def specializations(self) -> List[str]:
        rows = self.db.query(Doctor.specialization).distinct().order_by(Doctor.specialization).all()
        return [row[0] for row in rows]

    def get(self, doctor_id: int) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.id == doctor_id).first()
        if not doctor:
            raise NotFoundError("Doctor not found")
        return doctor

    def get_by_user(self, user_id: int) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.user_id == user_id).first()
        if not doctor:
            raise NotFoundError("Doctor profile not found for this user")
        return doctor

    def update(self, principal: Principal, doctor_id: int, updates: DoctorUpdate) -> Doctor:
        doctor = self.get(doctor_id)
        ensure_owner_or_admin(principal, doctor.user_id, "Not authorized to update this profile")

        for field, value in updates.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(doctor, field, value)

        self.db.commit()
        self.db.refresh(doctor)
        logger.info(f"Doctor {doctor.id} profile updated by user {principal.subject_id}")
        return doctor

    def delete(self, principal: Principal, doctor_id: int) -> None:
        """Delete a doctor profile along with its ratings.

        Appointments and prescriptions outlive the profile with their doctor
        reference cleared. The user account is kept.
        """
        doctor = self.get(doctor_id)
        ensure_owner_or_admin(principal, doctor.user_id, "Not authorized to delete this profile")

        self.db.delete(doctor)
        self.db.commit()
        logger.info(f"Doctor {doctor_id} profile deleted by user {principal.subject_id}")

    def update_availability(self, principal: Principal, doctor_id: int, availability: List[AvailabilityEntry]) -> Doctor:
        doctor = self.get(doctor_id)
        ensure_owner_or_admin(principal, doctor.user_id, "Not authorized to update availability")

        doctor.availability = [entry.model_dump(by_alias=True) for entry in availability]
        self.db.commit()
        self.db.refresh(doctor)
        logger.info(f"Doctor {doctor.id} availability replaced ({len(availability)} entries)")
        return doctor

    def add_rating(self, patient_user_id: int, doctor_id: int, data: RatingCreate) -> Doctor:
        """Rate a doctor; a patient's second rating replaces the first."""
        doctor = self.get(doctor_id)
        patient = self.db.query(Patient).filter(Patient.user_id == patient_user_id).first()
        if not patient:
            raise NotFoundError("Patient profile not found")

        existing = self.db.query(DoctorRating).filter(
            DoctorRating.doctor_id == doctor.id,
            DoctorRating.patient_id == patient.id
        ).first()

        if existing:
            existing.rating = data.rating
            existing.review = data.review
            existing.date = utcnow()
        else:
            self.db.add(DoctorRating(
                doctor_id=doctor.id,
                patient_id=patient.id,
                rating=data.rating,
                review=data.review,
                date=utcnow()
            ))

        self.db.commit()
        self.db.refresh(doctor)
        return doctor

    def stats(self, doctor_id: int) -> DoctorStats:
        doctor = self.get(doctor_id)
        return DoctorStats(
            average_rating=average_rating(doctor.ratings),
            total_reviews=len(doctor.ratings),
            recent_reviews=[RatingResponse.model_validate(r) for r in doctor.ratings[:RECENT_LIMIT]]
        )

    def dashboard(self, doctor_user_id: int) -> DoctorDashboard:
        doctor = self.get_by_user(doctor_user_id)
        appointments = self.db.query(Appointment).filter(Appointment.doctor_id == doctor.id)
        now = utcnow()

        total_patients = self.db.query(
            func.count(func.distinct(Appointment.patient_id))
        ).filter(Appointment.doctor_id == doctor.id).scalar()

        active_prescriptions = self.db.query(Prescription).filter(
            Prescription.doctor_id == doctor.id,
            Prescription.status == PrescriptionStatus.ACTIVE
        ).count()

        recent = appointments.order_by(Appointment.date_time.desc()).limit(RECENT_LIMIT).all()

        stats = DashboardStats(
            total_appointments=appointments.count(),
            upcoming_appointments=appointments.filter(
                Appointment.status == AppointmentStatus.SCHEDULED,
                Appointment.date_time >= now
            ).count(),
            completed_appointments=appointments.filter(
                Appointment.status == AppointmentStatus.COMPLETED
            ).count(),
            total_patients=total_patients or 0,
            active_prescriptions=active_prescriptions,
            average_rating=round(average_rating(doctor.ratings), 1) if doctor.ratings else None
        )

        return DoctorDashboard(
            doctor=DoctorResponse.model_validate(doctor),
            stats=stats,
            recent_appointments=[AppointmentResponse.model_validate(a) for a in recent]
        )

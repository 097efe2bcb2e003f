from sqlalchemy.orm import Session
from typing import Any, Dict, List
import math

from ..core.exceptions import NotFoundError
from ..models.appointment import AppointmentStatus
from ..models.patient import Patient
from ..models.prescription import Prescription
from ..schemas.appointment import AppointmentResponse
from ..schemas.patient import (
    PatientDashboard, PatientDashboardStats, PatientListResponse, PatientResponse
)
from ..schemas.prescription import PrescriptionResponse
from .appointment_service import AppointmentService


class PatientService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_user(self, user_id: int) -> Patient:
        patient = self.db.query(Patient).filter(Patient.user_id == user_id).first()
        if not patient:
            raise NotFoundError("Patient not found")
        return patient

    def list_patients(self, page: int = 1, limit: int = 10) -> PatientListResponse:
        query = self.db.query(Patient)
        total = query.count()
        patients = query.order_by(Patient.created_at.desc(), Patient.id.desc()).offset(
            (page - 1) * limit
        ).limit(limit).all()

        return PatientListResponse(
            patients=[PatientResponse.model_validate(p) for p in patients],
            total_pages=math.ceil(total / limit),
            current_page=page,
            total=total
        )

    def prescriptions(self, user_id: int) -> List[Prescription]:
        patient = self.get_by_user(user_id)
        return self.db.query(Prescription).filter(
            Prescription.patient_id == patient.id
        ).order_by(Prescription.created_at.desc(), Prescription.id.desc()).all()

    def medical_records(self, user_id: int) -> List[Dict[str, Any]]:
        return self.get_by_user(user_id).medical_records or []

    def dashboard(self, user_id: int) -> PatientDashboard:
        # Soonest first here, unlike the appointment list
        appointments = AppointmentService(self.db).list_for_patient(user_id, ascending=True)
        prescriptions = self.prescriptions(user_id)

        return PatientDashboard(
            appointments=[AppointmentResponse.model_validate(a) for a in appointments],
            prescriptions=[PrescriptionResponse.model_validate(p) for p in prescriptions],
            stats=PatientDashboardStats(
                appointments_count=len(appointments),
                prescriptions_count=len(prescriptions),
                upcoming_appointments=sum(
                    1 for a in appointments if a.status == AppointmentStatus.SCHEDULED
                )
            )
        )

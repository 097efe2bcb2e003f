from sqlalchemy.orm import Session
from typing import Optional
import logging

from ..core.exceptions import AuthorizationError, NotFoundError
from ..core.security import Principal, ensure_owner_or_admin
from ..models.doctor import Doctor
from ..models.patient import Patient
from ..models.prescription import Prescription, PrescriptionStatus
from ..schemas.prescription import PrescriptionCreate, PrescriptionUpdate

logger = logging.getLogger(__name__)


class PrescriptionService:
    """Prescriptions belong to the doctor who wrote them; the patient may read them."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, doctor_user_id: int, data: PrescriptionCreate) -> Prescription:
        doctor = self.db.query(Doctor).filter(Doctor.user_id == doctor_user_id).first()
        if not doctor:
            raise NotFoundError("Doctor not found")

        patient = self.db.query(Patient).filter(Patient.id == data.patient_id).first()
        if not patient:
            raise NotFoundError("Patient not found")

        prescription = Prescription(
            patient_id=patient.id,
            doctor_id=doctor.id,
            medications=[m.model_dump(by_alias=True) for m in data.medications],
            diagnosis=data.diagnosis,
            start_date=data.start_date,
            end_date=data.end_date,
            notes=data.notes,
            status=PrescriptionStatus.ACTIVE
        )

        self.db.add(prescription)
        self.db.commit()
        self.db.refresh(prescription)
        logger.info(f"Prescription {prescription.id} issued by doctor {doctor.id} for patient {patient.id}")
        return prescription

    def get(self, principal: Principal, prescription_id: int) -> Prescription:
        prescription = self._load(prescription_id)

        if principal.is_admin or principal.subject_id in (
            self._issuer_user_id(prescription), prescription.patient.user_id
        ):
            return prescription
        raise AuthorizationError("Not authorized to view this prescription")

    def update(self, principal: Principal, prescription_id: int, data: PrescriptionUpdate) -> Prescription:
        prescription = self._load(prescription_id)
        ensure_owner_or_admin(
            principal, self._issuer_user_id(prescription), "Not authorized to update this prescription"
        )

        updates = data.model_dump(exclude_unset=True, by_alias=False)
        if "medications" in updates and data.medications is not None:
            updates["medications"] = [m.model_dump(by_alias=True) for m in data.medications]

        for field, value in updates.items():
            if value is not None:
                setattr(prescription, field, value)

        self.db.commit()
        self.db.refresh(prescription)
        return prescription

    def delete(self, principal: Principal, prescription_id: int) -> None:
        prescription = self._load(prescription_id)
        ensure_owner_or_admin(
            principal, self._issuer_user_id(prescription), "Not authorized to delete this prescription"
        )

        self.db.delete(prescription)
        self.db.commit()
        logger.info(f"Prescription {prescription_id} deleted by user {principal.subject_id}")

    def _load(self, prescription_id: int) -> Prescription:
        prescription = self.db.query(Prescription).filter(Prescription.id == prescription_id).first()
        if not prescription:
            raise NotFoundError("Prescription not found")
        return prescription

    @staticmethod
    def _issuer_user_id(prescription: Prescription) -> Optional[int]:
        # None once the issuing doctor's profile is gone; only admins manage those
        return prescription.doctor.user_id if prescription.doctor else None

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.security import Principal, UserRole
from ...api.deps import get_active_principal, get_doctor, require_any_role
from ...services.patient_service import PatientService
from ...services.prescription_service import PrescriptionService
from ...schemas.common import Message
from ...schemas.patient import PatientResponse
from ...schemas.prescription import (
    PrescriptionCreate, PrescriptionResponse, PrescriptionUpdate
)

router = APIRouter(prefix="/prescriptions", tags=["Prescriptions"])

# Same record as /patients/profile; callers without a patient profile get 404
@router.get("/patient-details", response_model=PatientResponse)
async def get_patient_details(
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db)
):
    return PatientService(db).get_by_user(principal.subject_id)

@router.post("", response_model=PrescriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_prescription(
    data: PrescriptionCreate,
    principal: Principal = Depends(get_doctor),
    db: Session = Depends(get_db)
):
    return PrescriptionService(db).create(principal.subject_id, data)

@router.get("/{prescription_id}", response_model=PrescriptionResponse)
async def get_prescription(
    prescription_id: int,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db)
):
    return PrescriptionService(db).get(principal, prescription_id)

@router.put("/{prescription_id}", response_model=PrescriptionResponse)
async def update_prescription(
    prescription_id: int,
    data: PrescriptionUpdate,
    principal: Principal = Depends(require_any_role(UserRole.DOCTOR, UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    return PrescriptionService(db).update(principal, prescription_id, data)

@router.delete("/{prescription_id}", response_model=Message)
async def delete_prescription(
    prescription_id: int,
    principal: Principal = Depends(require_any_role(UserRole.DOCTOR, UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    PrescriptionService(db).delete(principal, prescription_id)
    return Message(message="Prescription deleted successfully")

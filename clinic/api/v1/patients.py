from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Any, Dict, List

from ...core.database import get_db
from ...core.security import Principal, UserRole
from ...api.deps import get_patient, require_any_role
from ...services.appointment_service import AppointmentService
from ...services.patient_service import PatientService
from ...schemas.appointment import AppointmentCreate, AppointmentResponse
from ...schemas.patient import PatientDashboard, PatientListResponse, PatientResponse
from ...schemas.prescription import PrescriptionResponse

router = APIRouter(prefix="/patients", tags=["Patients"])

@router.get("", response_model=PatientListResponse)
async def list_patients(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    _: Principal = Depends(require_any_role(UserRole.DOCTOR, UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    return PatientService(db).list_patients(page, limit)

@router.get("/profile", response_model=PatientResponse)
async def get_patient_details(
    principal: Principal = Depends(get_patient),
    db: Session = Depends(get_db)
):
    return PatientService(db).get_by_user(principal.subject_id)

@router.get("/dashboard", response_model=PatientDashboard)
async def get_dashboard(
    principal: Principal = Depends(get_patient),
    db: Session = Depends(get_db)
):
    """Appointments soonest first, prescriptions newest first, and counts."""
    return PatientService(db).dashboard(principal.subject_id)

@router.get("/appointments", response_model=List[AppointmentResponse])
async def list_appointments(
    principal: Principal = Depends(get_patient),
    db: Session = Depends(get_db)
):
    return AppointmentService(db).list_for_patient(principal.subject_id)

@router.post("/appointments", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    data: AppointmentCreate,
    principal: Principal = Depends(get_patient),
    db: Session = Depends(get_db)
):
    return AppointmentService(db).book(principal.subject_id, data)

@router.delete("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    principal: Principal = Depends(get_patient),
    db: Session = Depends(get_db)
):
    """Cancel one of the caller's upcoming appointments."""
    return AppointmentService(db).cancel(principal.subject_id, appointment_id)

@router.get("/prescriptions", response_model=List[PrescriptionResponse])
async def list_prescriptions(
    principal: Principal = Depends(get_patient),
    db: Session = Depends(get_db)
):
    return PatientService(db).prescriptions(principal.subject_id)

@router.get("/medical-records", response_model=List[Dict[str, Any]])
async def get_medical_records(
    principal: Principal = Depends(get_patient),
    db: Session = Depends(get_db)
):
    return PatientService(db).medical_records(principal.subject_id)

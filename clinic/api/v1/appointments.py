from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.config import settings
from ...core.database import get_db
from ...core.security import Principal, UserRole
from ...api.deps import get_doctor, get_patient, require_any_role
from ...services.appointment_service import AppointmentService
from ...services.slot_service import SlotCalculator
from ...schemas.appointment import (
    AppointmentCreate, AppointmentResponse, AppointmentStatusUpdate
)

router = APIRouter(prefix="/appointments", tags=["Appointments"])

# Patient routes
@router.get("/patients/appointments", response_model=List[AppointmentResponse])
async def list_patient_appointments(
    principal: Principal = Depends(get_patient),
    db: Session = Depends(get_db)
):
    """The caller's appointments, most recent first."""
    return AppointmentService(db).list_for_patient(principal.subject_id)

@router.get("/patients/appointments/{appointment_id}", response_model=AppointmentResponse)
async def get_patient_appointment(
    appointment_id: int,
    principal: Principal = Depends(get_patient),
    db: Session = Depends(get_db)
):
    return AppointmentService(db).get_for_patient(principal.subject_id, appointment_id)

@router.post(
    "/patients/appointments",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED
)
async def book_appointment(
    data: AppointmentCreate,
    principal: Principal = Depends(get_patient),
    db: Session = Depends(get_db)
):
    """Book an appointment with a doctor."""
    return AppointmentService(db).book(principal.subject_id, data)

# Doctor routes
@router.get("/doctors/appointments", response_model=List[AppointmentResponse])
async def list_doctor_appointments(
    principal: Principal = Depends(get_doctor),
    db: Session = Depends(get_db)
):
    """Appointments assigned to the calling doctor, most recent first."""
    return AppointmentService(db).list_for_doctor(principal.subject_id)

@router.patch("/doctors/appointments/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    principal: Principal = Depends(get_doctor),
    db: Session = Depends(get_db)
):
    """Set the status of an appointment assigned to the calling doctor."""
    return AppointmentService(db).update_status(principal.subject_id, appointment_id, data)

@router.get("/doctors/{doctor_id}/available-slots", response_model=List[str])
async def get_available_slots(
    doctor_id: int,
    date: Optional[str] = None,
    _: Principal = Depends(require_any_role(UserRole.PATIENT, UserRole.DOCTOR)),
    db: Session = Depends(get_db)
):
    """Free "HH:MM" slots of a doctor on ``date`` (YYYY-MM-DD)."""
    calculator = SlotCalculator(
        db,
        window=settings.slot_window,
        respect_availability=settings.SLOTS_RESPECT_AVAILABILITY
    )
    return calculator.available_slots(doctor_id, date)

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...core.security import Principal, UserRole
from ...api.deps import (
    get_active_principal, get_admin, get_doctor, get_patient, require_any_role
)
from ...services.doctor_service import DoctorService
from ...schemas.appointment import AppointmentResponse
from ...schemas.common import Message
from ...schemas.doctor import (
    AvailabilityEntry, AvailabilityUpdate, DoctorDashboard, DoctorListResponse,
    DoctorResponse, DoctorStats, DoctorUpdate, RatingCreate
)
from .appointments import list_doctor_appointments, update_appointment_status

router = APIRouter(prefix="/doctors", tags=["Doctors"])

# Public routes
@router.get("", response_model=DoctorListResponse)
async def list_doctors(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    specialization: Optional[str] = None,
    db: Session = Depends(get_db)
):
    return DoctorService(db).list_doctors(page, limit, specialization)

# Admin listing; same filters as the public directory
@router.get("/admin/all", response_model=DoctorListResponse)
async def list_doctors_for_admin(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    specialization: Optional[str] = None,
    _: Principal = Depends(get_admin),
    db: Session = Depends(get_db)
):
    return DoctorService(db).list_doctors(page, limit, specialization)

@router.get("/specializations", response_model=List[str])
async def list_specializations(db: Session = Depends(get_db)):
    return DoctorService(db).specializations()

# Fixed paths must be registered before /{doctor_id}
@router.get("/dashboard", response_model=DoctorDashboard)
async def get_dashboard(
    principal: Principal = Depends(get_doctor),
    db: Session = Depends(get_db)
):
    return DoctorService(db).dashboard(principal.subject_id)

@router.get("/profile", response_model=DoctorResponse)
async def get_own_profile(
    principal: Principal = Depends(get_doctor),
    db: Session = Depends(get_db)
):
    return DoctorService(db).get_by_user(principal.subject_id)

# Same handlers as under /appointments
router.get(
    "/appointments", response_model=List[AppointmentResponse]
)(list_doctor_appointments)
router.patch(
    "/appointments/{appointment_id}", response_model=AppointmentResponse
)(update_appointment_status)

@router.get("/user/{user_id}", response_model=DoctorResponse)
async def get_doctor_by_user(user_id: int, db: Session = Depends(get_db)):
    return DoctorService(db).get_by_user(user_id)

@router.get("/{doctor_id}", response_model=DoctorResponse)
async def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    return DoctorService(db).get(doctor_id)

@router.put("/{doctor_id}", response_model=DoctorResponse)
async def update_doctor(
    doctor_id: int,
    updates: DoctorUpdate,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db)
):
    """Update a doctor profile (the doctor themself or an admin)."""
    return DoctorService(db).update(principal, doctor_id, updates)

@router.delete("/{doctor_id}", response_model=Message)
async def delete_doctor(
    doctor_id: int,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db)
):
    """Delete a doctor profile (the doctor themself or an admin)."""
    DoctorService(db).delete(principal, doctor_id)
    return Message(message="Doctor profile deleted successfully")

@router.get("/{doctor_id}/availability", response_model=List[AvailabilityEntry])
async def get_availability(doctor_id: int, db: Session = Depends(get_db)):
    return DoctorService(db).get(doctor_id).availability

@router.put("/{doctor_id}/availability", response_model=DoctorResponse)
async def update_availability(
    doctor_id: int,
    data: AvailabilityUpdate,
    principal: Principal = Depends(require_any_role(UserRole.DOCTOR, UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    return DoctorService(db).update_availability(principal, doctor_id, data.availability)

@router.post("/{doctor_id}/ratings", response_model=DoctorResponse)
async def add_rating(
    doctor_id: int,
    data: RatingCreate,
    principal: Principal = Depends(get_patient),
    db: Session = Depends(get_db)
):
    """Rate a doctor; rating again replaces the earlier rating."""
    return DoctorService(db).add_rating(principal.subject_id, doctor_id, data)

@router.get("/{doctor_id}/stats", response_model=DoctorStats)
async def get_stats(
    doctor_id: int,
    _: Principal = Depends(require_any_role(UserRole.DOCTOR, UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    return DoctorService(db).stats(doctor_id)

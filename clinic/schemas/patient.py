from typing import Optional, List, Dict, Any
from datetime import datetime

from .common import CamelModel, UserSummary
from .appointment import AppointmentResponse
from .prescription import PrescriptionResponse


class PatientResponse(CamelModel):
    id: int
    user_id: int
    user: UserSummary
    date_of_birth: Optional[datetime] = None
    blood_group: str
    allergies: List[str] = []
    medical_history: List[Dict[str, Any]] = []
    emergency_contact: Optional[Dict[str, Any]] = None


class PatientListResponse(CamelModel):
    patients: List[PatientResponse]
    total_pages: int
    current_page: int
    total: int


class PatientDashboardStats(CamelModel):
    appointments_count: int
    prescriptions_count: int
    upcoming_appointments: int


class PatientDashboard(CamelModel):
    appointments: List[AppointmentResponse]
    prescriptions: List[PrescriptionResponse]
    stats: PatientDashboardStats

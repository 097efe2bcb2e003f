from .user import User, RefreshToken
from .doctor import Doctor, DoctorRating
from .patient import Patient
from .appointment import Appointment, AppointmentStatus
from .prescription import Prescription, PrescriptionStatus

__all__ = [
    "User", "RefreshToken", "Doctor", "DoctorRating", "Patient",
    "Appointment", "AppointmentStatus", "Prescription", "PrescriptionStatus",
]

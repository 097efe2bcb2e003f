from pydantic import Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
import re

from .common import CamelModel, UserSummary
from .appointment import AppointmentResponse

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class AvailabilityEntry(CamelModel):
    day: str
    start_time: str
    end_time: str

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str) -> str:
        day = value.strip().capitalize()
        if day not in WEEKDAYS:
            raise ValueError(f"day must be one of {', '.join(WEEKDAYS)}")
        return day

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_hhmm(cls, value: str) -> str:
        if not _HHMM.match(value):
            raise ValueError("time must be formatted as HH:MM")
        return value

    @model_validator(mode="after")
    def check_order(self):
        # Zero-padded HH:MM strings order the same way as the times they name
        if self.start_time >= self.end_time:
            raise ValueError("startTime must be earlier than endTime")
        return self


class AvailabilityUpdate(CamelModel):
    availability: List[AvailabilityEntry]


class DoctorUpdate(CamelModel):
    specialization: Optional[str] = Field(None, min_length=1, max_length=100)
    qualifications: Optional[List[str]] = None
    experience: Optional[int] = Field(None, ge=0)
    consultation_fee: Optional[float] = Field(None, ge=0)


class RatingCreate(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = None


class RatingResponse(CamelModel):
    patient_id: int
    rating: int
    review: Optional[str] = None
    date: datetime


class DoctorResponse(CamelModel):
    id: int
    user_id: int
    user: UserSummary
    specialization: str
    qualifications: List[str] = []
    experience: int
    consultation_fee: float
    availability: List[AvailabilityEntry] = []
    ratings: List[RatingResponse] = []
    created_at: Optional[datetime] = None


class DoctorListResponse(CamelModel):
    doctors: List[DoctorResponse]
    total_pages: int
    current_page: int
    total: int


class DoctorStats(CamelModel):
    average_rating: float
    total_reviews: int
    recent_reviews: List[RatingResponse]


class DashboardStats(CamelModel):
    total_appointments: int
    upcoming_appointments: int
    completed_appointments: int
    total_patients: int
    active_prescriptions: int
    average_rating: Optional[float] = None


class DoctorDashboard(CamelModel):
    doctor: DoctorResponse
    stats: DashboardStats
    recent_appointments: List[AppointmentResponse]

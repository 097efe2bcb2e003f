from pydantic import Field
from typing import Optional
from datetime import datetime

from .common import CamelModel
from ..models.appointment import AppointmentStatus


class AppointmentCreate(CamelModel):
    doctor_id: int
    # Parsed by the booking service so bad values surface as InvalidArgument
    date_time: Optional[str] = None
    reason: Optional[str] = Field(None, max_length=1000)


class AppointmentStatusUpdate(CamelModel):
    status: Optional[str] = None
    notes: Optional[str] = None


class AppointmentResponse(CamelModel):
    id: int
    patient_id: int
    doctor_id: Optional[int] = None
    date_time: datetime
    reason: str
    status: AppointmentStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

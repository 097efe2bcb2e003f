from pydantic import Field
from typing import Optional, List
from datetime import datetime

from .common import CamelModel
from ..models.prescription import PrescriptionStatus


class Medication(CamelModel):
    name: str = Field(..., min_length=1)
    dosage: str
    frequency: str
    duration: Optional[str] = None
    instructions: Optional[str] = None


class PrescriptionCreate(CamelModel):
    patient_id: int
    medications: List[Medication] = Field(..., min_length=1)
    diagnosis: str = Field(..., min_length=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    notes: Optional[str] = None


class PrescriptionUpdate(CamelModel):
    medications: Optional[List[Medication]] = None
    diagnosis: Optional[str] = Field(None, min_length=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    notes: Optional[str] = None
    status: Optional[PrescriptionStatus] = None


class PrescriptionResponse(CamelModel):
    id: int
    patient_id: int
    doctor_id: Optional[int] = None
    medications: List[Medication] = []
    diagnosis: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    notes: Optional[str] = None
    status: PrescriptionStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

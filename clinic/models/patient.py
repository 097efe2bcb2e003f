from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Patient(Base):
    __tablename__ = "patients"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    
    # Medical information
    date_of_birth = Column(DateTime, nullable=True)
    blood_group = Column(String(20), nullable=False, default="Not Specified")
    allergies = Column(JSON, nullable=False, default=list)
    # [{"condition": ..., "diagnosedDate": ..., "notes": ...}]
    medical_history = Column(JSON, nullable=False, default=list)
    # [{"doctor": ..., "diagnosis": ..., "treatment": ..., "prescription": ...,
    #   "notes": ..., "attachments": [...], "date": ...}]
    medical_records = Column(JSON, nullable=False, default=list)
    emergency_contact = Column(JSON, nullable=True)
    
    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    user = relationship("User", back_populates="patient")
    appointments = relationship("Appointment", back_populates="patient")
    prescriptions = relationship("Prescription", back_populates="patient")
    
    def __repr__(self):
        return f"<Patient(id={self.id}, user_id={self.user_id})>"

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Float, Text, JSON, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

DEFAULT_AVAILABILITY = [
    {"day": "Monday", "startTime": "09:00", "endTime": "17:00"},
    {"day": "Tuesday", "startTime": "09:00", "endTime": "17:00"},
    {"day": "Wednesday", "startTime": "09:00", "endTime": "17:00"},
]

class Doctor(Base):
    __tablename__ = "doctors"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    
    # Professional information
    specialization = Column(String(100), nullable=False, default="General Practice")
    qualifications = Column(JSON, nullable=False, default=list)
    experience = Column(Integer, nullable=False, default=0)
    consultation_fee = Column(Float, nullable=False, default=50)
    
    # Weekly open hours: [{"day": "Monday", "startTime": "09:00", "endTime": "17:00"}, ...]
    availability = Column(JSON, nullable=False, default=list)
    
    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    user = relationship("User", back_populates="doctor")
    appointments = relationship("Appointment", back_populates="doctor")
    prescriptions = relationship("Prescription", back_populates="doctor")
    ratings = relationship(
        "DoctorRating",
        back_populates="doctor",
        order_by="DoctorRating.date.desc()",
        cascade="all, delete-orphan"
    )
    
    def __repr__(self):
        return f"<Doctor(id={self.id}, user_id={self.user_id}, specialization='{self.specialization}')>"

class DoctorRating(Base):
    __tablename__ = "doctor_ratings"
    __table_args__ = (
        UniqueConstraint("doctor_id", "patient_id", name="uq_doctor_rating_patient"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    review = Column(Text, nullable=True)
    date = Column(DateTime, nullable=False)
    
    doctor = relationship("Doctor", back_populates="ratings")
    
    def __repr__(self):
        return f"<DoctorRating(doctor_id={self.doctor_id}, patient_id={self.patient_id}, rating={self.rating})>"

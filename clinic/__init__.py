"""
Clinic Appointment System

A FastAPI-based backend for a clinic: patients book appointments with
doctors, doctors manage availability and prescriptions, admins oversee
accounts.
"""

__version__ = "1.0.0"

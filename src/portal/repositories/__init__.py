"""Repositories package - Data access layer over the document store."""
from .clinic_repository import ClinicRepository
from .doctor_repository import DoctorRepository, build_doctor_profile
from .schedule_repository import ScheduleRepository
from .user_repository import UserRepository

__all__ = [
    "ClinicRepository",
    "DoctorRepository",
    "ScheduleRepository",
    "UserRepository",
    "build_doctor_profile",
]

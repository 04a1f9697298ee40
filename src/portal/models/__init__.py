"""Models package - enums for the values stored in the document tree."""
from .enums import (
    ActivityCategory,
    DoctorStatus,
    FeeRequestStatus,
    ImportErrorType,
    NotificationPriority,
    RecordState,
    UserRole,
)

__all__ = [
    "ActivityCategory",
    "DoctorStatus",
    "FeeRequestStatus",
    "ImportErrorType",
    "NotificationPriority",
    "RecordState",
    "UserRole",
]

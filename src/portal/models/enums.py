"""Shared Enums for the application.

Defines enum types used across repositories, schemas and services. Values
are the exact strings stored in the document tree.
"""
from enum import Enum


class UserRole(str, Enum):
    """User role stored at ``users/{uid}.role``.

    Attributes:
        ADMIN: Full portal access, can import specialists and review fees
        SPECIALIST: Specialist doctor account created by the import
        PATIENT: Patient account
    """
    ADMIN = "admin"
    SPECIALIST = "specialist"
    PATIENT = "patient"


class DoctorStatus(str, Enum):
    """Verification status of a professional profile."""
    PENDING = "pending"
    VERIFIED = "verified"
    SUSPENDED = "suspended"


class FeeRequestStatus(str, Enum):
    """Lifecycle of a fee-change request."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ImportErrorType(str, Enum):
    """Category attached to every failed import record."""
    VALIDATION = "validation"
    NETWORK = "network"
    DUPLICATE = "duplicate"
    PERMISSION = "permission"
    SYSTEM = "system"


class RecordState(str, Enum):
    """Per-record import state.

    ``pending -> validating -> rejected | creating``; ``creating ->
    identity_failed | created``; ``created -> profile_writing -> failed |
    committed``. ``rejected``, ``failed`` and ``committed`` are terminal.
    """
    PENDING = "pending"
    VALIDATING = "validating"
    REJECTED = "rejected"
    CREATING = "creating"
    IDENTITY_FAILED = "identity_failed"
    CREATED = "created"
    PROFILE_WRITING = "profile_writing"
    FAILED = "failed"
    COMMITTED = "committed"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ActivityCategory(str, Enum):
    """Category of an ``activityLogs`` entry."""
    FEE_MANAGEMENT = "fee_management"
    USER_MANAGEMENT = "user_management"

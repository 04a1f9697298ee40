"""
Application exceptions.

Each ``AppException`` subclass carries the HTTP status and machine-readable
code it maps to; ``main`` renders any of them as an ``ErrorResponse``.
Call sites may override ``error_code`` for a more specific code
(``TOO_MANY_ROWS``, ``ADMIN_REQUIRED`` ...).
"""

from typing import Any, ClassVar


class AppException(Exception):
    """Base for every error the API reports deliberately."""

    status_code: ClassVar[int] = 500
    default_code: ClassVar[str] = "APP_ERROR"
    default_message: ClassVar[str] = "Application error"

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.error_code = error_code or self.default_code
        self.details: dict[str, Any] = dict(details or {})
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": {"code": self.error_code, "message": self.message, "details": self.details}}


# --- 4xx ---

class BadRequestError(AppException):
    status_code = 400
    default_code = "BAD_REQUEST"
    default_message = "Invalid request"


class UnauthorizedError(AppException):
    status_code = 401
    default_code = "UNAUTHORIZED"
    default_message = "Authentication required"


class ForbiddenError(AppException):
    status_code = 403
    default_code = "FORBIDDEN"
    default_message = "Permission denied"


class NotFoundError(AppException):
    status_code = 404
    default_code = "NOT_FOUND"
    default_message = "Resource not found"

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message, error_code=error_code, details=details)


class ConflictError(AppException):
    status_code = 409
    default_code = "CONFLICT"
    default_message = "Resource conflict"


# --- 5xx ---

class ExternalServiceError(AppException):
    """A collaborator (document store, identity provider, SMTP) failed."""

    status_code = 502
    default_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(
        self,
        service_name: str,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message or f"External service '{service_name}' is unavailable or returned an error",
            details={**(details or {}), "service": service_name},
        )


class ConfigurationError(AppException):
    default_code = "CONFIGURATION_ERROR"
    default_message = "Configuration error"


# --- domain ---

class DoctorNotFoundError(NotFoundError):
    default_code = "DOCTOR_NOT_FOUND"
    default_message = "Doctor not found"

    def __init__(self, doctor_id: str | None = None) -> None:
        super().__init__(resource_type="doctor", resource_id=doctor_id)


class DoctorAlreadyExistsError(ConflictError):
    default_code = "DOCTOR_ALREADY_EXISTS"

    def __init__(self, email: str) -> None:
        super().__init__(f"Doctor with email '{email}' already exists", details={"email": email})


class ClinicNotFoundError(NotFoundError):
    """Clinic name in an import row matches no clinic (case-insensitive)."""

    default_code = "CLINIC_NOT_FOUND"

    def __init__(self, clinic_name: str, available: list[str] | None = None) -> None:
        available = list(available or [])
        super().__init__(
            f'Clinic name "{clinic_name}" not found. Available clinics: {", ".join(available)}',
            resource_type="clinic",
            resource_id=clinic_name,
            details={"available_clinics": available},
        )


class SpreadsheetFormatError(BadRequestError):
    """Upload is not a readable CSV/XLSX or lacks template headers."""

    default_code = "SPREADSHEET_FORMAT_ERROR"

    def __init__(
        self,
        message: str,
        filename: str | None = None,
        missing_headers: list[str] | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if filename:
            details["filename"] = filename
        if missing_headers:
            details["missing_headers"] = missing_headers
        super().__init__(message, details=details)

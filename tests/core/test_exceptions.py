"""Tests for the AppException hierarchy."""

import pytest

from src.portal.core.exceptions import (
    AppException,
    BadRequestError,
    ClinicNotFoundError,
    ConfigurationError,
    ConflictError,
    DoctorAlreadyExistsError,
    DoctorNotFoundError,
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    SpreadsheetFormatError,
    UnauthorizedError,
)


def test_app_exception_to_dict():
    exc = BadRequestError("Too many rows", error_code="TOO_MANY_ROWS", details={"max_rows": 500})
    assert exc.to_dict() == {
        "error": {"code": "TOO_MANY_ROWS", "message": "Too many rows", "details": {"max_rows": 500}}
    }
    assert str(exc) == "Too many rows"


@pytest.mark.parametrize(
    ("exc_type", "status_code", "code"),
    [
        (AppException, 500, "APP_ERROR"),
        (BadRequestError, 400, "BAD_REQUEST"),
        (UnauthorizedError, 401, "UNAUTHORIZED"),
        (ForbiddenError, 403, "FORBIDDEN"),
        (NotFoundError, 404, "NOT_FOUND"),
        (ConflictError, 409, "CONFLICT"),
        (ConfigurationError, 500, "CONFIGURATION_ERROR"),
    ],
)
def test_http_mapping_defaults(exc_type, status_code, code):
    exc = exc_type()
    assert exc.status_code == status_code
    assert exc.error_code == code
    assert exc.message == exc_type.default_message
    assert exc.details == {}


def test_not_found_records_resource():
    exc = NotFoundError(resource_type="doctor", resource_id="abc")
    assert exc.details == {"resource_type": "doctor", "resource_id": "abc"}


def test_details_are_not_shared_between_instances():
    shared = {"a": 1}
    first = NotFoundError(resource_type="doctor", details=shared)
    assert shared == {"a": 1}
    assert first.details == {"a": 1, "resource_type": "doctor"}


def test_external_service_error_names_service():
    exc = ExternalServiceError("document_store")
    assert exc.status_code == 502
    assert exc.error_code == "EXTERNAL_SERVICE_ERROR"
    assert exc.details["service"] == "document_store"
    assert "document_store" in exc.message

    custom = ExternalServiceError("identity", "signUp timed out")
    assert custom.message == "signUp timed out"


def test_domain_exceptions():
    missing = DoctorNotFoundError("uid-1")
    assert missing.status_code == 404
    assert missing.error_code == "DOCTOR_NOT_FOUND"
    assert missing.message == "Doctor not found"
    assert missing.details["resource_id"] == "uid-1"

    exists = DoctorAlreadyExistsError("dr@example.com")
    assert exists.status_code == 409
    assert exists.message == "Doctor with email 'dr@example.com' already exists"
    assert exists.details["email"] == "dr@example.com"

    clinic = ClinicNotFoundError("Nowhere Clinic", ["Makati Medical Center", "St. Luke's"])
    assert clinic.message == (
        'Clinic name "Nowhere Clinic" not found. '
        "Available clinics: Makati Medical Center, St. Luke's"
    )
    assert clinic.details["available_clinics"] == ["Makati Medical Center", "St. Luke's"]

    sheet = SpreadsheetFormatError("bad", filename="x.csv", missing_headers=["Email*"])
    assert sheet.status_code == 400
    assert sheet.error_code == "SPREADSHEET_FORMAT_ERROR"
    assert sheet.details == {"filename": "x.csv", "missing_headers": ["Email*"]}

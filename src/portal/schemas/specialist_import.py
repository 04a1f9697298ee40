"""
Specialist Import Schemas.

Typed records produced from spreadsheet rows, and the result envelopes
returned by the import and dry-run validation endpoints.
"""
from datetime import UTC, date, datetime, time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..models.enums import ImportErrorType, RecordState

# An untyped spreadsheet row keyed by template header, e.g. {"First Name*": "Ana"}.
ImportRow = dict[str, Any]


# ============================================
# Typed import record
# ============================================

class SpecialistImportRecord(BaseModel):
    """One fully-parsed spreadsheet row, ready to be written."""

    model_config = ConfigDict(frozen=True)

    row_number: int

    # Personal information
    first_name: str
    middle_name: str
    last_name: str
    suffix: str
    email: str
    temporary_password: str = Field(repr=False)
    contact_number: str
    date_of_birth: date
    gender: str
    civil_status: str
    address: str

    # Professional information
    specialty: str
    medical_license_number: str
    prc_id: str
    prc_expiry_date: date
    professional_fee: float

    # Schedule information
    clinic_name: str
    room_or_unit: str
    days_of_week: list[int]
    start_time: time
    end_time: time
    valid_from: date

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class OperatorCredential(BaseModel):
    """The admin driving an import; used to restore their identity session."""

    uid: str
    email: str
    password: str = Field(default="", repr=False)


# ============================================
# Validation
# ============================================

class RowValidationError(BaseModel):
    """A single field-level problem found in one row."""

    row: int
    field: str | None = None
    error: str


class ValidationResult(BaseModel):
    """Outcome of validating a single row."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ImportValidationResponse(BaseModel):
    """Result of the dry-run validation pass (no writes).

    ``valid`` is True only when ``errors`` is empty.
    """

    valid: bool
    total_rows: int
    error_count: int
    errors: list[RowValidationError]
    warnings: list[RowValidationError] = Field(default_factory=list)


# ============================================
# Run results
# ============================================

class ImportFailure(BaseModel):
    """A classified per-record failure."""

    row: int
    error: str
    retryable: bool
    batch: int
    error_type: ImportErrorType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class IssuedCredential(BaseModel):
    """Login issued to a newly created specialist. Shown to the operator once."""

    email: str
    password: str


class RecordOutcome(BaseModel):
    """Terminal state of one record."""

    row: int
    batch: int
    email: str | None = None
    state: RecordState
    attempts: int = 0
    account_id: str | None = None
    error: str | None = None


class BatchSummary(BaseModel):
    """Per-batch counts, built after every record in the batch has finished."""

    batch: int
    total: int
    successful: int
    failed: int
    errors: list[str] = Field(default_factory=list)


class BatchResult(BaseModel):
    """Aggregate result of one import run."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    errors: list[ImportFailure] = Field(default_factory=list)
    batches: list[BatchSummary] = Field(default_factory=list)
    credentials: list[IssuedCredential] = Field(default_factory=list)
    records: list[RecordOutcome] = Field(default_factory=list)
    emails_sent: int = 0

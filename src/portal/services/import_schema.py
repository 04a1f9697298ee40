"""
Specialist Import Column Schema.

``IMPORT_COLUMNS`` is the 22-column contract of the specialist import
template: each ``ColumnSpec`` names the spreadsheet header, the record
field it fills, the parser that turns the raw cell into a typed value and
any extra checks on the parsed value.

``map_row`` evaluates the schema once per row and returns either a typed
``SpecialistImportRecord`` or the field-level errors. ``validate_row`` is
the boolean view of the same evaluation. Neither raises nor mutates input.
"""
from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any

from ..core.config import get_settings
from ..schemas.specialist_import import (
    ImportRow,
    RowValidationError,
    SpecialistImportRecord,
    ValidationResult,
)
from .schedule_builder import ScheduleParseError, parse_days, parse_time

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")

GENDERS = ("male", "female", "other", "prefer-not-to-say")
CIVIL_STATUSES = ("single", "married", "divorced", "widowed", "separated")

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%d/%m/%Y", "%Y/%m/%d")

# Spreadsheet serial dates count days from 1899-12-30.
_SERIAL_EPOCH = date(1899, 12, 30)

Parser = Callable[[Any], Any]
Check = Callable[[Any], str | None]


@dataclass(frozen=True)
class ColumnSpec:
    """One template column.

    ``parser`` raises ``ValueError`` with a user-facing message when the raw
    cell is malformed; each check returns a message or ``None``.
    """

    header: str
    field: str
    parser: Parser
    checks: tuple[Check, ...] = ()


@dataclass
class MappingResult:
    """Outcome of mapping one row through the schema."""

    row_number: int
    record: SpecialistImportRecord | None = None
    errors: list[RowValidationError] = field(default_factory=list)
    warnings: list[RowValidationError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.record is not None and not self.errors


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

def cell_text(value: Any) -> str:
    """Render a cell as trimmed text; ``9171234567.0`` becomes ``"9171234567"``."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return _SERIAL_EPOCH + timedelta(days=int(value))
        except (OverflowError, ValueError):
            raise ValueError("Invalid date format") from None
    text = cell_text(value)
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise ValueError("Invalid date format") from None


def _parse_email(value: Any) -> str:
    text = cell_text(value)
    if not EMAIL_RE.match(text):
        raise ValueError("Invalid email format")
    return text


def _parse_phone(value: Any) -> str:
    text = re.sub(r"\s", "", cell_text(value))
    if not PHONE_RE.match(text):
        raise ValueError("Invalid phone number format")
    return text


def _parse_choice(choices: tuple[str, ...], label: str) -> Parser:
    def parse(value: Any) -> str:
        text = cell_text(value).lower()
        if text not in choices:
            options = ", ".join(choices[:-1]) + f", or {choices[-1]}"
            raise ValueError(f"{label} must be {options}")
        return text
    return parse


def _parse_fee(value: Any) -> float:
    try:
        return float(cell_text(value).replace(",", ""))
    except ValueError:
        raise ValueError("Professional fee must be a number") from None


def _parse_days(value: Any) -> list[int]:
    try:
        return parse_days(cell_text(value))
    except ScheduleParseError as exc:
        raise ValueError(str(exc)) from None


def _parse_time(label: str) -> Parser:
    def parse(value: Any) -> time:
        try:
            return parse_time(value)
        except ScheduleParseError:
            raise ValueError(f"{label} must be in HH:MM format (e.g., 09:00 or 9:00)") from None
    return parse


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------

def _min_length(label: str, minimum: int) -> Check:
    def check(value: str) -> str | None:
        if len(value) < minimum:
            return f"{label} must be at least {minimum} characters long"
        return None
    return check


def _fee_in_range(fee: float) -> str | None:
    maximum = get_settings().MAX_PROFESSIONAL_FEE
    if not 0 <= fee <= maximum:
        return f"Professional fee must be between 0 and {maximum:,.0f} PHP"
    return None


# ---------------------------------------------------------------------------
# Column schema
# ---------------------------------------------------------------------------

IMPORT_COLUMNS: tuple[ColumnSpec, ...] = (
    # Personal information
    ColumnSpec("First Name*", "first_name", cell_text, (_min_length("First name", 2),)),
    ColumnSpec("Middle Name*", "middle_name", cell_text, (_min_length("Middle name", 2),)),
    ColumnSpec("Last Name*", "last_name", cell_text, (_min_length("Last name", 2),)),
    ColumnSpec("Suffix*", "suffix", cell_text),
    ColumnSpec("Email*", "email", _parse_email),
    ColumnSpec(
        "Temporary Password*", "temporary_password", cell_text,
        (_min_length("Temporary password", 6),),
    ),
    ColumnSpec("Phone*", "contact_number", _parse_phone),
    ColumnSpec("Date of Birth*", "date_of_birth", parse_date),
    ColumnSpec("Gender*", "gender", _parse_choice(GENDERS, "Gender")),
    ColumnSpec("Civil Status*", "civil_status", _parse_choice(CIVIL_STATUSES, "Civil status")),
    ColumnSpec("Address*", "address", cell_text, (_min_length("Address", 10),)),
    # Professional information
    ColumnSpec("Specialty*", "specialty", cell_text, (_min_length("Specialty", 3),)),
    ColumnSpec(
        "Medical License*", "medical_license_number", cell_text,
        (_min_length("Medical license", 5),),
    ),
    ColumnSpec("PRC ID*", "prc_id", cell_text, (_min_length("PRC ID", 6),)),
    ColumnSpec("PRC Expiry*", "prc_expiry_date", parse_date),
    ColumnSpec("Professional Fee*", "professional_fee", _parse_fee, (_fee_in_range,)),
    # Schedule information
    ColumnSpec("Clinic Name*", "clinic_name", cell_text),
    ColumnSpec("Room/Unit*", "room_or_unit", cell_text),
    ColumnSpec("Day of Week*", "days_of_week", _parse_days),
    ColumnSpec("Start Time*", "start_time", _parse_time("Start time")),
    ColumnSpec("End Time*", "end_time", _parse_time("End time")),
    ColumnSpec("Valid From*", "valid_from", parse_date),
)

TEMPLATE_HEADERS: tuple[str, ...] = tuple(column.header for column in IMPORT_COLUMNS)

SAMPLE_ROW: dict[str, str] = {
    "First Name*": "Juan",
    "Middle Name*": "Santos",
    "Last Name*": "Dela Cruz",
    "Suffix*": "Jr.",
    "Email*": "juan.delacruz@example.com",
    "Temporary Password*": "TempPass123",
    "Phone*": "+639171234567",
    "Date of Birth*": "1980-05-15",
    "Gender*": "male",
    "Civil Status*": "married",
    "Address*": "123 Rizal Avenue, Makati City",
    "Specialty*": "Cardiology",
    "Medical License*": "MD-12345",
    "PRC ID*": "PRC-1234567",
    "PRC Expiry*": "2035-12-31",
    "Professional Fee*": "1500",
    "Clinic Name*": "Makati Medical Center",
    "Room/Unit*": "Room 301",
    "Day of Week*": "monday,wed,Fri",
    "Start Time*": "09:00",
    "End Time*": "17:00",
    "Valid From*": "2026-01-01",
}


def _is_blank(value: Any) -> bool:
    return value is None or cell_text(value) == ""


def map_row(row: ImportRow, row_number: int, *, today: date | None = None) -> MappingResult:
    """Evaluate every column of ``row`` and build a typed record."""
    result = MappingResult(row_number=row_number)
    values: dict[str, Any] = {}

    def fail(column: ColumnSpec, message: str) -> None:
        result.errors.append(
            RowValidationError(row=row_number, field=column.field, error=f"Row {row_number}: {message}")
        )

    for column in IMPORT_COLUMNS:
        raw = row.get(column.header)
        if _is_blank(raw):
            fail(column, f"{column.header} is required")
            continue
        try:
            parsed = column.parser(raw)
        except ValueError as exc:
            fail(column, str(exc))
            continue
        problems = [message for check in column.checks if (message := check(parsed))]
        for message in problems:
            fail(column, message)
        if not problems:
            values[column.field] = parsed

    start, end = values.get("start_time"), values.get("end_time")
    if start is not None and end is not None and end <= start:
        result.errors.append(RowValidationError(
            row=row_number,
            field="end_time",
            error=f"Row {row_number}: End time must be after start time",
        ))

    expiry = values.get("prc_expiry_date")
    if expiry is not None and expiry < (today or date.today()):
        result.warnings.append(RowValidationError(
            row=row_number,
            field="prc_expiry_date",
            error=f"Row {row_number}: PRC Expiry {expiry.isoformat()} is already in the past",
        ))

    if not result.errors:
        result.record = SpecialistImportRecord(row_number=row_number, **values)
    return result


def validate_row(row: ImportRow, row_number: int) -> ValidationResult:
    """Pure validation of one row; always returns a result."""
    mapped = map_row(row, row_number)
    return ValidationResult(
        is_valid=mapped.is_valid,
        errors=[error.error for error in mapped.errors],
        warnings=[warning.error for warning in mapped.warnings],
    )

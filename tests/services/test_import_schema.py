"""Tests for the import column schema and row mapping."""

from datetime import date, datetime, time

import pytest

from src.portal.services.import_schema import (
    IMPORT_COLUMNS,
    SAMPLE_ROW,
    TEMPLATE_HEADERS,
    cell_text,
    map_row,
    parse_date,
    validate_row,
)


def _row(**overrides):
    row = dict(SAMPLE_ROW)
    for header, value in overrides.items():
        row[header] = value
    return row


def test_template_has_22_columns():
    assert len(IMPORT_COLUMNS) == 22
    assert len(set(TEMPLATE_HEADERS)) == 22
    assert all(header.endswith("*") for header in TEMPLATE_HEADERS)
    assert set(SAMPLE_ROW) == set(TEMPLATE_HEADERS)


def test_sample_row_maps_to_record():
    result = map_row(SAMPLE_ROW, 3, today=date(2026, 1, 1))

    assert result.is_valid
    assert result.errors == []
    record = result.record
    assert record.row_number == 3
    assert record.email == "juan.delacruz@example.com"
    assert record.date_of_birth == date(1980, 5, 15)
    assert record.professional_fee == 1500.0
    assert record.days_of_week == [1, 3, 5]
    assert record.start_time == time(9, 0)
    assert record.end_time == time(17, 0)
    assert record.full_name == "Juan Dela Cruz"


def test_missing_fields_are_reported_by_header():
    result = map_row(_row(**{"Email*": "", "Specialty*": None}), 4)

    assert not result.is_valid
    assert result.record is None
    messages = [error.error for error in result.errors]
    assert "Row 4: Email* is required" in messages
    assert "Row 4: Specialty* is required" in messages


@pytest.mark.parametrize(
    "header, value, message",
    [
        ("Email*", "not-an-email", "Invalid email format"),
        ("Phone*", "phone123", "Invalid phone number format"),
        ("Temporary Password*", "abc", "Temporary password must be at least 6 characters long"),
        ("Gender*", "unknown", "Gender must be male, female, other, or prefer-not-to-say"),
        ("Civil Status*", "complicated", "Civil status must be single, married, divorced, widowed, or separated"),
        ("Professional Fee*", "abc", "Professional fee must be a number"),
        ("Professional Fee*", "-1", "Professional fee must be between 0 and 100,000 PHP"),
        ("Address*", "Short", "Address must be at least 10 characters long"),
        ("PRC ID*", "12345", "PRC ID must be at least 6 characters long"),
        ("Date of Birth*", "yesterday", "Invalid date format"),
        ("Start Time*", "25:00", "Start time must be in HH:MM format (e.g., 09:00 or 9:00)"),
    ],
)
def test_field_errors(header, value, message):
    result = map_row(_row(**{header: value}), 5)

    assert not result.is_valid
    assert f"Row 5: {message}" in [error.error for error in result.errors]


def test_end_time_must_follow_start_time():
    result = map_row(_row(**{"Start Time*": "17:00", "End Time*": "09:00"}), 3)
    assert [error.error for error in result.errors] == ["Row 3: End time must be after start time"]


def test_unknown_day_token_rejected():
    result = map_row(_row(**{"Day of Week*": "monday,funday"}), 3)
    assert not result.is_valid
    assert "funday" in result.errors[0].error


def test_expired_prc_is_a_warning_not_an_error():
    result = map_row(_row(**{"PRC Expiry*": "2020-01-01"}), 3, today=date(2026, 1, 1))

    assert result.is_valid
    assert result.warnings[0].error == "Row 3: PRC Expiry 2020-01-01 is already in the past"


def test_native_cell_types_from_xlsx():
    result = map_row(
        _row(**{
            "Phone*": 639171234567.0,
            "Date of Birth*": datetime(1980, 5, 15),
            "Professional Fee*": 2500,
            "Start Time*": time(8, 30),
            "End Time*": 0.5,
            "Valid From*": 46023,
        }),
        3,
    )

    assert result.is_valid
    record = result.record
    assert record.contact_number == "639171234567"
    assert record.date_of_birth == date(1980, 5, 15)
    assert record.professional_fee == 2500.0
    assert record.start_time == time(8, 30)
    assert record.end_time == time(12, 0)
    assert record.valid_from == date(2026, 1, 1)


def test_parse_date_formats():
    assert parse_date("2026-03-04") == date(2026, 3, 4)
    assert parse_date("03/04/2026") == date(2026, 3, 4)
    assert parse_date("25/12/2026") == date(2026, 12, 25)
    assert parse_date("2026/03/04") == date(2026, 3, 4)


@pytest.mark.parametrize("serial", [10**7, -10**7, float("inf"), float("-inf"), float("nan")])
def test_out_of_range_serial_dates_are_row_errors(serial):
    with pytest.raises(ValueError, match="Invalid date format"):
        parse_date(serial)

    result = validate_row(_row(**{"Date of Birth*": serial}), 3)

    assert not result.is_valid
    assert result.errors == ["Row 3: Invalid date format"]


def test_cell_text():
    assert cell_text(None) == ""
    assert cell_text(9171234567.0) == "9171234567"
    assert cell_text("  padded ") == "padded"


def test_validate_row_flattens_messages():
    ok = validate_row(SAMPLE_ROW, 3)
    assert ok.is_valid
    assert ok.errors == []

    bad = validate_row(_row(**{"Email*": "nope"}), 7)
    assert not bad.is_valid
    assert bad.errors == ["Row 7: Invalid email format"]


def test_map_row_does_not_mutate_input():
    row = _row()
    snapshot = dict(row)
    map_row(row, 3)
    assert row == snapshot

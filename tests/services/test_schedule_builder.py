"""Tests for weekly schedule block generation."""

from datetime import date, datetime, time

import pytest

from src.portal.services.schedule_builder import (
    ScheduleParseError,
    build_schedule_block,
    format_slot_label,
    generate_slot_template,
    parse_days,
    parse_time,
)


def test_parse_days_mixed_tokens():
    assert parse_days("monday,wed,Fri") == [1, 3, 5]


def test_parse_days_sunday_is_zero_and_deduplicates():
    assert parse_days("Sun; sunday ;SAT") == [0, 6]


def test_parse_days_rejects_unknown_token():
    with pytest.raises(ScheduleParseError, match="funday"):
        parse_days("monday,funday")


def test_parse_days_rejects_empty():
    with pytest.raises(ScheduleParseError):
        parse_days(" , ")


@pytest.mark.parametrize("value, expected", [
    ("09:00", time(9, 0)),
    ("9:00", time(9, 0)),
    ("23:59", time(23, 59)),
    ("00:00", time(0, 0)),
    (0.375, time(9, 0)),
    (datetime(2026, 1, 1, 14, 30, 15), time(14, 30)),
])
def test_parse_time_valid(value, expected):
    assert parse_time(value) == expected


@pytest.mark.parametrize("value", ["16:60", "25:00", "9", "9:5", "noon", 1.5])
def test_parse_time_invalid(value):
    with pytest.raises(ScheduleParseError):
        parse_time(value)


def test_format_slot_label():
    assert format_slot_label(time(0, 30)) == "12:30 AM"
    assert format_slot_label(time(9, 0)) == "09:00 AM"
    assert format_slot_label(time(12, 0)) == "12:00 PM"
    assert format_slot_label(time(16, 30)) == "04:30 PM"


def test_full_day_generates_sixteen_slots():
    slots = generate_slot_template(time(9, 0), time(17, 0))

    labels = list(slots)
    assert len(labels) == 16
    assert labels[0] == "09:00 AM"
    assert labels[-1] == "04:30 PM"
    assert "05:00 PM" not in slots
    assert slots["09:00 AM"] == {"defaultStatus": "available", "durationMinutes": 30}


def test_partial_last_slot_still_starts_before_end():
    labels = list(generate_slot_template(time(9, 0), time(10, 15)))
    assert labels == ["09:00 AM", "09:30 AM", "10:00 AM"]


def test_end_before_start_rejected():
    with pytest.raises(ScheduleParseError):
        generate_slot_template(time(17, 0), time(9, 0))


def test_build_schedule_block():
    block = build_schedule_block(
        specialist_id="uid-1",
        clinic_id="clinic-1",
        room_or_unit="Room 301",
        days_of_week=[1, 3, 5],
        start=time(9, 0),
        end=time(17, 0),
        valid_from=date(2026, 1, 1),
        now="2026-01-01T00:00:00.000Z",
    )

    assert block["specialistId"] == "uid-1"
    assert block["practiceLocation"] == {"clinicId": "clinic-1", "roomOrUnit": "Room 301"}
    assert block["recurrence"] == {"dayOfWeek": [1, 3, 5], "type": "weekly"}
    assert block["scheduleType"] == "Weekly"
    assert block["validFrom"] == "2026-01-01"
    assert block["isActive"] is True
    assert len(block["slotTemplate"]) == 16

"""
Schedule Builder.

Turns the schedule columns of an import row into a weekly ``ScheduleBlock``
document: day-of-week tokens become weekday numbers (Sunday = 0), and the
start/end window is walked in 30-minute steps to produce the slot template.

All functions are pure.
"""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import Any

SLOT_DURATION_MINUTES = 30

_DAY_NUMBERS: dict[str, int] = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}
DAY_ALIASES: dict[str, int] = {
    **_DAY_NUMBERS,
    **{name[:3]: number for name, number in _DAY_NUMBERS.items()},
}

_TIME_RE = re.compile(r"^([0-9]|0[0-9]|1[0-9]|2[0-3]):([0-5][0-9])$")
_DAY_SPLIT_RE = re.compile(r"[,;]")


class ScheduleParseError(ValueError):
    """Raised when a day list or time of day cannot be parsed."""


def parse_days(value: str) -> list[int]:
    """Parse ``"monday,wed,Fri"`` into sorted unique weekday numbers ``[1, 3, 5]``.

    Tokens are full day names or three-letter abbreviations, case-insensitive,
    separated by commas or semicolons.
    """
    days: set[int] = set()
    for raw_token in _DAY_SPLIT_RE.split(str(value)):
        token = raw_token.strip().lower()
        if not token:
            continue
        if token not in DAY_ALIASES:
            raise ScheduleParseError(
                f"Unrecognized day of week '{raw_token.strip()}'. "
                "Use full names or 3-letter abbreviations (e.g. monday, wed, Fri)"
            )
        days.add(DAY_ALIASES[token])
    if not days:
        raise ScheduleParseError("At least one day of week is required")
    return sorted(days)


def parse_time(value: Any) -> time:
    """Parse a time-of-day cell.

    Accepts ``H:MM`` / ``HH:MM`` strings (hour 0-23, minute 0-59), native
    ``time``/``datetime`` cells, and spreadsheet day fractions (0.375 = 09:00).
    """
    if isinstance(value, datetime):
        return value.time().replace(second=0, microsecond=0)
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not 0 <= value < 1:
            raise ScheduleParseError(f"Time fraction {value} is outside a single day")
        total_minutes = round(value * 24 * 60)
        if total_minutes >= 24 * 60:
            raise ScheduleParseError(f"Time fraction {value} rounds past midnight")
        return time(total_minutes // 60, total_minutes % 60)

    match = _TIME_RE.match(str(value).strip())
    if not match:
        raise ScheduleParseError(f"'{value}' is not a valid time; use HH:MM (e.g. 09:00 or 9:00)")
    return time(int(match.group(1)), int(match.group(2)))


def format_slot_label(slot: time) -> str:
    """12-hour display label, e.g. ``time(9, 0)`` -> ``"09:00 AM"``."""
    hour12 = slot.hour % 12 or 12
    meridiem = "AM" if slot.hour < 12 else "PM"
    return f"{hour12:02d}:{slot.minute:02d} {meridiem}"


def generate_slot_template(
    start: time,
    end: time,
    duration_minutes: int = SLOT_DURATION_MINUTES,
) -> dict[str, dict[str, Any]]:
    """Walk from ``start`` in fixed steps; no slot starts at or after ``end``.

    09:00-17:00 yields 16 slots, the last labelled ``"04:30 PM"``.
    """
    if end <= start:
        raise ScheduleParseError(
            f"End time {end.strftime('%H:%M')} must be after start time {start.strftime('%H:%M')}"
        )
    anchor = date(2000, 1, 1)
    cursor = datetime.combine(anchor, start)
    stop = datetime.combine(anchor, end)
    step = timedelta(minutes=duration_minutes)

    slots: dict[str, dict[str, Any]] = {}
    while cursor < stop:
        slots[format_slot_label(cursor.time())] = {
            "defaultStatus": "available",
            "durationMinutes": duration_minutes,
        }
        cursor += step
    return slots


def build_schedule_block(
    *,
    specialist_id: str,
    clinic_id: str,
    room_or_unit: str,
    days_of_week: list[int],
    start: time,
    end: time,
    valid_from: date,
    now: str,
) -> dict[str, Any]:
    """Assemble the ``specialistSchedules/{uid}/{scheduleId}`` document."""
    return {
        "createdAt": now,
        "isActive": True,
        "lastUpdated": now,
        "practiceLocation": {
            "clinicId": clinic_id,
            "roomOrUnit": room_or_unit,
        },
        "recurrence": {
            "dayOfWeek": list(days_of_week),
            "type": "weekly",
        },
        "scheduleType": "Weekly",
        "slotTemplate": generate_slot_template(start, end),
        "specialistId": specialist_id,
        "validFrom": valid_from.isoformat(),
    }

"""
Date Helpers

Sources send FHIR dates at every precision (YYYY, YYYY-MM, YYYY-MM-DD,
full dateTime with or without offset). These helpers parse leniently and
never raise.
"""

from datetime import date, datetime, timezone
import re

_PARTIAL_DATE = re.compile(r"^(\d{4})(?:-(\d{2}))?(?:-(\d{2}))?$")


def parse_date(value) -> datetime | None:
    """Parse a FHIR date/dateTime; naive values are treated as UTC."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        match = _PARTIAL_DATE.match(text)
        if match:
            year, month, day = match.groups()
            try:
                parsed = datetime(int(year), int(month or 1), int(day or 1))
            except ValueError:
                return None
        else:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def calendar_day(value) -> date | None:
    """Calendar date as written by the source (no timezone shift)."""
    parsed = parse_date(value)
    return parsed.date() if parsed else None


def same_day(first, second) -> bool:
    day1 = calendar_day(first)
    day2 = calendar_day(second)
    return day1 is not None and day1 == day2


def days_between(first, second) -> float | None:
    d1 = parse_date(first)
    d2 = parse_date(second)
    if d1 is None or d2 is None:
        return None
    return abs((d1 - d2).total_seconds()) / 86400


def dates_within_days(first, second, days: float) -> bool:
    delta = days_between(first, second)
    return delta is not None and delta <= days


def describe_duration(start, end) -> str | None:
    """Human-readable span: minutes under an hour, hours under a day, else days."""
    d1 = parse_date(start)
    d2 = parse_date(end)
    if d1 is None or d2 is None or d2 < d1:
        return None
    minutes = round((d2 - d1).total_seconds() / 60)
    if minutes < 60:
        return f"{minutes} minutes"
    if minutes < 1440:
        return f"{round(minutes / 60)} hours"
    return f"{round(minutes / 1440)} days"

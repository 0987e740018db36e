"""
utils/time_utils.py

Purpose: Time and date helpers

- IST <-> UTC conversion for day-bucketed data (tasks, tracking)
- Indian financial year labels for invoice numbering
- Loose date parsing for request payloads
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Tuple

IST_OFFSET = timedelta(hours=5, minutes=30)
IST = timezone(IST_OFFSET, "IST")


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parses ISO strings, dates and datetimes into naive UTC datetimes.

    Returns None for empty input and raises ValueError for garbage.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def ist_midnight_utc(value: Any) -> Optional[datetime]:
    """
    Normalizes a calendar date to IST midnight, stored as naive UTC.

    "2026-03-10" becomes 2026-03-09 18:30 UTC. Timezone-aware inputs are
    first moved into IST so the calendar day is the one the user picked.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str) and len(value.strip()) == 10:
        day = date.fromisoformat(value.strip())
    elif isinstance(value, datetime) and value.tzinfo is not None:
        day = value.astimezone(IST).date()
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        day = parsed.astimezone(IST).date() if parsed.tzinfo else parsed.date()
    elif isinstance(value, datetime):
        day = value.date()
    else:
        day = value
    return datetime(day.year, day.month, day.day) - IST_OFFSET


def ist_date_key(value: datetime) -> str:
    """Calendar day (YYYY-MM-DD) in IST for a naive UTC datetime."""
    return (value + IST_OFFSET).date().isoformat()


def ist_day_bounds(day: Any) -> Tuple[datetime, datetime]:
    """
    UTC [start, end) range covering the given IST calendar day.
    """
    start = ist_midnight_utc(day)
    return start, start + timedelta(days=1)


def financial_year(now: Optional[datetime] = None) -> str:
    """
    Indian financial year label ("25-26") for the IST date of ``now``.

    The year runs April to March.
    """
    local = (now or datetime.utcnow()) + IST_OFFSET
    start = local.year if local.month >= 4 else local.year - 1
    return f"{start % 100:02d}-{(start + 1) % 100:02d}"


def add_months(value: datetime, months: int) -> datetime:
    """Adds calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    for day in range(value.day, 0, -1):
        try:
            return value.replace(year=year, month=month, day=day)
        except ValueError:
            continue
    return value

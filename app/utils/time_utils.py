from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Tuple, Union

from pytz import UTC, timezone

Timestamp = Union[str, datetime, None]


def parse_timestamp(value: Timestamp) -> Optional[datetime]:
    """Parse an ISO-8601 string or datetime into an aware UTC datetime.

    Returns None for missing or malformed input instead of raising.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return UTC.localize(parsed)
    return parsed.astimezone(UTC)


def truncate_to_2_decimals(value: float) -> str:
    """Truncate (never round) a number to 2 decimal places.

    The shortest decimal representation is sliced, so 1.999 -> "1.99" and
    3 -> "3.00".
    """
    text = format(Decimal(repr(float(value))), "f")
    integer, _, decimals = text.partition(".")
    return f"{integer}.{decimals[:2].ljust(2, '0')}"


def format_duration(hours: int, minutes: int) -> str:
    return f"{hours}h {minutes:02d}m"


def truncate_to_minute(value: Timestamp) -> Optional[datetime]:
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.replace(second=0, microsecond=0)


def compute_hours(time_in: Timestamp, time_out: Timestamp, break_minutes: float = 0) -> float:
    """Elapsed hours between two timestamps, less a break, truncated to 2 decimals.

    Negative spans (clock skew, swapped inputs) and malformed timestamps give 0.
    """
    start = parse_timestamp(time_in)
    end = parse_timestamp(time_out)
    if start is None or end is None:
        return 0.0

    diff_ms = (end - start).total_seconds() * 1000 - (break_minutes or 0) * 60000
    if diff_ms <= 0:
        return 0.0
    return float(truncate_to_2_decimals(diff_ms / 3600000))


def calculate_time_worked(time_in: Timestamp, time_out: Timestamp) -> dict:
    """
    Duration text, raw hours and truncated decimal text for one span.
    The duration text only counts completed minutes.
    """
    start = parse_timestamp(time_in)
    end = parse_timestamp(time_out)
    if start is None or end is None or end <= start:
        return {"duration": "0h 00m", "hours_worked": 0.0, "decimal": "0.00"}

    diff_seconds = (end - start).total_seconds()
    total_minutes = int(diff_seconds // 60)
    hours_worked = diff_seconds / 3600

    return {
        "duration": format_duration(total_minutes // 60, total_minutes % 60),
        "hours_worked": hours_worked,
        "decimal": truncate_to_2_decimals(hours_worked),
    }


def calculate_internship_progress(logs: Iterable, user_id: Optional[str] = None) -> float:
    """
    Total completed hours counted towards an internship.

    Only completed logs count, overtime and extended overtime only once
    approved. Seconds are dropped from each log before summing and the total
    is truncated to 2 decimals.
    """
    total_minutes = 0
    for log in logs:
        if user_id is not None and str(log.user_id) != str(user_id):
            continue
        if log.time_in is None or log.time_out is None:
            continue
        if log.is_overtime and log.overtime_status != "approved":
            continue

        diff_seconds = (log.time_out - log.time_in).total_seconds()
        if diff_seconds > 0:
            total_minutes += int(diff_seconds // 60)

    return float(truncate_to_2_decimals(total_minutes / 60))


def local_date(value: Timestamp, tz_name: str) -> Optional[date]:
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.astimezone(timezone(tz_name)).date()


def local_day_bounds(day: date, tz_name: str) -> Tuple[datetime, datetime]:
    """UTC [start, end) of a local calendar day."""
    tz = timezone(tz_name)
    start = tz.localize(datetime(day.year, day.month, day.day))
    end = tz.localize(datetime(day.year, day.month, day.day) + timedelta(days=1))
    return start.astimezone(UTC), end.astimezone(UTC)

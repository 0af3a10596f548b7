"""Centralized datetime utilities for consistent timezone handling.

All functions return naive UTC datetimes for database compatibility
(SQLAlchemy models store naive UTC).

Usage:
    from cadence.core.datetime_utils import utc_now, round_to_next_hour

    now = utc_now()

    # Jobs only ever run on whole-hour slots
    next_run_at = round_to_next_hour(requested_run_at)
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """Get current UTC time as naive datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert a datetime to naive UTC.

    Args:
        dt: Datetime to convert (can be aware or naive)

    Returns:
        Naive UTC datetime for database compatibility
    """
    if dt.tzinfo is None:
        # Already naive, assume it's UTC
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def round_to_next_hour(dt: datetime) -> datetime:
    """Round a timestamp up to the start of the next whole hour.

    Sub-hour precision is stripped. If the original had any minutes or
    seconds the result moves forward one hour; a timestamp already on the
    hour is returned unchanged. Sub-second precision alone never moves
    the slot.

    Examples:
        10:15:30 -> 11:00:00
        10:00:00 -> 10:00:00

    Args:
        dt: Requested run time

    Returns:
        Quantized run time
    """
    rounded = dt.replace(minute=0, second=0, microsecond=0)
    if dt.minute > 0 or dt.second > 0:
        rounded += timedelta(hours=1)
    return rounded


def elapsed_ms(started: float, finished: float) -> float:
    """Milliseconds between two monotonic clock readings."""
    return round((finished - started) * 1000, 3)

"""
Timestamp normalization for Lead Conversation Hub.
Turns the backend's mixed timestamp values into timezone-aware UTC datetimes.

Usage:
    from scripts.lib.timestamps import parse_timestamp, try_parse_timestamp

    local_date = parse_timestamp(raw_message.get("timestamp"))   # never fails
    created = try_parse_timestamp(thread.created_at)             # None if bad

The backend emits ISO timestamps without a timezone suffix
(``2025-06-18T02:24:04.542130``). Those are UTC and get a ``Z`` appended
before parsing so they are never read as local time.
"""
from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, List, Optional

from scripts.lib.errors import TimestampParseError
from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)

# Second, millisecond and microsecond precision, no timezone designator
NAIVE_ISO_PATTERNS = (
    re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{6}$"),
    re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}$"),
    re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}$"),
)

# Basic-format offset ("+0000") at the end of an ISO timestamp
_BASIC_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")

# Epoch values above this are milliseconds
_EPOCH_MS_THRESHOLD = 1e12


def now_utc() -> datetime:
    """Current UTC time, timezone-aware."""
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _from_epoch(value: float) -> datetime:
    seconds = value / 1000 if abs(value) > _EPOCH_MS_THRESHOLD else value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise TimestampParseError(value) from e


def normalize_naive_iso(value: str) -> str:
    """Append ``Z`` to a timezone-less ISO timestamp; leave anything else alone."""
    if any(pattern.match(value) for pattern in NAIVE_ISO_PATTERNS):
        return value + "Z"
    return value


def _parse(value: Any) -> datetime:
    """Parse a non-empty timestamp value or raise TimestampParseError."""
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise TimestampParseError(value)
    if isinstance(value, (int, float)):
        return _from_epoch(value)
    if not isinstance(value, str):
        raise TimestampParseError(value)

    cleaned = normalize_naive_iso(value.strip())
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"
    elif "T" in cleaned:
        cleaned = _BASIC_OFFSET.sub(r"\1:\2", cleaned)
    try:
        return _as_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        pass

    # RFC 2822 email dates: "Wed, 18 Jun 2025 02:24:04 GMT"
    try:
        return _as_utc(parsedate_to_datetime(value.strip()))
    except (TypeError, ValueError) as e:
        raise TimestampParseError(value) from e


def parse_timestamp(value: Any, log: Optional[logging.Logger] = None) -> datetime:
    """
    Convert any timestamp-ish value into a valid, timezone-aware datetime.

    Args:
        value: ISO string, datetime, date, epoch number, or None.
        log: Logger for repair warnings (default: module logger).

    Returns:
        The parsed datetime. Empty values and unparseable values both
        yield the current UTC time; this function never raises.
    """
    if isinstance(value, datetime):
        return _as_utc(value)
    if not value:
        return now_utc()
    try:
        return _parse(value)
    except TimestampParseError:
        (log or logger).warning(
            "Invalid timestamp format: %r, falling back to current date", value,
        )
        return now_utc()


def try_parse_timestamp(value: Any, log: Optional[logging.Logger] = None) -> Optional[datetime]:
    """Strict variant of parse_timestamp: None instead of "now" for bad or empty values."""
    if value is None or value == "":
        return None
    try:
        return _parse(value)
    except TimestampParseError:
        (log or logger).warning("Skipping unparseable timestamp: %r", value)
        return None


def ensure_local_date(value: Any) -> datetime:
    """Coerce a stored local_date (datetime or serialized string) back to a datetime."""
    return parse_timestamp(value)


def is_valid_date(value: Any) -> bool:
    """True for datetime instances only."""
    return isinstance(value, datetime)


def compare_dates(a: Any, b: Any, ascending: bool = False) -> float:
    """Sort comparator over anything parse_timestamp accepts (seconds difference)."""
    delta = (ensure_local_date(a) - ensure_local_date(b)).total_seconds()
    return delta if ascending else -delta


def date_key_day(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime as a 'YYYY-MM-DD' string."""
    if dt is None:
        return None
    return dt.strftime("%Y-%m-%d")


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=23, minute=59, second=59, microsecond=999999)


def start_of_month(dt: datetime) -> datetime:
    return start_of_day(dt.replace(day=1))


def end_of_month(dt: datetime) -> datetime:
    first_of_next = (dt.replace(day=28) + timedelta(days=4)).replace(day=1)
    return end_of_day(first_of_next - timedelta(days=1))


def previous_month_start(dt: datetime) -> datetime:
    """First instant of the calendar month before ``dt``."""
    return start_of_month(start_of_month(dt) - timedelta(days=1))


def days_between(start: datetime, end: datetime) -> List[datetime]:
    """Every day from ``start`` to ``end`` inclusive, stepping one day at a time."""
    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days


def is_today(dt: datetime, now: Optional[datetime] = None) -> bool:
    now = now or now_utc()
    return dt.astimezone(now.tzinfo).date() == now.date()


def is_yesterday(dt: datetime, now: Optional[datetime] = None) -> bool:
    now = now or now_utc()
    return dt.astimezone(now.tzinfo).date() == (now - timedelta(days=1)).date()

"""
Calendar Utilities for Sprint Analytics

Date parsing and day arithmetic shared by every calculator.
All results are naive and day-granular; no other module parses dates.
"""

import logging
import re
from datetime import datetime, date, time, timedelta
from typing import Any, Optional

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

# Fills components missing from loose strings like "March 3" so parsing
# never depends on the current clock.
_PARSE_DEFAULT = datetime(1970, 1, 1)

# dateutil reads these as a day of the default month
_NUMERIC = re.compile(r"^[+-]?\d+(\.\d+)?$")


def parse_flexible_date(value: Any) -> Optional[datetime]:
    """
    Normalize a date-like value to a naive datetime.

    Accepts datetime/date objects, ISO strings (with or without a trailing
    "Z") and other human-readable date strings. Aware values keep their
    wall-clock date and time; the offset is dropped, not applied.

    Returns:
        Naive datetime, or None if the value cannot be parsed
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return _naive(value)

    if isinstance(value, date):
        return datetime.combine(value, time.min)

    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return _naive(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except (ValueError, OverflowError):
        pass

    if _NUMERIC.match(text):
        return None

    try:
        return _naive(date_parser.parse(text, default=_PARSE_DEFAULT))
    except (ValueError, OverflowError, TypeError):
        logger.debug("Unparseable date value: %r", value)
        return None


def _naive(value: datetime) -> datetime:
    # Offset dropped, not applied: the calendar day never moves
    return value.replace(tzinfo=None)


def to_day(value: Any) -> Optional[date]:
    """Parse a value and keep only its calendar day."""
    parsed = parse_flexible_date(value)
    return parsed.date() if parsed else None


def enumerate_days(start: Any, end: Any) -> list[date]:
    """
    Inclusive daily sequence from start to end.

    Returns an empty list if either bound is invalid or end < start.
    """
    first = to_day(start)
    last = to_day(end)
    if first is None or last is None or last < first:
        return []

    return [first + timedelta(days=i) for i in range((last - first).days + 1)]


def business_days_inclusive(start: Any, end: Any) -> int:
    """Number of Monday-Friday days in [start, end]."""
    first = to_day(start)
    last = to_day(end)
    if first is None or last is None or last < first:
        return 0

    total_days = (last - first).days + 1
    full_weeks, extra = divmod(total_days, 7)
    count = full_weeks * 5

    weekday = first.weekday()
    for offset in range(extra):
        if (weekday + offset) % 7 < 5:  # Monday = 0, Friday = 4
            count += 1

    return count


def overlap_days(a_start: Any, a_end: Any, b_start: Any, b_end: Any) -> int:
    """Calendar days (inclusive) shared by two ranges; 0 if disjoint or invalid."""
    bounds = [to_day(v) for v in (a_start, a_end, b_start, b_end)]
    if any(b is None for b in bounds):
        return 0

    first_a, last_a, first_b, last_b = bounds
    start = max(first_a, first_b)
    end = min(last_a, last_b)
    if end < start:
        return 0
    return (end - start).days + 1


def ranges_overlap(a_start: Any, a_end: Any, b_start: Any, b_end: Any) -> bool:
    """Check if two date ranges share at least one day."""
    return overlap_days(a_start, a_end, b_start, b_end) > 0

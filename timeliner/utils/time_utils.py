"""
Time conversion utilities for bodyfile timestamps.

Bodyfile timestamps are signed epoch seconds. All instants handled by timeliner
are timezone-aware UTC datetimes; conversions go through UNIX_EPOCH arithmetic
rather than fromtimestamp() so negative values work on every platform.
"""

import datetime
import re
from typing import Optional

from dateutil import parser as dateutil_parser

# Unix epoch (January 1, 1970)
UNIX_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)

# Weekday names indexed by datetime.weekday(), independent of the locale
WEEKDAY_NAMES = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')

# Only strings shaped like ISO-8601 dates are treated as date literals
DATE_LITERAL_PATTERN = re.compile(
    r'^\d{4}-\d{2}-\d{2}'
    r'(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}(?::?\d{2})?)?)?$'
)


def epoch_to_datetime(seconds: int) -> datetime.datetime:
    """
    Convert epoch seconds to a UTC datetime.

    Raises:
        OverflowError: If the value is outside the range datetime supports
    """
    return UNIX_EPOCH + datetime.timedelta(seconds=seconds)


def datetime_to_epoch(dt: datetime.datetime) -> int:
    """Convert a datetime to whole epoch seconds. Naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return (dt - UNIX_EPOCH) // datetime.timedelta(seconds=1)


def weekday_name(dt: datetime.datetime) -> str:
    """English weekday name ('Monday' ... 'Sunday')."""
    return WEEKDAY_NAMES[dt.weekday()]


def parse_date_literal(text: str) -> Optional[float]:
    """
    Parse a date/time string into epoch seconds.

    Accepts 'YYYY-MM-DD' optionally followed by a time and a zone, separated
    by 'T' or a space. Values without a zone are UTC.

    Args:
        text: Candidate date string

    Returns:
        float: Epoch seconds, or None if the text is not a date
    """
    if not DATE_LITERAL_PATTERN.match(text):
        return None

    try:
        dt = dateutil_parser.isoparse(text)
    except (ValueError, OverflowError):
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return (dt - UNIX_EPOCH).total_seconds()


def format_datetime(dt: Optional[datetime.datetime]) -> str:
    """Format a UTC datetime as ISO-8601 with a 'Z' suffix."""
    if dt is None:
        return ""
    if dt.tzinfo is not None:
        dt = dt.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return dt.strftime('%Y-%m-%dT%H:%M:%SZ')

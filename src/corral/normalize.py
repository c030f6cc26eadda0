"""Timestamp and number normalization for loosely-typed registry data.

Registry records and usage logs carry timestamps as epoch seconds, epoch
milliseconds, ISO strings or assorted human formats, and counts as numbers or
comma-formatted strings. Everything here is total: bad input yields None,
never an exception.

The epoch heuristic is threshold based, not calendar exact: numbers above
1e12 are milliseconds, numbers above 1e9 are seconds, anything smaller is
rejected as ambiguous.
"""

import math
import re
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

MS_THRESHOLD = 1e12
SECONDS_THRESHOLD = 1e9

_NUMBER_RE = re.compile(r'^[+-]?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?(?:[eE][+-]?\d+)?$')

_DATE_FORMATS = (
    # fromisoformat before 3.11 only takes 3- or 6-digit fractions
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y",
    "%a %b %d %H:%M:%S %Y",
    "%b %d, %Y %H:%M",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def coerce_number(value: Any) -> int | float | None:
    """Convert a number or numeric-looking string to a number.

    Thousands separators are stripped from strings ("1,234" -> 1234).
    Booleans, NaN, infinities and everything else return None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return value
    if isinstance(value, str):
        token = value.strip()
        if not token or not _NUMBER_RE.match(token):
            return None
        token = token.replace(',', '')
        try:
            if any(c in token for c in '.eE'):
                number = float(token)
                return None if math.isinf(number) else number
            return int(token)
        except ValueError:
            return None
    return None


def _datetime_to_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def _parse_date_string(token: str) -> datetime | None:
    try:
        return datetime.fromisoformat(token.replace('Z', '+00:00'))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(token, fmt)
        except ValueError:
            continue
    try:
        return parsedate_to_datetime(token)
    except (TypeError, ValueError, IndexError):
        return None


def coerce_timestamp(value: Any) -> int | None:
    """Convert a heterogeneous timestamp to epoch milliseconds.

    Args:
        value: Epoch seconds/milliseconds, ISO or human date string, or datetime

    Returns:
        Epoch milliseconds, or None if the value is missing or unusable
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        try:
            return _datetime_to_ms(value)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None
        if value > MS_THRESHOLD:
            return int(value)
        if value > SECONDS_THRESHOLD:
            return int(value * 1000)
        return None
    if isinstance(value, str):
        token = value.strip()
        if not token:
            return None
        number = coerce_number(token)
        if number is not None:
            return coerce_timestamp(number)
        parsed = _parse_date_string(token)
        if parsed is None:
            return None
        try:
            return _datetime_to_ms(parsed)
        except (OverflowError, OSError, ValueError):
            return None
    return None


def to_iso(ms: int | float | None) -> str | None:
    """Format epoch milliseconds as an ISO-8601 UTC string ending in 'Z'."""
    if ms is None:
        return None
    try:
        dt = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    timespec = 'seconds' if int(ms) % 1000 == 0 else 'milliseconds'
    return dt.isoformat(timespec=timespec).replace('+00:00', 'Z')

"""ISO-8601 subsets used by metadata record timestamps.

Two formats are recognised:

  * ``DATETIME_MILLIS``: ``YYYY-MM-DDTHH:MM:SS.SSSZ`` (record bookkeeping times)
  * ``PARTIAL_DATE``: ``YYYY-MM-DD`` optionally followed by ``THH:MM:SS`` and an
    optional ``Z`` (sampling dates, run times)

A string must match the pattern *and* name a real calendar instant.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class TimeFormat(str, Enum):
    DATETIME_MILLIS = "datetime_millis"
    """
    Full timestamp with millisecond precision and UTC marker.
    """
    PARTIAL_DATE = "partial_date"
    """
    Calendar date with an optional second-precision time component.
    """


_DATETIME_MILLIS_RE = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2}):([0-9]{2})\.([0-9]{3})Z"
)
_PARTIAL_DATE_RE = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})(?:T([0-9]{2}):([0-9]{2}):([0-9]{2})Z?)?"
)

_PATTERNS = {
    TimeFormat.DATETIME_MILLIS: _DATETIME_MILLIS_RE,
    TimeFormat.PARTIAL_DATE: _PARTIAL_DATE_RE,
}


def parse_timestamp(value: Any, fmt: TimeFormat) -> Optional[datetime]:
    """Parse *value* under *fmt*, returning ``None`` when it does not conform."""
    if not isinstance(value, str):
        return None
    # whole string, ASCII digits only
    m = _PATTERNS[TimeFormat(fmt)].fullmatch(value)
    if m is None:
        return None
    parts = [int(g) if g is not None else 0 for g in m.groups()]
    if fmt == TimeFormat.DATETIME_MILLIS:
        parts[6] *= 1000  # milliseconds -> microseconds
    try:
        return datetime(*parts, tzinfo=timezone.utc)
    except ValueError:
        return None


def is_valid_timestamp(value: Any, fmt: TimeFormat) -> bool:
    return parse_timestamp(value, fmt) is not None


def format_timestamp(moment: datetime) -> str:
    """Render *moment* as ``YYYY-MM-DDTHH:MM:SS.SSSZ``.

    Naive datetimes are taken to already be in UTC.
    """
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return f"{moment:%Y-%m-%dT%H:%M:%S}.{moment.microsecond // 1000:03d}Z"


def utc_now_timestamp() -> str:
    return format_timestamp(datetime.now(timezone.utc))


__all__ = [
    "TimeFormat",
    "parse_timestamp",
    "is_valid_timestamp",
    "format_timestamp",
    "utc_now_timestamp",
]

# -----------------------------------------------------------------------------
# Copyright (c) 2025 vSphere Perf Analyzer contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

"""
Timestamp normalization to the nanosecond epoch integers used in line protocol.
"""

import calendar
import logging
import re
from datetime import datetime, timezone

from vpa.exceptions import InvalidTimestamp

LOG = logging.getLogger(__name__)

# InfluxDB's default write precision is nanoseconds
NS_PER_SECOND = 1_000_000_000

SOURCE_TIME_FORMAT = '%d.%m.%Y %H:%M:%S'
_SOURCE_TIME_RE = re.compile(r'^\d{2}\.\d{2}\.\d{4} \d{2}:\d{2}:\d{2}$')


def parse_source_time(value: str) -> datetime:
    """
    Parse a 'dd.mm.YYYY HH:MM:SS' string as a UTC datetime.

    Raises:
        InvalidTimestamp: If the string does not match the layout exactly or
            names a date that does not exist
    """
    if not _SOURCE_TIME_RE.match(value):
        raise InvalidTimestamp(value, f"expected layout {SOURCE_TIME_FORMAT}")
    try:
        parsed = datetime.strptime(value, SOURCE_TIME_FORMAT)
    except ValueError as e:
        raise InvalidTimestamp(value, str(e)) from e
    return parsed.replace(tzinfo=timezone.utc)


def to_epoch_ns(value) -> int:
    """
    Convert a source timestamp to integer nanoseconds since the epoch.

    Naive datetimes are read as UTC. Aware datetimes are converted to UTC first.
    Sub-second precision is dropped: the result is always whole seconds times 10^9.

    Args:
        value: A datetime or a 'dd.mm.YYYY HH:MM:SS' string

    Returns:
        int: Nanoseconds since 1970-01-01T00:00:00Z

    Raises:
        InvalidTimestamp: For malformed strings and unsupported types
    """
    if isinstance(value, str):
        dt = parse_source_time(value)
    elif isinstance(value, datetime):
        dt = value if value.tzinfo is None else value.astimezone(timezone.utc)
    else:
        raise InvalidTimestamp(value, f"unsupported timestamp type {type(value).__name__}")

    return calendar.timegm(dt.utctimetuple()) * NS_PER_SECOND


def now_ns() -> int:
    """Current time, truncated to whole seconds, in nanoseconds."""
    return to_epoch_ns(datetime.now(timezone.utc))

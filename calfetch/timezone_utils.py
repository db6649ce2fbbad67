"""Timezone resolution and clock utilities for calfetch."""

from __future__ import annotations

import datetime
import logging
import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

TEST_TIME_ENV = "CALFETCH_TEST_TIME"

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.UTC)


def resolve_timezone(name: str | None) -> datetime.tzinfo:
    """Return the tzinfo for an IANA name, or the host's local zone.

    Args:
        name: IANA timezone identifier (e.g. "Europe/Berlin"), or None

    Returns:
        ZoneInfo for a valid name; the system local timezone otherwise
    """
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r; falling back to system local time", name)

    local_tz = datetime.datetime.now().astimezone().tzinfo
    return local_tz if local_tz is not None else datetime.UTC


def start_of_day(dt: datetime.datetime) -> datetime.datetime:
    """Midnight at the beginning of dt's calendar day, in dt's own timezone."""
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def to_millis(dt: datetime.datetime) -> int:
    """Convert an aware datetime to a millisecond epoch timestamp."""
    return (dt - _EPOCH) // datetime.timedelta(milliseconds=1)


class TimeProvider:
    """Provides "now" in the configured timezone, with a test override."""

    def __init__(self, tz: datetime.tzinfo | None = None):
        self.tz = tz or resolve_timezone(None)

    def now(self) -> datetime.datetime:
        """Return the current time as an aware datetime in the configured zone.

        Can be overridden for testing via the CALFETCH_TEST_TIME environment
        variable (ISO 8601, e.g. "2025-10-27T08:20:00-07:00"). Naive override
        values are taken as UTC.
        """
        test_time = os.environ.get(TEST_TIME_ENV)
        if test_time:
            try:
                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is None:
                    dt = dt.replace(tzinfo=datetime.UTC)
                return dt.astimezone(self.tz)
            except ValueError as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

        return datetime.datetime.now(self.tz)

    def __call__(self) -> datetime.datetime:
        return self.now()

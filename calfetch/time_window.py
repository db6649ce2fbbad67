"""Look-ahead window filtering for calendar events."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable

from .models import CalendarEvent
from .timezone_utils import start_of_day, to_millis

logger = logging.getLogger(__name__)


def compute_horizon(now: datetime.datetime, maximum_number_of_days: int) -> datetime.datetime:
    """Return the last instant an event may start at and still be kept.

    The horizon ends one second before midnight of day N so an event starting
    exactly at that midnight is not shown twice across the day boundary.

    Args:
        now: Current time (timezone-aware)
        maximum_number_of_days: Look-ahead in calendar days

    Returns:
        start_of_day(now) + maximum_number_of_days days - 1 second, clamped
        to the largest representable datetime
    """
    try:
        return (
            start_of_day(now)
            + datetime.timedelta(days=maximum_number_of_days)
            - datetime.timedelta(seconds=1)
        )
    except OverflowError:
        return datetime.datetime.max.replace(tzinfo=now.tzinfo)


def is_within_window(event: CalendarEvent, now_ms: int, future_ms: int) -> bool:
    """Check whether an event has not ended and starts before the horizon."""
    if event.end_date < now_ms:
        logger.debug(
            "Skipped past event, title: %s, begin: %s, end: %s",
            event.title,
            event.start.isoformat(),
            event.end.isoformat(),
        )
        return False

    if event.start_date > future_ms:
        logger.debug(
            "Skipped far future event, title: %s, begin: %s, end: %s",
            event.title,
            event.start.isoformat(),
            event.end.isoformat(),
        )
        return False

    return True


def filter_events(
    events: Iterable[CalendarEvent],
    now: datetime.datetime,
    maximum_number_of_days: int,
) -> list[CalendarEvent]:
    """Keep events that overlap [now, horizon], preserving input order.

    Both bounds are inclusive on the keep side: an event ending exactly at
    ``now`` or starting exactly at the horizon survives.

    Args:
        events: Candidate events
        now: Current time (timezone-aware); its zone defines "start of day"
        maximum_number_of_days: Look-ahead in calendar days

    Returns:
        Events that are neither elapsed nor beyond the horizon
    """
    now_ms = to_millis(now)
    future_ms = to_millis(compute_horizon(now, maximum_number_of_days))
    return [event for event in events if is_within_window(event, now_ms, future_ms)]

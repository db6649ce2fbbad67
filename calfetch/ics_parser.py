"""iCalendar parsing adapter built on the icalendar library."""

import logging
from typing import Optional, Union, cast

from icalendar import Calendar
from icalendar import Event as ICalEvent

from .exceptions import FeedParseError

logger = logging.getLogger(__name__)


def parse_calendar(ics_content: Optional[Union[bytes, str]]) -> list[ICalEvent]:
    """Parse raw feed content and return its VEVENT components.

    Args:
        ics_content: Raw iCalendar data as received from the server

    Returns:
        VEVENT components in document order; empty for empty input

    Raises:
        FeedParseError: If the content is not a valid iCalendar document
    """
    if ics_content is None:
        return []
    if isinstance(ics_content, bytes):
        ics_content = ics_content.decode("utf-8", errors="replace")
    if not ics_content.strip():
        return []

    if "BEGIN:VCALENDAR" not in ics_content:
        raise FeedParseError("Content does not contain a VCALENDAR")

    try:
        calendar = Calendar.from_ical(ics_content)
    except ValueError as e:
        raise FeedParseError(f"Invalid iCalendar content: {e}") from e

    events = [cast("ICalEvent", c) for c in calendar.walk("VEVENT")]
    logger.debug("Parsed %d VEVENT components", len(events))
    return events

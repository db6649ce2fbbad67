"""Conversion of iCalendar VEVENT components into CalendarEvent records."""

import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Optional

from icalendar import Event as ICalEvent

from .exceptions import EventNormalizationError
from .models import CalendarEvent
from .timezone_utils import to_millis

logger = logging.getLogger(__name__)

FULL_DAY = timedelta(hours=24)


def is_date_only(value: Any) -> bool:
    """True for a date value without a time-of-day component."""
    return isinstance(value, date) and not isinstance(value, datetime)


def to_aware_datetime(value: Any, tz: tzinfo) -> datetime:
    """Anchor a DTSTART/DTEND value to an absolute instant.

    Date-only values become local midnight; floating times are read in tz.

    Args:
        value: date or datetime decoded from the component
        tz: Timezone used for date-only and floating values

    Returns:
        Timezone-aware datetime

    Raises:
        EventNormalizationError: If value is neither a date nor a datetime
    """
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=tz)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=tz)
    raise EventNormalizationError(f"Unsupported date value: {value!r}")


def _decoded(component: ICalEvent, name: str) -> Any:
    """Return the decoded value of a date property, None when absent.

    Raises:
        EventNormalizationError: If the property is present but unreadable
    """
    prop = component.get(name)
    if prop is None:
        return None
    try:
        return prop.dt
    except (AttributeError, TypeError, ValueError) as e:
        raise EventNormalizationError(
            f"Event {component.get('UID')} has an unreadable {name}: {e}"
        ) from e


def is_full_day_event(
    component: ICalEvent, start: datetime, end: datetime, tz: tzinfo
) -> bool:
    """Check if an event covers whole days rather than a clock-time range.

    Some calendars encode all-day events as date-only values, others as a
    timed range from midnight to the next midnight. Both are recognised.

    Args:
        component: VEVENT component
        start: Normalized start instant
        end: Normalized end instant
        tz: Timezone that defines local midnight

    Returns:
        True if the event is a full-day event
    """
    if is_date_only(_decoded(component, "DTSTART")):
        return True

    local_start = start.astimezone(tz)
    starts_at_midnight = local_start.time() == time.min
    return end - start == FULL_DAY and starts_at_midnight


def _resolve_end(component: ICalEvent, raw_start: Any, start: datetime, tz: tzinfo) -> datetime:
    dtend = _decoded(component, "DTEND")
    if dtend is not None:
        return to_aware_datetime(dtend, tz)

    duration = _decoded(component, "DURATION")
    if isinstance(duration, timedelta):
        return start + duration

    # RFC 5545: date-only events without an end last one day, timed ones are instantaneous
    if is_date_only(raw_start):
        return start + timedelta(days=1)
    return start


def _optional_text(component: ICalEvent, name: str) -> Optional[str]:
    value = component.get(name)
    if value is None:
        return None
    return str(value)


def _parse_geo(component: ICalEvent) -> Optional[dict[str, float]]:
    geo = component.get("GEO")
    if geo is None:
        return None
    try:
        return {"lat": float(geo.latitude), "lon": float(geo.longitude)}
    except (AttributeError, TypeError, ValueError):
        logger.debug("Ignoring unparseable GEO value %r", geo)
        return None


def normalize_component(component: ICalEvent, tz: tzinfo) -> CalendarEvent:
    """Translate one VEVENT into a CalendarEvent.

    Args:
        component: Parsed VEVENT component
        tz: Timezone for date-only and floating values

    Returns:
        CalendarEvent with millisecond start/end and pass-through fields

    Raises:
        EventNormalizationError: If DTSTART is missing or a date property is unreadable
    """
    raw_start = _decoded(component, "DTSTART")
    if raw_start is None:
        raise EventNormalizationError(f"Event {component.get('UID')} has no DTSTART")

    start = to_aware_datetime(raw_start, tz)
    try:
        end = _resolve_end(component, raw_start, start, tz)
        start_ms, end_ms = to_millis(start), to_millis(end)
    except OverflowError as e:
        raise EventNormalizationError(
            f"Event {component.get('UID')} ends outside the supported date range"
        ) from e

    summary = component.get("SUMMARY")
    return CalendarEvent(
        title=str(summary) if summary is not None else "",
        start_date=start_ms,
        end_date=end_ms,
        full_day_event=is_full_day_event(component, start, end, tz),
        event_class=_optional_text(component, "CLASS"),
        location=_optional_text(component, "LOCATION"),
        geo=_parse_geo(component),
        description=_optional_text(component, "DESCRIPTION"),
        uid=_optional_text(component, "UID"),
    )

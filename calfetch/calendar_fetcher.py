"""Periodic calendar feed fetcher.

A CalendarFetcher owns one feed. Each cycle downloads the feed, parses it,
normalizes and filters the events, keeps the first ``maximum_entries`` by
start time and hands itself to the registered listener.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable, Iterable
from typing import Optional

from .event_normalizer import normalize_component
from .exceptions import EventNormalizationError, FeedParseError, FeedTransportError
from .exclusion import EventExcluder
from .http_client import FeedHttpClient
from .ics_parser import parse_calendar
from .models import (
    DEFAULT_MAXIMUM_ENTRIES,
    DEFAULT_MAXIMUM_NUMBER_OF_DAYS,
    DEFAULT_RELOAD_INTERVAL_MS,
    DEFAULT_TIMEOUT_SECONDS,
    CalendarEvent,
    CalendarSource,
    ExclusionRuleConfig,
    FeedAuth,
)
from .scheduler import FetchOutcome, FetchScheduler
from .time_window import filter_events
from .timezone_utils import TimeProvider, resolve_timezone

logger = logging.getLogger(__name__)

FetcherListener = Callable[["CalendarFetcher"], None]


class CalendarFetcher:
    """Fetches one calendar feed on a timer and publishes the filtered events."""

    def __init__(
        self,
        url: str,
        reload_interval: int = DEFAULT_RELOAD_INTERVAL_MS,
        excluded_events: Iterable[str | dict | ExclusionRuleConfig] = (),
        maximum_entries: int = DEFAULT_MAXIMUM_ENTRIES,
        maximum_number_of_days: int = DEFAULT_MAXIMUM_NUMBER_OF_DAYS,
        auth: Optional[FeedAuth] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: Optional[FeedHttpClient] = None,
        time_provider: Optional[Callable[[], datetime.datetime]] = None,
        timezone: Optional[datetime.tzinfo] = None,
    ) -> None:
        """Initialize fetcher.

        Args:
            url: Feed URL
            reload_interval: Delay between successful fetches, in milliseconds
            excluded_events: Exclusion patterns (strings or rule mappings)
            maximum_entries: Maximum number of events to keep
            maximum_number_of_days: Look-ahead window in days
            auth: Optional authentication descriptor
            timeout: HTTP timeout in seconds
            http_client: Optional shared HTTP client
            time_provider: Callable returning the current aware datetime
            timezone: Timezone for date-only and floating event times
        """
        self._url = url
        self.reload_interval = reload_interval
        self.excluder = EventExcluder(excluded_events)
        self.maximum_entries = maximum_entries
        self.maximum_number_of_days = maximum_number_of_days
        self.auth = auth
        self.timeout = timeout

        self.timezone = timezone or resolve_timezone(None)
        self._time_provider = time_provider or TimeProvider(self.timezone)

        self._http_client = http_client or FeedHttpClient()
        self._events: tuple[CalendarEvent, ...] = ()

        self._events_received_callback: FetcherListener = lambda _fetcher: None
        self._fetch_failed_callback: FetcherListener = lambda _fetcher: None

        self.scheduler = FetchScheduler(
            self.fetch_calendar,
            reload_interval=reload_interval / 1000,
            on_retries_exhausted=self._report_failure,
        )

    @classmethod
    def from_source(
        cls,
        source: CalendarSource,
        http_client: Optional[FeedHttpClient] = None,
        timezone: Optional[datetime.tzinfo] = None,
    ) -> CalendarFetcher:
        """Build a fetcher from a configured calendar source."""
        return cls(
            source.url,
            reload_interval=source.reload_interval,
            excluded_events=source.excluded_events,
            maximum_entries=source.maximum_entries,
            maximum_number_of_days=source.maximum_number_of_days,
            auth=source.auth,
            timeout=source.timeout,
            http_client=http_client,
            timezone=timezone,
        )

    def url(self) -> str:
        """Return the URL of this fetcher."""
        return self._url

    def events(self) -> tuple[CalendarEvent, ...]:
        """Return the events of the last successful cycle.

        The tuple is replaced, never mutated, by later cycles.
        """
        return self._events

    @property
    def failed_retrievals(self) -> int:
        return self.scheduler.failed_retrievals

    def on_receive(self, callback: FetcherListener) -> None:
        """Set the listener called with this fetcher after each non-empty cycle."""
        self._events_received_callback = callback

    def on_error(self, callback: FetcherListener) -> None:
        """Set the listener called when fast retries are given up."""
        self._fetch_failed_callback = callback

    def start_fetch(self) -> None:
        """Start fetching now and keep fetching on the reload interval."""
        logger.info("Starting calendar fetch for %s", self._url)
        self.scheduler.start()

    def stop(self) -> None:
        """Cancel the pending timer and any in-flight fetch."""
        self.scheduler.stop()

    def broadcast_events(self) -> None:
        """Hand the current state to the receive listener."""
        logger.debug("Broadcasting %d events from %s", len(self._events), self._url)
        try:
            self._events_received_callback(self)
        except Exception:
            logger.exception("Event listener failed for calendar %s", self._url)

    def _report_failure(self) -> None:
        try:
            self._fetch_failed_callback(self)
        except Exception:
            logger.exception("Error listener failed for calendar %s", self._url)

    async def fetch_calendar(self) -> FetchOutcome:
        """Run one fetch cycle.

        Returns:
            FAILURE for a transport problem or non-200 status, EMPTY when no
            event survived, EVENTS when the held list was replaced
        """
        try:
            response = await self._http_client.fetch_feed(self._url, self.auth, self.timeout)
        except FeedTransportError as e:
            logger.warning("Unable to retrieve data from %s: %s", self._url, e)
            return FetchOutcome.FAILURE

        if not response.success:
            logger.warning(
                "Unable to retrieve data from %s. HTTP status code %s",
                self._url,
                response.status_code,
            )
            return FetchOutcome.FAILURE

        try:
            components = parse_calendar(response.content)
        except FeedParseError as e:
            logger.warning("Failed to parse calendar from %s: %s", self._url, e)
            components = []

        all_events = self._normalize(components)
        filtered_events = self.select_events(all_events, self._time_provider())

        logger.info(
            "Found %d events, after filtering and time slicing %d remain from calendar %s",
            len(all_events),
            len(filtered_events),
            self._url,
        )

        if not filtered_events:
            logger.info("No events retrieved from %s", self._url)
            return FetchOutcome.EMPTY

        # Rebind rather than mutate so readers see either the old or the new tuple
        self._events = tuple(filtered_events)
        self.broadcast_events()
        return FetchOutcome.EVENTS

    def select_events(
        self, events: Iterable[CalendarEvent], now: datetime.datetime
    ) -> list[CalendarEvent]:
        """Apply exclusions and the time window, then sort and truncate.

        Events with equal start times keep their feed order.
        """
        kept = self.excluder.apply(events)
        in_window = filter_events(kept, now, self.maximum_number_of_days)
        in_window.sort(key=lambda event: event.start_date)
        return in_window[: self.maximum_entries]

    def _normalize(self, components: list) -> list[CalendarEvent]:
        events = []
        for component in components:
            try:
                events.append(normalize_component(component, self.timezone))
            except EventNormalizationError as e:
                logger.warning("Skipping event from %s: %s", self._url, e)
        return events

"""Exception hierarchy for calfetch.

Transport and parse errors are raised by the collaborator adapters and caught
inside the fetch cycle; they never reach callers of CalendarFetcher.
"""

from typing import Optional


class CalFetchError(Exception):
    """Base exception for all calfetch errors."""


class FeedTransportError(CalFetchError):
    """The feed could not be retrieved at the transport level.

    Raised when:
    - The URL scheme is not http or https
    - The connection cannot be established or is dropped
    - The HTTP client is misconfigured
    """

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class FeedNetworkError(FeedTransportError):
    """DNS, connection or TLS failure while fetching a feed."""


class FeedTimeoutError(FeedTransportError):
    """The feed server did not answer within the configured timeout."""


class FeedParseError(CalFetchError):
    """Raw feed content is not a parseable iCalendar document."""


class EventNormalizationError(CalFetchError):
    """A VEVENT component lacks the data needed to build a CalendarEvent."""


class ConfigurationError(CalFetchError):
    """Configuration file or environment values are unusable."""

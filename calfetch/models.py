"""Data models for calendar feed fetching."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Default values mirror a typical wall-display calendar configuration
DEFAULT_RELOAD_INTERVAL_MS = 5 * 60 * 1000
DEFAULT_MAXIMUM_ENTRIES = 10
DEFAULT_MAXIMUM_NUMBER_OF_DAYS = 365
DEFAULT_TIMEOUT_SECONDS = 30


class AuthMethod(str, Enum):
    """Supported authentication methods for calendar feeds."""

    BASIC = "basic"
    DIGEST = "digest"
    BEARER = "bearer"


class FeedAuth(BaseModel):
    """Authentication descriptor for a calendar feed.

    ``password`` is read from the ``pass`` key of configuration mappings. For
    bearer auth the token is carried in ``password`` as well.
    """

    method: AuthMethod = AuthMethod.BASIC
    user: Optional[str] = None
    password: Optional[str] = Field(default=None, alias="pass")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def send_immediately(self) -> bool:
        """Whether credentials go out with the first request.

        Digest auth needs the server challenge first; basic auth is pre-emptive.
        """
        return self.method != AuthMethod.DIGEST


class ExclusionRuleConfig(BaseModel):
    """Mapping form of an excluded_events entry."""

    filter_by: str
    case_sensitive: bool = False
    regex: bool = False

    model_config = ConfigDict(frozen=True)


class CalendarSource(BaseModel):
    """Configuration for one calendar feed (one CalendarFetcher)."""

    url: str = Field(..., description="ICS feed URL")
    name: Optional[str] = Field(default=None, description="Human-readable name")
    reload_interval: int = Field(
        default=DEFAULT_RELOAD_INTERVAL_MS, ge=0, description="Reload interval in milliseconds"
    )
    excluded_events: list[Union[str, ExclusionRuleConfig]] = Field(default_factory=list)
    maximum_entries: int = Field(default=DEFAULT_MAXIMUM_ENTRIES, ge=0)
    maximum_number_of_days: int = Field(default=DEFAULT_MAXIMUM_NUMBER_OF_DAYS, ge=0)
    auth: Optional[FeedAuth] = None
    timeout: int = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0, description="HTTP timeout in seconds")

    model_config = ConfigDict(frozen=True)

    @property
    def display_name(self) -> str:
        return self.name or self.url


class FeedResponse(BaseModel):
    """Outcome of one HTTP retrieval that reached the server."""

    success: bool
    status_code: Optional[int] = None
    content: Optional[bytes] = None
    error_message: Optional[str] = None

    @property
    def content_length(self) -> int:
        return len(self.content) if self.content else 0


class CalendarEvent(BaseModel):
    """Canonical event record handed to consumers.

    Start and end are millisecond timestamps. Optional fields stay None when
    the feed does not provide them.
    """

    title: str = ""
    start_date: int = Field(..., alias="startDate", description="Start, ms since epoch")
    end_date: int = Field(..., alias="endDate", description="End, ms since epoch")
    full_day_event: bool = Field(default=False, alias="fullDayEvent")
    event_class: Optional[str] = Field(default=None, alias="class")
    location: Optional[str] = None
    geo: Optional[dict[str, float]] = None
    description: Optional[str] = None
    uid: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def start(self) -> datetime:
        """Start as an aware UTC datetime."""
        return datetime.fromtimestamp(self.start_date / 1000, tz=UTC)

    @property
    def end(self) -> datetime:
        """End as an aware UTC datetime."""
        return datetime.fromtimestamp(self.end_date / 1000, tz=UTC)

    def to_payload(self) -> dict[str, Any]:
        """Serialize with the camelCase keys display modules expect."""
        return self.model_dump(by_alias=True)

"""Shared fixtures for calfetch tests."""

from collections.abc import Callable, Generator
from datetime import UTC, datetime
from typing import Any, Optional

import httpx
import pytest

from calfetch.http_client import FeedHttpClient
from calfetch.timezone_utils import TEST_TIME_ENV

ICS_TIME_FORMAT = "%Y%m%dT%H%M%SZ"


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, Any, None]:
    """Clear calfetch environment variables so host settings cannot leak into tests."""
    for key in (
        TEST_TIME_ENV,
        "CALFETCH_DEBUG",
        "CALFETCH_LOG_LEVEL",
        "CALFETCH_ICS_URL",
        "CALFETCH_RELOAD_INTERVAL",
        "CALFETCH_MAX_ENTRIES",
        "CALFETCH_MAX_DAYS",
        "CALFETCH_TIMEZONE",
    ):
        monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture
def fixed_now() -> datetime:
    """Deterministic "now": 2025-06-01 12:00:00 UTC."""
    return datetime(2025, 6, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def vevent_builder() -> Callable[..., str]:
    """
    Return a builder for VEVENT blocks with UTC start/end times.

    builder(uid, summary, start, end, **extra) -> str where extra keys are
    added verbatim as additional properties (e.g. LOCATION="Room 1").
    """

    def builder(
        uid: str,
        summary: str,
        start: datetime,
        end: Optional[datetime] = None,
        **extra: str,
    ) -> str:
        lines = [
            "BEGIN:VEVENT",
            f"UID:{uid}",
            f"DTSTAMP:{start.strftime(ICS_TIME_FORMAT)}",
            f"DTSTART:{start.astimezone(UTC).strftime(ICS_TIME_FORMAT)}",
        ]
        if end is not None:
            lines.append(f"DTEND:{end.astimezone(UTC).strftime(ICS_TIME_FORMAT)}")
        lines.append(f"SUMMARY:{summary}")
        lines.extend(f"{key.replace('_', '-')}:{value}" for key, value in extra.items())
        lines.append("END:VEVENT")
        return "\n".join(lines)

    return builder


@pytest.fixture
def ics_builder() -> Callable[..., str]:
    """Return a builder wrapping VEVENT blocks in a VCALENDAR."""

    def builder(*vevents: str) -> str:
        return "\n".join(
            [
                "BEGIN:VCALENDAR",
                "VERSION:2.0",
                "PRODID:-//calfetch test//EN",
                "CALSCALE:GREGORIAN",
                *vevents,
                "END:VCALENDAR",
            ]
        )

    return builder


@pytest.fixture
def sample_ics_simple() -> str:
    """
    Return a simple ICS calendar string with a single event.

    Event: "Team Meeting" on 2025-06-02 10:00-11:00 UTC with LOCATION and DESCRIPTION.
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//calfetch test//EN
CALSCALE:GREGORIAN
BEGIN:VEVENT
UID:test-event-001@calfetch.test
DTSTART:20250602T100000Z
DTEND:20250602T110000Z
SUMMARY:Team Meeting
LOCATION:Conference Room A
DESCRIPTION:Weekly team sync meeting
DTSTAMP:20250601T090000Z
END:VEVENT
END:VCALENDAR"""


class RecordingTransport:
    """httpx.MockTransport handler that replays queued responses and records requests.

    Queue entries are either httpx.Response objects, exceptions to raise, or
    (status_code, body) tuples.
    """

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        status_code, body = item
        return httpx.Response(status_code, content=body.encode() if isinstance(body, str) else body)


@pytest.fixture
def mock_http_client() -> Callable[..., tuple[FeedHttpClient, RecordingTransport]]:
    """
    Return a factory for FeedHttpClient instances backed by httpx.MockTransport.

    factory(*responses) -> (FeedHttpClient, RecordingTransport). The last
    queued response is repeated once the queue is drained.
    """

    def factory(*responses: Any) -> tuple[FeedHttpClient, RecordingTransport]:
        recorder = RecordingTransport(*responses)
        client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        return FeedHttpClient(client), recorder

    return factory

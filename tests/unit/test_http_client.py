"""Unit tests for calfetch.http_client."""

import httpx
import pytest

from calfetch.exceptions import FeedNetworkError, FeedTimeoutError, FeedTransportError
from calfetch.http_client import FeedHttpClient, build_auth, validate_feed_url
from calfetch.models import AuthMethod, FeedAuth

pytestmark = [pytest.mark.unit, pytest.mark.fast]

FEED_URL = "https://calendar.example.com/feed.ics"


class TestBuildAuth:
    """Mapping auth descriptors onto httpx."""

    def test_no_auth(self) -> None:
        assert build_auth(None) == ({}, None)

    def test_bearer_uses_header(self) -> None:
        headers, auth = build_auth(FeedAuth(method=AuthMethod.BEARER, password="tok"))

        assert headers == {"Authorization": "Bearer tok"}
        assert auth is None

    def test_basic_is_preemptive(self) -> None:
        descriptor = FeedAuth(method=AuthMethod.BASIC, user="u", password="p")
        _, auth = build_auth(descriptor)

        assert isinstance(auth, httpx.BasicAuth)
        assert descriptor.send_immediately is True

    def test_digest_waits_for_challenge(self) -> None:
        descriptor = FeedAuth(method=AuthMethod.DIGEST, user="u", password="p")
        _, auth = build_auth(descriptor)

        assert isinstance(auth, httpx.DigestAuth)
        assert descriptor.send_immediately is False

    def test_pass_alias_is_accepted(self) -> None:
        descriptor = FeedAuth.model_validate({"method": "basic", "user": "u", "pass": "p"})

        assert descriptor.password == "p"


@pytest.mark.parametrize(
    ("url", "valid"),
    [
        ("https://example.com/cal.ics", True),
        ("http://example.com/cal.ics", True),
        ("webcal://example.com/cal.ics", False),
        ("file:///etc/passwd", False),
        ("http:///cal.ics", False),
        ("not-a-url", False),
    ],
)
def test_validate_feed_url(url: str, valid: bool) -> None:
    assert validate_feed_url(url) is valid


class TestFetchFeed:
    """Tests for FeedHttpClient.fetch_feed."""

    @pytest.mark.asyncio
    async def test_200_is_success(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"BEGIN:VCALENDAR"))
        async with FeedHttpClient(httpx.AsyncClient(transport=transport)) as client:
            response = await client.fetch_feed(FEED_URL)

        assert response.success is True
        assert response.status_code == 200
        assert response.content == b"BEGIN:VCALENDAR"
        assert response.content_length == 15

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [301, 304, 401, 404, 503])
    async def test_non_200_is_unsuccessful_response(self, status: int) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(status))
        client = FeedHttpClient(httpx.AsyncClient(transport=transport, follow_redirects=False))

        response = await client.fetch_feed(FEED_URL)

        assert response.success is False
        assert response.status_code == status
        assert response.error_message is not None
        assert response.error_message.startswith(f"HTTP {status}")

    @pytest.mark.asyncio
    async def test_invalid_url_raises_before_request(self) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200)

        client = FeedHttpClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        with pytest.raises(FeedTransportError):
            await client.fetch_feed("ftp://example.com/cal.ics")
        assert requests == []

    @pytest.mark.asyncio
    async def test_connect_error_raises_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = FeedHttpClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        with pytest.raises(FeedNetworkError) as exc_info:
            await client.fetch_feed(FEED_URL)
        assert exc_info.value.url == FEED_URL

    @pytest.mark.asyncio
    async def test_timeout_raises_timeout_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        client = FeedHttpClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        with pytest.raises(FeedTimeoutError):
            await client.fetch_feed(FEED_URL, timeout=1)

    @pytest.mark.asyncio
    async def test_basic_auth_sent_with_first_request(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("Authorization"))
            return httpx.Response(200, content=b"ok")

        client = FeedHttpClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        await client.fetch_feed(FEED_URL, FeedAuth(method="basic", user="alice", password="pw"))

        assert len(seen) == 1
        assert seen[0] is not None and seen[0].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_digest_auth_answers_challenge(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            authorization = request.headers.get("Authorization")
            seen.append(authorization)
            if authorization is None:
                return httpx.Response(
                    401,
                    headers={"WWW-Authenticate": 'Digest realm="cal", nonce="abc123", qop="auth"'},
                )
            return httpx.Response(200, content=b"ok")

        client = FeedHttpClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        response = await client.fetch_feed(
            FEED_URL, FeedAuth(method="digest", user="alice", password="pw")
        )

        assert response.success is True
        assert seen[0] is None
        assert seen[1] is not None and seen[1].startswith("Digest ")


class TestClientOwnership:
    """Lifecycle of the underlying httpx client."""

    @pytest.mark.asyncio
    async def test_owned_client_is_closed_on_exit(self) -> None:
        async with FeedHttpClient() as client:
            inner = client.client
            assert inner is not None

        assert inner.is_closed
        assert client.client is None

    @pytest.mark.asyncio
    async def test_borrowed_client_is_left_open(self) -> None:
        inner = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))

        async with FeedHttpClient(inner):
            pass

        assert not inner.is_closed
        await inner.aclose()

"""HTTP transport for downloading calendar feeds."""

import logging
import platform
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from . import __version__
from .exceptions import FeedNetworkError, FeedTimeoutError, FeedTransportError
from .models import DEFAULT_TIMEOUT_SECONDS, AuthMethod, FeedAuth, FeedResponse

logger = logging.getLogger(__name__)

PROJECT_URL = "https://github.com/calfetch/calfetch"

USER_AGENT = (
    f"Mozilla/5.0 (Python {platform.python_version()}) "
    f"calfetch/{__version__} (+{PROJECT_URL})"
)

DEFAULT_LIMITS = httpx.Limits(max_connections=10, max_keepalive_connections=5)

DEFAULT_TIMEOUT = httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=30.0)


def build_auth(auth: Optional[FeedAuth]) -> tuple[dict[str, str], Optional[httpx.Auth]]:
    """Translate a feed auth descriptor into request headers and an httpx auth flow.

    Basic credentials are sent with the first request. Digest credentials are
    only sent after the server's challenge. Bearer tokens go in a header.

    Args:
        auth: Authentication descriptor, or None for anonymous access

    Returns:
        Tuple of (extra headers, httpx.Auth or None)
    """
    if auth is None:
        return {}, None

    if auth.method == AuthMethod.BEARER:
        return {"Authorization": f"Bearer {auth.password or ''}"}, None

    user = auth.user or ""
    password = auth.password or ""
    if auth.method == AuthMethod.DIGEST:
        return {}, httpx.DigestAuth(user, password)
    return {}, httpx.BasicAuth(user, password)


def validate_feed_url(url: str) -> bool:
    """Check that url is an http(s) URL with a hostname."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


class FeedHttpClient:
    """Async HTTP client for calendar feeds.

    Owns an httpx.AsyncClient unless one is passed in, in which case the
    caller keeps ownership and this wrapper never closes it.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
        self.client: Optional[httpx.AsyncClient] = client
        self._owns_client = client is None

    async def __aenter__(self) -> "FeedHttpClient":
        self._ensure_client()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.aclose()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            self.client = httpx.AsyncClient(
                limits=DEFAULT_LIMITS,
                timeout=DEFAULT_TIMEOUT,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            )
            self._owns_client = True
            logger.debug("Created HTTP client for feed retrieval")
        return self.client

    async def aclose(self) -> None:
        """Close the underlying client if this wrapper created it."""
        if self.client is not None and self._owns_client and not self.client.is_closed:
            await self.client.aclose()
            logger.debug("Closed HTTP client")
        if self._owns_client:
            self.client = None

    async def fetch_feed(
        self,
        url: str,
        auth: Optional[FeedAuth] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> FeedResponse:
        """Retrieve a feed and report the HTTP outcome.

        Any HTTP status is returned as a FeedResponse; only 200 counts as
        success. Failures below the HTTP layer are raised.

        Args:
            url: Feed URL (http or https)
            auth: Optional authentication descriptor
            timeout: Request timeout in seconds

        Returns:
            FeedResponse with status code and body bytes

        Raises:
            FeedTimeoutError: The server did not answer in time
            FeedNetworkError: DNS, connection or TLS failure
            FeedTransportError: Invalid URL or any other client-side error
        """
        if not validate_feed_url(url):
            raise FeedTransportError(f"Unsupported feed URL: {url!r}", url=url)

        client = self._ensure_client()
        headers, httpx_auth = build_auth(auth)
        headers["User-Agent"] = USER_AGENT

        try:
            logger.debug("Fetching calendar from %s", url)
            if httpx_auth is not None:
                response = await client.get(url, headers=headers, auth=httpx_auth, timeout=timeout)
            else:
                response = await client.get(url, headers=headers, timeout=timeout)
        except httpx.TimeoutException as e:
            raise FeedTimeoutError(f"Request timeout after {timeout}s", url=url) from e
        except httpx.TransportError as e:
            raise FeedNetworkError(f"Network error: {e}", url=url) from e
        except httpx.HTTPError as e:
            raise FeedTransportError(f"HTTP client error: {e}", url=url) from e

        if response.status_code != 200:
            return FeedResponse(
                success=False,
                status_code=response.status_code,
                error_message=f"HTTP {response.status_code}: {response.reason_phrase}",
            )

        logger.debug("Fetched %d bytes from %s", len(response.content), url)
        return FeedResponse(
            success=True,
            status_code=response.status_code,
            content=response.content,
        )

"""Default HTTP transport for calendar feeds, built on httpx."""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Callable, Optional
from urllib.parse import urlparse

import httpx

from .decoder import decode_calendar
from .exceptions import (
    CalendarDecodeError,
    TransportAuthError,
    TransportError,
    TransportNetworkError,
    TransportTimeoutError,
)
from .models import AuthConfig, AuthMethod, RawEntry, RequestOptions

logger = logging.getLogger(__name__)

_DEFAULT_LIMITS = httpx.Limits(max_connections=10, max_keepalive_connections=5)

Decoder = Callable[[str, Optional[str]], Sequence[RawEntry]]


def build_auth(auth: Optional[AuthConfig]) -> tuple[Optional[httpx.Auth], dict[str, str]]:
    """Translate an auth descriptor into an httpx auth flow and extra headers.

    Returns:
        Tuple of (httpx auth or None, headers to merge into the request)
    """
    if auth is None:
        return None, {}
    if auth.method is AuthMethod.BEARER:
        return None, {"Authorization": f"Bearer {auth.password or ''}"}
    if auth.method is AuthMethod.DIGEST:
        return httpx.DigestAuth(auth.user or "", auth.password or ""), {}
    return httpx.BasicAuth(auth.user or "", auth.password or ""), {}


def validate_url(url: str) -> bool:
    """Accept only http(s) URLs that name a host."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        logger.debug("Blocked non-HTTP(S) URL: %s", url)
        return False
    if not parsed.hostname:
        logger.debug("Blocked URL with missing hostname: %s", url)
        return False
    return True


class HttpCalendarTransport:
    """Async transport that downloads a calendar feed and decodes it.

    A client passed in is borrowed and never closed here; otherwise one is
    created on first use and closed by ``aclose()``.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        decoder: Decoder = decode_calendar,
    ) -> None:
        self.client = client
        self._owns_client = client is None
        self._decoder = decoder

    async def __aenter__(self) -> "HttpCalendarTransport":
        self._ensure_client()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.aclose()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            self.client = httpx.AsyncClient(
                limits=_DEFAULT_LIMITS,
                follow_redirects=True,
                verify=True,
            )
            self._owns_client = True
            logger.debug("Created HTTP client for calendar transport")
        return self.client

    async def aclose(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self.client is not None and self._owns_client:
            if not self.client.is_closed:
                await self.client.aclose()
                logger.debug("Closed HTTP client")
            self.client = None

    @staticmethod
    def build_headers(options: RequestOptions) -> dict[str, str]:
        headers = dict(options.headers)
        headers["Accept-Encoding"] = "gzip, deflate" if options.gzip else "identity"
        return headers

    async def __call__(self, url: str, options: RequestOptions) -> Sequence[RawEntry]:
        """Fetch ``url`` once and decode the body into raw entries.

        Args:
            url: Calendar feed URL
            options: Headers, auth descriptor, compression flag and timeout

        Returns:
            Decoded raw entries

        Raises:
            TransportAuthError: HTTP 401/403
            TransportTimeoutError: Request timed out
            TransportNetworkError: DNS, connection or TLS failure
            CalendarDecodeError: Empty or undecodable body
            TransportError: Invalid URL or any other HTTP failure
        """
        if not validate_url(url):
            raise TransportError(f"Unsupported calendar URL: {url}", url)

        client = self._ensure_client()
        auth, auth_headers = build_auth(options.auth)
        headers = self.build_headers(options)
        headers.update(auth_headers)
        timeout = httpx.Timeout(options.timeout, connect=min(10.0, options.timeout))

        try:
            logger.debug("Fetching calendar from %s", url)
            if auth is not None:
                response = await client.get(url, headers=headers, auth=auth, timeout=timeout)
            else:
                response = await client.get(url, headers=headers, timeout=timeout)
            response.raise_for_status()

        except httpx.TimeoutException as e:
            raise TransportTimeoutError(
                f"Request timeout after {options.timeout}s", url
            ) from e

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                raise TransportAuthError(
                    "Authentication failed - check credentials", url, status
                ) from e
            if status == 403:
                raise TransportAuthError(
                    "Access forbidden - insufficient permissions", url, status
                ) from e
            raise TransportError(f"HTTP {status}: {e.response.reason_phrase}", url) from e

        except httpx.NetworkError as e:
            raise TransportNetworkError(f"Network error: {e}", url) from e

        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error: {e}", url) from e

        content = response.text
        if not content.strip():
            raise CalendarDecodeError("Empty calendar response", url)

        logger.debug("Fetched %d bytes from %s", len(response.content), url)
        # icalendar parsing is CPU-bound; run it off the event loop
        return await asyncio.to_thread(self._decoder, content, url)

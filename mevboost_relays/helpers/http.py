"""HTTP client utilities and the relay fetch capability."""

from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from mevboost_relays.helpers.constants import (
    CONNECTION_TIMEOUT,
    DEFAULT_TIMEOUT,
    MAX_CONNECTIONS,
    MAX_KEEPALIVE_CONNECTIONS,
    STANDARD_HEADERS,
)
from mevboost_relays.helpers.logging import get_logger


logger = get_logger(__name__)

Fetcher = Callable[[str], Awaitable[str]]
"""Takes a fully-qualified URL and returns the response body text."""


def create_http_client(
    timeout: float = DEFAULT_TIMEOUT, **kwargs: Any
) -> httpx.AsyncClient:
    """Create a configured httpx AsyncClient.

    Args:
        timeout: Default timeout in seconds (default: DEFAULT_TIMEOUT)
        **kwargs: Additional httpx.AsyncClient kwargs

    Returns:
        Configured AsyncClient instance

    Example:
        ```python
        from mevboost_relays.helpers.http import create_http_client

        async with create_http_client(timeout=60.0) as client:
            response = await client.get("https://example.com")
        ```
    """
    kwargs.setdefault(
        "limits",
        httpx.Limits(
            max_keepalive_connections=MAX_KEEPALIVE_CONNECTIONS,
            max_connections=MAX_CONNECTIONS,
        ),
    )
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=CONNECTION_TIMEOUT), **kwargs
    )


def redact_url(url: str) -> str:
    """Drop credentials embedded in a URL before it is logged.

    Example:
        >>> redact_url("https://0xabc@relay.example/path")
        'https://relay.example/path'
    """
    return str(httpx.URL(url).copy_with(username=None, password=None))


class HttpxFetcher:
    """Plain HTTPS GET with the standard JSON headers.

    No retries are attempted and redirects follow the client's default.
    Errors raised by httpx are left to the caller.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def __call__(self, url: str) -> str:
        """Fetch a URL and return its body.

        Raises:
            httpx.HTTPStatusError: If the relay answers with a 4xx/5xx status
            httpx.HTTPError: On any other transport failure
        """
        logger.debug("GET %s", redact_url(url))
        response = await self.client.get(url, headers=STANDARD_HEADERS)
        response.raise_for_status()
        return response.text


__all__ = [
    "Fetcher",
    "HttpxFetcher",
    "create_http_client",
    "redact_url",
]

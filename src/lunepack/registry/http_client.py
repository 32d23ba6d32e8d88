"""Async HTTP helpers for the registry catalog.

A thin wrapper around ``httpx.AsyncClient`` with standardised timeouts,
user-agent headers, and error classification. A 404 is reported as
"absent" (None) so the caller can raise ``NotFound``; timeouts, transport
errors and server errors raise ``RegistryUnreachable`` so the retry layer
can try again.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from lunepack import __version__
from lunepack.exceptions import InvalidDescriptor, RegistryUnreachable

logger = logging.getLogger(__name__)

# Timeout for all registry HTTP requests (seconds).
DEFAULT_TIMEOUT: float = 30.0

# User-Agent sent with every request.
USER_AGENT: str = f"lunepack/{__version__}"


async def fetch_text(url: str, *, timeout: float = DEFAULT_TIMEOUT) -> str | None:
    """Fetch a URL and return the response body as text.

    Args:
        url: The URL to fetch.
        timeout: Request timeout in seconds.

    Returns:
        Response body text, or None when the server answers 404 / 410.

    Raises:
        RegistryUnreachable: On timeouts, transport errors, or other non-2xx
            responses.
    """
    try:
        async with httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        ) as client:
            resp = await client.get(url)
    except httpx.TimeoutException as exc:
        logger.warning("Timeout fetching %s", url)
        raise RegistryUnreachable(url, "timed out") from exc
    except httpx.RequestError as exc:
        logger.warning("Request error for %s: %s", url, exc)
        raise RegistryUnreachable(url, str(exc) or type(exc).__name__) from exc

    if resp.status_code in (404, 410):
        return None
    if resp.status_code >= 400:
        logger.warning("HTTP %d from %s", resp.status_code, url)
        raise RegistryUnreachable(url, f"HTTP {resp.status_code}")
    return resp.text


async def fetch_json(url: str, *, timeout: float = DEFAULT_TIMEOUT) -> Any:
    """Fetch a URL and parse the response as JSON.

    Returns:
        Parsed JSON, or None when the resource does not exist.

    Raises:
        RegistryUnreachable: On transport failure.
        InvalidDescriptor: When the body is not valid JSON.
    """
    text = await fetch_text(url, timeout=timeout)
    if text is None:
        return None
    try:
        return json.loads(text)
    except ValueError as exc:
        raise InvalidDescriptor(url, f"invalid JSON: {exc}") from exc

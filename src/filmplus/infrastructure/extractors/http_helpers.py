"""Shared upstream fetch helpers that map failures onto the extraction error types."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from filmplus.domain.exceptions import NotFound, UpstreamShapeChanged, UpstreamUnavailable
from filmplus.infrastructure.config.schema import BROWSER_USER_AGENT

log = structlog.get_logger(__name__)

BROWSER_HEADERS: dict[str, str] = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.5",
}


async def fetch(
    http_client: httpx.AsyncClient,
    url: str,
    *,
    provider_id: str,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
) -> httpx.Response:
    """GET *url* and return the response only when it is 2xx.

    Raises:
        UpstreamUnavailable: network error, timeout or error status.
        NotFound: the upstream answered 404.
    """
    try:
        resp = await http_client.get(
            url, headers={**BROWSER_HEADERS, **(headers or {})}, params=params
        )
    except httpx.HTTPError as exc:
        log.debug("upstream_network_error", provider=provider_id, url=url, exc_info=True)
        raise UpstreamUnavailable(
            f"{type(exc).__name__} fetching {url}", provider_id=provider_id
        ) from exc

    if resp.status_code == 404:
        raise NotFound(f"upstream returned 404 for {url}", provider_id=provider_id)
    if resp.is_error:
        raise UpstreamUnavailable(
            f"upstream returned {resp.status_code}", provider_id=provider_id
        )
    return resp


def json_body(resp: httpx.Response, *, provider_id: str) -> Any:
    """Parse a JSON body, treating garbage as an upstream shape change."""
    try:
        return resp.json()
    except ValueError as exc:
        raise UpstreamShapeChanged(
            "response is not JSON", provider_id=provider_id
        ) from exc


def absolute(url: str, origin: str) -> str:
    """Prefix *origin* to a root-relative path; absolute URLs pass through."""
    if url.startswith(("http://", "https://")):
        return url
    if url.startswith("//"):
        return f"https:{url}"
    return f"{origin.rstrip('/')}/{url.lstrip('/')}"

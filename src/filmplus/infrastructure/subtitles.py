"""Subtitle download and SRT -> WebVTT normalisation."""

from __future__ import annotations

import re

import httpx
import structlog

from filmplus.domain.exceptions import UpstreamUnavailable
from filmplus.infrastructure.config.schema import BROWSER_USER_AGENT

log = structlog.get_logger(__name__)

VTT_CONTENT_TYPE = "text/vtt; charset=utf-8"

_SRT_TIMESTAMP_RE = re.compile(r"(\d{2}:\d{2}:\d{2}),(\d{3})")


def to_webvtt(text: str) -> str:
    """Return *text* as WebVTT.

    Files that already start with ``WEBVTT`` are only cleaned up (BOM,
    CRLF). Anything else is treated as SRT: the header is prepended and
    ``HH:MM:SS,mmm`` timestamps become ``HH:MM:SS.mmm``.
    """
    text = text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")
    if text.startswith("WEBVTT"):
        return text
    return "WEBVTT\n\n" + _SRT_TIMESTAMP_RE.sub(r"\1.\2", text)


async def fetch_subtitle(http_client: httpx.AsyncClient, url: str) -> str:
    """Download a subtitle file and convert it to WebVTT."""
    try:
        resp = await http_client.get(url, headers={"User-Agent": BROWSER_USER_AGENT})
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        log.info("subtitle_fetch_failed", url=url, error=str(exc))
        raise UpstreamUnavailable(f"subtitle fetch failed: {exc}") from exc
    return to_webvtt(resp.text)

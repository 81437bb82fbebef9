"""Embed-page scraper: regex for an .m3u8 URL, following at most one iframe."""

from __future__ import annotations

import re
from urllib.parse import urljoin, urlparse

import httpx
import structlog

from filmplus.domain.entities.stream import ContentRef, ExtractionResult, StreamKind
from filmplus.domain.exceptions import ExtractionError, NotFound
from filmplus.infrastructure.common.html_selectors import first_iframe_src
from filmplus.infrastructure.extractors.http_helpers import fetch

log = structlog.get_logger(__name__)

# Explicit player assignment: file: "…m3u8", source = '…m3u8', src:"…m3u8"
_ASSIGNED_M3U8_RE = re.compile(
    r"""(?:file|source|src)\s*[:=]\s*['"]([^'"]*\.m3u8[^'"]*)['"]""",
    re.IGNORECASE,
)
# Any bare absolute .m3u8 URL in the page
_BARE_M3U8_RE = re.compile(r"""(https?://[^\s'"<>]+\.m3u8[^\s'"<>]*)""", re.IGNORECASE)


def find_m3u8(html: str) -> str | None:
    """Return the first .m3u8 URL in *html* (assignment pattern first)."""
    for pattern in (_ASSIGNED_M3U8_RE, _BARE_M3U8_RE):
        match = pattern.search(html)
        if match:
            return match.group(1)
    return None


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}/"


class PageScrapeStrategy:
    """PageScrape strategy for ``vidsrcicu``-style embed pages."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        base_url: str = "https://vidsrc.icu",
        provider_id: str = "vidsrcicu",
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._provider_id = provider_id

    @property
    def provider_id(self) -> str:
        return self._provider_id

    def embed_url(self, ref: ContentRef) -> str:
        if ref.is_episode:
            return f"{self._base_url}/embed/tv/{ref.id}/{ref.season}/{ref.episode}"
        return f"{self._base_url}/embed/movie/{ref.id}"

    def _result(self, stream_url: str, page_url: str) -> ExtractionResult:
        return ExtractionResult(
            stream_url=urljoin(page_url, stream_url),
            stream_kind=StreamKind.HLS,
            source_id=self._provider_id,
            upstream_referer=_origin(page_url),
        )

    async def extract(self, ref: ContentRef) -> ExtractionResult:
        outer_url = self.embed_url(ref)
        outer = await fetch(
            self._http,
            outer_url,
            provider_id=self._provider_id,
            headers={"Referer": f"{self._base_url}/"},
        )
        found = find_m3u8(outer.text)
        if found:
            return self._result(found, outer_url)

        inner_url = first_iframe_src(outer.text, outer_url)
        if inner_url is None:
            raise NotFound("no m3u8 and no iframe in embed page", provider_id=self._provider_id)

        # One iframe level only; an unreachable inner page counts as not found.
        try:
            inner = await fetch(
                self._http,
                inner_url,
                provider_id=self._provider_id,
                headers={"Referer": outer_url},
            )
        except ExtractionError as exc:
            log.debug(
                "page_scrape_iframe_failed",
                provider=self._provider_id,
                iframe=inner_url,
                error=str(exc),
            )
            raise NotFound(
                f"iframe page unavailable: {exc}", provider_id=self._provider_id
            ) from exc

        found = find_m3u8(inner.text)
        if found:
            return self._result(found, inner_url)
        raise NotFound("no m3u8 in embed page or its iframe", provider_id=self._provider_id)

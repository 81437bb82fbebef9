"""Headless scraper that opens a templated embed page and sniffs its stream."""

from __future__ import annotations

import structlog

from filmplus.domain.entities.stream import ContentKind, ScrapeOutcome
from filmplus.infrastructure.scrapers.browser_sniffer import BrowserStreamSniffer

log = structlog.get_logger(__name__)


class EmbedPageScraper:
    """Implements ``HeadlessScraperPort`` for id-addressed embed sites.

    Templates use ``{id}``, ``{season}`` and ``{episode}`` placeholders.
    """

    def __init__(
        self,
        *,
        sniffer: BrowserStreamSniffer,
        movie_template: str,
        tv_template: str,
    ) -> None:
        self._sniffer = sniffer
        self._movie_template = movie_template
        self._tv_template = tv_template

    def embed_url(
        self,
        numeric_id: int,
        kind: ContentKind,
        season: int | None,
        episode: int | None,
    ) -> str:
        if kind is ContentKind.SERIES and season is not None and episode is not None:
            return self._tv_template.format(id=numeric_id, season=season, episode=episode)
        return self._movie_template.format(id=numeric_id)

    async def scrape(
        self,
        numeric_id: int,
        kind: ContentKind,
        season: int | None,
        episode: int | None,
    ) -> ScrapeOutcome:
        url = self.embed_url(numeric_id, kind, season, episode)
        outcome = await self._sniffer.sniff(url)
        log.debug("embed_scrape_done", url=url, success=outcome.success)
        return outcome

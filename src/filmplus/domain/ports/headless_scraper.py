"""Port for the headless scraping capability used by ScraperLib providers."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from filmplus.domain.entities.stream import ContentKind, ScrapeOutcome


@runtime_checkable
class HeadlessScraperPort(Protocol):
    async def scrape(
        self,
        numeric_id: int,
        kind: ContentKind,
        season: int | None,
        episode: int | None,
    ) -> ScrapeOutcome:
        ...

"""ScraperLib strategy: delegates to a headless scraper collaborator."""

from __future__ import annotations

import structlog

from filmplus.domain.entities.stream import (
    ContentRef,
    ExtractionResult,
    StreamKind,
    Subtitle,
)
from filmplus.domain.exceptions import ExtractionError, NotFound, UpstreamUnavailable
from filmplus.domain.ports.headless_scraper import HeadlessScraperPort

log = structlog.get_logger(__name__)


def _normalize_subtitle(entry: Subtitle | str) -> Subtitle:
    if isinstance(entry, Subtitle):
        return entry
    return Subtitle(lang="en", label="Sub", url=entry)


class ScraperLibStrategy:
    """Runs one headless scraper and normalizes its outcome."""

    def __init__(self, *, provider_id: str, scraper: HeadlessScraperPort) -> None:
        self._provider_id = provider_id
        self._scraper = scraper

    @property
    def provider_id(self) -> str:
        return self._provider_id

    async def extract(self, ref: ContentRef) -> ExtractionResult:
        if not ref.id.isdigit():
            raise NotFound(
                f"scraper needs a numeric id, got {ref.id!r}",
                provider_id=self._provider_id,
            )

        season = ref.season if ref.is_episode else None
        episode = ref.episode if ref.is_episode else None
        try:
            outcome = await self._scraper.scrape(int(ref.id), ref.kind, season, episode)
        except ExtractionError:
            raise
        except Exception as exc:
            log.warning(
                "scraper_crashed",
                provider=self._provider_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise UpstreamUnavailable(
                f"scraper failed: {type(exc).__name__}", provider_id=self._provider_id
            ) from exc

        if not outcome.success or not outcome.hls_url:
            raise UpstreamUnavailable(
                "scraper returned no stream", provider_id=self._provider_id
            )

        return ExtractionResult(
            stream_url=outcome.hls_url,
            stream_kind=StreamKind.HLS,
            source_id=self._provider_id,
            subtitles=tuple(_normalize_subtitle(s) for s in outcome.subtitles),
            upstream_referer=outcome.referer,
        )

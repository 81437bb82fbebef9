"""Domain entities for stream resolution.

Pure value objects without framework dependencies or I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class ContentKind(StrEnum):
    """Media kind of a catalog entry."""

    MOVIE = "movie"
    SERIES = "series"

    @classmethod
    def parse(cls, raw: str) -> ContentKind:
        """Parse HTTP input; ``tv`` is accepted as an alias for series."""
        value = raw.strip().lower()
        if value == "tv":
            return cls.SERIES
        return cls(value)


class StrategyKind(StrEnum):
    """Upstream protocol family a provider speaks."""

    API_DECRYPT = "api_decrypt"
    SCRAPER_LIB = "scraper_lib"
    PAGE_SCRAPE = "page_scrape"
    API_ONLY_SEARCH = "api_only_search"


class StreamKind(StrEnum):
    HLS = "hls"
    PROGRESSIVE = "progressive"


@dataclass(frozen=True)
class ContentRef:
    """Identifies *what* to resolve: a movie or one episode of a series."""

    id: str
    kind: ContentKind
    season: int | None = None
    episode: int | None = None

    def __post_init__(self) -> None:
        for name in ("season", "episode"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")

    @property
    def is_episode(self) -> bool:
        return (
            self.kind is ContentKind.SERIES
            and self.season is not None
            and self.episode is not None
        )


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static description of one upstream provider."""

    id: str
    display_name: str
    quality_label: str
    max_resolution: int
    priority: int
    strategy_kind: StrategyKind

    def to_dict(self) -> dict[str, object]:
        """Serialize in the shape the player expects from ``/api/sources``."""
        return {
            "id": self.id,
            "name": self.display_name,
            "quality": self.quality_label,
            "maxRes": self.max_resolution,
            "priority": self.priority,
            "extractor": self.strategy_kind.value,
            "apiOnly": self.strategy_kind is StrategyKind.API_ONLY_SEARCH,
        }


@dataclass(frozen=True)
class Subtitle:
    lang: str
    label: str
    url: str


@dataclass(frozen=True)
class ExtractionResult:
    """A fully populated stream located by one provider."""

    stream_url: str
    stream_kind: StreamKind
    source_id: str
    subtitles: tuple[Subtitle, ...] = ()
    upstream_referer: str | None = None
    title: str = ""


@dataclass(frozen=True)
class PreloadFailure:
    """Failure marker stored in the preload cache."""

    provider_id: str
    error: str


@dataclass(frozen=True)
class TitleInfo:
    """Catalog lookup result used by title-keyed providers."""

    title: str
    year: int | None = None
    external_id: str | None = None


@dataclass(frozen=True)
class ScrapeOutcome:
    """What a headless scraper reports back for one title."""

    success: bool
    hls_url: str | None = None
    subtitles: list[Subtitle | str] = field(default_factory=list)
    referer: str | None = None

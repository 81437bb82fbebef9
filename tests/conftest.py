"""Shared test fixtures for the FilmPlus test suite."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from filmplus.domain.entities.stream import (
    ContentKind,
    ContentRef,
    ExtractionResult,
    ProviderDescriptor,
    StrategyKind,
    StreamKind,
    Subtitle,
)
from filmplus.infrastructure.crypto import TokenCodec

# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def movie_ref() -> ContentRef:
    """Fight Club (TMDB 550)."""
    return ContentRef(id="550", kind=ContentKind.MOVIE)


@pytest.fixture()
def episode_ref() -> ContentRef:
    """Breaking Bad S01E02 (TMDB 1396)."""
    return ContentRef(id="1396", kind=ContentKind.SERIES, season=1, episode=2)


@pytest.fixture()
def extraction_result() -> ExtractionResult:
    return ExtractionResult(
        stream_url="https://cdn.example.com/hls/abc/master.m3u8",
        stream_kind=StreamKind.HLS,
        source_id="moviesapi",
        subtitles=(
            Subtitle(lang="en", label="English", url="https://subs.example.com/en.srt"),
        ),
        upstream_referer="https://embed.example.com/",
    )


@pytest.fixture()
def descriptors() -> list[ProviderDescriptor]:
    """Three providers in priority order alpha < beta < gamma."""
    return [
        ProviderDescriptor(pid, pid.title(), "1080P", 1080, prio, StrategyKind.API_DECRYPT)
        for pid, prio in (("alpha", 1), ("beta", 2), ("gamma", 3))
    ]


# ---------------------------------------------------------------------------
# Infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def codec() -> TokenCodec:
    """TokenCodec with a fixed key so tokens are deterministic within a test."""
    return TokenCodec(key=b"0123456789abcdef")


@pytest.fixture()
def mock_cache() -> AsyncMock:
    """AsyncMock implementing CachePort (empty by default)."""
    cache = AsyncMock()
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock()
    cache.delete = AsyncMock(return_value=True)
    return cache

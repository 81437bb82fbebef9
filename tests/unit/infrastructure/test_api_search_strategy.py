"""Tests for the title-keyed search providers (MorphTV, TeaTV)."""

from __future__ import annotations

import hashlib
from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from filmplus.domain.entities.stream import ContentRef, StreamKind, TitleInfo
from filmplus.domain.exceptions import NotFound, UpstreamUnavailable
from filmplus.infrastructure.extractors.api_search import (
    MorphTvStrategy,
    TeaTvStrategy,
    quality_rank,
    select_best_link,
)

_MORPH = "https://morph.test/api/search"
_TEA = "https://tea.test/api/links"


@pytest.fixture()
def catalog() -> AsyncMock:
    mock = AsyncMock()
    mock.lookup.return_value = TitleInfo(title="Fight Club", year=1999, external_id="tt0137523")
    return mock


def _morph(catalog: AsyncMock, api_url: str | None = _MORPH) -> MorphTvStrategy:
    return MorphTvStrategy(
        http_client=httpx.AsyncClient(),
        catalog=catalog,
        api_url=api_url,
        secret="s3cret",
        clock=lambda: 1_700_000_000.4,
    )


# ---------------------------------------------------------------------------
# Link selection
# ---------------------------------------------------------------------------


class TestQualityRank:
    @pytest.mark.parametrize(
        ("quality", "rank"),
        [("1080P HD", 1080), ("720p", 720), ("HD", 0), (None, 0), (480, 480)],
    )
    def test_rank(self, quality, rank: int) -> None:
        assert quality_rank({"quality": quality}) == rank


class TestSelectBestLink:
    def test_highest_quality_wins(self) -> None:
        payload = {
            "data": [
                {"quality": "480p", "file": "https://f.test/480.mp4"},
                {"quality": "1080P HD", "file": "https://f.test/1080.mp4"},
                {"quality": "720p", "file": "https://f.test/720.mp4"},
            ]
        }
        link, item = select_best_link(payload)
        assert link == "https://f.test/1080.mp4"
        assert item["quality"] == "1080P HD"

    def test_skips_entries_without_link(self) -> None:
        payload = {
            "links": [
                {"quality": "1080p"},
                {"quality": "720p", "url": "https://f.test/720.mp4"},
            ]
        }
        assert select_best_link(payload)[0] == "https://f.test/720.mp4"

    def test_first_non_empty_list_used(self) -> None:
        payload = {"data": [], "results": [{"link": "https://f.test/r.mp4"}]}
        assert select_best_link(payload)[0] == "https://f.test/r.mp4"

    def test_ties_keep_upstream_order(self) -> None:
        payload = {
            "data": [
                {"quality": "720p", "file": "https://f.test/a.mp4"},
                {"quality": "720p", "file": "https://f.test/b.mp4"},
            ]
        }
        assert select_best_link(payload)[0] == "https://f.test/a.mp4"

    @pytest.mark.parametrize("payload", [None, [], {}, {"data": "x"}, {"data": [{"quality": "1080p"}]}])
    def test_nothing_usable(self, payload) -> None:
        assert select_best_link(payload) is None


# ---------------------------------------------------------------------------
# MorphTV
# ---------------------------------------------------------------------------


class TestMorphTv:
    def test_movie_signature(self, catalog: AsyncMock, movie_ref: ContentRef) -> None:
        strategy = _morph(catalog)

        params = strategy.build_params(movie_ref, TitleInfo("Fight Club", 1999))

        expected = hashlib.md5(b"Fight Club&1999&0&0&1700000000s3cret").hexdigest()
        assert params == {
            "title": "Fight Club",
            "year": "1999",
            "season": 0,
            "episode": 0,
            "ts": "1700000000",
            "abc": expected,
        }

    def test_episode_signature_omits_year(
        self, catalog: AsyncMock, episode_ref: ContentRef
    ) -> None:
        strategy = _morph(catalog)

        params = strategy.build_params(episode_ref, TitleInfo("Breaking Bad", 2008))

        expected = hashlib.md5(b"Breaking Bad&&1&2&1700000000s3cret").hexdigest()
        assert params["abc"] == expected
        assert params["year"] == "2008"
        assert (params["season"], params["episode"]) == (1, 2)

    @respx.mock
    @pytest.mark.asyncio()
    async def test_extract_picks_best_link(
        self, catalog: AsyncMock, movie_ref: ContentRef
    ) -> None:
        route = respx.get(_MORPH).respond(
            json={
                "data": [
                    {"quality": "720p", "file": "https://f.test/720.mp4"},
                    {"quality": "1080p", "file": "https://f.test/1080/index.m3u8"},
                ]
            }
        )

        result = await _morph(catalog).extract(movie_ref)

        assert result.stream_url == "https://f.test/1080/index.m3u8"
        assert result.stream_kind is StreamKind.HLS
        assert result.source_id == "morphtv"
        assert result.title == "Fight Club"
        assert route.calls.last.request.url.params["title"] == "Fight Club"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_progressive_link(self, catalog: AsyncMock, movie_ref: ContentRef) -> None:
        respx.get(_MORPH).respond(json={"data": [{"file": "https://f.test/a.mp4"}]})

        result = await _morph(catalog).extract(movie_ref)

        assert result.stream_kind is StreamKind.PROGRESSIVE

    @pytest.mark.asyncio()
    async def test_unconfigured_fails_fast(
        self, catalog: AsyncMock, movie_ref: ContentRef
    ) -> None:
        with pytest.raises(UpstreamUnavailable, match="not configured"):
            await _morph(catalog, api_url=None).extract(movie_ref)
        catalog.lookup.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_title_lookup_failure(
        self, catalog: AsyncMock, movie_ref: ContentRef
    ) -> None:
        catalog.lookup.return_value = None
        with pytest.raises(NotFound, match="title lookup"):
            await _morph(catalog).extract(movie_ref)

    @respx.mock
    @pytest.mark.asyncio()
    async def test_no_links(self, catalog: AsyncMock, movie_ref: ContentRef) -> None:
        respx.get(_MORPH).respond(json={"data": []})
        with pytest.raises(NotFound, match="playable link"):
            await _morph(catalog).extract(movie_ref)


# ---------------------------------------------------------------------------
# TeaTV
# ---------------------------------------------------------------------------


class TestTeaTv:
    def _strategy(self, catalog: AsyncMock) -> TeaTvStrategy:
        return TeaTvStrategy(http_client=httpx.AsyncClient(), catalog=catalog, api_url=_TEA)

    def test_params_prefer_imdb_id(self, catalog: AsyncMock, movie_ref: ContentRef) -> None:
        params = self._strategy(catalog).build_params(
            movie_ref, TitleInfo("Fight Club", 1999, "tt0137523")
        )
        assert params == {"id": "tt0137523"}

    def test_params_fall_back_to_catalog_id(
        self, catalog: AsyncMock, episode_ref: ContentRef
    ) -> None:
        params = self._strategy(catalog).build_params(episode_ref, None)
        assert params == {"id": "1396", "season": 1, "episode": 2}

    @respx.mock
    @pytest.mark.asyncio()
    async def test_extract_without_catalog_entry(
        self, catalog: AsyncMock, movie_ref: ContentRef
    ) -> None:
        catalog.lookup.return_value = None
        route = respx.get(_TEA).respond(json={"links": [{"link": "https://t.test/a.mp4"}]})

        result = await self._strategy(catalog).extract(movie_ref)

        assert result.stream_url == "https://t.test/a.mp4"
        assert result.source_id == "teatv"
        assert route.calls.last.request.url.params["id"] == "550"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_upstream_error(self, catalog: AsyncMock, movie_ref: ContentRef) -> None:
        respx.get(_TEA).respond(503)
        with pytest.raises(UpstreamUnavailable):
            await self._strategy(catalog).extract(movie_ref)

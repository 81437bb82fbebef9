"""Tests for HttpxTmdbClient (title/year/IMDb lookups with caching)."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from filmplus.domain.entities.stream import ContentRef, TitleInfo
from filmplus.infrastructure.tmdb.client import HttpxTmdbClient

_BASE = "https://api.themoviedb.org/3"

_MOVIE = {
    "id": 550,
    "title": "Fight Club",
    "release_date": "1999-10-15",
    "imdb_id": "tt0137523",
}

_SHOW = {
    "id": 1396,
    "name": "Breaking Bad",
    "first_air_date": "2008-01-20",
    "external_ids": {"imdb_id": "tt0903747"},
}


def _make_client(
    cache: AsyncMock, *, api_key: str | None = "test-key"
) -> tuple[HttpxTmdbClient, httpx.AsyncClient]:
    http = httpx.AsyncClient()
    return HttpxTmdbClient(api_key=api_key, http_client=http, cache=cache), http


# ---------------------------------------------------------------------------
# lookup
# ---------------------------------------------------------------------------


class TestLookup:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_movie(self, mock_cache: AsyncMock, movie_ref: ContentRef) -> None:
        route = respx.get(f"{_BASE}/movie/550").respond(json=_MOVIE)
        client, http = _make_client(mock_cache)

        info = await client.lookup(movie_ref)
        await http.aclose()

        assert info == TitleInfo(title="Fight Club", year=1999, external_id="tt0137523")
        params = route.calls.last.request.url.params
        assert params["api_key"] == "test-key"
        assert params["append_to_response"] == "external_ids"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_series_uses_tv_endpoint(
        self, mock_cache: AsyncMock, episode_ref: ContentRef
    ) -> None:
        respx.get(f"{_BASE}/tv/1396").respond(json=_SHOW)
        client, http = _make_client(mock_cache)

        info = await client.lookup(episode_ref)
        await http.aclose()

        assert info == TitleInfo(title="Breaking Bad", year=2008, external_id="tt0903747")

    @respx.mock
    @pytest.mark.asyncio()
    async def test_missing_date_gives_no_year(
        self, mock_cache: AsyncMock, movie_ref: ContentRef
    ) -> None:
        respx.get(f"{_BASE}/movie/550").respond(json={"title": "Fight Club"})
        client, http = _make_client(mock_cache)

        info = await client.lookup(movie_ref)
        await http.aclose()

        assert info == TitleInfo(title="Fight Club", year=None, external_id=None)

    @respx.mock
    @pytest.mark.asyncio()
    async def test_result_cached(self, mock_cache: AsyncMock, movie_ref: ContentRef) -> None:
        respx.get(f"{_BASE}/movie/550").respond(json=_MOVIE)
        client, http = _make_client(mock_cache)

        info = await client.lookup(movie_ref)
        await http.aclose()

        mock_cache.set.assert_awaited_once_with("tmdb:title:movie:550", info, ttl=86_400)

    @respx.mock
    @pytest.mark.asyncio()
    async def test_cache_hit_skips_http(
        self, mock_cache: AsyncMock, movie_ref: ContentRef
    ) -> None:
        cached = TitleInfo(title="Fight Club", year=1999)
        mock_cache.get = AsyncMock(return_value=cached)
        route = respx.get(f"{_BASE}/movie/550").respond(json=_MOVIE)
        client, http = _make_client(mock_cache)

        info = await client.lookup(movie_ref)
        await http.aclose()

        assert info is cached
        assert route.call_count == 0


class TestLookupFailures:
    @pytest.mark.asyncio()
    async def test_no_api_key(self, mock_cache: AsyncMock, movie_ref: ContentRef) -> None:
        client, http = _make_client(mock_cache, api_key=None)
        assert await client.lookup(movie_ref) is None
        await http.aclose()
        mock_cache.get.assert_not_awaited()

    @respx.mock
    @pytest.mark.asyncio()
    @pytest.mark.parametrize("status", [401, 404, 500])
    async def test_error_status(
        self, status: int, mock_cache: AsyncMock, movie_ref: ContentRef
    ) -> None:
        respx.get(f"{_BASE}/movie/550").respond(status)
        client, http = _make_client(mock_cache)

        assert await client.lookup(movie_ref) is None
        await http.aclose()
        mock_cache.set.assert_not_awaited()

    @respx.mock
    @pytest.mark.asyncio()
    async def test_network_error(self, mock_cache: AsyncMock, movie_ref: ContentRef) -> None:
        respx.get(f"{_BASE}/movie/550").mock(side_effect=httpx.ConnectError("down"))
        client, http = _make_client(mock_cache)

        assert await client.lookup(movie_ref) is None
        await http.aclose()

    @respx.mock
    @pytest.mark.asyncio()
    async def test_invalid_json(self, mock_cache: AsyncMock, movie_ref: ContentRef) -> None:
        respx.get(f"{_BASE}/movie/550").respond(text="<html>")
        client, http = _make_client(mock_cache)

        assert await client.lookup(movie_ref) is None
        await http.aclose()

    @respx.mock
    @pytest.mark.asyncio()
    async def test_untitled_payload_not_cached(
        self, mock_cache: AsyncMock, movie_ref: ContentRef
    ) -> None:
        respx.get(f"{_BASE}/movie/550").respond(json={"id": 550})
        client, http = _make_client(mock_cache)

        assert await client.lookup(movie_ref) is None
        await http.aclose()
        mock_cache.set.assert_not_awaited()

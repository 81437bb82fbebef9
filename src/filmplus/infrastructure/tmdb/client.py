"""Async TMDB title lookups (httpx) with caching."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from filmplus.domain.entities.stream import ContentKind, ContentRef, TitleInfo
from filmplus.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

_BASE_URL = "https://api.themoviedb.org/3"

_TTL_TITLE = 86_400  # 24 hours


class HttpxTmdbClient:
    """Async TMDB client using httpx + CachePort.

    Implements ``CatalogPort`` from domain.ports.catalog. Without an API key
    every lookup returns None, which title-keyed providers report as
    ``NotFound``.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        http_client: httpx.AsyncClient,
        cache: CachePort,
        base_url: str = _BASE_URL,
    ) -> None:
        self._api_key = api_key
        self._http = http_client
        self._cache = cache
        self._base_url = base_url.rstrip("/")

    async def _get(self, path: str, **extra: Any) -> dict[str, Any] | None:
        """GET request with error handling. Returns parsed JSON or None."""
        url = f"{self._base_url}{path}"
        params = {"api_key": self._api_key, "language": "en-US", **extra}
        try:
            resp = await self._http.get(url, params=params)
            if resp.status_code == 401:
                log.error("tmdb_api_key_invalid", status=401)
                return None
            if resp.status_code == 404:
                log.debug("tmdb_resource_not_found", path=path)
                return None
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError:
            log.warning("tmdb_http_error", path=path, exc_info=True)
            return None
        except httpx.HTTPError:
            log.warning("tmdb_network_error", path=path, exc_info=True)
            return None
        except ValueError:
            log.warning("tmdb_invalid_json", path=path)
            return None

    @staticmethod
    def _to_title_info(data: dict[str, Any]) -> TitleInfo | None:
        title = data.get("title") or data.get("name")
        if not title:
            return None
        date_str = data.get("release_date") or data.get("first_air_date") or ""
        year = int(date_str[:4]) if date_str[:4].isdigit() else None
        external = data.get("imdb_id") or (data.get("external_ids") or {}).get(
            "imdb_id"
        )
        return TitleInfo(title=title, year=year, external_id=external or None)

    async def lookup(self, ref: ContentRef) -> TitleInfo | None:
        """Title, year and IMDb id for a TMDB id (cached 24h)."""
        if not self._api_key:
            log.debug("tmdb_lookup_skipped", reason="no api key")
            return None

        endpoint = "tv" if ref.kind is ContentKind.SERIES else "movie"
        cache_key = f"tmdb:title:{endpoint}:{ref.id}"
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return cached

        data = await self._get(
            f"/{endpoint}/{ref.id}", append_to_response="external_ids"
        )
        if data is None:
            return None

        info = self._to_title_info(data)
        if info is not None:
            await self._cache.set(cache_key, info, ttl=_TTL_TITLE)
        return info

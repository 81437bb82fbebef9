"""FlixHQ scraper: title search, server lookup via the site's AJAX API, then
stream sniffing on the chosen server's embed page.

FlixHQ is keyed by title, so the catalog collaborator supplies title and year.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import httpx
import structlog
from bs4 import Tag

from filmplus.domain.entities.stream import (
    ContentKind,
    ContentRef,
    ScrapeOutcome,
    TitleInfo,
)
from filmplus.domain.exceptions import ExtractionError, NotFound, UpstreamShapeChanged
from filmplus.domain.ports.catalog import CatalogPort
from filmplus.infrastructure.common.html_selectors import (
    extract_attr,
    extract_text,
    parse_html,
    select_items,
)
from filmplus.infrastructure.extractors.http_helpers import fetch, json_body
from filmplus.infrastructure.scrapers.browser_sniffer import BrowserStreamSniffer

log = structlog.get_logger(__name__)

_NUMBER_RE = re.compile(r"(\d+)")


@dataclass(frozen=True)
class _Listing:
    title: str
    href: str
    is_tv: bool
    year: str


def _first_number(text: str) -> int | None:
    match = _NUMBER_RE.search(text)
    return int(match.group(1)) if match else None


def _parse_listing(item: Tag) -> _Listing | None:
    href = extract_attr(item, "h2.film-name a", "href", "a.film-poster-ahref")
    if not href:
        return None
    return _Listing(
        title=extract_attr(item, "h2.film-name a", "title")
        or extract_text(item, "h2.film-name"),
        href=href,
        is_tv="/tv/" in href,
        year=extract_text(item, "span.fdi-item"),
    )


def pick_listing(
    listings: list[_Listing], info: TitleInfo, kind: ContentKind
) -> _Listing | None:
    """Choose the search hit matching the catalog entry.

    Series: same title, else the first series. Movies: same year, else
    same title, else the first movie.
    """
    wanted = info.title.casefold()
    if kind is ContentKind.SERIES:
        shows = [item for item in listings if item.is_tv]
        exact = [item for item in shows if item.title.casefold() == wanted]
        return (exact or shows or [None])[0]

    movies = [item for item in listings if not item.is_tv]
    if info.year:
        by_year = [item for item in movies if item.year == str(info.year)]
        if by_year:
            return by_year[0]
    exact = [item for item in movies if item.title.casefold() == wanted]
    return (exact or movies or [None])[0]


class FlixHqScraper:
    """Implements ``HeadlessScraperPort`` for one FlixHQ server (UpCloud/VidCloud)."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        catalog: CatalogPort,
        sniffer: BrowserStreamSniffer,
        server: str,
        base_url: str = "https://flixhq.to",
        default_referer: str = "https://streameeeeee.site/",
    ) -> None:
        self._http = http_client
        self._catalog = catalog
        self._sniffer = sniffer
        self._server = server
        self._base_url = base_url.rstrip("/")
        self._default_referer = default_referer

    @property
    def _provider_id(self) -> str:
        return self._server.lower()

    async def _html(self, path: str) -> str:
        resp = await fetch(
            self._http,
            f"{self._base_url}{path}",
            provider_id=self._provider_id,
            headers={"Referer": f"{self._base_url}/", "X-Requested-With": "XMLHttpRequest"},
        )
        return resp.text

    async def _search(self, info: TitleInfo, kind: ContentKind) -> _Listing:
        slug = re.sub(r"[^\w]+", "-", info.title.casefold()).strip("-")
        soup = parse_html(await self._html(f"/search/{slug}"))
        listings = [
            listing
            for item in select_items(soup, "div.flw-item")
            if (listing := _parse_listing(item)) is not None
        ]
        match = pick_listing(listings, info, kind)
        if match is None:
            raise NotFound(f"no FlixHQ match for {info.title!r}", provider_id=self._provider_id)
        return match

    async def _content_id(self, listing: _Listing) -> str:
        path = listing.href
        if path.startswith(self._base_url):
            path = path[len(self._base_url):]
        if not path.startswith("/"):
            path = f"/{path}"
        soup = parse_html(await self._html(path))
        content_id = extract_attr(soup, "div.detail_page-watch", "data-id")
        if not content_id:
            # Detail pages also encode the id as the URL's trailing number.
            number = _NUMBER_RE.findall(listing.href)
            if not number:
                raise UpstreamShapeChanged(
                    "detail page has no content id", provider_id=self._provider_id
                )
            content_id = number[-1]
        return content_id

    async def _servers_path(
        self, content_id: str, is_tv: bool, season: int | None, episode: int | None
    ) -> str:
        if not is_tv:
            return f"/ajax/episode/list/{content_id}"
        if season is None or episode is None:
            raise NotFound("series requested without season/episode", provider_id=self._provider_id)

        seasons = parse_html(await self._html(f"/ajax/season/list/{content_id}"))
        season_id = next(
            (
                extract_attr(item, "", "data-id")
                for item in select_items(seasons, "a.dropdown-item")
                if _first_number(item.get_text()) == season
            ),
            "",
        )
        if not season_id:
            raise NotFound(f"season {season} not on FlixHQ", provider_id=self._provider_id)

        episodes = parse_html(await self._html(f"/ajax/season/episodes/{season_id}"))
        episode_id = next(
            (
                extract_attr(item, "", "data-id")
                for item in select_items(episodes, "a.eps-item")
                if _first_number(extract_attr(item, "", "title") or item.get_text())
                == episode
            ),
            "",
        )
        if not episode_id:
            raise NotFound(
                f"S{season}E{episode} not on FlixHQ", provider_id=self._provider_id
            )
        return f"/ajax/episode/servers/{episode_id}"

    async def _embed_link(self, servers_path: str) -> str:
        servers = parse_html(await self._html(servers_path))
        wanted = self._server.casefold()
        link_id = next(
            (
                extract_attr(item, "", "data-linkid") or extract_attr(item, "", "data-id")
                for item in select_items(servers, "a.link-item", "a.nav-link")
                if wanted in (extract_attr(item, "", "title") or item.get_text()).casefold()
            ),
            "",
        )
        if not link_id:
            raise NotFound(f"server {self._server} not offered", provider_id=self._provider_id)

        resp = await fetch(
            self._http,
            f"{self._base_url}/ajax/episode/sources/{link_id}",
            provider_id=self._provider_id,
            headers={"Referer": f"{self._base_url}/", "X-Requested-With": "XMLHttpRequest"},
        )
        payload = json_body(resp, provider_id=self._provider_id)
        link = payload.get("link") if isinstance(payload, dict) else None
        if not link:
            raise UpstreamShapeChanged("sources response has no link", provider_id=self._provider_id)
        return str(link)

    async def scrape(
        self,
        numeric_id: int,
        kind: ContentKind,
        season: int | None,
        episode: int | None,
    ) -> ScrapeOutcome:
        info = await self._catalog.lookup(
            ContentRef(id=str(numeric_id), kind=kind, season=season, episode=episode)
        )
        if info is None:
            raise NotFound("title lookup failed", provider_id=self._provider_id)

        try:
            listing = await self._search(info, kind)
            content_id = await self._content_id(listing)
            servers_path = await self._servers_path(content_id, listing.is_tv, season, episode)
            embed = await self._embed_link(servers_path)
        except ExtractionError:
            log.debug("flixhq_lookup_failed", server=self._server, title=info.title)
            raise

        outcome = await self._sniffer.sniff(embed, referer=f"{self._base_url}/")
        if not outcome.success:
            return outcome
        return ScrapeOutcome(
            success=True,
            hls_url=outcome.hls_url,
            subtitles=outcome.subtitles,
            referer=outcome.referer or self._default_referer,
        )

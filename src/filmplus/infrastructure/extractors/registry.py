"""Assembles the provider strategies from configuration."""

from __future__ import annotations

import httpx
import structlog

from filmplus.domain.entities.stream import ProviderDescriptor
from filmplus.domain.ports.catalog import CatalogPort
from filmplus.domain.ports.extraction_strategy import ExtractionStrategyPort
from filmplus.infrastructure.config.schema import AppConfig
from filmplus.infrastructure.extractors.api_search import MorphTvStrategy, TeaTvStrategy
from filmplus.infrastructure.extractors.moviesapi import MoviesApiStrategy
from filmplus.infrastructure.extractors.page_scrape import PageScrapeStrategy
from filmplus.infrastructure.extractors.providers import configured_providers
from filmplus.infrastructure.extractors.scraper_lib import ScraperLibStrategy
from filmplus.infrastructure.scrapers.browser_sniffer import BrowserStreamSniffer
from filmplus.infrastructure.scrapers.embed_scraper import EmbedPageScraper
from filmplus.infrastructure.scrapers.flixhq import FlixHqScraper

log = structlog.get_logger(__name__)


def build_default_strategies(
    *,
    config: AppConfig,
    http_client: httpx.AsyncClient,
    catalog: CatalogPort,
    sniffer: BrowserStreamSniffer,
) -> tuple[list[ProviderDescriptor], dict[str, ExtractionStrategyPort]]:
    """Return the enabled descriptors (priority order) and their strategies."""
    providers = config.providers

    def flixhq(server: str) -> ScraperLibStrategy:
        return ScraperLibStrategy(
            provider_id=server.lower(),
            scraper=FlixHqScraper(
                http_client=http_client,
                catalog=catalog,
                sniffer=sniffer,
                server=server,
                base_url=providers.flixhq_base,
                default_referer=providers.flixhq_default_referer,
            ),
        )

    strategies: dict[str, ExtractionStrategyPort] = {
        "moviesapi": MoviesApiStrategy(
            http_client=http_client,
            api_base=providers.moviesapi_base,
            cdn_base=providers.flixcdn_base,
        ),
        "vidsrc": ScraperLibStrategy(
            provider_id="vidsrc",
            scraper=EmbedPageScraper(
                sniffer=sniffer,
                movie_template=providers.vidsrc_movie_template,
                tv_template=providers.vidsrc_tv_template,
            ),
        ),
        "vidsrcicu": PageScrapeStrategy(
            http_client=http_client,
            base_url=providers.vidsrc_icu_base,
        ),
        "upcloud": flixhq("UpCloud"),
        "vidcloud": flixhq("Vidcloud"),
        "morphtv": MorphTvStrategy(
            http_client=http_client,
            catalog=catalog,
            api_url=providers.morphtv_api,
            secret=providers.morphtv_secret,
        ),
        "teatv": TeaTvStrategy(
            http_client=http_client,
            catalog=catalog,
            api_url=providers.teatv_api,
        ),
    }

    descriptors = configured_providers(
        disabled=providers.disabled,
        priority_overrides=providers.priority_overrides,
    )
    enabled = {d.id: strategies[d.id] for d in descriptors}
    log.info(
        "strategies_built",
        providers=[d.id for d in descriptors],
        disabled=sorted(set(providers.disabled)),
    )
    return descriptors, enabled

"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from filmplus.application.use_cases.extract_stream import ExtractStreamUseCase
from filmplus.infrastructure.cache import DiskcacheAdapter
from filmplus.infrastructure.common.retry_transport import RetryTransport
from filmplus.infrastructure.config.schema import AppConfig
from filmplus.infrastructure.crypto import TokenCodec
from filmplus.infrastructure.extractors.registry import build_default_strategies
from filmplus.infrastructure.persistence.playback_store import CachePlaybackStore
from filmplus.infrastructure.proxy import HlsProxy, NoRefererHostSet
from filmplus.infrastructure.scrapers.browser_sniffer import BrowserStreamSniffer
from filmplus.infrastructure.tmdb.client import HttpxTmdbClient
from filmplus.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


def build_http_client(config: AppConfig) -> httpx.AsyncClient:
    """Shared upstream client: browser UA, configured timeout, retries."""
    transport = RetryTransport(
        wrapped=httpx.AsyncHTTPTransport(),
        max_attempts=config.http_retry_max_attempts,
        backoff_base=config.http_retry_backoff_base,
        max_backoff=config.http_retry_max_backoff,
    )
    return httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
        follow_redirects=config.http_follow_redirects,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan Hook: Initialize and cleanup all resources (DI Composition Root).

    Order matters:
        1. Cache (title lookups, playback store)
        2. HTTP client (strategies, catalog, proxy)
        3. Token codec + no-referer host set (process-scoped)
        4. Catalog client and browser sniffer
        5. Strategies -> extraction use case
        6. HLS proxy, playback store
    """
    state = cast(AppState, app.state)
    config = state.config

    # 1) Cache
    cache = DiskcacheAdapter(
        directory=config.cache_dir,
        ttl_seconds=config.cache_ttl_seconds,
    )
    await cache.__aenter__()
    state.cache = cache
    log.info("cache_initialized", directory=str(config.cache_dir))

    # 2) HTTP client with 429/5xx retry
    state.http_client = build_http_client(config)
    log.info(
        "http_client_initialized",
        retry_max_attempts=config.http_retry_max_attempts,
        timeout_seconds=config.http_timeout_seconds,
    )

    # 3) Stream tokens are only valid for this process
    state.codec = TokenCodec()
    state.no_referer_hosts = NoRefererHostSet()

    # 4) Collaborators
    state.catalog = HttpxTmdbClient(
        api_key=config.tmdb_api_key,
        http_client=state.http_client,
        cache=state.cache,
    )
    if not config.tmdb_api_key:
        log.warning("tmdb_key_missing", effect="title-keyed providers will fail")

    state.sniffer = BrowserStreamSniffer(
        headless=config.playwright_headless,
        timeout_ms=config.playwright_timeout_ms,
    )

    # 5) Strategies + orchestrator
    descriptors, strategies = build_default_strategies(
        config=config,
        http_client=state.http_client,
        catalog=state.catalog,
        sniffer=state.sniffer,
    )
    state.extract_uc = ExtractStreamUseCase(
        descriptors=descriptors,
        strategies=strategies,
        config=config,
    )

    # 6) Proxy + playback persistence
    state.hls_proxy = HlsProxy(
        http_client=state.http_client,
        codec=state.codec,
        no_referer_hosts=state.no_referer_hosts,
        config=config.proxy,
        user_agent=config.http_user_agent,
    )
    state.playback_store = CachePlaybackStore(cache=state.cache)

    state.graceful_shutdown.mark_ready()
    log.info("app_startup_complete", providers=len(descriptors))

    try:
        yield
    finally:
        await state.graceful_shutdown.wait_for_drain(timeout=10.0)

        await state.sniffer.cleanup()
        log.info("browser_sniffer_closed")

        await state.http_client.aclose()
        log.info("http_client_closed")

        await state.cache.aclose()
        log.info("cache_closed")

        log.info("app_shutdown_complete")

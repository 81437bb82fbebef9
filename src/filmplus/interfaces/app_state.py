"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from filmplus.infrastructure.config import AppConfig
from filmplus.infrastructure.graceful_shutdown import GracefulShutdown

if TYPE_CHECKING:
    from filmplus.application.use_cases.extract_stream import ExtractStreamUseCase
    from filmplus.domain.ports import CachePort, CatalogPort, PlaybackStorePort
    from filmplus.infrastructure.crypto import TokenCodec
    from filmplus.infrastructure.proxy import HlsProxy, NoRefererHostSet
    from filmplus.infrastructure.scrapers.browser_sniffer import BrowserStreamSniffer


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig

    # Infrastructure
    cache: CachePort
    http_client: httpx.AsyncClient

    # Process-scoped stream state
    codec: TokenCodec
    no_referer_hosts: NoRefererHostSet

    # Collaborators
    catalog: CatalogPort
    sniffer: BrowserStreamSniffer

    # Application services
    extract_uc: ExtractStreamUseCase
    hls_proxy: HlsProxy
    playback_store: PlaybackStorePort

    # Graceful shutdown (request tracking + drain)
    graceful_shutdown: GracefulShutdown

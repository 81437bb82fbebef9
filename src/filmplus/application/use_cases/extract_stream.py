"""Stream extraction use case.

ContentRef -> provider waterfall (or one forced provider)
-> ExtractionResult -> proxy payload for the player.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any, Protocol
from urllib.parse import quote

import structlog

from filmplus.application.preload import PreloadCache
from filmplus.domain.entities.stream import (
    ContentRef,
    ExtractionResult,
    PreloadFailure,
    ProviderDescriptor,
)
from filmplus.domain.exceptions import (
    AllProvidersExhausted,
    ExtractionError,
    UnknownProvider,
    UpstreamShapeChanged,
    UpstreamUnavailable,
)
from filmplus.domain.ports.extraction_strategy import ExtractionStrategyPort

log = structlog.get_logger(__name__)


class _ExtractConfig(Protocol):
    """Configuration values consumed by ExtractStreamUseCase."""

    extraction_timeout_seconds: float


class _UrlEncoder(Protocol):
    def encode(self, url: str) -> str: ...


def to_proxy_payload(
    result: ExtractionResult,
    codec: _UrlEncoder,
    stream_prefix: str = "/stream",
) -> dict[str, Any]:
    """Build the ``/api/extract-stream`` success body.

    The stream URL (and its referer) only ever leave the process as
    opaque tokens.
    """
    hls_url = f"{stream_prefix}/{codec.encode(result.stream_url)}"
    if result.upstream_referer:
        hls_url += f"?r={codec.encode(result.upstream_referer)}"
    return {
        "success": True,
        "hlsUrl": hls_url,
        "subtitles": [
            {
                "lang": sub.lang,
                "label": sub.label,
                "url": f"/api/subtitle-file?url={quote(sub.url, safe='')}",
            }
            for sub in result.subtitles
        ],
        "source": result.source_id,
    }


class ExtractStreamUseCase:
    """Resolve a ContentRef into one playable stream.

    Flow:
        1. Forced provider: run exactly that strategy, errors propagate.
        2. Otherwise try providers in priority order, first success wins.
        3. Every provider failed: raise AllProvidersExhausted with the
           per-provider error log.
    """

    def __init__(
        self,
        *,
        descriptors: Iterable[ProviderDescriptor],
        strategies: Mapping[str, ExtractionStrategyPort],
        config: _ExtractConfig,
    ) -> None:
        self._descriptors = sorted(descriptors, key=lambda d: d.priority)
        self._strategies = dict(strategies)
        self._timeout = config.extraction_timeout_seconds

    @property
    def descriptors(self) -> list[ProviderDescriptor]:
        return list(self._descriptors)

    def _strategy(self, provider_id: str) -> ExtractionStrategyPort:
        strategy = self._strategies.get(provider_id)
        if strategy is None or all(d.id != provider_id for d in self._descriptors):
            raise UnknownProvider(
                f"Unknown provider: {provider_id}", provider_id=provider_id
            )
        return strategy

    async def _attempt(self, provider_id: str, ref: ContentRef) -> ExtractionResult:
        strategy = self._strategy(provider_id)
        start = time.perf_counter_ns()
        try:
            result = await asyncio.wait_for(strategy.extract(ref), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise UpstreamUnavailable(
                f"timed out after {self._timeout:g}s", provider_id=provider_id
            ) from exc
        except UpstreamShapeChanged as exc:
            log.warning(
                "extract_shape_changed",
                provider=provider_id,
                error=exc.message,
            )
            raise
        except ExtractionError:
            raise
        except Exception as exc:
            log.exception("extract_provider_crashed", provider=provider_id)
            raise UpstreamUnavailable(
                f"{type(exc).__name__}: {exc}", provider_id=provider_id
            ) from exc

        log.info(
            "extract_provider_succeeded",
            provider=provider_id,
            content_id=ref.id,
            kind=ref.kind.value,
            duration_ms=(time.perf_counter_ns() - start) // 1_000_000,
        )
        if result.source_id != provider_id:
            result = replace(result, source_id=provider_id)
        return result

    async def resolve(
        self,
        ref: ContentRef,
        forced_provider_id: str | None = None,
    ) -> ExtractionResult:
        if forced_provider_id is not None:
            return await self._attempt(forced_provider_id, ref)

        errors: list[str] = []
        for descriptor in self._descriptors:
            try:
                return await self._attempt(descriptor.id, ref)
            except ExtractionError as exc:
                log.info(
                    "extract_provider_failed",
                    provider=descriptor.id,
                    error_type=type(exc).__name__,
                    error=exc.message,
                )
                errors.append(f"{descriptor.id}: {exc.message}")

        log.warning("extract_all_failed", content_id=ref.id, errors=len(errors))
        raise AllProvidersExhausted(errors)

    async def preload_all(
        self,
        ref: ContentRef,
        cache: PreloadCache,
        generation: int,
        exclude: Iterable[str] = (),
    ) -> None:
        """Resolve every provider concurrently into *cache*.

        Settled outcomes are written under *generation*; the cache drops
        them when the session has moved on in the meantime.
        """
        skip = set(exclude)

        async def _one(provider_id: str) -> None:
            entry: ExtractionResult | PreloadFailure
            try:
                entry = await self._attempt(provider_id, ref)
            except ExtractionError as exc:
                entry = PreloadFailure(provider_id=provider_id, error=exc.message)
            except Exception as exc:
                log.exception("preload_provider_crashed", provider=provider_id)
                entry = PreloadFailure(provider_id=provider_id, error=str(exc))
            if not cache.put(provider_id, entry, generation):
                log.debug("preload_stale_dropped", provider=provider_id, generation=generation)

        await asyncio.gather(
            *(_one(d.id) for d in self._descriptors if d.id not in skip)
        )

    def next_candidate(
        self,
        failed: Iterable[str],
        current: str | None,
    ) -> ProviderDescriptor | None:
        skip = set(failed)
        for descriptor in self._descriptors:
            if descriptor.id not in skip and descriptor.id != current:
                return descriptor
        return None

    def initial_provider(self, saved_default: str | None) -> ProviderDescriptor:
        for descriptor in self._descriptors:
            if descriptor.id == saved_default:
                return descriptor
        return self._descriptors[0]

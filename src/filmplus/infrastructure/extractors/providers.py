"""Built-in provider list, ordered by priority."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import replace

from filmplus.domain.entities.stream import ProviderDescriptor, StrategyKind

DEFAULT_PROVIDERS: tuple[ProviderDescriptor, ...] = (
    ProviderDescriptor("moviesapi", "Premium HD", "4K", 2160, 1, StrategyKind.API_DECRYPT),
    ProviderDescriptor("vidsrc", "VidSrc Pro", "1080P", 1080, 2, StrategyKind.SCRAPER_LIB),
    ProviderDescriptor("vidsrcicu", "VidSrc ICU", "1080P", 1080, 3, StrategyKind.PAGE_SCRAPE),
    ProviderDescriptor("upcloud", "UpCloud", "720P", 720, 4, StrategyKind.SCRAPER_LIB),
    ProviderDescriptor("vidcloud", "VidCloud", "720P", 720, 5, StrategyKind.SCRAPER_LIB),
    ProviderDescriptor("morphtv", "MorphTV", "720P", 720, 6, StrategyKind.API_ONLY_SEARCH),
    ProviderDescriptor("teatv", "TeaTV", "720P", 720, 7, StrategyKind.API_ONLY_SEARCH),
)


def configured_providers(
    *,
    disabled: Iterable[str] = (),
    priority_overrides: Mapping[str, int] | None = None,
    base: Iterable[ProviderDescriptor] = DEFAULT_PROVIDERS,
) -> list[ProviderDescriptor]:
    """Apply config overrides and return descriptors sorted by priority."""
    skip = set(disabled)
    overrides = priority_overrides or {}
    out = [
        replace(d, priority=overrides.get(d.id, d.priority))
        for d in base
        if d.id not in skip
    ]
    return sorted(out, key=lambda d: d.priority)

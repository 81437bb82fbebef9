"""Playback bookkeeping (resume positions, default provider) backed by CachePort."""

from __future__ import annotations

import json

import structlog

from filmplus.domain.entities.stream import ContentRef
from filmplus.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

_DEFAULT_PROVIDER_KEY = "playback:default_provider"
_POSITION_TTL = 60 * 60 * 24 * 180  # half a year
# Positions this close to the start are not worth resuming.
_MIN_RESUME_SECONDS = 5.0


def _position_key(ref: ContentRef) -> str:
    parts = [ref.kind.value, ref.id]
    if ref.is_episode:
        parts += [str(ref.season), str(ref.episode)]
    return "playback:position:" + ":".join(parts)


class CachePlaybackStore:
    """Stores resume positions and the preferred provider via CachePort."""

    def __init__(self, cache: CachePort, ttl_seconds: int = _POSITION_TTL) -> None:
        self.cache = cache
        self.ttl = ttl_seconds

    async def save_position(self, ref: ContentRef, seconds: float) -> None:
        key = _position_key(ref)
        if seconds < _MIN_RESUME_SECONDS:
            await self.cache.delete(key)
            return
        await self.cache.set(key, json.dumps({"seconds": seconds}), ttl=self.ttl)
        log.debug("playback_position_saved", key=key, seconds=round(seconds, 1))

    async def load_position(self, ref: ContentRef) -> float | None:
        key = _position_key(ref)
        data = await self.cache.get(key)
        if data is None:
            return None
        try:
            return float(json.loads(data)["seconds"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            log.error("playback_position_deserialize_error", key=key, error=str(e))
            return None

    async def default_provider(self) -> str | None:
        value = await self.cache.get(_DEFAULT_PROVIDER_KEY)
        return str(value) if value else None

    async def set_default_provider(self, provider_id: str) -> None:
        await self.cache.set(_DEFAULT_PROVIDER_KEY, provider_id, ttl=0)
        log.info("default_provider_saved", provider=provider_id)

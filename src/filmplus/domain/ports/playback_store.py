"""Port for persisted per-user playback bookkeeping."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from filmplus.domain.entities.stream import ContentRef


@runtime_checkable
class PlaybackStorePort(Protocol):
    """Resume positions and the preferred provider."""

    async def save_position(self, ref: ContentRef, seconds: float) -> None:
        ...

    async def load_position(self, ref: ContentRef) -> float | None:
        ...

    async def default_provider(self) -> str | None:
        ...

    async def set_default_provider(self, provider_id: str) -> None:
        ...

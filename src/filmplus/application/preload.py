"""Per-title preload cache with generation-tagged writes."""

from __future__ import annotations

from filmplus.domain.entities.stream import ExtractionResult, PreloadFailure

PreloadEntry = ExtractionResult | PreloadFailure


class PreloadCache:
    """Provider id -> settled extraction outcome for the current title.

    Every write carries the generation it was started under. Once the
    session moves on (``advance``), writes from older generations are
    dropped so a slow provider can never leak into the next title.
    """

    def __init__(self) -> None:
        self._generation = 0
        self._entries: dict[str, PreloadEntry] = {}

    @property
    def generation(self) -> int:
        return self._generation

    def advance(self) -> int:
        """Start a new generation and drop every cached entry."""
        self._generation += 1
        self._entries.clear()
        return self._generation

    def put(self, provider_id: str, value: PreloadEntry, generation: int) -> bool:
        if generation != self._generation:
            return False
        self._entries[provider_id] = value
        return True

    def get(self, provider_id: str) -> PreloadEntry | None:
        return self._entries.get(provider_id)

    def success_for(self, provider_id: str) -> ExtractionResult | None:
        entry = self._entries.get(provider_id)
        return entry if isinstance(entry, ExtractionResult) else None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

"""Port for provider-specific stream extraction."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from filmplus.domain.entities.stream import ContentRef, ExtractionResult


@runtime_checkable
class ExtractionStrategyPort(Protocol):
    """Turns a ContentRef into a playable stream for one upstream provider.

    Implementations speak exactly one upstream protocol. They either return
    a fully populated ExtractionResult or raise one of the typed
    ``ExtractionError`` subclasses; they never return partial results.
    """

    @property
    def provider_id(self) -> str:
        """Provider id this strategy serves (e.g. 'moviesapi')."""
        ...

    async def extract(self, ref: ContentRef) -> ExtractionResult:
        ...

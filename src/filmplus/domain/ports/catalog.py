"""Port for catalog metadata lookups."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from filmplus.domain.entities.stream import ContentRef, TitleInfo


@runtime_checkable
class CatalogPort(Protocol):
    """Resolves a catalog id to title, year and external id."""

    async def lookup(self, ref: ContentRef) -> TitleInfo | None:
        """Returns None when the catalog has no entry (or is not configured)."""
        ...

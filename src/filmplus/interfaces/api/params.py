"""Query-parameter parsing shared by the API routers."""

from __future__ import annotations

from collections.abc import Mapping

from filmplus.domain.entities.stream import ContentKind, ContentRef


class InvalidParams(ValueError):
    """Raised for a request the API answers with 400."""


def first_param(params: Mapping[str, str], *names: str) -> str | None:
    """Value of the first non-empty parameter among *names* (aliases)."""
    for name in names:
        value = params.get(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def _optional_int(raw: str | None, name: str) -> int | None:
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidParams(f"{name} must be an integer") from exc
    if value < 0:
        raise InvalidParams(f"{name} must be >= 0")
    return value


def content_ref_from(params: Mapping[str, str]) -> ContentRef:
    """Build a ContentRef from ``id``/``tmdbId``, ``kind``/``type``,
    ``season`` and ``episode``."""
    content_id = first_param(params, "id", "tmdbId")
    if content_id is None:
        raise InvalidParams("id required")
    raw_kind = first_param(params, "kind", "type") or ContentKind.MOVIE.value
    try:
        kind = ContentKind.parse(raw_kind)
    except ValueError as exc:
        raise InvalidParams(f"unknown kind: {raw_kind}") from exc
    return ContentRef(
        id=content_id,
        kind=kind,
        season=_optional_int(first_param(params, "season"), "season"),
        episode=_optional_int(first_param(params, "episode"), "episode"),
    )

"""MoviesAPI + FlixCDN extractor (metadata API, then encrypted video API).

Flow:
    1. ``/api/movie/{id}`` or ``/api/tv/{id}/{s}/{e}`` on moviesapi returns a
       ``video_url`` whose fragment carries the FlixCDN video handle.
    2. ``/api/v1/video?id={handle}`` on FlixCDN returns a hex blob encrypted
       with the AES key embedded in the FlixCDN web player.
    3. The decrypted JSON offers up to three stream fields; the first one
       present in ``_STREAM_FIELDS`` order wins.
"""

from __future__ import annotations

import json
import re
from typing import Any

import httpx
import structlog

from filmplus.domain.entities.stream import (
    ContentRef,
    ExtractionResult,
    StreamKind,
    Subtitle,
)
from filmplus.domain.exceptions import NotFound, UpstreamShapeChanged
from filmplus.infrastructure.crypto import decrypt_upstream_payload
from filmplus.infrastructure.extractors.http_helpers import absolute, fetch, json_body

log = structlog.get_logger(__name__)

# Key material published in the FlixCDN player bundle.
FLIXCDN_KEY = b"kiemtienmua911ca"
FLIXCDN_IVS: tuple[bytes, ...] = (b"1234567890oiuytr", b"0123456789abcdef")

# direct link > CDN-relative link > alternate CDN
_STREAM_FIELDS: tuple[str, ...] = ("source", "hlsVideoTiktok", "cf")

_HANDLE_RE = re.compile(r"#([^&]+)")


class MoviesApiStrategy:
    """ApiDecrypt strategy for the ``moviesapi`` provider."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        api_base: str = "https://ww2.moviesapi.to",
        cdn_base: str = "https://flixcdn.cyou",
        provider_id: str = "moviesapi",
    ) -> None:
        self._http = http_client
        self._api_base = api_base.rstrip("/")
        self._cdn_base = cdn_base.rstrip("/")
        self._provider_id = provider_id

    @property
    def provider_id(self) -> str:
        return self._provider_id

    def _meta_url(self, ref: ContentRef) -> str:
        if ref.is_episode:
            return f"{self._api_base}/api/tv/{ref.id}/{ref.season}/{ref.episode}"
        return f"{self._api_base}/api/movie/{ref.id}"

    def _decrypt(self, blob: str) -> dict[str, Any]:
        last_error: Exception | None = None
        for iv in FLIXCDN_IVS:
            try:
                data = json.loads(decrypt_upstream_payload(blob, FLIXCDN_KEY, iv))
            except (UpstreamShapeChanged, ValueError) as exc:
                last_error = exc
                continue
            if not isinstance(data, dict):
                raise UpstreamShapeChanged(
                    "decrypted payload is not an object", provider_id=self._provider_id
                )
            return data
        raise UpstreamShapeChanged(
            f"video payload did not decrypt: {last_error}",
            provider_id=self._provider_id,
        ) from last_error

    def _pick_stream(self, video: dict[str, Any]) -> str:
        for field in _STREAM_FIELDS:
            value = video.get(field)
            if isinstance(value, str) and value.strip():
                return absolute(value.strip(), self._cdn_base)
        raise NotFound(
            "no stream url in decrypted data", provider_id=self._provider_id
        )

    def _collect_subtitles(
        self, meta: dict[str, Any], video: dict[str, Any]
    ) -> tuple[Subtitle, ...]:
        subs: list[Subtitle] = []

        embedded = video.get("subtitle")
        if isinstance(embedded, dict):
            for lang, path in embedded.items():
                if isinstance(path, str) and path:
                    subs.append(
                        Subtitle(
                            lang=lang,
                            label=lang.upper(),
                            url=absolute(path, self._cdn_base),
                        )
                    )

        listed = meta.get("subs")
        if isinstance(listed, list):
            for entry in listed:
                if not isinstance(entry, dict) or not entry.get("url"):
                    continue
                lang = entry.get("lang") or "en"
                subs.append(
                    Subtitle(
                        lang=lang,
                        label=entry.get("label") or entry.get("lang") or "Sub",
                        url=entry["url"],
                    )
                )
        return tuple(subs)

    async def extract(self, ref: ContentRef) -> ExtractionResult:
        meta_resp = await fetch(
            self._http,
            self._meta_url(ref),
            provider_id=self._provider_id,
            headers={"Referer": f"{self._api_base}/"},
        )
        meta = json_body(meta_resp, provider_id=self._provider_id)
        if not isinstance(meta, dict):
            raise UpstreamShapeChanged(
                "metadata response is not an object", provider_id=self._provider_id
            )

        video_url = meta.get("video_url")
        if not video_url:
            raise NotFound("no video_url in metadata", provider_id=self._provider_id)
        match = _HANDLE_RE.search(str(video_url))
        if not match:
            raise UpstreamShapeChanged(
                "video_url carries no handle", provider_id=self._provider_id
            )

        video_resp = await fetch(
            self._http,
            f"{self._cdn_base}/api/v1/video",
            provider_id=self._provider_id,
            params={"id": match.group(1)},
            headers={"Referer": f"{self._cdn_base}/", "Origin": self._cdn_base},
        )
        video = self._decrypt(video_resp.text)
        stream_url = self._pick_stream(video)

        log.debug("moviesapi_stream_found", id=ref.id, url=stream_url)
        return ExtractionResult(
            stream_url=stream_url,
            stream_kind=StreamKind.HLS,
            source_id=self._provider_id,
            subtitles=self._collect_subtitles(meta, video),
            title=str(meta.get("title") or video.get("title") or ""),
        )

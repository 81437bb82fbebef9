"""HLS proxy: upstream fetching and manifest rewriting.

Every URL inside a proxied manifest is resolved against the manifest's own
fetch URL and replaced by a ``/stream/{token}`` path, so the player never
contacts an upstream host directly. Segments and keys stream through
unmodified.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from urllib.parse import urlparse

import httpx
import structlog

from filmplus.domain.exceptions import DecodeError
from filmplus.infrastructure.config.schema import BROWSER_USER_AGENT, ProxyConfig
from filmplus.infrastructure.crypto.token_codec import TokenCodec
from filmplus.infrastructure.proxy.referer_policy import (
    NoRefererHostSet,
    build_upstream_headers,
)

log = structlog.get_logger(__name__)

PLAYLIST_CONTENT_TYPE = "application/vnd.apple.mpegurl"
UNAVAILABLE_BODY = "Stream unavailable"

_URI_ATTR_RE = re.compile(r'URI="([^"]+)"')
_MASKED_CONTENT_TYPES = ("image/", "text/", "application/octet-stream", "binary/")
_MP4_SUFFIXES = (".mp4", ".m4s", ".m4v")


def resolve_reference(ref: str, manifest_url: str) -> str:
    """Resolve a manifest entry against the URL the manifest was fetched from.

    >>> resolve_reference("seg-1.ts", "https://cdn.example/hls/a/index.m3u8?t=1")
    'https://cdn.example/hls/a/seg-1.ts'
    """
    if ref.startswith(("http://", "https://")):
        return ref
    parsed = urlparse(manifest_url)
    if ref.startswith("//"):
        return f"{parsed.scheme}:{ref}"
    origin = f"{parsed.scheme}://{parsed.netloc}"
    if ref.startswith("/"):
        return f"{origin}{ref}"
    directory = parsed.path[: parsed.path.rfind("/") + 1] or "/"
    return f"{origin}{directory}{ref}"


def is_playlist(url: str, content_type: str | None) -> bool:
    ct = (content_type or "").lower()
    return ".m3u8" in url or "cf-master" in url or "mpegurl" in ct or "m3u8" in ct


def normalize_content_type(url: str, content_type: str | None) -> str:
    """Media type for a binary body; some CDNs label TS segments as images."""
    path = urlparse(url).path.lower()
    if path.endswith(".key"):
        return "application/octet-stream"
    if path.endswith(_MP4_SUFFIXES):
        return "video/mp4"
    ct = (content_type or "").split(";")[0].strip().lower()
    if not ct or ct.startswith(_MASKED_CONTENT_TYPES):
        return "video/mp2t"
    return ct


def rewrite_manifest(
    text: str,
    manifest_url: str,
    codec: TokenCodec,
    referer_token: str | None = None,
    prefix: str = "/stream",
) -> str:
    """Route every URI line and ``URI="..."`` attribute through the proxy.

    Blank lines and tags without a URI pass through; line endings are kept.
    """
    suffix = f"?r={referer_token}" if referer_token else ""

    def proxied(ref: str) -> str:
        return f"{prefix}/{codec.encode(resolve_reference(ref, manifest_url))}{suffix}"

    out: list[str] = []
    for line in text.splitlines(keepends=True):
        body = line.rstrip("\r\n")
        ending = line[len(body):]
        stripped = body.strip()
        if not stripped:
            out.append(line)
        elif stripped.startswith("#"):
            if "URI=" in stripped:
                body = _URI_ATTR_RE.sub(lambda m: f'URI="{proxied(m.group(1))}"', body)
            out.append(body + ending)
        else:
            out.append(proxied(stripped) + ending)
    return "".join(out)


@dataclass
class UpstreamResponse:
    """Outcome of one proxied upstream fetch.

    ``response`` is an open streaming response when the fetch got one;
    the caller owns closing it.
    """

    status: int
    url: str
    response: httpx.Response | None = None

    @property
    def ok(self) -> bool:
        return self.response is not None and 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        if self.response is None:
            return ""
        return self.response.headers.get("content-type", "")

    async def aclose(self) -> None:
        if self.response is not None:
            await self.response.aclose()


@dataclass
class ProxiedBody:
    """Framework-neutral response produced by :meth:`HlsProxy.handle`."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    content: bytes | None = None
    chunks: AsyncIterator[bytes] | None = None
    media_type: str = "text/plain"


class HlsProxy:
    """Fetches upstream stream resources on behalf of the player."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        codec: TokenCodec,
        no_referer_hosts: NoRefererHostSet,
        config: ProxyConfig | None = None,
        user_agent: str = BROWSER_USER_AGENT,
    ) -> None:
        self._http = http_client
        self._codec = codec
        self._no_referer = no_referer_hosts
        self._config = config or ProxyConfig()
        self._user_agent = user_agent
        self._semaphore = asyncio.Semaphore(self._config.max_concurrent_fetches)

    async def _send(self, url: str, headers: dict[str, str]) -> httpx.Response:
        async with self._semaphore:
            return await self._http.send(
                self._http.build_request("GET", url, headers=headers),
                stream=True,
                follow_redirects=True,
            )

    async def fetch(
        self,
        url: str,
        referer: str | None = None,
        *,
        range_header: str | None = None,
    ) -> UpstreamResponse:
        """GET *url* with the referer policy applied.

        A 403 on a request that carried a Referer is retried once without
        it; when that succeeds the host is remembered and later fetches
        skip the Referer up front.
        """
        headers = build_upstream_headers(
            url, referer, self._no_referer, user_agent=self._user_agent
        )
        if range_header:
            headers["Range"] = range_header

        try:
            resp = await self._send(url, headers)
            if resp.status_code == 403 and "Referer" in headers:
                await resp.aclose()
                bare = {
                    k: v for k, v in headers.items() if k not in ("Referer", "Origin")
                }
                resp = await self._send(url, bare)
                if resp.is_success:
                    host = urlparse(url).hostname or ""
                    self._no_referer.add(host)
                    log.info("proxy_referer_rejected", host=host)
        except httpx.HTTPError as exc:
            log.warning("proxy_upstream_error", url=url, error=str(exc))
            return UpstreamResponse(status=502, url=url)

        return UpstreamResponse(status=resp.status_code, url=url, response=resp)

    async def handle(
        self,
        url: str,
        *,
        referer: str | None = None,
        referer_token: str | None = None,
        range_header: str | None = None,
    ) -> ProxiedBody:
        """Fetch *url* and turn it into the body the player receives."""
        upstream = await self.fetch(url, referer, range_header=range_header)
        if not upstream.ok:
            await upstream.aclose()
            log.info("proxy_upstream_not_ok", url=url, status=upstream.status)
            return ProxiedBody(
                status=upstream.status,
                content=UNAVAILABLE_BODY.encode(),
                media_type="text/plain",
            )

        assert upstream.response is not None
        resp = upstream.response

        if is_playlist(url, upstream.content_type):
            try:
                await resp.aread()
                text = resp.text
            finally:
                await resp.aclose()
            rewritten = rewrite_manifest(
                text,
                str(resp.url),
                self._codec,
                referer_token=referer_token,
                prefix=self._config.stream_prefix,
            )
            return ProxiedBody(
                status=200,
                headers={
                    "Cache-Control": f"public, max-age={self._config.playlist_max_age}"
                },
                content=rewritten.encode(),
                media_type=PLAYLIST_CONTENT_TYPE,
            )

        headers = {
            "Cache-Control": f"public, max-age={self._config.segment_max_age}, immutable"
        }
        for name in ("content-length", "content-range", "accept-ranges", "content-encoding"):
            value = resp.headers.get(name)
            if value:
                headers[name.title()] = value

        return ProxiedBody(
            status=resp.status_code,
            headers=headers,
            chunks=self._iter_body(resp),
            media_type=normalize_content_type(url, upstream.content_type),
        )

    async def _iter_body(self, resp: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in resp.aiter_raw(chunk_size=self._config.chunk_size):
                yield chunk
        finally:
            await resp.aclose()

    def decode_token(self, token: str) -> str:
        """Decode a path token; raises ``DecodeError`` when malformed."""
        url = self._codec.decode(token)
        if not url.startswith(("http://", "https://")):
            raise DecodeError("token does not decode to an http(s) URL")
        return url

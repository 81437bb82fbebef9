"""Integration tests: player walking a proxied HLS stream end to end.

Wires the real HlsProxy and TokenCodec behind the stream router, with
the upstream CDN mocked by respx.
"""

from __future__ import annotations

import httpx
import pytest
import respx
from fastapi import FastAPI
from fastapi.testclient import TestClient

from filmplus.infrastructure.crypto import TokenCodec
from filmplus.infrastructure.proxy import HlsProxy, NoRefererHostSet
from filmplus.interfaces.api.stream.router import router

pytestmark = pytest.mark.integration

_CDN = "https://cdn.example.com/hls/abc"

_MASTER = (
    "#EXTM3U\n"
    "#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=1280x720\n"
    "720/index.m3u8\n"
)

_MEDIA = (
    "#EXTM3U\n"
    "#EXT-X-TARGETDURATION:4\n"
    '#EXT-X-KEY:METHOD=AES-128,URI="/keys/k1.bin"\n'
    "#EXTINF:4.0,\n"
    "seg0.ts\n"
    "#EXT-X-ENDLIST\n"
)


def _make_app(codec: TokenCodec, no_referer: NoRefererHostSet) -> FastAPI:
    app = FastAPI()
    app.include_router(router, prefix="/stream")
    app.state.codec = codec
    app.state.hls_proxy = HlsProxy(
        http_client=httpx.AsyncClient(),
        codec=codec,
        no_referer_hosts=no_referer,
    )
    return app


def _uris(manifest: str) -> list[str]:
    return [line for line in manifest.splitlines() if line and not line.startswith("#")]


class TestStreamFlow:
    @respx.mock
    def test_master_variant_segment(self, codec: TokenCodec) -> None:
        respx.get(f"{_CDN}/master.m3u8").respond(
            text=_MASTER, headers={"Content-Type": "application/vnd.apple.mpegurl"}
        )
        respx.get(f"{_CDN}/720/index.m3u8").respond(
            text=_MEDIA, headers={"Content-Type": "application/vnd.apple.mpegurl"}
        )
        segment = respx.get(f"{_CDN}/720/seg0.ts").respond(
            content=b"\x47" * 188, headers={"Content-Type": "video/mp2t"}
        )
        referer = "https://embed.example.com/"
        r = codec.encode(referer)
        client = TestClient(_make_app(codec, NoRefererHostSet()))

        master = client.get(f"/stream/{codec.encode(f'{_CDN}/master.m3u8')}?r={r}")
        assert master.status_code == 200
        assert master.headers["cache-control"] == "public, max-age=300"
        assert "cdn.example.com" not in master.text
        (variant,) = _uris(master.text)
        assert variant.startswith("/stream/")
        assert variant.endswith(f"?r={r}")

        media = client.get(variant)
        assert media.status_code == 200
        assert "cdn.example.com" not in media.text
        key_line = next(line for line in media.text.splitlines() if "EXT-X-KEY" in line)
        key_token = key_line.split('URI="/stream/')[1].split("?")[0].rstrip('"')
        assert codec.decode(key_token) == "https://cdn.example.com/keys/k1.bin"
        (seg,) = _uris(media.text)

        body = client.get(seg)
        assert body.status_code == 200
        assert body.content == b"\x47" * 188
        assert body.headers["cache-control"] == "public, max-age=86400, immutable"
        assert segment.calls.last.request.headers["Referer"] == referer

    @respx.mock
    def test_referer_rejection_remembered(self, codec: TokenCodec) -> None:
        def cdn(request: httpx.Request) -> httpx.Response:
            if "referer" in request.headers:
                return httpx.Response(403)
            return httpx.Response(200, content=b"seg")

        route = respx.get(f"{_CDN}/seg1.ts").mock(side_effect=cdn)
        no_referer = NoRefererHostSet()
        client = TestClient(_make_app(codec, no_referer))
        url = f"/stream/{codec.encode(f'{_CDN}/seg1.ts')}"

        first = client.get(url)
        assert first.status_code == 200
        assert first.content == b"seg"
        assert "cdn.example.com" in no_referer
        assert route.call_count == 2

        client.get(url)
        assert route.call_count == 3
        assert "referer" not in route.calls.last.request.headers

    @respx.mock
    def test_upstream_404(self, codec: TokenCodec) -> None:
        respx.get(f"{_CDN}/gone.m3u8").respond(404)
        client = TestClient(_make_app(codec, NoRefererHostSet()))

        resp = client.get(f"/stream/{codec.encode(f'{_CDN}/gone.m3u8')}")

        assert resp.status_code == 404
        assert resp.text == "Stream unavailable"

    @respx.mock
    def test_connection_error_is_502(self, codec: TokenCodec) -> None:
        respx.get(f"{_CDN}/down.ts").mock(side_effect=httpx.ConnectError("refused"))
        client = TestClient(_make_app(codec, NoRefererHostSet()))

        resp = client.get(f"/stream/{codec.encode(f'{_CDN}/down.ts')}")

        assert resp.status_code == 502

    def test_token_must_decode_to_http_url(self, codec: TokenCodec) -> None:
        client = TestClient(_make_app(codec, NoRefererHostSet()))
        resp = client.get(f"/stream/{codec.encode('file:///etc/passwd')}")
        assert resp.status_code == 400

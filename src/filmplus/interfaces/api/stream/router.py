"""HLS proxy endpoint: ``/stream/{token}``.

Mounted under the configured stream prefix, which must match the prefix
the manifest rewriter emits.
"""

from __future__ import annotations

from typing import cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from filmplus.domain.exceptions import DecodeError
from filmplus.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["stream"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Range",
    "Access-Control-Expose-Headers": "Content-Range, Content-Length",
}


@router.get("/{token}")
async def stream_proxy(request: Request, token: str) -> Response:
    """Proxy one manifest, segment or key.

    ``r`` (alias ``referer``) carries the upstream referer as a token.
    """
    state = cast(AppState, request.app.state)
    referer_token = request.query_params.get("r") or request.query_params.get("referer")

    try:
        url = state.hls_proxy.decode_token(token)
        referer = state.codec.decode(referer_token) if referer_token else None
    except DecodeError:
        log.info("stream_token_invalid", client_host=request.client.host if request.client else None)
        return PlainTextResponse("Invalid stream token", status_code=400, headers=CORS_HEADERS)

    try:
        body = await state.hls_proxy.handle(
            url,
            referer=referer,
            referer_token=referer_token,
            range_header=request.headers.get("range"),
        )
    except Exception:
        log.exception("stream_proxy_failed")
        return PlainTextResponse("Proxy error", status_code=500, headers=CORS_HEADERS)

    headers = {**CORS_HEADERS, **body.headers}
    if body.chunks is not None:
        return StreamingResponse(
            body.chunks,
            status_code=body.status,
            headers=headers,
            media_type=body.media_type,
        )
    return Response(
        content=body.content or b"",
        status_code=body.status,
        headers=headers,
        media_type=body.media_type,
    )

"""Subtitle file endpoint (SRT or VTT in, VTT out)."""

from __future__ import annotations

from typing import cast

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from filmplus.domain.exceptions import UpstreamUnavailable
from filmplus.infrastructure.subtitles import VTT_CONTENT_TYPE, fetch_subtitle
from filmplus.interfaces.app_state import AppState

router = APIRouter(tags=["subtitles"])


@router.get("/subtitle-file")
async def subtitle_file(request: Request, url: str | None = None) -> Response:
    state = cast(AppState, request.app.state)
    if not url:
        return JSONResponse(content={"error": "URL required"}, status_code=400)
    try:
        vtt = await fetch_subtitle(state.http_client, url)
    except UpstreamUnavailable as exc:
        return JSONResponse(content={"error": exc.message}, status_code=502)
    return Response(
        content=vtt.encode("utf-8"),
        headers={
            "Content-Type": VTT_CONTENT_TYPE,
            "Access-Control-Allow-Origin": "*",
        },
    )

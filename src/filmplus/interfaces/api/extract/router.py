"""Stream extraction endpoint."""

from __future__ import annotations

from typing import cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from filmplus.application.use_cases.extract_stream import to_proxy_payload
from filmplus.domain.exceptions import AllProvidersExhausted, ExtractionError
from filmplus.interfaces.api.params import InvalidParams, content_ref_from, first_param
from filmplus.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["extract"])


@router.get("/extract-stream")
async def extract_stream(request: Request) -> JSONResponse:
    """Resolve a title to a proxied stream.

    Query: ``id`` (alias ``tmdbId``), ``kind`` (alias ``type``), ``season``,
    ``episode``, ``provider`` (alias ``source``). Extraction failures are
    answered with HTTP 200 and ``success: false`` so the player can offer
    another source.
    """
    state = cast(AppState, request.app.state)
    params = request.query_params
    try:
        ref = content_ref_from(params)
    except InvalidParams as exc:
        return JSONResponse(
            content={"success": False, "error": str(exc)}, status_code=400
        )

    provider = first_param(params, "provider", "source")
    try:
        result = await state.extract_uc.resolve(ref, forced_provider_id=provider)
    except (AllProvidersExhausted, ExtractionError) as exc:
        log.info(
            "extract_stream_failed",
            content_id=ref.id,
            kind=ref.kind.value,
            provider=provider,
            error=str(exc),
        )
        return JSONResponse(content={"success": False, "error": str(exc)})

    return JSONResponse(
        content=to_proxy_payload(
            result, state.codec, stream_prefix=state.config.proxy.stream_prefix
        )
    )

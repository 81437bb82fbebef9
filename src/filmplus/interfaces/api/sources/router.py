"""Provider list endpoint."""

from __future__ import annotations

from typing import cast

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from filmplus.interfaces.app_state import AppState

router = APIRouter(tags=["sources"])


@router.get("/sources")
async def list_sources(request: Request) -> JSONResponse:
    """Serve the provider list in priority order."""
    state = cast(AppState, request.app.state)
    return JSONResponse(
        content=[d.to_dict() for d in state.extract_uc.descriptors]
    )

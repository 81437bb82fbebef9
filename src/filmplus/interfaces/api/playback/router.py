"""Resume positions and the preferred default provider."""

from __future__ import annotations

from typing import cast

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from filmplus.interfaces.api.params import InvalidParams, content_ref_from
from filmplus.interfaces.app_state import AppState

router = APIRouter(prefix="/playback", tags=["playback"])


class PositionUpdate(BaseModel):
    id: str
    kind: str = "movie"
    season: int | None = Field(default=None, ge=0)
    episode: int | None = Field(default=None, ge=0)
    seconds: float = Field(ge=0)


class DefaultProviderUpdate(BaseModel):
    provider: str


@router.get("/position")
async def get_position(request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    try:
        ref = content_ref_from(request.query_params)
    except InvalidParams as exc:
        return JSONResponse(content={"error": str(exc)}, status_code=400)
    return JSONResponse(content={"position": await state.playback_store.load_position(ref)})


@router.put("/position")
async def put_position(request: Request, body: PositionUpdate) -> JSONResponse:
    state = cast(AppState, request.app.state)
    params = {
        key: str(value)
        for key, value in body.model_dump(exclude={"seconds"}).items()
        if value is not None
    }
    try:
        ref = content_ref_from(params)
    except InvalidParams as exc:
        return JSONResponse(content={"error": str(exc)}, status_code=400)
    await state.playback_store.save_position(ref, body.seconds)
    return JSONResponse(content={"ok": True})


@router.get("/default-provider")
async def get_default_provider(request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    return JSONResponse(content={"provider": await state.playback_store.default_provider()})


@router.put("/default-provider")
async def put_default_provider(request: Request, body: DefaultProviderUpdate) -> JSONResponse:
    state = cast(AppState, request.app.state)
    known = {d.id for d in state.extract_uc.descriptors}
    if body.provider not in known:
        return JSONResponse(content={"error": f"Unknown provider: {body.provider}"}, status_code=400)
    await state.playback_store.set_default_provider(body.provider)
    return JSONResponse(content={"ok": True})

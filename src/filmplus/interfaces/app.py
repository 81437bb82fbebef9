"""FastAPI application factory (create_app)."""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Awaitable, Callable

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from filmplus.infrastructure.config import AppConfig
from filmplus.infrastructure.graceful_shutdown import GracefulShutdown
from filmplus.interfaces.api.middleware import SecurityHeadersMiddleware
from filmplus.interfaces.app_state import AppState
from filmplus.interfaces.composition import lifespan

log = structlog.get_logger(__name__)


def create_app(config: AppConfig) -> FastAPI:
    """Create the FastAPI app. Configuration only, no resource initialization.

    Resources (HTTP client, cache, strategies, proxy) are created in lifespan().
    """
    app = FastAPI(
        title="FilmPlus",
        description="Stream resolution and HLS proxy",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config
    app.state.graceful_shutdown = GracefulShutdown()

    app.add_middleware(SecurityHeadersMiddleware)

    from filmplus.interfaces.api.extract.router import router as extract_router
    from filmplus.interfaces.api.playback.router import router as playback_router
    from filmplus.interfaces.api.sources.router import router as sources_router
    from filmplus.interfaces.api.stream.router import router as stream_router
    from filmplus.interfaces.api.subtitles.router import router as subtitles_router

    app.include_router(sources_router, prefix="/api")
    app.include_router(extract_router, prefix="/api")
    app.include_router(subtitles_router, prefix="/api")
    app.include_router(playback_router, prefix="/api")
    app.include_router(stream_router, prefix=config.proxy.stream_prefix)

    @app.get("/api/healthz")
    async def healthz() -> dict[str, str | int]:
        """Liveness probe: returns 200 as long as the process is running."""
        uc = getattr(app.state, "extract_uc", None)
        return {
            "status": "ok",
            "providers": len(uc.descriptors) if uc else 0,
        }

    @app.get("/api/readyz")
    async def readyz() -> Response:
        """Readiness probe: 200 after startup complete, 503 otherwise."""
        gs: GracefulShutdown = app.state.graceful_shutdown
        if gs.is_ready:
            return JSONResponse({"status": "ready"}, status_code=200)
        return JSONResponse({"status": "not_ready"}, status_code=503)

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        gs: GracefulShutdown = app.state.graceful_shutdown
        gs.request_started()
        start = time.perf_counter()

        def finish(status_code: int) -> None:
            gs.request_finished()
            # Stream tokens are opaque but long; log the prefix only.
            path = request.url.path
            if path.startswith(f"{config.proxy.stream_prefix}/"):
                path = f"{config.proxy.stream_prefix}/*"
            log.info(
                "http_request",
                method=request.method,
                path=path,
                status_code=status_code,
                duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
                client_host=(request.client.host if request.client else None),
            )

        try:
            response = await call_next(request)
        except Exception:
            finish(500)
            raise

        # The request stays in flight until its body (e.g. a proxied
        # segment) has been sent.
        body = response.body_iterator  # type: ignore[attr-defined]

        async def tracked_body() -> AsyncIterator[bytes]:
            try:
                async for chunk in body:
                    yield chunk
            finally:
                finish(response.status_code)

        response.body_iterator = tracked_body()  # type: ignore[attr-defined]
        return response

    return app

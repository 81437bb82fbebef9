"""FastAPI middleware for response security headers."""

from __future__ import annotations

from collections.abc import Mapping

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

SECURITY_HEADERS: dict[str, str] = {
    "X-Frame-Options": "SAMEORIGIN",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "autoplay=(self), popups=(self)",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds fixed security headers unless a route already set them."""

    def __init__(self, app: object, headers: Mapping[str, str] | None = None) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._headers = dict(SECURITY_HEADERS if headers is None else headers)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for name, value in self._headers.items():
            response.headers.setdefault(name, value)
        return response

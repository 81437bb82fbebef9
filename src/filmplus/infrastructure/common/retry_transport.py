"""httpx transport with bounded exponential-backoff retries for flaky upstreams."""

from __future__ import annotations

import asyncio
import random

import httpx
import structlog

log = structlog.get_logger(__name__)

_DEFAULT_RETRYABLE = frozenset({429, 502, 503, 504})


def _parse_retry_after(headers: httpx.Headers) -> float | None:
    """Parse ``Retry-After`` header value (seconds only).

    Returns the delay in seconds, or ``None`` if the header is missing
    or unparseable. The HTTP-date form is ignored.
    """
    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except (ValueError, TypeError):
        return None


class RetryTransport(httpx.AsyncBaseTransport):
    """Wraps an httpx transport with retries on transient failures.

    Retries connection/timeouts (``httpx.TransportError``) and the retryable
    status codes (429, 502, 503, 504 by default). Waits with exponential
    backoff plus jitter, honouring ``Retry-After`` when present, for at most
    *max_attempts* tries in total. Exhausting the budget returns the last
    response or re-raises the last transport error; it is the caller's
    job to turn that into a provider failure.
    """

    def __init__(
        self,
        wrapped: httpx.AsyncBaseTransport,
        *,
        max_attempts: int = 3,
        backoff_base: float = 0.5,
        max_backoff: float = 4.0,
        retryable_status_codes: frozenset[int] = _DEFAULT_RETRYABLE,
    ) -> None:
        self._wrapped = wrapped
        self._max_attempts = max(1, max_attempts)
        self._backoff_base = backoff_base
        self._max_backoff = max_backoff
        self._retryable = retryable_status_codes

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        for attempt in range(self._max_attempts):
            last_attempt = attempt == self._max_attempts - 1
            try:
                response = await self._wrapped.handle_async_request(request)
            except httpx.TransportError as exc:
                if last_attempt:
                    raise
                delay = self._backoff(attempt)
                log.info(
                    "http_retry",
                    url=str(request.url),
                    error=type(exc).__name__,
                    attempt=attempt + 1,
                    delay=round(delay, 2),
                )
                await asyncio.sleep(delay)
                continue

            if response.status_code not in self._retryable or last_attempt:
                return response

            # Drain + close the retryable response before retrying
            await response.aread()
            await response.aclose()

            delay = self._compute_delay(response, attempt)
            log.info(
                "http_retry",
                url=str(request.url),
                status=response.status_code,
                attempt=attempt + 1,
                delay=round(delay, 2),
            )
            await asyncio.sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover

    def _backoff(self, attempt: int) -> float:
        delay = self._backoff_base * (2**attempt)
        jitter = random.uniform(0, self._backoff_base)  # noqa: S311
        return min(delay + jitter, self._max_backoff)

    def _compute_delay(self, response: httpx.Response, attempt: int) -> float:
        """Compute retry delay from Retry-After or exponential backoff."""
        retry_after = _parse_retry_after(response.headers)
        if retry_after is not None:
            return min(retry_after, self._max_backoff)
        return self._backoff(attempt)

    async def aclose(self) -> None:
        """Close the wrapped transport."""
        await self._wrapped.aclose()

"""Readiness flag and in-flight request tracking for clean shutdown."""

from __future__ import annotations

import asyncio

import structlog

log = structlog.get_logger(__name__)


class GracefulShutdown:
    """Counts in-flight requests so shutdown can wait for them.

    Proxied segment streams are requests too, so a drain also lets
    running segment transfers finish (bounded by the drain timeout).
    """

    def __init__(self) -> None:
        self._active = 0
        self._ready = False
        self._stopping = False
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def active_requests(self) -> int:
        return self._active

    @property
    def is_ready(self) -> bool:
        return self._ready and not self._stopping

    def mark_ready(self) -> None:
        self._ready = True

    def request_started(self) -> None:
        self._active += 1
        self._idle.clear()

    def request_finished(self) -> None:
        self._active = max(0, self._active - 1)
        if self._active == 0:
            self._idle.set()

    async def wait_for_drain(self, *, timeout: float = 10.0) -> bool:
        """Stop reporting ready and wait for in-flight requests.

        Returns False when requests were still running at the timeout.
        """
        self._stopping = True
        if self._active == 0:
            return True
        log.info("shutdown_draining", active_requests=self._active)
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            log.warning("shutdown_drain_timeout", remaining=self._active, timeout=timeout)
            return False
        return True

"""Tests for GracefulShutdown (readiness and in-flight request draining)."""

from __future__ import annotations

import asyncio

import pytest

from filmplus.infrastructure.graceful_shutdown import GracefulShutdown


class TestReadiness:
    def test_not_ready_initially(self) -> None:
        assert not GracefulShutdown().is_ready

    def test_mark_ready(self) -> None:
        gs = GracefulShutdown()
        gs.mark_ready()
        assert gs.is_ready

    @pytest.mark.asyncio()
    async def test_draining_reports_not_ready(self) -> None:
        gs = GracefulShutdown()
        gs.mark_ready()
        assert await gs.wait_for_drain(timeout=0.1)
        assert not gs.is_ready


class TestRequestTracking:
    def test_counts(self) -> None:
        gs = GracefulShutdown()
        gs.request_started()
        gs.request_started()
        gs.request_finished()
        assert gs.active_requests == 1

    def test_never_negative(self) -> None:
        gs = GracefulShutdown()
        gs.request_finished()
        assert gs.active_requests == 0


class TestDrain:
    @pytest.mark.asyncio()
    async def test_waits_for_in_flight(self) -> None:
        gs = GracefulShutdown()
        gs.request_started()

        async def finish_later() -> None:
            await asyncio.sleep(0.01)
            gs.request_finished()

        task = asyncio.create_task(finish_later())
        assert await gs.wait_for_drain(timeout=1.0)
        await task
        assert gs.active_requests == 0

    @pytest.mark.asyncio()
    async def test_timeout(self) -> None:
        gs = GracefulShutdown()
        gs.request_started()
        assert not await gs.wait_for_drain(timeout=0.01)
        assert gs.active_requests == 1

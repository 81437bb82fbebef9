"""Runs playback session commands against the orchestrator and storage."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Protocol

import structlog

from filmplus.application.preload import PreloadCache
from filmplus.application.session.playback import (
    Command,
    DetailResolved,
    EnterTitle,
    Event,
    LeaveTitle,
    PersistPosition,
    Play,
    PlaybackSession,
    Resolve,
    ShowUnavailable,
    SourceFailed,
    SourceReady,
    StartPreload,
    Teardown,
)
from filmplus.domain.entities.stream import ContentRef, ExtractionResult, PreloadFailure
from filmplus.domain.exceptions import ExtractionError
from filmplus.domain.ports.playback_store import PlaybackStorePort

log = structlog.get_logger(__name__)


class _Orchestrator(Protocol):
    async def resolve(
        self, ref: ContentRef, forced_provider_id: str | None = None
    ) -> ExtractionResult: ...

    async def preload_all(
        self,
        ref: ContentRef,
        cache: PreloadCache,
        generation: int,
        exclude: Iterable[str] = (),
    ) -> None: ...


class PlayerSink(Protocol):
    """Whatever renders playback (a web player bridge, a CLI, a test double)."""

    async def play(self, provider_id: str, result: ExtractionResult, resume_at: float) -> None: ...

    async def show_unavailable(self, errors: tuple[str, ...]) -> None: ...

    async def teardown(self) -> None: ...


class PlaybackDriver:
    """Feeds events into a ``PlaybackSession`` and executes its commands.

    Resolve and preload work runs as tasks tagged with the generation they
    were started under. Results from an older generation are dropped
    before they reach the session.
    """

    def __init__(
        self,
        *,
        session: PlaybackSession,
        orchestrator: _Orchestrator,
        preload: PreloadCache,
        store: PlaybackStorePort,
        player: PlayerSink,
    ) -> None:
        self._session = session
        self._orchestrator = orchestrator
        self._preload = preload
        self._store = store
        self._player = player
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def session(self) -> PlaybackSession:
        return self._session

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def enter_title(self, ref: ContentRef) -> None:
        saved = await self._store.default_provider()
        await self.dispatch(EnterTitle(ref=ref, saved_default=saved))
        await self.dispatch(DetailResolved())

    async def leave_title(self) -> None:
        await self.dispatch(LeaveTitle())

    async def set_default_provider(self, provider_id: str) -> None:
        await self._store.set_default_provider(provider_id)

    async def resume_position(self, ref: ContentRef) -> float:
        return await self._store.load_position(ref) or 0.0

    async def dispatch(self, event: Event) -> None:
        for command in self._session.transition(event):
            await self._execute(command)

    async def wait_idle(self) -> None:
        """Wait until every background task (including follow-ups) settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------

    async def _execute(self, command: Command) -> None:
        if isinstance(command, Resolve):
            self._spawn(self._resolve(command), name=f"resolve:{command.provider_id}")
        elif isinstance(command, StartPreload):
            self._spawn(
                self._orchestrator.preload_all(
                    command.ref,
                    self._preload,
                    command.generation,
                    exclude=command.exclude,
                ),
                name=f"preload:{command.generation}",
            )
        elif isinstance(command, Play):
            await self._player.play(command.provider_id, command.result, command.resume_at)
        elif isinstance(command, ShowUnavailable):
            await self._player.show_unavailable(command.errors)
        elif isinstance(command, PersistPosition):
            await self._store.save_position(command.ref, command.seconds)
        elif isinstance(command, Teardown):
            self._cancel_tasks()
            await self._player.teardown()

    def _spawn(self, coro, *, name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _cancel_tasks(self) -> None:
        for task in list(self._tasks):
            if task is not asyncio.current_task():
                task.cancel()

    async def _resolve(self, command: Resolve) -> None:
        event: Event
        try:
            result = await self._orchestrator.resolve(
                command.ref, forced_provider_id=command.provider_id
            )
        except ExtractionError as exc:
            self._preload.put(
                command.provider_id,
                PreloadFailure(provider_id=command.provider_id, error=exc.message),
                command.generation,
            )
            event = SourceFailed(command.provider_id, exc.message, command.generation)
        except Exception as exc:
            log.exception("session_resolve_crashed", provider=command.provider_id)
            error = str(exc) or type(exc).__name__
            self._preload.put(
                command.provider_id,
                PreloadFailure(provider_id=command.provider_id, error=error),
                command.generation,
            )
            event = SourceFailed(command.provider_id, error, command.generation)
        else:
            self._preload.put(command.provider_id, result, command.generation)
            event = SourceReady(command.provider_id, result, command.generation)

        if command.generation != self._session.generation:
            log.debug(
                "session_result_stale",
                provider=command.provider_id,
                generation=command.generation,
                current=self._session.generation,
            )
            return
        await self.dispatch(event)

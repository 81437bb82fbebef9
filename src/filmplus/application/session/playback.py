"""Client playback session as an explicit state machine.

``PlaybackSession.transition`` is the only place state changes. It takes
one event, updates the snapshot and returns the commands the driver has
to run. It performs no I/O, so every rule is testable without a player.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

import structlog

from filmplus.application.preload import PreloadCache
from filmplus.domain.entities.stream import ContentRef, ExtractionResult, ProviderDescriptor

log = structlog.get_logger(__name__)


class SessionState(StrEnum):
    IDLE = "idle"
    RESOLVING_DETAIL = "resolving_detail"
    PRELOADING = "preloading"
    PLAYING = "playing"
    SWITCHING = "switching"
    EXHAUSTED = "exhausted"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EnterTitle:
    ref: ContentRef
    saved_default: str | None = None


@dataclass(frozen=True)
class DetailResolved:
    pass


@dataclass(frozen=True)
class SourceReady:
    provider_id: str
    result: ExtractionResult
    generation: int


@dataclass(frozen=True)
class SourceFailed:
    provider_id: str
    error: str
    generation: int


@dataclass(frozen=True)
class PlaybackFailed:
    """Fatal player error: manifest fetch, decode, or an unrecoverable stall."""

    reason: str


@dataclass(frozen=True)
class UserSelectSource:
    provider_id: str


@dataclass(frozen=True)
class PositionTick:
    seconds: float
    quality: str | None = None


@dataclass(frozen=True)
class RetryRequested:
    pass


@dataclass(frozen=True)
class LeaveTitle:
    pass


Event = (
    EnterTitle
    | DetailResolved
    | SourceReady
    | SourceFailed
    | PlaybackFailed
    | UserSelectSource
    | PositionTick
    | RetryRequested
    | LeaveTitle
)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StartPreload:
    ref: ContentRef
    generation: int
    exclude: tuple[str, ...] = ()


@dataclass(frozen=True)
class Resolve:
    ref: ContentRef
    provider_id: str
    generation: int


@dataclass(frozen=True)
class Play:
    provider_id: str
    result: ExtractionResult
    resume_at: float = 0.0


@dataclass(frozen=True)
class ShowUnavailable:
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class PersistPosition:
    ref: ContentRef
    seconds: float


@dataclass(frozen=True)
class Teardown:
    pass


Command = StartPreload | Resolve | Play | ShowUnavailable | PersistPosition | Teardown


class _ProviderPolicy(Protocol):
    """Provider selection rules (satisfied by ExtractStreamUseCase)."""

    def next_candidate(
        self, failed: set[str], current: str | None
    ) -> ProviderDescriptor | None: ...

    def initial_provider(self, saved_default: str | None) -> ProviderDescriptor: ...


@dataclass
class SessionSnapshot:
    state: SessionState = SessionState.IDLE
    ref: ContentRef | None = None
    generation: int = 0
    current_provider: str | None = None
    failed: set[str] = field(default_factory=set)
    first_failed: str | None = None
    errors: list[str] = field(default_factory=list)
    position: float = 0.0
    quality: str | None = None
    saved_default: str | None = None


class PlaybackSession:
    """State machine for one viewer.

    The preload cache is read for cached successes and advanced whenever
    the title context changes; its generation is the session generation.
    """

    def __init__(self, *, policy: _ProviderPolicy, preload: PreloadCache) -> None:
        self._policy = policy
        self._preload = preload
        self.snapshot = SessionSnapshot(generation=preload.generation)

    @property
    def state(self) -> SessionState:
        return self.snapshot.state

    @property
    def generation(self) -> int:
        return self.snapshot.generation

    def transition(self, event: Event) -> list[Command]:
        handler = getattr(self, f"_on_{type(event).__name__}", None)
        if handler is None:
            raise TypeError(f"unsupported session event: {event!r}")
        before = self.snapshot.state
        commands: list[Command] = handler(event)
        if self.snapshot.state is not before:
            log.debug(
                "session_transition",
                trigger=type(event).__name__,
                before=before.value,
                after=self.snapshot.state.value,
                provider=self.snapshot.current_provider,
                generation=self.snapshot.generation,
            )
        return commands

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _new_generation(self) -> int:
        self.snapshot.generation = self._preload.advance()
        return self.snapshot.generation

    def _leave_commands(self) -> list[Command]:
        snap = self.snapshot
        if snap.ref is None or snap.state is SessionState.IDLE:
            return []
        return [PersistPosition(ref=snap.ref, seconds=snap.position), Teardown()]

    def _start(self, provider_id: str) -> list[Command]:
        snap = self.snapshot
        assert snap.ref is not None
        generation = self._new_generation()
        snap.current_provider = provider_id
        snap.state = SessionState.PRELOADING
        return [
            Resolve(ref=snap.ref, provider_id=provider_id, generation=generation),
            StartPreload(ref=snap.ref, generation=generation, exclude=(provider_id,)),
        ]

    def _switch_to(self, provider_id: str) -> list[Command]:
        snap = self.snapshot
        assert snap.ref is not None
        commands: list[Command] = []
        if snap.state is SessionState.PLAYING and snap.position > 0:
            commands.append(PersistPosition(ref=snap.ref, seconds=snap.position))
        snap.current_provider = provider_id
        cached = self._preload.success_for(provider_id)
        if cached is not None:
            snap.state = SessionState.PLAYING
            commands.append(Play(provider_id, cached, resume_at=snap.position))
            return commands
        snap.state = SessionState.SWITCHING
        commands.append(
            Resolve(ref=snap.ref, provider_id=provider_id, generation=snap.generation)
        )
        return commands

    def _fail_over(self, provider_id: str, error: str) -> list[Command]:
        snap = self.snapshot
        snap.failed.add(provider_id)
        snap.errors.append(f"{provider_id}: {error}")
        if snap.first_failed is None:
            snap.first_failed = provider_id
        candidate = self._policy.next_candidate(snap.failed, provider_id)
        if candidate is None:
            snap.state = SessionState.EXHAUSTED
            snap.current_provider = None
            return [ShowUnavailable(errors=tuple(snap.errors))]
        return self._switch_to(candidate.id)

    def _is_current(self, provider_id: str, generation: int) -> bool:
        snap = self.snapshot
        return generation == snap.generation and provider_id == snap.current_provider

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_EnterTitle(self, event: EnterTitle) -> list[Command]:
        commands = self._leave_commands()
        self.snapshot = SessionSnapshot(
            state=SessionState.RESOLVING_DETAIL,
            ref=event.ref,
            saved_default=event.saved_default,
        )
        self._new_generation()
        return commands

    def _on_DetailResolved(self, event: DetailResolved) -> list[Command]:
        snap = self.snapshot
        if snap.state is not SessionState.RESOLVING_DETAIL:
            return []
        return self._start(self._policy.initial_provider(snap.saved_default).id)

    def _on_SourceReady(self, event: SourceReady) -> list[Command]:
        snap = self.snapshot
        if not self._is_current(event.provider_id, event.generation):
            return []
        if snap.state not in (SessionState.PRELOADING, SessionState.SWITCHING):
            return []
        snap.state = SessionState.PLAYING
        return [Play(event.provider_id, event.result, resume_at=snap.position)]

    def _on_SourceFailed(self, event: SourceFailed) -> list[Command]:
        snap = self.snapshot
        if not self._is_current(event.provider_id, event.generation):
            return []
        if snap.state not in (SessionState.PRELOADING, SessionState.SWITCHING):
            return []
        return self._fail_over(event.provider_id, event.error)

    def _on_PlaybackFailed(self, event: PlaybackFailed) -> list[Command]:
        snap = self.snapshot
        if snap.state is not SessionState.PLAYING or snap.current_provider is None:
            return []
        return self._fail_over(snap.current_provider, event.reason)

    def _on_UserSelectSource(self, event: UserSelectSource) -> list[Command]:
        snap = self.snapshot
        if snap.ref is None or snap.state in (
            SessionState.IDLE,
            SessionState.RESOLVING_DETAIL,
        ):
            return []
        if event.provider_id == snap.current_provider and snap.state is SessionState.PLAYING:
            return []
        return self._switch_to(event.provider_id)

    def _on_PositionTick(self, event: PositionTick) -> list[Command]:
        snap = self.snapshot
        if snap.state is SessionState.PLAYING:
            snap.position = max(0.0, event.seconds)
            if event.quality:
                snap.quality = event.quality
        return []

    def _on_RetryRequested(self, event: RetryRequested) -> list[Command]:
        snap = self.snapshot
        if snap.state is not SessionState.EXHAUSTED or snap.ref is None:
            return []
        restart = snap.first_failed or self._policy.initial_provider(snap.saved_default).id
        snap.failed.clear()
        snap.errors.clear()
        snap.first_failed = None
        return self._start(restart)

    def _on_LeaveTitle(self, event: LeaveTitle) -> list[Command]:
        commands = self._leave_commands()
        self.snapshot = SessionSnapshot()
        self._new_generation()
        return commands

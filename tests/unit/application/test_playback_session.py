"""Tests for the PlaybackSession state machine."""

from __future__ import annotations

from dataclasses import dataclass

import pytest
from structlog.testing import capture_logs

from filmplus.application.preload import PreloadCache
from filmplus.application.session import (
    DetailResolved,
    EnterTitle,
    LeaveTitle,
    PersistPosition,
    Play,
    PlaybackFailed,
    PlaybackSession,
    PositionTick,
    Resolve,
    RetryRequested,
    SessionState,
    ShowUnavailable,
    SourceFailed,
    SourceReady,
    StartPreload,
    Teardown,
    UserSelectSource,
)
from filmplus.application.use_cases.extract_stream import ExtractStreamUseCase
from filmplus.domain.entities.stream import (
    ContentRef,
    ExtractionResult,
    ProviderDescriptor,
    StreamKind,
)


@dataclass
class _Config:
    extraction_timeout_seconds: float = 5.0


def _result(pid: str) -> ExtractionResult:
    return ExtractionResult(
        stream_url=f"https://{pid}.example.com/index.m3u8",
        stream_kind=StreamKind.HLS,
        source_id=pid,
    )


@pytest.fixture()
def preload() -> PreloadCache:
    return PreloadCache()


@pytest.fixture()
def session(descriptors: list[ProviderDescriptor], preload: PreloadCache) -> PlaybackSession:
    policy = ExtractStreamUseCase(
        descriptors=descriptors, strategies={}, config=_Config()
    )
    return PlaybackSession(policy=policy, preload=preload)


def _enter(session: PlaybackSession, ref: ContentRef, saved_default: str | None = None):
    session.transition(EnterTitle(ref=ref, saved_default=saved_default))
    return session.transition(DetailResolved())


def _play(session: PlaybackSession, ref: ContentRef) -> None:
    _enter(session, ref)
    session.transition(SourceReady("alpha", _result("alpha"), session.generation))


# ---------------------------------------------------------------------------
# Entering a title
# ---------------------------------------------------------------------------


class TestEnterTitle:
    def test_starts_idle(self, session: PlaybackSession) -> None:
        assert session.state is SessionState.IDLE

    def test_state_change_logged_with_trigger(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        with capture_logs() as logs:
            _enter(session, movie_ref)

        transitions = [e for e in logs if e["event"] == "session_transition"]
        assert [(e["trigger"], e["after"]) for e in transitions] == [
            ("EnterTitle", "resolving_detail"),
            ("DetailResolved", "preloading"),
        ]

    def test_enter_moves_to_resolving_detail(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        commands = session.transition(EnterTitle(ref=movie_ref))
        assert commands == []
        assert session.state is SessionState.RESOLVING_DETAIL

    def test_detail_resolved_resolves_first_and_preloads_rest(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        commands = _enter(session, movie_ref)

        gen = session.generation
        assert session.state is SessionState.PRELOADING
        assert commands == [
            Resolve(ref=movie_ref, provider_id="alpha", generation=gen),
            StartPreload(ref=movie_ref, generation=gen, exclude=("alpha",)),
        ]

    def test_saved_default_starts_first(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        commands = _enter(session, movie_ref, saved_default="gamma")
        assert commands[0] == Resolve(movie_ref, "gamma", session.generation)

    def test_entering_advances_preload_generation(
        self, session: PlaybackSession, preload: PreloadCache, movie_ref: ContentRef
    ) -> None:
        before = preload.generation
        _enter(session, movie_ref)
        assert preload.generation > before
        assert session.generation == preload.generation

    def test_entering_another_title_tears_down(
        self, session: PlaybackSession, movie_ref: ContentRef, episode_ref: ContentRef
    ) -> None:
        _play(session, movie_ref)
        session.transition(PositionTick(120.0))

        commands = session.transition(EnterTitle(ref=episode_ref))

        assert commands == [PersistPosition(movie_ref, 120.0), Teardown()]
        assert session.snapshot.ref == episode_ref


# ---------------------------------------------------------------------------
# Source outcomes
# ---------------------------------------------------------------------------


class TestSourceOutcomes:
    def test_ready_plays(self, session: PlaybackSession, movie_ref: ContentRef) -> None:
        _enter(session, movie_ref)

        commands = session.transition(
            SourceReady("alpha", _result("alpha"), session.generation)
        )

        assert session.state is SessionState.PLAYING
        assert commands == [Play("alpha", _result("alpha"), resume_at=0.0)]

    def test_stale_generation_ignored(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        _enter(session, movie_ref)
        old = session.generation
        session.transition(EnterTitle(ref=movie_ref))
        session.transition(DetailResolved())

        commands = session.transition(SourceReady("alpha", _result("alpha"), old))

        assert commands == []
        assert session.state is SessionState.PRELOADING

    def test_result_for_other_provider_ignored(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        _enter(session, movie_ref)
        commands = session.transition(
            SourceReady("beta", _result("beta"), session.generation)
        )
        assert commands == []
        assert session.state is SessionState.PRELOADING

    def test_failure_switches_to_next(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        _enter(session, movie_ref)
        gen = session.generation

        commands = session.transition(SourceFailed("alpha", "no stream", gen))

        assert session.state is SessionState.SWITCHING
        assert session.snapshot.current_provider == "beta"
        assert commands == [Resolve(movie_ref, "beta", gen)]

    def test_failure_plays_cached_success_immediately(
        self, session: PlaybackSession, preload: PreloadCache, movie_ref: ContentRef
    ) -> None:
        _enter(session, movie_ref)
        gen = session.generation
        preload.put("beta", _result("beta"), gen)

        commands = session.transition(SourceFailed("alpha", "no stream", gen))

        assert session.state is SessionState.PLAYING
        assert commands == [Play("beta", _result("beta"), resume_at=0.0)]

    def test_exhaustion_shows_unavailable(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        _enter(session, movie_ref)
        gen = session.generation
        session.transition(SourceFailed("alpha", "a down", gen))
        session.transition(SourceFailed("beta", "b down", gen))

        commands = session.transition(SourceFailed("gamma", "c down", gen))

        assert session.state is SessionState.EXHAUSTED
        assert session.snapshot.current_provider is None
        assert commands == [
            ShowUnavailable(errors=("alpha: a down", "beta: b down", "gamma: c down"))
        ]

    def test_retry_restarts_from_first_failed(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        _enter(session, movie_ref, saved_default="beta")
        gen = session.generation
        for pid in ("beta", "alpha", "gamma"):
            session.transition(SourceFailed(pid, "down", gen))
        assert session.state is SessionState.EXHAUSTED

        commands = session.transition(RetryRequested())

        new_gen = session.generation
        assert new_gen > gen
        assert session.state is SessionState.PRELOADING
        assert session.snapshot.failed == set()
        assert session.snapshot.errors == []
        assert commands[0] == Resolve(movie_ref, "beta", new_gen)

    def test_retry_ignored_unless_exhausted(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        _play(session, movie_ref)
        assert session.transition(RetryRequested()) == []
        assert session.state is SessionState.PLAYING


# ---------------------------------------------------------------------------
# Playing
# ---------------------------------------------------------------------------


class TestPlaying:
    def test_position_tick_tracked(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        _play(session, movie_ref)
        session.transition(PositionTick(33.5, quality="1080p"))
        assert session.snapshot.position == 33.5
        assert session.snapshot.quality == "1080p"

    def test_position_tick_ignored_when_not_playing(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        _enter(session, movie_ref)
        session.transition(PositionTick(33.5))
        assert session.snapshot.position == 0.0

    def test_playback_failure_fails_over(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        _play(session, movie_ref)
        session.transition(PositionTick(50.0))

        commands = session.transition(PlaybackFailed("manifest 403"))

        assert session.snapshot.failed == {"alpha"}
        assert session.snapshot.errors == ["alpha: manifest 403"]
        assert commands == [
            PersistPosition(movie_ref, 50.0),
            Resolve(movie_ref, "beta", session.generation),
        ]

    def test_switch_resumes_at_position(
        self, session: PlaybackSession, preload: PreloadCache, movie_ref: ContentRef
    ) -> None:
        _play(session, movie_ref)
        preload.put("gamma", _result("gamma"), session.generation)
        session.transition(PositionTick(75.0))

        commands = session.transition(UserSelectSource("gamma"))

        assert commands[-1] == Play("gamma", _result("gamma"), resume_at=75.0)

    def test_user_select_does_not_mark_failed(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        _play(session, movie_ref)

        commands = session.transition(UserSelectSource("beta"))

        assert session.state is SessionState.SWITCHING
        assert session.snapshot.failed == set()
        assert commands == [Resolve(movie_ref, "beta", session.generation)]

    def test_selecting_current_source_is_noop(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        _play(session, movie_ref)
        assert session.transition(UserSelectSource("alpha")) == []

    def test_user_select_ignored_before_detail(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        session.transition(EnterTitle(ref=movie_ref))
        assert session.transition(UserSelectSource("beta")) == []


# ---------------------------------------------------------------------------
# Leaving
# ---------------------------------------------------------------------------


class TestLeaveTitle:
    def test_leave_persists_and_tears_down(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        _play(session, movie_ref)
        session.transition(PositionTick(10.0))
        gen = session.generation

        commands = session.transition(LeaveTitle())

        assert commands == [PersistPosition(movie_ref, 10.0), Teardown()]
        assert session.state is SessionState.IDLE
        assert session.generation > gen

    def test_leave_when_idle_is_noop(self, session: PlaybackSession) -> None:
        assert session.transition(LeaveTitle()) == []

    def test_late_result_after_leave_ignored(
        self, session: PlaybackSession, movie_ref: ContentRef
    ) -> None:
        _enter(session, movie_ref)
        gen = session.generation
        session.transition(LeaveTitle())

        assert session.transition(SourceReady("alpha", _result("alpha"), gen)) == []
        assert session.state is SessionState.IDLE

    def test_unsupported_event_raises(self, session: PlaybackSession) -> None:
        with pytest.raises(TypeError):
            session.transition(object())  # type: ignore[arg-type]

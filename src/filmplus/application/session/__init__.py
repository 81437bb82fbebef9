from .driver import PlaybackDriver, PlayerSink
from .playback import (
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

__all__ = [
    "DetailResolved",
    "EnterTitle",
    "LeaveTitle",
    "PersistPosition",
    "Play",
    "PlaybackDriver",
    "PlaybackFailed",
    "PlaybackSession",
    "PlayerSink",
    "PositionTick",
    "Resolve",
    "RetryRequested",
    "SessionState",
    "ShowUnavailable",
    "SourceFailed",
    "SourceReady",
    "StartPreload",
    "Teardown",
    "UserSelectSource",
]

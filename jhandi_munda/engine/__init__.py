"""
Jhandi Munda Reconciliation Engine.

Round-lifecycle logic with no network dependencies: clock offset,
countdown scheduling, and the domain types. The state machine lives in
``jhandi_munda.engine.round_machine``; it consumes the wire models, which
themselves build on this package.
"""

from jhandi_munda.engine.base import (
    CancellationWindow,
    ConnectionState,
    ConnectionStatus,
    CountdownFrame,
    CountdownPhase,
    DisplayState,
    DisplayView,
    FaceSymbol,
    GameState,
    Outcome,
    ResultKind,
    RoundWindow,
)
from jhandi_munda.engine.countdown import (
    CountdownScheduler,
    FrameTickSource,
    IntervalTickSource,
)
from jhandi_munda.engine.time_sync import TimeSync

__all__ = [
    # Data Classes
    "CancellationWindow",
    "ConnectionState",
    "CountdownFrame",
    "DisplayView",
    "GameState",
    "Outcome",
    "RoundWindow",
    # Enums
    "ConnectionStatus",
    "CountdownPhase",
    "DisplayState",
    "FaceSymbol",
    "ResultKind",
    # Components
    "CountdownScheduler",
    "FrameTickSource",
    "IntervalTickSource",
    "TimeSync",
]

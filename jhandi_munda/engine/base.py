"""
Jhandi Munda - Engine Base Classes

This module defines the foundational data structures and enums used by the
reconciliation engine. Value objects are frozen dataclasses so a transition
can only replace them wholesale, never edit them field by field.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Protocol, Sequence


class DisplayState(Enum):
    """What the display is showing. Exactly one is active at a time."""
    IDLE = "idle"
    WAITING = "waiting"
    COUNTDOWN = "countdown"
    ROLLING = "rolling"
    RESULT = "result"


class ResultKind(Enum):
    """Why a result is on screen."""
    LAST_OUTCOME = "Last Result"    # catch-up, no reveal was seen
    ROUND_RESULT = "Round Result"   # shown after a reveal


class CountdownPhase(Enum):
    """Which edge of the round window a countdown is heading for."""
    TO_START = auto()
    TO_END = auto()

    @property
    def label(self) -> str:
        return "Round starting in" if self is CountdownPhase.TO_START else "Result in"

    @property
    def status_text(self) -> str:
        if self is CountdownPhase.TO_START:
            return "Round starting soon..."
        return "Rolling soon..."


class ProgressBand(Enum):
    """Colour band of the countdown ring."""
    GREEN = "#4ade80"
    YELLOW = "#facc15"
    RED = "#ef4444"

    @classmethod
    def for_ratio(cls, remaining_ratio: float) -> "ProgressBand":
        if remaining_ratio > 0.5:
            return cls.GREEN
        if remaining_ratio > 0.25:
            return cls.YELLOW
        return cls.RED


class ConnectionStatus(Enum):
    """Lifecycle of the push channel."""
    CONNECTING = "Connecting..."
    CONNECTED = "Connected"
    LOST = "Connection lost"
    RECONNECTING = "Reconnecting"
    FAILED = "Connection failed"
    CLOSED = "Closed"


class FaceSymbol(Enum):
    """Symbols printed on the six faces of a Jhandi Munda die."""
    SPADE = 1
    CLUB = 2
    FLAG = 3
    CROWN = 4
    HEART = 5
    DIAMOND = 6

    @classmethod
    def describe(cls, values: Sequence[int]) -> str:
        """Human-readable list of faces, e.g. ``"Spade, Crown, ..."``."""
        return ", ".join(cls(v).name.title() for v in values)


# Waiting messages
WAITING_NEXT_ROUND = "Waiting for next round..."
WAITING_RESULT = "Waiting for result..."
ROUND_CANCELLED = "Round cancelled"
GET_READY = "Get ready..."

DEFAULT_DICE_VALUES: tuple[int, ...] = (1, 2, 3, 4, 5, 6)


@dataclass(frozen=True)
class RoundWindow:
    """
    Schedule of the currently known round, in server epoch milliseconds.

    Attributes:
        start_at: When the round opens
        end_at: When the result is due
        total_ms: Server-declared countdown length, if sent
        remaining_ms: Server-declared time left at send time, if sent
    """
    start_at: int
    end_at: int
    total_ms: int | None = None
    remaining_ms: int | None = None

    def is_active(self, now: int) -> bool:
        """True while the result is still due in the future."""
        return now < self.end_at


@dataclass(frozen=True)
class Outcome:
    """
    The latest authoritative six-dice result.

    Attributes:
        dice_values: Face values, one per die, left to right
        updated_at: Server time the outcome was produced
        round_id: Round that produced it, if known
    """
    dice_values: tuple[int, ...] = DEFAULT_DICE_VALUES
    updated_at: int = 0
    round_id: str | None = None


@dataclass(frozen=True)
class CancellationWindow:
    """Schedules received before ``horizon`` are distrusted.

    ``round_id`` names the cancelled round, when known, so late snapshots
    of that same round keep reading as cancelled.
    """
    horizon: int
    round_id: str | None = None

    def is_open(self, now: int) -> bool:
        return now < self.horizon


@dataclass(frozen=True)
class ConnectionState:
    """Push-channel connection status."""
    connected: bool = False
    attempts: int = 0
    status: ConnectionStatus = ConnectionStatus.CONNECTING
    message: str = ConnectionStatus.CONNECTING.value


@dataclass(frozen=True)
class CountdownFrame:
    """
    One recomputation of the countdown toward ``target``.

    Attributes:
        target: Server time being counted toward
        remaining_ms: Milliseconds left, never negative
        progress: 0.0 at the start, 1.0 at the target
        seconds_left: Whole seconds left, rounded up
        band: Colour band for the progress ring
        status_text: Text shown under the ring
    """
    target: int
    remaining_ms: int
    progress: float
    seconds_left: int
    band: ProgressBand
    status_text: str

    @property
    def expired(self) -> bool:
        return self.remaining_ms <= 0


@dataclass(frozen=True)
class DisplayView:
    """Everything the renderer needs to draw the current state."""
    state: DisplayState
    status_text: str = ""
    target_values: tuple[int, ...] = DEFAULT_DICE_VALUES
    round_id: str | None = None
    result_kind: ResultKind | None = None
    countdown_target: int | None = None
    countdown_phase: CountdownPhase | None = None


@dataclass(frozen=True)
class GameState:
    """Host-facing summary returned by ``RoundController.get_game_state``."""
    state: str
    round_id: str | None
    target_values: tuple[int, ...]
    connected: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "roundId": self.round_id,
            "targetValues": list(self.target_values),
            "connected": self.connected,
        }


# -- Timer ownership ---------------------------------------------------------

class Cancellable(Protocol):
    """A revocable timer handle (``asyncio.TimerHandle`` satisfies this)."""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run a callback later (``asyncio`` loops satisfy this)."""

    def call_later(self, delay: float, callback: Any, *args: Any) -> Cancellable: ...


@dataclass(frozen=True)
class NoTimer:
    """No timer is owned by the state machine."""


@dataclass(frozen=True)
class CountdownTimer:
    """The countdown scheduler is ticking toward ``target``."""
    target: int
    phase: CountdownPhase


@dataclass(frozen=True)
class SettleTimer:
    """Post-reveal settle delay before showing the revealed ``outcome``."""
    handle: Cancellable = field(compare=False)
    outcome: Outcome = field(default_factory=Outcome)


@dataclass(frozen=True)
class GraceTimer:
    """Waiting-state grace delay before falling back to the last outcome."""
    handle: Cancellable = field(compare=False)


TimerSlot = NoTimer | CountdownTimer | SettleTimer | GraceTimer

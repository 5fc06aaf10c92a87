"""
Jhandi Munda - Wire Models

Pydantic models mirroring the backend's JSON payloads: the bodies of
pushed events and the tagged shapes of the current-round snapshot.
Field names are snake_case in Python and camelCase on the wire.
Unknown fields are ignored, never rejected.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

from jhandi_munda.engine.base import Outcome, RoundWindow
from jhandi_munda.engine.validators import (
    validate_dice_values,
    validate_round_dice,
    validate_timestamp,
)

_WIRE_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "extra": "ignore",
    "frozen": True,
}


class ServerMessage(BaseModel):
    """Fields common to everything the server sends."""

    server_now: int
    chat_id: int | None = None

    model_config = _WIRE_CONFIG

    @field_validator("server_now")
    @classmethod
    def _check_server_now(cls, value: int) -> int:
        return validate_timestamp(value, "serverNow")


class ScheduleFields(BaseModel):
    """Round timing carried by schedule-bearing payloads."""

    start_at: int
    end_at: int
    total_ms: int | None = None
    remaining_ms: int | None = None

    model_config = _WIRE_CONFIG

    def window(self) -> RoundWindow:
        return RoundWindow(
            start_at=self.start_at,
            end_at=self.end_at,
            total_ms=self.total_ms,
            remaining_ms=self.remaining_ms,
        )


# -- Pushed events -----------------------------------------------------------

class LastOutcomeEvent(ServerMessage):
    """``last.outcome``: the most recent result, sent on connect."""

    dice_values: tuple[int, ...]
    updated_at: int | None = None
    round_id: str | None = None

    @field_validator("dice_values")
    @classmethod
    def _check_dice(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        return validate_dice_values(value)

    def outcome(self) -> Outcome:
        updated_at = self.updated_at if self.updated_at is not None else self.server_now
        return Outcome(self.dice_values, updated_at, self.round_id)


class RoundScheduledEvent(ServerMessage, ScheduleFields):
    """``round.scheduled``: a round has been booked."""


class RoundStartedEvent(ServerMessage, ScheduleFields):
    """``round.started``: betting is open until ``end_at``."""

    round_id: str


class RoundResultEvent(ServerMessage):
    """``round.result``: the server has declared the dice."""

    round_id: str
    dice_values: tuple[int, ...]

    @field_validator("dice_values")
    @classmethod
    def _check_dice(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        return validate_dice_values(value)

    def outcome(self) -> Outcome:
        return Outcome(self.dice_values, self.server_now, self.round_id)


class RoundCancelledEvent(ServerMessage):
    """``round.cancelled``: the current round will not produce a result."""


PushEvent = Union[
    LastOutcomeEvent,
    RoundScheduledEvent,
    RoundStartedEvent,
    RoundResultEvent,
    RoundCancelledEvent,
]


# -- Current-round snapshot --------------------------------------------------

class LastOutcome(BaseModel):
    """``lastOutcome`` sub-object present in every snapshot."""

    dice_values: tuple[int, ...]
    updated_at: int = 0
    round_id: str | None = None

    model_config = _WIRE_CONFIG

    @field_validator("dice_values")
    @classmethod
    def _check_dice(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        return validate_dice_values(value)

    def outcome(self) -> Outcome:
        return Outcome(self.dice_values, self.updated_at, self.round_id)


class SnapshotRound(ScheduleFields):
    """The round embedded in a ``STARTED_OR_REVEALED`` snapshot."""

    id: str
    name: str | None = None
    dice_values: tuple[int, ...] | None = None

    @field_validator("dice_values")
    @classmethod
    def _check_dice(cls, value: tuple[int, ...] | None) -> tuple[int, ...] | None:
        return validate_round_dice(value)

    @property
    def is_cancelled(self) -> bool:
        """An empty dice list marks a cancelled round (``None`` means pending)."""
        return self.dice_values is not None and len(self.dice_values) == 0

    @property
    def is_revealed(self) -> bool:
        return bool(self.dice_values)


class ScheduledSnapshot(ServerMessage, ScheduleFields):
    """A round is booked but has not started."""

    state: Literal["SCHEDULED"]
    last_outcome: LastOutcome


class RoundSnapshot(ServerMessage):
    """A round has started, and may already be revealed or cancelled."""

    state: Literal["STARTED_OR_REVEALED"]
    round: SnapshotRound
    last_outcome: LastOutcome


class IdleSnapshot(ServerMessage):
    """No round is booked."""

    state: Literal["IDLE"]
    last_outcome: LastOutcome


Snapshot = Annotated[
    Union[ScheduledSnapshot, RoundSnapshot, IdleSnapshot],
    Field(discriminator="state"),
]

SNAPSHOT_ADAPTER: TypeAdapter[Snapshot] = TypeAdapter(Snapshot)


def parse_snapshot(data: bytes | str) -> Snapshot:
    """Decode a ``/rounds/current`` body into its tagged shape.

    Raises:
        pydantic.ValidationError: If the body is not a known shape.
    """
    return SNAPSHOT_ADAPTER.validate_json(data)

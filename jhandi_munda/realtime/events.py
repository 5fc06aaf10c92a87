"""
Jhandi Munda - Realtime Event Definitions

The closed set of events the push channel may deliver, and the decoder
that turns a raw ``event``/``data`` pair into a validated payload.
Anything outside the set is rejected here, before the state machine.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ValidationError

from jhandi_munda.api.models import (
    LastOutcomeEvent,
    PushEvent,
    RoundCancelledEvent,
    RoundResultEvent,
    RoundScheduledEvent,
    RoundStartedEvent,
)
from jhandi_munda.errors import MalformedPayload


class RoundEvent(Enum):
    """Named events on the push channel."""

    LAST_OUTCOME = "last.outcome"
    ROUND_SCHEDULED = "round.scheduled"
    ROUND_STARTED = "round.started"
    ROUND_RESULT = "round.result"
    ROUND_CANCELLED = "round.cancelled"


@dataclass(frozen=True)
class EventPayload:
    """A decoded push event."""

    event: RoundEvent
    message: PushEvent

    @property
    def server_now(self) -> int:
        return self.message.server_now


_EVENT_MODELS: dict[RoundEvent, type[BaseModel]] = {
    RoundEvent.LAST_OUTCOME: LastOutcomeEvent,
    RoundEvent.ROUND_SCHEDULED: RoundScheduledEvent,
    RoundEvent.ROUND_STARTED: RoundStartedEvent,
    RoundEvent.ROUND_RESULT: RoundResultEvent,
    RoundEvent.ROUND_CANCELLED: RoundCancelledEvent,
}


def classify_event(name: str) -> RoundEvent | None:
    """Map a wire event name to a RoundEvent, or None if it is not ours."""
    try:
        return RoundEvent(name)
    except ValueError:
        return None


def decode_event(name: str, data: str) -> EventPayload:
    """
    Decode one pushed message.

    Args:
        name: The SSE ``event:`` field.
        data: The SSE ``data:`` field, a JSON object.

    Returns:
        The validated payload.

    Raises:
        MalformedPayload: If the name is unknown or the body does not
            validate against that event's model.
    """
    event = classify_event(name)
    if event is None:
        raise MalformedPayload(name, "unknown event")

    try:
        message = _EVENT_MODELS[event].model_validate_json(data)
    except ValidationError as exc:
        raise MalformedPayload(name, f"{exc.error_count()} validation error(s)") from exc

    return EventPayload(event=event, message=message)

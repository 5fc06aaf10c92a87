"""Tests for jhandi_munda/realtime/events.py — event types and decoding."""

import json

import pytest

from conftest import LAST_DICE, ROUND_DICE
from jhandi_munda.api.models import (
    LastOutcomeEvent,
    RoundCancelledEvent,
    RoundResultEvent,
    RoundScheduledEvent,
    RoundStartedEvent,
)
from jhandi_munda.errors import MalformedPayload
from jhandi_munda.realtime.events import (
    EventPayload,
    RoundEvent,
    classify_event,
    decode_event,
)


# ── RoundEvent enum ─────────────────────────────────────────────────────

class TestRoundEvent:
    def test_all_events_defined(self):
        expected = {
            "last.outcome", "round.scheduled", "round.started",
            "round.result", "round.cancelled",
        }
        assert {e.value for e in RoundEvent} == expected

    def test_classify_known(self):
        assert classify_event("round.started") is RoundEvent.ROUND_STARTED

    def test_classify_unknown(self):
        assert classify_event("message") is None
        assert classify_event("round.paused") is None


# ── decode_event ────────────────────────────────────────────────────────

class TestDecodeEvent:
    @pytest.mark.parametrize("name,body,model", [
        ("last.outcome", {"diceValues": LAST_DICE}, LastOutcomeEvent),
        ("round.scheduled", {"startAt": 1, "endAt": 2}, RoundScheduledEvent),
        ("round.started", {"roundId": "r-1", "startAt": 1, "endAt": 2}, RoundStartedEvent),
        ("round.result", {"roundId": "r-1", "diceValues": ROUND_DICE}, RoundResultEvent),
        ("round.cancelled", {}, RoundCancelledEvent),
    ])
    def test_each_event_decodes(self, name, body, model):
        payload = decode_event(name, json.dumps({**body, "serverNow": 1234}))
        assert isinstance(payload, EventPayload)
        assert payload.event is RoundEvent(name)
        assert isinstance(payload.message, model)
        assert payload.server_now == 1234

    def test_unknown_event(self):
        with pytest.raises(MalformedPayload, match="unknown event") as info:
            decode_event("round.paused", "{}")
        assert info.value.event == "round.paused"

    def test_invalid_json(self):
        with pytest.raises(MalformedPayload, match="validation error"):
            decode_event("round.cancelled", "not json")

    def test_missing_required_field(self):
        with pytest.raises(MalformedPayload):
            decode_event("round.started", json.dumps({"startAt": 1, "endAt": 2, "serverNow": 3}))

    def test_missing_server_now(self):
        with pytest.raises(MalformedPayload):
            decode_event("round.cancelled", "{}")

    def test_bad_dice(self):
        with pytest.raises(MalformedPayload):
            decode_event("round.result", json.dumps({
                "roundId": "r-1", "diceValues": [9, 9, 9, 9, 9, 9], "serverNow": 3,
            }))

    def test_payload_is_immutable(self):
        payload = decode_event("round.cancelled", json.dumps({"serverNow": 3}))
        with pytest.raises(AttributeError):
            payload.event = RoundEvent.ROUND_RESULT

"""
Jhandi Munda - Base Classes Tests

Tests for dataclasses, enums, and validation utilities.
"""

import dataclasses

import pytest
from jhandi_munda.engine.base import (
    DEFAULT_DICE_VALUES,
    CancellationWindow,
    ConnectionState,
    ConnectionStatus,
    CountdownFrame,
    CountdownPhase,
    CountdownTimer,
    DisplayState,
    FaceSymbol,
    GameState,
    GraceTimer,
    Outcome,
    ProgressBand,
    ResultKind,
    RoundWindow,
    SettleTimer,
)
from jhandi_munda.engine.validators import (
    validate_dice_values,
    validate_round_dice,
    validate_timestamp,
)


class TestDisplayState:
    """Tests for DisplayState enum."""

    def test_values(self):
        assert {s.value for s in DisplayState} == {
            "idle", "waiting", "countdown", "rolling", "result",
        }


class TestResultKind:
    """Tests for ResultKind enum."""

    def test_labels(self):
        assert ResultKind.LAST_OUTCOME.value == "Last Result"
        assert ResultKind.ROUND_RESULT.value == "Round Result"


class TestCountdownPhase:
    """Tests for CountdownPhase labels."""

    def test_to_start_text(self):
        assert CountdownPhase.TO_START.label == "Round starting in"
        assert CountdownPhase.TO_START.status_text == "Round starting soon..."

    def test_to_end_text(self):
        assert CountdownPhase.TO_END.label == "Result in"
        assert CountdownPhase.TO_END.status_text == "Rolling soon..."


class TestProgressBand:
    """Tests for the countdown colour bands."""

    @pytest.mark.parametrize("ratio,band", [
        (1.0, ProgressBand.GREEN),
        (0.51, ProgressBand.GREEN),
        (0.5, ProgressBand.YELLOW),
        (0.26, ProgressBand.YELLOW),
        (0.25, ProgressBand.RED),
        (0.0, ProgressBand.RED),
    ])
    def test_for_ratio(self, ratio, band):
        assert ProgressBand.for_ratio(ratio) is band


class TestFaceSymbol:
    """Tests for FaceSymbol enum."""

    def test_describe(self):
        assert FaceSymbol.describe([1, 4, 6]) == "Spade, Crown, Diamond"

    def test_invalid_face(self):
        with pytest.raises(ValueError):
            FaceSymbol.describe([7])


class TestRoundWindow:
    """Tests for RoundWindow dataclass."""

    def test_active_until_end(self):
        window = RoundWindow(start_at=1000, end_at=4000)
        assert window.is_active(500)
        assert window.is_active(3999)
        assert not window.is_active(4000)

    def test_immutable(self):
        window = RoundWindow(start_at=1000, end_at=4000)
        with pytest.raises(dataclasses.FrozenInstanceError):
            window.end_at = 5000


class TestOutcome:
    """Tests for Outcome dataclass."""

    def test_defaults(self):
        outcome = Outcome()
        assert outcome.dice_values == DEFAULT_DICE_VALUES
        assert outcome.updated_at == 0
        assert outcome.round_id is None


class TestCancellationWindow:
    def test_open_before_horizon(self):
        window = CancellationWindow(horizon=30_000)
        assert window.is_open(29_999)
        assert not window.is_open(30_000)


class TestConnectionState:
    def test_defaults(self):
        state = ConnectionState()
        assert not state.connected
        assert state.attempts == 0
        assert state.status is ConnectionStatus.CONNECTING
        assert state.message == "Connecting..."


class TestCountdownFrame:
    def _frame(self, remaining_ms):
        return CountdownFrame(
            target=5000,
            remaining_ms=remaining_ms,
            progress=0.0,
            seconds_left=0,
            band=ProgressBand.RED,
            status_text="",
        )

    def test_expired_at_zero(self):
        assert self._frame(0).expired
        assert not self._frame(1).expired


class TestGameState:
    def test_to_dict_uses_camel_case(self):
        state = GameState(
            state="countdown",
            round_id="r-1",
            target_values=(1, 2, 3, 4, 5, 6),
            connected=True,
        )
        assert state.to_dict() == {
            "state": "countdown",
            "roundId": "r-1",
            "targetValues": [1, 2, 3, 4, 5, 6],
            "connected": True,
        }


class TestTimerSlots:
    def test_countdown_slots_compare_by_target(self):
        assert CountdownTimer(5000, CountdownPhase.TO_START) == CountdownTimer(5000, CountdownPhase.TO_START)
        assert CountdownTimer(5000, CountdownPhase.TO_START) != CountdownTimer(8000, CountdownPhase.TO_END)

    def test_handle_slots_ignore_handle_in_equality(self):
        assert SettleTimer(object()) == SettleTimer(object())
        assert GraceTimer(object()) != SettleTimer(object())

    def test_settle_slot_compares_by_outcome(self):
        revealed = Outcome((6, 6, 1, 2, 3, 4), 3000, "r-1")
        assert SettleTimer(object(), revealed) == SettleTimer(object(), revealed)
        assert SettleTimer(object(), revealed) != SettleTimer(object())


# =============================================================================
# VALIDATORS
# =============================================================================

class TestValidateDiceValues:
    """Tests for validate_dice_values function."""

    def test_valid_values(self):
        assert validate_dice_values([1, 2, 3, 4, 5, 6]) == (1, 2, 3, 4, 5, 6)

    def test_wrong_count(self):
        with pytest.raises(ValueError, match="Exactly 6 dice"):
            validate_dice_values([1, 2, 3])

    def test_out_of_range(self):
        with pytest.raises(ValueError, match="between 1 and 6"):
            validate_dice_values([1, 2, 3, 4, 5, 7])

    def test_zero_rejected(self):
        with pytest.raises(ValueError):
            validate_dice_values([0, 2, 3, 4, 5, 6])

    def test_bool_rejected(self):
        with pytest.raises(ValueError, match="must be an integer"):
            validate_dice_values([True, 2, 3, 4, 5, 6])

    def test_custom_count(self):
        assert validate_dice_values([6, 6], count=2) == (6, 6)


class TestValidateRoundDice:
    """Tests for validate_round_dice function."""

    def test_none_passes_through(self):
        assert validate_round_dice(None) is None

    def test_empty_means_cancelled(self):
        assert validate_round_dice([]) == ()

    def test_full_roll(self):
        assert validate_round_dice([6, 5, 4, 3, 2, 1]) == (6, 5, 4, 3, 2, 1)

    def test_partial_roll_rejected(self):
        with pytest.raises(ValueError):
            validate_round_dice([1, 2])


class TestValidateTimestamp:
    def test_valid(self):
        assert validate_timestamp(0) == 0
        assert validate_timestamp(1_700_000_000_000) == 1_700_000_000_000

    def test_negative(self):
        with pytest.raises(ValueError, match="serverNow cannot be negative"):
            validate_timestamp(-1, "serverNow")

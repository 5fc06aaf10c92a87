"""Tests for jhandi_munda/__main__.py — console host formatting and settings."""

from jhandi_munda.__main__ import describe_view
from jhandi_munda.config.settings import Settings
from jhandi_munda.engine.base import (
    WAITING_NEXT_ROUND,
    WAITING_RESULT,
    DisplayState,
    DisplayView,
    ResultKind,
)


class TestDescribeView:
    def test_waiting(self):
        view = DisplayView(state=DisplayState.WAITING, status_text=WAITING_RESULT, round_id="r-1")
        assert describe_view(view) == "WAITING Waiting for result... round=r-1"

    def test_result_lists_faces(self):
        view = DisplayView(
            state=DisplayState.RESULT,
            status_text=WAITING_NEXT_ROUND,
            target_values=(1, 2, 3, 4, 5, 6),
            result_kind=ResultKind.ROUND_RESULT,
        )
        assert describe_view(view) == (
            "RESULT Waiting for next round... "
            "[Spade, Club, Flag, Crown, Heart, Diamond] (Round Result)"
        )

    def test_idle(self):
        assert describe_view(DisplayView(state=DisplayState.IDLE)) == "IDLE"


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.reconnect_delay_ms == 2000
        assert settings.max_reconnect_attempts == 10
        assert settings.cancel_fallback_ms == 30000
        assert settings.settle_delay_ms == 3600

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("JHANDI_BACKEND_URL", "http://relay.example")
        monkeypatch.setenv("JHANDI_WAITING_GRACE_MS", "1500")
        settings = Settings()
        assert settings.backend_url == "http://relay.example"
        assert settings.waiting_grace_ms == 1500

    def test_settle_delay_follows_animation(self):
        settings = Settings(roll_duration_ms=1000, die_stagger_ms=50, settle_buffer_ms=0)
        assert settings.settle_delay_ms == 1300

"""
Jhandi Munda - Application Settings

Loads configuration from environment variables using Pydantic Settings.
Every variable is prefixed with ``JHANDI_`` (e.g. ``JHANDI_BACKEND_URL``).
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Backend
    app_title: str = "Jhandi Munda"
    backend_url: str = "http://localhost:3000"
    chat_id: int = 123
    request_timeout_s: float = 10.0

    # Reveal animation (ms)
    roll_duration_ms: int = 2500
    die_stagger_ms: int = 100
    settle_buffer_ms: int = 500
    dice_count: int = 6
    result_display_duration_s: int = 5

    # Round lifecycle policy (ms)
    waiting_grace_ms: int = 2000
    cancel_fallback_ms: int = 30000
    time_sync_interval_ms: int = 30000

    # Countdown cadence (ms)
    frame_interval_ms: int = 16
    background_tick_ms: int = 100

    # Reconnect backoff
    reconnect_delay_ms: int = 2000
    max_reconnect_attempts: int = 10
    max_backoff_multiplier: int = 5

    # Application
    debug: bool = False
    log_level: str = "INFO"

    model_config = {
        "env_prefix": "JHANDI_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def settle_delay_ms(self) -> int:
        """Pause after a reveal before the result is considered final."""
        return (
            self.roll_duration_ms
            + self.dice_count * self.die_stagger_ms
            + self.settle_buffer_ms
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached singleton settings instance."""
    return Settings()

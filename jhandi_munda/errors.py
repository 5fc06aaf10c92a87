"""
Jhandi Munda - Error Taxonomy

I/O failures are caught at the component that owns the I/O and turned
into log lines or connection status; none of these escape to the host.
"""


class RelayError(Exception):
    """Base class for round relay errors."""


class TransportError(RelayError):
    """Raised when the push stream drops or cannot be opened."""


class MalformedPayload(RelayError):
    """Raised when a pushed event body cannot be decoded."""

    def __init__(self, event: str, reason: str) -> None:
        super().__init__(f"Malformed {event!r} payload: {reason}")
        self.event = event
        self.reason = reason


class SnapshotFetchError(RelayError):
    """Raised when the current-round pull fails."""


class ConnectionExhausted(RelayError):
    """Raised when reconnect attempts reach the configured ceiling."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Gave up reconnecting after {attempts} attempts")
        self.attempts = attempts

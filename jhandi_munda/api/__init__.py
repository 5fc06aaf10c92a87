"""
Jhandi Munda Backend API.

Wire models, the shared HTTP client, and current-round snapshot pulls.
"""

from jhandi_munda.api.client import create_backend_client
from jhandi_munda.api.models import (
    IdleSnapshot,
    RoundSnapshot,
    ScheduledSnapshot,
    Snapshot,
    parse_snapshot,
)
from jhandi_munda.api.snapshot import SnapshotClient

__all__ = [
    "create_backend_client",
    "IdleSnapshot",
    "RoundSnapshot",
    "ScheduledSnapshot",
    "Snapshot",
    "SnapshotClient",
    "parse_snapshot",
]

"""
Jhandi Munda Real-time Sync.

Server-Sent Events subscription and round-state reconciliation.
"""

from jhandi_munda.realtime.events import EventPayload, RoundEvent, decode_event
from jhandi_munda.realtime.subscriptions import EventChannel
from jhandi_munda.realtime.sync_manager import RoundController

__all__ = [
    "EventChannel",
    "EventPayload",
    "RoundController",
    "RoundEvent",
    "decode_event",
]

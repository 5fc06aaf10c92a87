"""
Jhandi Munda Round Relay.

Client-side reconciliation engine for a live, server-authoritative
six-dice round display.
"""

__version__ = "0.1.0"

"""
Jhandi Munda Configuration.

Environment variables, timing policy, and logging configuration.
"""

from jhandi_munda.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]

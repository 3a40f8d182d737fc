"""Service layer helpers (settings, scheduling, sessions)."""

from .scheduler import CheckScheduler
from .session import GrammarSession
from .settings import SecretVault, Settings, SettingsStore

__all__ = [
    "CheckScheduler",
    "GrammarSession",
    "SecretVault",
    "Settings",
    "SettingsStore",
]

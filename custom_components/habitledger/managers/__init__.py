"""Manager modules for HabitLedger integration.

Managers orchestrate workflows and coordinate between engines.
They are stateful, event-aware, and handle cross-cutting concerns.
"""

from .base_manager import BaseManager
from .day_manager import DayManager
from .ephemeral_manager import EphemeralManager
from .ledger_manager import LedgerManager
from .user_manager import UserManager

__all__ = [
    "BaseManager",
    "DayManager",
    "EphemeralManager",
    "LedgerManager",
    "UserManager",
]

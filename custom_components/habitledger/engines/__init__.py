"""Engine modules for HabitLedger integration.

Contains specialized computation engines:
- status_engine: Task status state machine and count/times progress
- ledger_engine: Completion ledger merge, migration and partition
- earnings_engine: Completion value, budget consumption and balances
- projection_engine: Per-user daily summary (productivity, ticker)
- ephemeral_engine: Ad-hoc tasks outside the blueprint
"""

# Use relative imports within package to avoid mypy module resolution issues
from .earnings_engine import (
    AwardPolicy,
    BalanceDelta,
    CompletionAward,
    EarningsEngine,
    UserBalances,
)
from .ephemeral_engine import EphemeralEngine, EphemeralResult
from .ledger_engine import (
    LedgerEngine,
    LedgerMergeResult,
    TaskKeyError,
    TaskNotFoundError,
)
from .projection_engine import ProjectionEngine
from .status_engine import (
    STATUS_ACTION_DECREMENT,
    STATUS_ACTION_INCREMENT,
    LedgerValidationError,
    StatusEngine,
    StatusTransition,
)

__all__ = [
    "STATUS_ACTION_DECREMENT",
    "STATUS_ACTION_INCREMENT",
    "AwardPolicy",
    "BalanceDelta",
    "CompletionAward",
    "EarningsEngine",
    "EphemeralEngine",
    "EphemeralResult",
    "LedgerEngine",
    "LedgerMergeResult",
    "LedgerValidationError",
    "ProjectionEngine",
    "StatusEngine",
    "StatusTransition",
    "TaskKeyError",
    "TaskNotFoundError",
    "UserBalances",
]

"""Test helpers for HabitLedger integration tests.

This module re-exports all helpers for convenient imports:

    from tests.helpers import (
        OWNER_ID, OTHER_USER_ID, LEDGER_DATE,
        make_tasks, make_task_list, call_service,
    )

See individual modules for full documentation:
- ledger.py: Task list builders and service call shortcuts
"""

from tests.helpers.ledger import (
    LEDGER_DATE,
    OTHER_USER_ID,
    OWNER_ID,
    call_service,
    get_bucket,
    make_task_list,
    make_tasks,
)

__all__ = [
    "LEDGER_DATE",
    "OTHER_USER_ID",
    "OWNER_ID",
    "call_service",
    "get_bucket",
    "make_task_list",
    "make_tasks",
]

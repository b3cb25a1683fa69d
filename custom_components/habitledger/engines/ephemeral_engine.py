"""Ephemeral Engine - Pure logic for ad-hoc tasks scoped to a list.

Ephemeral tasks live outside the blueprint and outside the dated ledger, in
`ephemeralTasks = {"open": [...], "closed": [...]}` on the list.

Operations (each idempotent, each accepting one op or a list of ops):
- add: assign a generated id and push to open
- update: mutate count/status (and display fields) in place within open
- close: move from open to closed, stamping completedAt/completedOn
- reopen: move from closed back to open, clearing completedAt/completedOn

A batch is applied in the order add → update → close → reopen, and in list
order within one kind, so the last op on an id wins.

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
import uuid

from .. import const
from ..utils.dt_utils import dt_now_iso, dt_today_iso
from .status_engine import LedgerValidationError, StatusEngine

if TYPE_CHECKING:
    from ..type_defs import EphemeralTasks, TaskInstanceData

EPHEMERAL_OP_ADD = "add"
EPHEMERAL_OP_UPDATE = "update"
EPHEMERAL_OP_CLOSE = "close"
EPHEMERAL_OP_REOPEN = "reopen"

# Batch application order
EPHEMERAL_OP_ORDER = (
    EPHEMERAL_OP_ADD,
    EPHEMERAL_OP_UPDATE,
    EPHEMERAL_OP_CLOSE,
    EPHEMERAL_OP_REOPEN,
)


@dataclass
class EphemeralResult:
    """Outcome of an ephemeral batch.

    Attributes:
        tasks: New ephemeralTasks value
        applied: Ops that changed something, as (op, task id) pairs
        skipped: Ops that were no-ops, as (op, task id) pairs
    """

    tasks: EphemeralTasks
    applied: list[tuple[str, str]] = field(default_factory=list)
    skipped: list[tuple[str, str | None]] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """Whether any op changed the store."""
        return bool(self.applied)


class EphemeralEngine:
    """Pure logic engine for the ephemeral task store.

    All methods are static - no instance state.
    """

    @staticmethod
    def normalize_store(raw: Any) -> EphemeralTasks:
        """Return a deep copy of a stored ephemeralTasks value in canonical form."""
        if not isinstance(raw, dict):
            return {"open": [], "closed": []}
        return {
            "open": copy.deepcopy(
                [t for t in raw.get(const.DATA_EPHEMERAL_OPEN) or [] if isinstance(t, dict)]
            ),
            "closed": copy.deepcopy(
                [t for t in raw.get(const.DATA_EPHEMERAL_CLOSED) or [] if isinstance(t, dict)]
            ),
        }

    @staticmethod
    def as_op_list(ops: Any) -> list[dict[str, Any]]:
        """Accept a single op or a list of ops."""
        if ops is None:
            return []
        if isinstance(ops, dict):
            return [ops]
        return [op for op in ops if isinstance(op, dict)]

    @staticmethod
    def _index_of(tasks: list[TaskInstanceData], task_id: str | None) -> int | None:
        if task_id is None:
            return None
        for index, task in enumerate(tasks):
            if task.get(const.DATA_TASK_ID) == task_id:
                return index
        return None

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    @staticmethod
    def add(store: EphemeralTasks, op: dict[str, Any], now: str) -> str | None:
        """Push a new open task; an op whose id already exists is a no-op.

        Returns:
            Id of the added task, or None when skipped
        """
        task_id = op.get(const.DATA_TASK_ID)
        if task_id is not None and (
            EphemeralEngine._index_of(store["open"], task_id) is not None
            or EphemeralEngine._index_of(store["closed"], task_id) is not None
        ):
            return None

        task: dict[str, Any] = {
            k: copy.deepcopy(v)
            for k, v in op.items()
            if k not in const.TASK_RUNTIME_FIELDS
        }
        times = StatusEngine.validate_times(op.get(const.DATA_TASK_TIMES))
        task[const.DATA_TASK_ID] = task_id or str(uuid.uuid4())
        task[const.DATA_TASK_TIMES] = times
        task[const.DATA_TASK_COUNT] = 0
        task[const.DATA_TASK_STATUS] = const.TASK_STATUS_OPEN
        task[const.DATA_TASK_COMPLETERS] = []
        task[const.DATA_TASK_CREATED_AT] = now
        store["open"].append(task)  # type: ignore[arg-type]
        return task[const.DATA_TASK_ID]

    @staticmethod
    def update(store: EphemeralTasks, op: dict[str, Any]) -> bool:
        """Mutate an open task's count/status in place.

        When only count is given the status follows it; when only status is
        given it is stored as-is.
        """
        index = EphemeralEngine._index_of(store["open"], op.get(const.DATA_TASK_ID))
        if index is None:
            return False
        task = store["open"][index]
        times = task.get(const.DATA_TASK_TIMES) or const.DEFAULT_TASK_TIMES

        for key, value in op.items():
            if key in const.TASK_RUNTIME_FIELDS or key in (
                const.DATA_TASK_ID,
                const.DATA_TASK_TIMES,
            ):
                continue
            task[key] = copy.deepcopy(value)  # type: ignore[literal-required]

        status = op.get(const.DATA_TASK_STATUS)
        if const.DATA_TASK_COUNT in op:
            count = StatusEngine.validate_count(op[const.DATA_TASK_COUNT], times)
            task[const.DATA_TASK_COUNT] = count
            if status is None:
                task[const.DATA_TASK_STATUS] = StatusEngine.calculate_status(
                    count, times, task.get(const.DATA_TASK_STATUS)
                )
        if status is not None:
            task[const.DATA_TASK_STATUS] = StatusEngine.validate_status(status)
        return True

    @staticmethod
    def close(store: EphemeralTasks, op: dict[str, Any], now: str, today: str) -> bool:
        """Move an open task to closed as done."""
        index = EphemeralEngine._index_of(store["open"], op.get(const.DATA_TASK_ID))
        if index is None:
            return False
        task = store["open"].pop(index)
        times = task.get(const.DATA_TASK_TIMES) or const.DEFAULT_TASK_TIMES
        count = op.get(const.DATA_TASK_COUNT)
        task[const.DATA_TASK_COUNT] = (
            times if count is None else StatusEngine.validate_count(count, times)
        )
        task[const.DATA_TASK_STATUS] = const.TASK_STATUS_DONE
        task[const.DATA_TASK_COMPLETED_AT] = now
        task[const.DATA_TASK_COMPLETED_ON] = today
        store["closed"].append(task)
        return True

    @staticmethod
    def reopen(store: EphemeralTasks, op: dict[str, Any]) -> bool:
        """Move a closed task back to open with progress below times."""
        index = EphemeralEngine._index_of(store["closed"], op.get(const.DATA_TASK_ID))
        if index is None:
            return False
        task = store["closed"].pop(index)
        times = task.get(const.DATA_TASK_TIMES) or const.DEFAULT_TASK_TIMES
        count = op.get(const.DATA_TASK_COUNT)
        count = 0 if count is None else StatusEngine.validate_count(count, times)
        count = min(count, times - 1)
        task[const.DATA_TASK_COUNT] = count
        task[const.DATA_TASK_STATUS] = StatusEngine.calculate_status(count, times)
        task.pop(const.DATA_TASK_COMPLETED_AT, None)
        task.pop(const.DATA_TASK_COMPLETED_ON, None)
        store["open"].append(task)
        return True

    # =========================================================================
    # BATCH
    # =========================================================================

    @staticmethod
    def apply_ops(
        current: Any,
        ops: dict[str, Any],
        now: str | None = None,
        today: str | None = None,
    ) -> EphemeralResult:
        """Apply a batch of ephemeral ops to a copy of the stored tasks.

        Args:
            current: Stored ephemeralTasks value (not mutated)
            ops: Mapping of op kind → op or list of ops
            now: Timestamp for createdAt/completedAt (defaults to now, UTC)
            today: Date for completedOn (defaults to today, local)

        Raises:
            LedgerValidationError: A count or status is invalid; nothing is
                applied in that case since the caller discards the copy
        """
        stamp = now or dt_now_iso()
        day = today or dt_today_iso()
        result = EphemeralResult(tasks=EphemeralEngine.normalize_store(current))
        store = result.tasks

        for kind in EPHEMERAL_OP_ORDER:
            for op in EphemeralEngine.as_op_list(ops.get(kind)):
                task_id = op.get(const.DATA_TASK_ID)
                if kind == EPHEMERAL_OP_ADD:
                    added = EphemeralEngine.add(store, op, stamp)
                    if added is None:
                        result.skipped.append((kind, task_id))
                    else:
                        result.applied.append((kind, added))
                    continue

                if task_id is None:
                    raise LedgerValidationError(
                        const.TRANS_KEY_ERROR_NOT_FOUND,
                        f"Ephemeral '{kind}' op without id",
                        entity_type=const.LABEL_TASK,
                        name="",
                    )
                if kind == EPHEMERAL_OP_UPDATE:
                    changed = EphemeralEngine.update(store, op)
                elif kind == EPHEMERAL_OP_CLOSE:
                    changed = EphemeralEngine.close(store, op, stamp, day)
                else:
                    changed = EphemeralEngine.reopen(store, op)

                if changed:
                    result.applied.append((kind, task_id))
                else:
                    result.skipped.append((kind, task_id))
        return result

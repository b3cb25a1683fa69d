"""Status Engine - Pure logic for the task status state machine.

This engine provides stateless, pure Python functions for:
- Status normalization (legacy spellings, capitalisation)
- Increment / Decrement transitions of the count/times progress model
- Direct status selection and the implicit count change it implies
- Read-side status derivation for snapshots missing a status

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data.
Ledger placement (open vs closed bucket) belongs in LedgerEngine.

States: open → in-progress → done, plus the manual states steady, ready and
ignored that a user may pick at any time. The machine is reversible:
decrementing from done returns to in-progress/open.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .. import const

# =============================================================================
# STATUS ACTION CONSTANTS
# =============================================================================

STATUS_ACTION_INCREMENT = "increment"
STATUS_ACTION_DECREMENT = "decrement"


class LedgerValidationError(ValueError):
    """Raised when ledger input is malformed (dates, counts, statuses, keys).

    Attributes:
        translation_key: Key under `exceptions` in translations/en.json
        placeholders: Values for the translated message
    """

    def __init__(
        self,
        translation_key: str,
        message: str,
        **placeholders: str,
    ) -> None:
        """Initialize LedgerValidationError."""
        self.translation_key = translation_key
        self.placeholders = placeholders
        super().__init__(message)


# =============================================================================
# TRANSITION RESULT
# =============================================================================


@dataclass
class StatusTransition:
    """Result of applying one transition to a count/status pair.

    Attributes:
        count: Repetitions completed after the transition
        status: Status to store after the transition
        changed: Whether count moved (False for no-op transitions)
        action: Implicit count action applied (increment/decrement) or None
    """

    count: int
    status: str
    changed: bool = False
    action: str | None = None


# =============================================================================
# STATUS ENGINE
# =============================================================================


class StatusEngine:
    """Pure logic engine for task status transitions.

    All methods are static - no instance state.
    """

    # =========================================================================
    # NORMALIZATION AND VALIDATION
    # =========================================================================

    @staticmethod
    def normalize_status(status: Any) -> str | None:
        """Return the canonical spelling of a status, or None if unknown.

        Examples:
            normalize_status("Done") → "done"
            normalize_status("in progress") → "in-progress"
            normalize_status("later") → None
        """
        if not isinstance(status, str):
            return None
        candidate = status.strip().lower()
        candidate = const.TASK_STATUS_LEGACY_ALIASES.get(candidate, candidate)
        if candidate in const.TASK_STATUSES:
            return candidate
        return None

    @staticmethod
    def validate_status(status: Any) -> str:
        """Normalize a user-supplied status or raise LedgerValidationError."""
        normalized = StatusEngine.normalize_status(status)
        if normalized is None:
            raise LedgerValidationError(
                const.TRANS_KEY_ERROR_INVALID_STATUS,
                f"Unknown task status: {status!r}",
                status=str(status),
            )
        return normalized

    @staticmethod
    def validate_times(times: Any) -> int:
        """Return repetitions required (default 1), rejecting values below 1."""
        if times is None:
            return const.DEFAULT_TASK_TIMES
        try:
            value = int(times)
        except (TypeError, ValueError) as err:
            raise LedgerValidationError(
                const.TRANS_KEY_ERROR_INVALID_COUNT,
                f"Invalid times value: {times!r}",
                count=str(times),
            ) from err
        if value < 1:
            raise LedgerValidationError(
                const.TRANS_KEY_ERROR_INVALID_COUNT,
                f"Times must be at least 1, got {value}",
                count=str(times),
            )
        return value

    @staticmethod
    def validate_count(count: Any, times: int) -> int:
        """Return a count within [0, times] or raise LedgerValidationError."""
        try:
            value = int(count)
        except (TypeError, ValueError) as err:
            raise LedgerValidationError(
                const.TRANS_KEY_ERROR_INVALID_COUNT,
                f"Invalid count value: {count!r}",
                count=str(count),
            ) from err
        if value < 0 or value > times:
            raise LedgerValidationError(
                const.TRANS_KEY_ERROR_INVALID_COUNT,
                f"Count {value} outside [0, {times}]",
                count=str(count),
            )
        return value

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    @staticmethod
    def calculate_status(
        count: int,
        times: int,
        existing_status: str | None = None,
    ) -> str:
        """Calculate the status implied by a count, preserving manual states.

        Manual states other than open/done survive partial progress.

        Examples:
            calculate_status(3, 3) → "done"
            calculate_status(1, 3) → "in-progress"
            calculate_status(1, 3, "steady") → "steady"
            calculate_status(0, 3, "steady") → "open"
        """
        if count >= times:
            return const.TASK_STATUS_DONE
        if count > 0:
            if existing_status in const.TASK_MANUAL_STATUSES:
                return existing_status
            return const.TASK_STATUS_IN_PROGRESS
        return const.TASK_STATUS_OPEN

    @staticmethod
    def increment(count: int, times: int, status: str | None) -> StatusTransition:
        """Record one unit of progress.

        An instance that is already closed (status done or count saturated)
        is left untouched, so a replayed completion never double counts.
        """
        if status == const.TASK_STATUS_DONE or count >= times:
            return StatusTransition(
                count=min(count, times),
                status=const.TASK_STATUS_DONE,
            )
        new_count = count + 1
        return StatusTransition(
            count=new_count,
            status=StatusEngine.calculate_status(new_count, times, status),
            changed=True,
            action=STATUS_ACTION_INCREMENT,
        )

    @staticmethod
    def decrement(count: int, times: int, status: str | None) -> StatusTransition:
        """Undo one unit of progress (no-op when count is already zero)."""
        if count <= 0:
            return StatusTransition(
                count=0,
                status=StatusEngine.calculate_status(0, times, status),
            )
        new_count = min(count, times) - 1
        # "done" never survives a decrement; other manual states may
        previous = None if status == const.TASK_STATUS_DONE else status
        return StatusTransition(
            count=new_count,
            status=StatusEngine.calculate_status(new_count, times, previous),
            changed=True,
            action=STATUS_ACTION_DECREMENT,
        )

    @staticmethod
    def plan_status_change(
        count: int,
        times: int,
        current_status: str | None,
        target_status: str,
    ) -> StatusTransition:
        """Plan a direct status selection from the status menu.

        The chosen status is stored as-is. Choosing done on an unsaturated
        instance also applies an implicit Increment; leaving done from a
        closed instance applies an implicit Decrement, undoing the
        completer recorded when it was closed.

        Args:
            count: Current repetitions completed
            times: Repetitions required
            current_status: Status currently stored on the instance
            target_status: Status picked by the user (validated here)

        Returns:
            StatusTransition carrying the stored status and implicit action
        """
        target = StatusEngine.validate_status(target_status)
        was_closed = current_status == const.TASK_STATUS_DONE or count >= times

        if target == const.TASK_STATUS_DONE:
            if was_closed:
                return StatusTransition(count=min(count, times), status=target)
            return StatusTransition(
                count=count + 1,
                status=target,
                changed=True,
                action=STATUS_ACTION_INCREMENT,
            )

        if was_closed and count > 0:
            return StatusTransition(
                count=min(count, times) - 1,
                status=target,
                changed=True,
                action=STATUS_ACTION_DECREMENT,
            )

        return StatusTransition(count=count, status=target)

    # =========================================================================
    # READ-SIDE DERIVATION
    # =========================================================================

    @staticmethod
    def derive_status(task: dict[str, Any]) -> str:
        """Return a task's status, deriving it from count/times when missing.

        Used when reading snapshots written by older clients that stored only
        a count, or a status outside the known set.
        """
        status = StatusEngine.normalize_status(task.get(const.DATA_TASK_STATUS))
        if status is not None:
            return status
        times = max(1, int(task.get(const.DATA_TASK_TIMES) or 1))
        count = int(task.get(const.DATA_TASK_COUNT) or 0)
        return StatusEngine.calculate_status(count, times)

"""User Manager - Running balances and budget allocation per user.

This manager handles:
- Planning balance updates (stash/profit/equity) for a ledger action, so they
  commit atomically with the task list write
- Emitting BALANCE_CHANGED after a commit
- Budget percentage allocation across the lists a user owns

ARCHITECTURE:
- UserManager = STATEFUL (reads users from the store, plans document changes)
- EarningsEngine = Pure balance math (clamping, equity derivation)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.exceptions import HomeAssistantError, ServiceValidationError

from .. import const
from ..engines import BalanceDelta, EarningsEngine, UserBalances
from ..helpers.auth_helpers import get_list_owner
from ..store import DocumentChange, RevisionConflictError, StorageUnavailableError
from ..utils.math_utils import floor_at_zero, parse_money, round_money
from .base_manager import BaseManager

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import HabitLedgerCoordinator
    from ..type_defs import UserData


class UserManager(BaseManager):
    """Manager for user balances and budget allocation.

    Responsibilities:
    - Build User documents for balance deltas (applied by LedgerManager's commit)
    - Emit SIGNAL_SUFFIX_BALANCE_CHANGED events
    - Recalculate usedBudget/remainingBudget when an owned list is saved or deleted

    NOT responsible for:
    - Computing completion value (EarningsEngine)
    - Persisting ledger changes (LedgerManager)
    """

    def __init__(self, hass: HomeAssistant, coordinator: HabitLedgerCoordinator) -> None:
        """Initialize the UserManager."""
        super().__init__(hass, coordinator)

    async def async_setup(self) -> None:
        """Recalculate allocation whenever an owned list changes."""
        self.listen(const.SIGNAL_SUFFIX_TASK_LIST_DELETED, self._on_task_list_changed)
        self.listen(const.SIGNAL_SUFFIX_TASK_LIST_SAVED, self._on_task_list_changed)

    async def _on_task_list_changed(self, payload: dict[str, Any]) -> None:
        """Recalculate the owner's budget allocation (best-effort)."""
        owner_id = payload.get("owner_id")
        if not owner_id:
            return
        try:
            await self.async_recalculate_user_budget(owner_id)
        except HomeAssistantError as err:
            const.LOGGER.warning(
                "WARNING: Budget recalculation for user '%s' failed: %s",
                owner_id,
                err,
            )

    # -------------------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------------------

    @staticmethod
    def default_user(user_id: str) -> UserData:
        """Return a fresh User document with zero balances."""
        return {
            "id": user_id,
            "availableBalance": 0.0,
            "stash": 0.0,
            "profit": 0.0,
            "equity": 0.0,
            "usedBudget": 0.0,
            "remainingBudget": float(const.MAX_BUDGET_PERCENTAGE),
            "revision": 0,
        }

    def get_user(self, user_id: str) -> tuple[dict[str, Any], int]:
        """Return a copy of a user (defaults when unknown) and its revision."""
        user, revision = self.store.get_document(const.DATA_USERS, user_id)
        if user is None:
            return dict(self.default_user(user_id)), 0
        return user, revision

    # -------------------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------------------

    def plan_balance_changes(
        self, deltas: dict[str, BalanceDelta]
    ) -> tuple[list[DocumentChange], dict[str, UserBalances]]:
        """Build User document changes for a set of per-user deltas.

        Returns:
            Tuple of (document changes, new balances by user id)
        """
        changes: list[DocumentChange] = []
        balances: dict[str, UserBalances] = {}
        for user_id, delta in deltas.items():
            if delta.stash_delta == 0 and delta.profit_delta == 0:
                continue
            user, revision = self.get_user(user_id)
            updated = EarningsEngine.calculate_updated_user_values(
                user.get(const.DATA_USER_STASH),
                user.get(const.DATA_USER_PROFIT),
                user.get(const.DATA_USER_AVAILABLE_BALANCE),
                delta,
            )
            user[const.DATA_USER_STASH] = updated.stash
            user[const.DATA_USER_PROFIT] = updated.profit
            user[const.DATA_USER_EQUITY] = updated.equity
            user[const.DATA_USER_AVAILABLE_BALANCE] = updated.available_balance
            changes.append(DocumentChange(const.DATA_USERS, user_id, revision, user))
            balances[user_id] = updated
        return changes, balances

    def emit_balance_changes(
        self,
        balances: dict[str, UserBalances],
        deltas: dict[str, BalanceDelta],
        source: str,
    ) -> None:
        """Emit one BALANCE_CHANGED event per updated user."""
        for user_id, updated in balances.items():
            delta = deltas.get(user_id, BalanceDelta())
            const.LOGGER.debug(
                "DEBUG: User '%s' balances stash=%s profit=%s equity=%s (%s)",
                user_id,
                updated.stash,
                updated.profit,
                updated.equity,
                source,
            )
            self.emit(
                const.SIGNAL_SUFFIX_BALANCE_CHANGED,
                user_id=user_id,
                stash=updated.stash,
                profit=updated.profit,
                equity=updated.equity,
                delta=delta.total,
                source=source,
            )

    # -------------------------------------------------------------------------------------
    # Budget allocation
    # -------------------------------------------------------------------------------------

    def calculate_used_budget(
        self, user_id: str, exclude_list_id: str | None = None
    ) -> float:
        """Sum budgetPercentage over the lists the user owns."""
        used = 0.0
        for list_id, task_list in self.store.data[const.DATA_TASK_LISTS].items():
            if list_id == exclude_list_id:
                continue
            if get_list_owner(task_list) != user_id:
                continue
            used += parse_money(task_list.get(const.DATA_LIST_BUDGET_PERCENTAGE))
        return round_money(used)

    def validate_budget_allocation(
        self,
        user_id: str,
        budget_percentage: float,
        exclude_list_id: str | None = None,
    ) -> None:
        """Reject a percentage that would push the user's allocation past 100.

        Raises:
            ServiceValidationError: Allocation would exceed 100%
        """
        used = self.calculate_used_budget(user_id, exclude_list_id)
        if used + budget_percentage > const.MAX_BUDGET_PERCENTAGE:
            available = floor_at_zero(const.MAX_BUDGET_PERCENTAGE - used)
            raise ServiceValidationError(
                translation_domain=const.DOMAIN,
                translation_key=const.TRANS_KEY_ERROR_BUDGET_ALLOCATION_EXCEEDED,
                translation_placeholders={
                    "requested": f"{budget_percentage:g}",
                    "available": f"{available:g}",
                },
            )

    async def async_recalculate_user_budget(self, user_id: str) -> UserData:
        """Store usedBudget/remainingBudget for a user's owned lists.

        Raises:
            HomeAssistantError: Storage unavailable or repeated conflict
        """
        for attempt in range(1, 3):
            user, revision = self.get_user(user_id)
            used = self.calculate_used_budget(user_id)
            user[const.DATA_USER_USED_BUDGET] = used
            user[const.DATA_USER_REMAINING_BUDGET] = round_money(
                floor_at_zero(const.MAX_BUDGET_PERCENTAGE - used)
            )
            try:
                revisions = await self.store.async_commit(
                    [DocumentChange(const.DATA_USERS, user_id, revision, user)]
                )
            except RevisionConflictError as err:
                if attempt == 1:
                    continue
                raise HomeAssistantError(
                    translation_domain=const.DOMAIN,
                    translation_key=const.TRANS_KEY_ERROR_CONCURRENT_UPDATE,
                    translation_placeholders={"name": user_id},
                ) from err
            except StorageUnavailableError as err:
                raise self.storage_error() from err
            user[const.DATA_REVISION] = revisions[user_id]
            const.LOGGER.debug(
                "DEBUG: User '%s' budget allocation used=%s remaining=%s",
                user_id,
                user[const.DATA_USER_USED_BUDGET],
                user[const.DATA_USER_REMAINING_BUDGET],
            )
            return user  # type: ignore[return-value]

        raise HomeAssistantError(f"User '{user_id}' was not updated")

"""Ledger Manager - Completion recording and task list lifecycle.

This manager handles all ledger-related operations:
- Recording completions/uncompletions for a date (merge algorithm)
- Direct status changes on one task instance
- Remaining budget consumption
- Creating/updating and deleting task lists
- Event emission for ledger and list changes

ARCHITECTURE:
- LedgerManager = STATEFUL orchestration (store, locks, events)
- LedgerEngine / EarningsEngine / StatusEngine = Pure logic (STATELESS)
- UserManager plans the balance documents committed with each action
- DayManager listens to LEDGER_UPDATED and refreshes projections

Every action commits the task list and the affected users in one atomic
store commit; a failed save leaves both untouched.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
import uuid

from homeassistant.exceptions import HomeAssistantError

from .. import const
from ..engines import (
    BalanceDelta,
    EarningsEngine,
    LedgerEngine,
    LedgerMergeResult,
    LedgerValidationError,
    StatusEngine,
    UserBalances,
)
from ..helpers.auth_helpers import (
    ensure_list_member,
    get_list_owner,
    list_member_ids,
)
from ..store import DocumentChange, RevisionConflictError, StorageUnavailableError
from ..utils.dt_utils import dt_now_iso
from ..utils.math_utils import clamp, parse_money
from .base_manager import BaseManager

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import HabitLedgerCoordinator
    from .user_manager import UserManager

# Source labels carried on BALANCE_CHANGED events
SOURCE_RECORD_COMPLETIONS = "record_completions"
SOURCE_UPDATE_TASK_STATUS = "update_task_status"


@dataclass
class _ActionOutcome:
    """What a ledger mutation produced, for events after the commit."""

    result: LedgerMergeResult
    deltas: dict[str, BalanceDelta] = field(default_factory=dict)
    balances: dict[str, UserBalances] = field(default_factory=dict)


class LedgerManager(BaseManager):
    """Manager for completion ledger actions and task list lifecycle.

    Responsibilities:
    - Merge day actions into the date bucket and persist them
    - Credit/reverse user balances through UserManager
    - Consume the list's remaining budget
    - Emit LEDGER_UPDATED, TASK_LIST_SAVED and TASK_LIST_DELETED events

    NOT responsible for:
    - Day projections (DayManager)
    - Ephemeral tasks (EphemeralManager)
    """

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: HabitLedgerCoordinator,
        user_manager: UserManager,
    ) -> None:
        """Initialize the LedgerManager.

        Args:
            hass: Home Assistant instance
            coordinator: The main HabitLedger coordinator
            user_manager: Manager planning balance updates
        """
        super().__init__(hass, coordinator)
        self._user_manager = user_manager

    async def async_setup(self) -> None:
        """No subscriptions; LedgerManager only emits."""

    # -------------------------------------------------------------------------------------
    # Ledger actions
    # -------------------------------------------------------------------------------------

    def _finalize_action(
        self,
        task_list: dict[str, Any],
        date_iso: str,
        result: LedgerMergeResult,
    ) -> tuple[dict[str, Any], list[DocumentChange], _ActionOutcome]:
        """Store the bucket, consume budget and plan balance documents."""
        budget = task_list.get(const.DATA_LIST_BUDGET)
        remaining = EarningsEngine.initialize_remaining_budget(
            task_list.get(const.DATA_LIST_REMAINING_BUDGET), budget
        )
        if result.completed_any:
            # One-way meter: uncompletions never refund the budget
            remaining = EarningsEngine.calculate_budget_consumption(
                remaining, budget, EarningsEngine.total_tasks(task_list)
            )
        task_list[const.DATA_LIST_REMAINING_BUDGET] = remaining
        LedgerEngine.store_bucket(task_list, date_iso, result.bucket)
        task_list[const.DATA_LIST_UPDATED_AT] = dt_now_iso()

        deltas = EarningsEngine.deltas_by_user(
            result.added_completers, result.removed_completers
        )
        changes, balances = self._user_manager.plan_balance_changes(deltas)
        return task_list, changes, _ActionOutcome(result, deltas, balances)

    def _after_action(
        self,
        task_list: dict[str, Any],
        date_iso: str,
        user_id: str,
        outcome: _ActionOutcome,
        source: str,
    ) -> float:
        """Log, emit events and return the net earnings of an action.

        Every member's Day is refreshed, since productivity and progress
        depend on the shared bucket.
        """
        list_id = task_list[const.DATA_LIST_ID]
        result = outcome.result
        earnings = EarningsEngine.net_earnings(
            result.added_completers, result.removed_completers
        )
        const.LOGGER.debug(
            "DEBUG: Ledger - List '%s' on %s: +%s/-%s completers, earnings %s",
            list_id,
            date_iso,
            len(result.added_completers),
            len(result.removed_completers),
            earnings,
        )
        if result.replayed:
            return 0.0
        self._user_manager.emit_balance_changes(outcome.balances, outcome.deltas, source)
        self.emit(
            const.SIGNAL_SUFFIX_LEDGER_UPDATED,
            list_id=list_id,
            date=date_iso,
            user_ids=sorted({user_id, *outcome.deltas, *list_member_ids(task_list)}),
            completed_keys=list(result.completed_keys),
        )
        return earnings

    async def async_record_completions(
        self,
        list_id: str,
        user_id: str,
        date_iso: str,
        day_actions: list[dict[str, Any]],
        just_completed_names: list[str] | None = None,
        just_uncompleted_names: list[str] | None = None,
        request_id: str | None = None,
    ) -> dict[str, Any]:
        """Record completions and uncompletions of a list's tasks for a date.

        Returns:
            {"task_list": updated list, "earnings": net value of this call}

        Raises:
            ServiceValidationError: List missing, bad date/count/status/key
            Unauthorized: User not a member of the list
            HomeAssistantError: Storage unavailable or repeated conflict
        """
        prize_share = self.coordinator.prize_share

        def _mutation(
            task_list: dict[str, Any],
        ) -> tuple[dict[str, Any] | None, list[DocumentChange], _ActionOutcome]:
            result = LedgerEngine.merge_day_actions(
                task_list,
                date_iso,
                day_actions,
                user_id=user_id,
                policy=EarningsEngine.build_award_policy(task_list, prize_share),
                just_completed_names=just_completed_names,
                just_uncompleted_names=just_uncompleted_names,
                request_id=request_id,
            )
            if result.replayed:
                return None, [], _ActionOutcome(result)
            return self._finalize_action(task_list, date_iso, result)

        task_list, outcome = await self.async_mutate_task_list(
            list_id, user_id, _mutation
        )
        earnings = self._after_action(
            task_list, date_iso, user_id, outcome, SOURCE_RECORD_COMPLETIONS
        )
        return {const.RESPONSE_TASK_LIST: task_list, const.RESPONSE_EARNINGS: earnings}

    async def async_update_task_status(
        self,
        list_id: str,
        user_id: str,
        date_iso: str,
        task_key: str,
        status: str,
    ) -> dict[str, Any]:
        """Set one task's status for a date, applying the implied count change.

        Returns:
            {"task_list": updated list, "earnings": net value of this call}
        """
        prize_share = self.coordinator.prize_share

        def _mutation(
            task_list: dict[str, Any],
        ) -> tuple[dict[str, Any], list[DocumentChange], _ActionOutcome]:
            result = LedgerEngine.apply_status_change(
                task_list,
                date_iso,
                task_key,
                status,
                user_id=user_id,
                policy=EarningsEngine.build_award_policy(task_list, prize_share),
            )
            return self._finalize_action(task_list, date_iso, result)

        task_list, outcome = await self.async_mutate_task_list(
            list_id, user_id, _mutation
        )
        earnings = self._after_action(
            task_list, date_iso, user_id, outcome, SOURCE_UPDATE_TASK_STATUS
        )
        return {const.RESPONSE_TASK_LIST: task_list, const.RESPONSE_EARNINGS: earnings}

    # -------------------------------------------------------------------------------------
    # Task list lifecycle
    # -------------------------------------------------------------------------------------

    def find_task_list_by_role(self, user_id: str, role: str) -> str | None:
        """Return the id of the list the user owns for a role, if any."""
        for list_id, task_list in self.store.data[const.DATA_TASK_LISTS].items():
            if task_list.get(const.DATA_LIST_ROLE) == role and get_list_owner(
                task_list
            ) == user_id:
                return list_id
        return None

    @staticmethod
    def _prepare_tasks(
        tasks: list[dict[str, Any]], regenerate_ids: bool = False
    ) -> list[dict[str, Any]]:
        """Copy blueprint tasks, assigning ids and validating times.

        Tasks copied from a template always get fresh ids.
        """
        prepared: list[dict[str, Any]] = []
        for task in tasks:
            item = {
                k: copy.deepcopy(v)
                for k, v in task.items()
                if k not in const.TASK_RUNTIME_FIELDS or k == const.DATA_TASK_STATUS
            }
            if regenerate_ids or not item.get(const.DATA_TASK_ID):
                item[const.DATA_TASK_ID] = str(uuid.uuid4())
            item[const.DATA_TASK_TIMES] = StatusEngine.validate_times(
                item.get(const.DATA_TASK_TIMES)
            )
            if const.DATA_TASK_STATUS in item:
                item[const.DATA_TASK_STATUS] = StatusEngine.validate_status(
                    item[const.DATA_TASK_STATUS]
                )
            prepared.append(item)
        return prepared

    def _build_task_list(
        self,
        existing: dict[str, Any] | None,
        list_id: str,
        user_id: str,
        fields: dict[str, Any],
    ) -> dict[str, Any]:
        """Apply upsert fields to a new or existing list document."""
        now = dt_now_iso()
        if existing is None:
            task_list: dict[str, Any] = {
                const.DATA_LIST_ID: list_id,
                const.DATA_LIST_NAME: fields.get(const.FIELD_NAME) or "",
                const.DATA_LIST_ROLE: fields.get(const.FIELD_ROLE)
                or f"{const.CADENCE_DAILY}{const.ROLE_SEPARATOR}{const.DEFAULT_ROLE_VARIANT}",
                const.DATA_LIST_BUDGET: None,
                const.DATA_LIST_BUDGET_PERCENTAGE: 0.0,
                const.DATA_LIST_REMAINING_BUDGET: None,
                const.DATA_LIST_TASKS: [],
                const.DATA_LIST_TEMPLATE_TASKS: [],
                const.DATA_LIST_USERS: [
                    {
                        const.DATA_MEMBER_USER_ID: user_id,
                        const.DATA_MEMBER_ROLE: const.MEMBER_ROLE_OWNER,
                    }
                ],
                const.DATA_LIST_COMPLETED_TASKS: {},
                const.DATA_LIST_EPHEMERAL_TASKS: {
                    const.DATA_EPHEMERAL_OPEN: [],
                    const.DATA_EPHEMERAL_CLOSED: [],
                },
                const.DATA_LIST_CREATED_AT: now,
            }
        else:
            task_list = existing
            if fields.get(const.FIELD_NAME) is not None:
                task_list[const.DATA_LIST_NAME] = fields[const.FIELD_NAME]
            if fields.get(const.FIELD_ROLE) is not None:
                task_list[const.DATA_LIST_ROLE] = fields[const.FIELD_ROLE]

        if const.FIELD_BUDGET in fields:
            new_budget = fields[const.FIELD_BUDGET]
            if parse_money(new_budget) != parse_money(
                task_list.get(const.DATA_LIST_BUDGET)
            ):
                # A new budget restarts the consumption meter
                task_list[const.DATA_LIST_REMAINING_BUDGET] = None
            task_list[const.DATA_LIST_BUDGET] = new_budget
        task_list[const.DATA_LIST_REMAINING_BUDGET] = (
            EarningsEngine.initialize_remaining_budget(
                task_list.get(const.DATA_LIST_REMAINING_BUDGET),
                task_list.get(const.DATA_LIST_BUDGET),
            )
        )

        if const.FIELD_BUDGET_PERCENTAGE in fields:
            task_list[const.DATA_LIST_BUDGET_PERCENTAGE] = clamp(
                float(fields[const.FIELD_BUDGET_PERCENTAGE]),
                0.0,
                float(const.MAX_BUDGET_PERCENTAGE),
            )

        template = fields.get(const.FIELD_TEMPLATE_TASKS)
        if template is not None:
            task_list[const.DATA_LIST_TEMPLATE_TASKS] = copy.deepcopy(template)
            if fields.get(const.FIELD_TASKS) is None:
                task_list[const.DATA_LIST_TASKS] = self._prepare_tasks(
                    template, regenerate_ids=True
                )
        if fields.get(const.FIELD_TASKS) is not None:
            task_list[const.DATA_LIST_TASKS] = self._prepare_tasks(
                fields[const.FIELD_TASKS]
            )

        task_list[const.DATA_LIST_UPDATED_AT] = now
        return task_list

    async def async_upsert_task_list(
        self,
        user_id: str,
        fields: dict[str, Any],
        list_id: str | None = None,
    ) -> dict[str, Any]:
        """Create or update a task list's blueprint and budget.

        Without an id, the list the user owns for the given role is updated,
        or a new one is created with the user as OWNER.

        Raises:
            ServiceValidationError: Unknown id, bad tasks, or budget allocation
                above 100%
            Unauthorized: User not a member of an existing list
            HomeAssistantError: Storage unavailable or repeated conflict
        """
        creating = False
        if list_id is None:
            role = fields.get(const.FIELD_ROLE)
            list_id = self.find_task_list_by_role(user_id, role) if role else None
            if list_id is None:
                creating = True
                list_id = str(uuid.uuid4())

        async with self.coordinator.list_lock(list_id):
            for attempt in range(1, 3):
                existing, revision = self.store.get_document(
                    const.DATA_TASK_LISTS, list_id
                )
                if existing is None and not creating:
                    raise self.not_found(const.LABEL_TASK_LIST, list_id)
                if existing is not None:
                    ensure_list_member(existing, user_id)

                owner_id = get_list_owner(existing) if existing else user_id
                if owner_id and const.FIELD_BUDGET_PERCENTAGE in fields:
                    self._user_manager.validate_budget_allocation(
                        owner_id, float(fields[const.FIELD_BUDGET_PERCENTAGE]), list_id
                    )
                try:
                    task_list = self._build_task_list(existing, list_id, user_id, fields)
                except LedgerValidationError as err:
                    raise self.validation_error(err) from err

                try:
                    revisions = await self.store.async_commit(
                        [
                            DocumentChange(
                                const.DATA_TASK_LISTS, list_id, revision, task_list
                            )
                        ]
                    )
                except RevisionConflictError as err:
                    if attempt == 1:
                        continue
                    raise HomeAssistantError(
                        translation_domain=const.DOMAIN,
                        translation_key=const.TRANS_KEY_ERROR_CONCURRENT_UPDATE,
                        translation_placeholders={"name": list_id},
                    ) from err
                except StorageUnavailableError as err:
                    raise self.storage_error() from err

                task_list[const.DATA_REVISION] = revisions[list_id]
                const.LOGGER.info(
                    "INFO: Task list '%s' %s (%s tasks, budget %s)",
                    list_id,
                    "created" if existing is None else "updated",
                    len(task_list.get(const.DATA_LIST_TASKS) or []),
                    task_list.get(const.DATA_LIST_BUDGET),
                )
                self.emit(
                    const.SIGNAL_SUFFIX_TASK_LIST_SAVED,
                    list_id=list_id,
                    owner_id=get_list_owner(task_list),
                )
                return task_list

        raise HomeAssistantError(f"Task list '{list_id}' was not saved")

    async def async_delete_task_list(self, list_id: str, user_id: str) -> bool:
        """Delete a task list and notify listeners for budget recalculation.

        Raises:
            ServiceValidationError: List not found
            Unauthorized: User not a member of the list
            HomeAssistantError: Storage unavailable
        """
        async with self.coordinator.list_lock(list_id):
            task_list, revision = self.store.get_document(const.DATA_TASK_LISTS, list_id)
            if task_list is None:
                raise self.not_found(const.LABEL_TASK_LIST, list_id)
            ensure_list_member(task_list, user_id)
            try:
                await self.store.async_compare_and_swap(
                    const.DATA_TASK_LISTS, list_id, revision, None
                )
            except RevisionConflictError as err:
                raise HomeAssistantError(
                    translation_domain=const.DOMAIN,
                    translation_key=const.TRANS_KEY_ERROR_CONCURRENT_UPDATE,
                    translation_placeholders={"name": list_id},
                ) from err
            except StorageUnavailableError as err:
                raise self.storage_error() from err

        self.coordinator.release_list_lock(list_id)
        const.LOGGER.info("INFO: Task list '%s' deleted by user '%s'", list_id, user_id)
        self.emit(
            const.SIGNAL_SUFFIX_TASK_LIST_DELETED,
            list_id=list_id,
            owner_id=get_list_owner(task_list),
        )
        return True

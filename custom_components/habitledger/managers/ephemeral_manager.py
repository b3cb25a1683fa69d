"""Ephemeral Manager - Ad-hoc task operations on a list.

Applies add/update/close/reopen batches from EphemeralEngine to a list's
`ephemeralTasks` and persists them with the same lock and revision check
as ledger actions. Ephemeral tasks carry no earnings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import const
from ..engines import EphemeralEngine, EphemeralResult
from ..utils.dt_utils import dt_now_iso
from .base_manager import BaseManager

if TYPE_CHECKING:
    from ..store import DocumentChange


class EphemeralManager(BaseManager):
    """Manager for the ephemeral task store of each list."""

    async def async_setup(self) -> None:
        """No subscriptions needed."""

    async def async_apply_ops(
        self,
        list_id: str,
        user_id: str,
        ops: dict[str, Any],
    ) -> dict[str, Any]:
        """Apply a batch of ephemeral ops to a list.

        A batch in which every op is a no-op is not written.

        Returns:
            {"task_list": updated list}
        """

        def _mutation(
            task_list: dict[str, Any],
        ) -> tuple[dict[str, Any] | None, list[DocumentChange], EphemeralResult]:
            result = EphemeralEngine.apply_ops(
                task_list.get(const.DATA_LIST_EPHEMERAL_TASKS), ops
            )
            if not result.changed:
                return None, [], result
            task_list[const.DATA_LIST_EPHEMERAL_TASKS] = result.tasks
            task_list[const.DATA_LIST_UPDATED_AT] = dt_now_iso()
            return task_list, [], result

        task_list, result = await self.async_mutate_task_list(list_id, user_id, _mutation)
        for kind, task_id in result.skipped:
            if kind == const.FIELD_EPHEMERAL_ADD:
                # Re-sent add of a known id
                const.LOGGER.debug(
                    "DEBUG: Ephemeral task '%s' already on list '%s'", task_id, list_id
                )
                continue
            const.LOGGER.warning(
                "WARNING: Ephemeral '%s' on list '%s' skipped for task '%s' (unknown id or already applied)",
                kind,
                list_id,
                task_id,
            )
        const.LOGGER.debug(
            "DEBUG: Ephemeral ops on list '%s' applied: %s", list_id, result.applied
        )
        return {const.RESPONSE_TASK_LIST: task_list}

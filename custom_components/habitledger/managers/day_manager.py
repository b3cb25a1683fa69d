"""Day Manager - Read projections of the completion ledger.

Keeps one Day record per user per date (tasks, ticker, productivity,
progress, balance snapshots) in sync with the ledger:
- LEDGER_UPDATED → recompute the affected users' Day for that list and date
- TASK_LIST_DELETED → drop the list from every Day that references it

Projection refreshes are best-effort. The ledger is the source of truth and
a failed refresh is logged without failing the action that triggered it.
"""

from __future__ import annotations

from typing import Any

from homeassistant.exceptions import HomeAssistantError, ServiceValidationError

from .. import const
from ..engines import LedgerValidationError, ProjectionEngine
from ..helpers.auth_helpers import is_list_member
from ..store import StorageUnavailableError
from ..utils.dt_utils import dt_date_range, dt_parse_ledger_date, dt_year_bounds
from .base_manager import BaseManager


class DayManager(BaseManager):
    """Manager for per-user Day projections."""

    async def async_setup(self) -> None:
        """Subscribe to ledger and list lifecycle events."""
        self.listen(const.SIGNAL_SUFFIX_LEDGER_UPDATED, self._on_ledger_updated)
        self.listen(const.SIGNAL_SUFFIX_TASK_LIST_DELETED, self._on_task_list_deleted)

    async def _on_ledger_updated(self, payload: dict[str, Any]) -> None:
        list_id = payload["list_id"]
        date_iso = payload["date"]
        for user_id in payload.get("user_ids", []):
            await self.async_refresh_day(user_id, date_iso, [list_id])

    async def _on_task_list_deleted(self, payload: dict[str, Any]) -> None:
        list_id = payload["list_id"]
        for user_id, date_iso in sorted(self.store.find_days_with_list(list_id)):
            await self.async_refresh_day(
                user_id, date_iso, [], removed_list_ids=[list_id]
            )

    # -------------------------------------------------------------------------------------
    # Writes (best-effort)
    # -------------------------------------------------------------------------------------

    async def async_refresh_day(
        self,
        user_id: str,
        date_iso: str,
        list_ids: list[str],
        removed_list_ids: list[str] | None = None,
    ) -> dict[str, Any] | None:
        """Recompute and store a user's Day for some lists.

        Returns:
            The stored Day, or None when the refresh failed
        """
        task_lists = []
        for list_id in list_ids:
            task_list, _ = self.store.get_document(const.DATA_TASK_LISTS, list_id)
            if task_list is not None and is_list_member(task_list, user_id):
                task_lists.append(task_list)
        user, _ = self.store.get_document(const.DATA_USERS, user_id)

        try:
            day = ProjectionEngine.project_day(
                user_id,
                date_iso,
                task_lists,
                user,
                self.store.get_day(user_id, date_iso),
                removed_list_ids or (),
            )
            await self.store.async_put_day(user_id, date_iso, dict(day))
        except (LedgerValidationError, StorageUnavailableError) as err:
            const.LOGGER.warning(
                "WARNING: Day projection for user '%s' on %s not updated: %s",
                user_id,
                date_iso,
                err,
            )
            return None

        const.LOGGER.debug(
            "DEBUG: Day '%s' for user '%s': progress %s, earnings %s",
            date_iso,
            user_id,
            day["progress"],
            day["earnings"],
        )
        return dict(day)

    # -------------------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------------------

    def get_day(self, user_id: str, date_iso: str) -> dict[str, Any]:
        """Return a user's stored Day.

        Raises:
            ServiceValidationError: Invalid date or no Day stored for it
        """
        if dt_parse_ledger_date(date_iso) is None:
            raise self._invalid_date(date_iso)
        day = self.store.get_day(user_id, date_iso)
        if day is None:
            raise self.not_found(const.LABEL_DAY, date_iso)
        return day

    def get_days(
        self,
        user_id: str,
        start_date: str | None = None,
        end_date: str | None = None,
        year: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return Day summaries in a date range or calendar year, oldest first.

        Dates without a stored Day are omitted.

        Raises:
            ServiceValidationError: Missing or invalid range
        """
        if year is not None:
            start, end = dt_year_bounds(year)
        else:
            start = dt_parse_ledger_date(start_date)
            end = dt_parse_ledger_date(end_date)
            if start is None:
                raise self._invalid_date(str(start_date))
            if end is None:
                raise self._invalid_date(str(end_date))
            if end < start:
                raise self._invalid_date(f"{start_date}..{end_date}")

        days = self.store.get_days(user_id, dt_date_range(start, end))
        return [ProjectionEngine.summarize_day(day) for day in days]

    @staticmethod
    def _invalid_date(value: str) -> HomeAssistantError:
        return ServiceValidationError(
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_INVALID_DATE,
            translation_placeholders={"date": value},
        )

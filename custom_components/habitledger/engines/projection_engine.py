"""Projection Engine - Pure logic for the per-user daily summary.

This engine derives the read-optimized Day record from completion ledgers:
- Task snapshots of every list the user acted on that day
- Per-list productivity (completed blueprint tasks / blueprint size)
- Overall progress (mean productivity percentage)
- Earnings ticker (the user's own prize/profit per closed task)
- Balance snapshots and calendar period fields

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
A Day is a cache: it can always be rebuilt from the task lists.
"""

from __future__ import annotations

from collections.abc import Iterable
import copy
from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.dt_utils import (
    dt_ledger_year,
    dt_now_iso,
    dt_parse_ledger_date,
    dt_period_fields,
)
from ..utils.math_utils import calculate_percentage, parse_money, round_money
from .earnings_engine import EarningsEngine
from .ledger_engine import LedgerEngine, TaskKeyError
from .status_engine import StatusEngine

if TYPE_CHECKING:
    from ..type_defs import (
        DateBucket,
        DayData,
        ProductivityEntry,
        TickerEntry,
        UserData,
    )


class ProjectionEngine:
    """Pure logic engine for Day projections.

    All methods are static - no instance state.
    """

    # =========================================================================
    # TASK SNAPSHOTS
    # =========================================================================

    @staticmethod
    def build_day_tasks(list_id: str, bucket: DateBucket) -> list[dict[str, Any]]:
        """Return flat snapshots of a bucket's instances tagged with the list."""
        snapshots: list[dict[str, Any]] = []
        for instance in LedgerEngine.iter_instances(bucket):
            try:
                key = LedgerEngine.resolve_task_key(instance)
            except TaskKeyError:
                continue
            snapshot = copy.deepcopy(dict(instance))
            snapshot[const.DATA_SNAPSHOT_LIST_ID] = list_id
            snapshot[const.DATA_SNAPSHOT_KEY] = key
            snapshot[const.DATA_TASK_STATUS] = StatusEngine.derive_status(instance)
            snapshots.append(snapshot)
        return snapshots

    # =========================================================================
    # PRODUCTIVITY
    # =========================================================================

    @staticmethod
    def calculate_productivity(
        task_list: dict[str, Any],
        day_tasks: Iterable[dict[str, Any]],
    ) -> ProductivityEntry:
        """Count the list's blueprint tasks that are done in the day snapshots.

        Examples:
            2 blueprint tasks, 1 done → {"totalTasks": 2, "completedTasks": 1, "percentage": 50.0}
            empty blueprint → totalTasks 1
        """
        list_id = task_list.get(const.DATA_LIST_ID)
        blueprint_keys: set[str] = set()
        for task in task_list.get(const.DATA_LIST_TASKS) or []:
            try:
                blueprint_keys.add(LedgerEngine.resolve_task_key(task))
            except TaskKeyError:
                continue

        completed_keys: set[str] = set()
        for snapshot in day_tasks:
            if snapshot.get(const.DATA_SNAPSHOT_LIST_ID) != list_id:
                continue
            key = snapshot.get(const.DATA_SNAPSHOT_KEY)
            if key not in blueprint_keys:
                continue
            if StatusEngine.derive_status(snapshot) == const.TASK_STATUS_DONE:
                completed_keys.add(key)

        total = max(1, len(task_list.get(const.DATA_LIST_TASKS) or []))
        completed = len(completed_keys)
        return {
            "totalTasks": total,
            "completedTasks": completed,
            "percentage": calculate_percentage(completed, total),
        }

    @staticmethod
    def calculate_progress(productivity: dict[str, ProductivityEntry]) -> float:
        """Mean productivity percentage across lists (0.0 with no lists)."""
        if not productivity:
            return 0.0
        total = sum(
            entry.get(const.DATA_PRODUCTIVITY_PERCENTAGE, 0.0)
            for entry in productivity.values()
        )
        return round(total / len(productivity), const.PERCENTAGE_PRECISION)

    # =========================================================================
    # TICKER
    # =========================================================================

    @staticmethod
    def build_ticker(
        list_id: str,
        bucket: DateBucket,
        user_id: str,
    ) -> list[TickerEntry]:
        """One entry per closed instance the user earned on, with their totals."""
        ticker: list[TickerEntry] = []
        for instance in bucket.get(const.DATA_BUCKET_CLOSED_TASKS, []):
            completers = instance.get(const.DATA_TASK_COMPLETERS) or []
            if not any(c.get(const.DATA_COMPLETER_ID) == user_id for c in completers):
                continue
            try:
                task_id = LedgerEngine.resolve_task_key(instance)
            except TaskKeyError:
                continue
            earned = EarningsEngine.summarize_completers(completers, user_id)
            ticker.append(
                {
                    "listId": list_id,
                    "taskId": task_id,
                    "profit": earned.profit,
                    "prize": earned.prize,
                }
            )
        return ticker

    @staticmethod
    def merge_ticker(
        existing: Iterable[TickerEntry],
        fresh: Iterable[TickerEntry],
        recomputed_list_ids: Iterable[str],
    ) -> list[TickerEntry]:
        """Replace the ticker entries of recomputed lists with fresh ones.

        Entries are keyed by (listId, taskId); a key appears at most once.
        """
        recomputed = set(recomputed_list_ids)
        merged: dict[tuple[str, str], TickerEntry] = {}
        for entry in existing:
            if entry.get(const.DATA_TICKER_LIST_ID) in recomputed:
                continue
            merged[(entry[const.DATA_TICKER_LIST_ID], entry[const.DATA_TICKER_TASK_ID])] = entry
        for entry in fresh:
            merged[(entry[const.DATA_TICKER_LIST_ID], entry[const.DATA_TICKER_TASK_ID])] = entry
        return list(merged.values())

    # =========================================================================
    # DAY
    # =========================================================================

    @staticmethod
    def project_day(
        user_id: str,
        date_iso: str,
        task_lists: Iterable[dict[str, Any]],
        user: UserData | dict[str, Any] | None,
        existing_day: DayData | dict[str, Any] | None = None,
        removed_list_ids: Iterable[str] = (),
    ) -> DayData:
        """Rebuild a user's Day from the given lists.

        Lists passed in are recomputed; parts of the existing Day that belong
        to other lists are kept, except those in removed_list_ids.

        Args:
            user_id: User the Day belongs to
            date_iso: Ledger date "YYYY-MM-DD"
            task_lists: Lists to recompute
            user: User record for balance snapshots
            existing_day: Previously stored Day, if any
            removed_list_ids: Lists whose entries must be dropped

        Returns:
            The new Day record
        """
        day_date = LedgerEngine.validate_date(date_iso)
        existing = existing_day or {}
        lists = list(task_lists)
        dropped = {task_list.get(const.DATA_LIST_ID) for task_list in lists}
        dropped.update(removed_list_ids)

        tasks = [
            snapshot
            for snapshot in existing.get(const.DATA_DAY_TASKS) or []
            if snapshot.get(const.DATA_SNAPSHOT_LIST_ID) not in dropped
        ]
        productivity: dict[str, ProductivityEntry] = {
            list_id: entry
            for list_id, entry in (existing.get(const.DATA_DAY_PRODUCTIVITY) or {}).items()
            if list_id not in dropped
        }
        fresh_ticker: list[TickerEntry] = []

        for task_list in lists:
            list_id = task_list[const.DATA_LIST_ID]
            bucket, _ = LedgerEngine.migrate_bucket(
                (
                    (task_list.get(const.DATA_LIST_COMPLETED_TASKS) or {}).get(
                        dt_ledger_year(day_date)
                    )
                    or {}
                ).get(day_date)
            )
            list_tasks = ProjectionEngine.build_day_tasks(list_id, bucket)
            tasks.extend(list_tasks)
            productivity[list_id] = ProjectionEngine.calculate_productivity(
                task_list, list_tasks
            )
            fresh_ticker.extend(ProjectionEngine.build_ticker(list_id, bucket, user_id))

        ticker = ProjectionEngine.merge_ticker(
            existing.get(const.DATA_DAY_TICKER) or [], fresh_ticker, dropped
        )
        user = user or {}
        stash = round_money(parse_money(user.get(const.DATA_USER_STASH)))
        profit = round_money(parse_money(user.get(const.DATA_USER_PROFIT)))
        periods = dt_period_fields(dt_parse_ledger_date(day_date))  # type: ignore[arg-type]

        return {
            "date": day_date,
            "tasks": tasks,
            "ticker": ticker,
            "productivity": productivity,
            "progress": ProjectionEngine.calculate_progress(productivity),
            "balance": round_money(
                parse_money(user.get(const.DATA_USER_AVAILABLE_BALANCE))
            ),
            "stash": stash,
            "equity": round_money(stash + profit),
            "earnings": round_money(
                sum(entry.get(const.DATA_TICKER_PROFIT, 0.0) for entry in ticker)
            ),
            "week": periods["week"],
            "month": periods["month"],
            "quarter": periods["quarter"],
            "semester": periods["semester"],
            "updatedAt": dt_now_iso(),
        }

    @staticmethod
    def summarize_day(day: DayData | dict[str, Any]) -> dict[str, Any]:
        """Compact read shape of a Day for range queries."""
        return {
            "date": day.get(const.DATA_DAY_DATE),
            "progress": day.get(const.DATA_DAY_PROGRESS, 0.0),
            "earnings": day.get(const.DATA_DAY_EARNINGS, 0.0),
            "balance": day.get(const.DATA_DAY_BALANCE, 0.0),
            "stash": day.get(const.DATA_DAY_STASH, 0.0),
            "equity": day.get(const.DATA_DAY_EQUITY, 0.0),
            "completedTasks": sum(
                entry.get(const.DATA_PRODUCTIVITY_COMPLETED_TASKS, 0)
                for entry in (day.get(const.DATA_DAY_PRODUCTIVITY) or {}).values()
            ),
            "week": day.get(const.DATA_DAY_WEEK),
            "month": day.get(const.DATA_DAY_MONTH),
            "quarter": day.get(const.DATA_DAY_QUARTER),
            "semester": day.get(const.DATA_DAY_SEMESTER),
        }

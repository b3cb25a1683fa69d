"""Ledger Engine - Pure logic for the per-date completion ledger.

This engine provides stateless, pure Python functions for:
- Task identity resolution (id → localeKey → lowercased name)
- Legacy flat-array bucket migration into openTasks/closedTasks
- Merging a list's blueprint and incoming day actions into a date bucket
- Direct status changes on one task instance
- Partitioning by the closed predicate with sticky completedOn stamping

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions operate on passed-in dictionaries; callers hand in deep copies
and persist the result through the store.

Ledger layout on a task list:
    completedTasks = {"2025": {"2025-01-10": {"openTasks": [...], "closedTasks": [...]}}}
"""

from __future__ import annotations

from collections.abc import Iterable
import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, cast

from .. import const
from ..utils.dt_utils import dt_ledger_year, dt_now_iso, dt_parse_ledger_date
from .status_engine import (
    STATUS_ACTION_DECREMENT,
    STATUS_ACTION_INCREMENT,
    LedgerValidationError,
    StatusEngine,
)

if TYPE_CHECKING:
    from ..type_defs import CompleterData, DateBucket, TaskInstanceData
    from .earnings_engine import AwardPolicy


class TaskKeyError(LedgerValidationError):
    """Raised when a task has no id, localeKey or name to identify it."""

    def __init__(self, task: Any) -> None:
        """Initialize TaskKeyError."""
        super().__init__(
            const.TRANS_KEY_ERROR_UNRESOLVABLE_TASK_KEY,
            f"Task has no id, localeKey or name: {task!r}",
        )


class TaskNotFoundError(LookupError):
    """Raised when a task key matches nothing in the bucket or blueprint."""

    def __init__(self, task_key: str) -> None:
        """Initialize TaskNotFoundError."""
        self.task_key = task_key
        super().__init__(f"Task '{task_key}' not found")


# =============================================================================
# MERGE RESULT
# =============================================================================


@dataclass
class LedgerMergeResult:
    """Outcome of one ledger action on a date bucket.

    Attributes:
        bucket: The new DateBucket to persist
        completed_keys: Keys of instances that received an increment
        added_completers: Completer records appended by this action
        removed_completers: Completer records popped by this action
        migrated: True when the stored bucket was in the legacy flat form
        replayed: True when the request id was already applied (no mutation)
    """

    bucket: DateBucket
    completed_keys: list[str] = field(default_factory=list)
    added_completers: list[CompleterData] = field(default_factory=list)
    removed_completers: list[CompleterData] = field(default_factory=list)
    migrated: bool = False
    replayed: bool = False

    @property
    def completed_any(self) -> bool:
        """Whether at least one task was just completed by this action."""
        return bool(self.added_completers)

    @property
    def changed(self) -> bool:
        """Whether the action mutated any counts."""
        return bool(self.added_completers or self.removed_completers)


# =============================================================================
# LEDGER ENGINE
# =============================================================================


class LedgerEngine:
    """Pure logic engine for completion ledger merges.

    All methods are static - no instance state.
    """

    # =========================================================================
    # IDENTITY AND PREDICATES
    # =========================================================================

    @staticmethod
    def resolve_task_key(task: dict[str, Any]) -> str:
        """Return the identity key of a task: id, else localeKey, else name.

        Raises:
            TaskKeyError: All three fields are missing or empty

        Examples:
            resolve_task_key({"id": "t1", "name": "Read"}) → "t1"
            resolve_task_key({"localeKey": "meditate"}) → "meditate"
            resolve_task_key({"name": "Drink Water"}) → "drink water"
        """
        if not isinstance(task, dict):
            raise TaskKeyError(task)
        for key_field in (const.DATA_TASK_ID, const.DATA_TASK_LOCALE_KEY):
            value = task.get(key_field)
            if value not in (None, ""):
                return str(value)
        name = task.get(const.DATA_TASK_NAME)
        if isinstance(name, str) and name.strip():
            return name.strip().lower()
        raise TaskKeyError(task)

    @staticmethod
    def matches_name(task: dict[str, Any], names: set[str]) -> bool:
        """Return True if a task's name or key is in a lowercased name set."""
        name = task.get(const.DATA_TASK_NAME)
        if isinstance(name, str) and name.strip().lower() in names:
            return True
        try:
            return LedgerEngine.resolve_task_key(task).lower() in names
        except TaskKeyError:
            return False

    @staticmethod
    def is_closed(instance: dict[str, Any]) -> bool:
        """Closed predicate: status done or all repetitions counted."""
        status = StatusEngine.normalize_status(instance.get(const.DATA_TASK_STATUS))
        if status == const.TASK_STATUS_DONE:
            return True
        times = max(1, int(instance.get(const.DATA_TASK_TIMES) or 1))
        return int(instance.get(const.DATA_TASK_COUNT) or 0) >= times

    # =========================================================================
    # NORMALIZATION AND MIGRATION
    # =========================================================================

    @staticmethod
    def normalize_instance(raw: dict[str, Any]) -> TaskInstanceData:
        """Return a copy of a stored instance with runtime fields repaired.

        Older snapshots may lack `count` (derived from completers), carry a
        capitalised status, or a count above `times`.
        """
        instance = copy.deepcopy(raw)
        try:
            times = max(1, int(instance.get(const.DATA_TASK_TIMES) or 1))
        except (TypeError, ValueError):
            times = const.DEFAULT_TASK_TIMES
        completers = instance.get(const.DATA_TASK_COMPLETERS)
        if not isinstance(completers, list):
            completers = []
        try:
            count = int(instance[const.DATA_TASK_COUNT])
        except (KeyError, TypeError, ValueError):
            count = len(completers)
        count = max(0, min(count, times))

        instance[const.DATA_TASK_TIMES] = times
        instance[const.DATA_TASK_COMPLETERS] = completers
        instance[const.DATA_TASK_COUNT] = count
        instance[const.DATA_TASK_STATUS] = StatusEngine.derive_status(instance)
        return cast("TaskInstanceData", instance)

    @staticmethod
    def empty_bucket() -> DateBucket:
        """Return an empty DateBucket."""
        return {
            const.DATA_BUCKET_OPEN_TASKS: [],
            const.DATA_BUCKET_CLOSED_TASKS: [],
        }  # type: ignore[return-value]

    @staticmethod
    def migrate_bucket(raw: Any) -> tuple[DateBucket, bool]:
        """Return a stored bucket in open/closed form.

        The legacy form is a flat array of instances; it is partitioned by the
        closed predicate and reported as migrated so the caller writes it back.

        Returns:
            Tuple of (bucket, migrated)
        """
        if isinstance(raw, list):
            instances = LedgerEngine._load_instances(raw)
            open_tasks, closed_tasks = LedgerEngine._split(instances)
            bucket = LedgerEngine.empty_bucket()
            bucket[const.DATA_BUCKET_OPEN_TASKS] = open_tasks
            bucket[const.DATA_BUCKET_CLOSED_TASKS] = closed_tasks
            return bucket, True

        if not isinstance(raw, dict):
            return LedgerEngine.empty_bucket(), False

        instances = LedgerEngine._load_instances(
            item
            for bucket_key in (
                const.DATA_BUCKET_OPEN_TASKS,
                const.DATA_BUCKET_CLOSED_TASKS,
            )
            for item in raw.get(bucket_key) or []
        )
        open_tasks, closed_tasks = LedgerEngine._split(instances)
        bucket = LedgerEngine.empty_bucket()
        bucket[const.DATA_BUCKET_OPEN_TASKS] = open_tasks
        bucket[const.DATA_BUCKET_CLOSED_TASKS] = closed_tasks
        applied = raw.get(const.DATA_BUCKET_APPLIED_REQUESTS)
        if isinstance(applied, list):
            bucket[const.DATA_BUCKET_APPLIED_REQUESTS] = list(applied)
        return bucket, False

    @staticmethod
    def _load_instances(items: Iterable[Any]) -> list[TaskInstanceData]:
        """Normalize stored instances, dropping those without an identity key."""
        instances: list[TaskInstanceData] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                LedgerEngine.resolve_task_key(item)
            except TaskKeyError:
                const.LOGGER.warning(
                    "WARNING: Ledger - Dropping stored instance without key: %s",
                    item,
                )
                continue
            instances.append(LedgerEngine.normalize_instance(item))
        return instances

    @staticmethod
    def migrate_ledger(task_list: dict[str, Any]) -> int:
        """Migrate every legacy bucket of a list in place.

        Returns:
            Number of buckets rewritten
        """
        ledger = task_list.get(const.DATA_LIST_COMPLETED_TASKS)
        if not isinstance(ledger, dict):
            return 0
        migrated_count = 0
        for dates in ledger.values():
            if not isinstance(dates, dict):
                continue
            for date_iso, raw in list(dates.items()):
                if isinstance(raw, list):
                    dates[date_iso], _ = LedgerEngine.migrate_bucket(raw)
                    migrated_count += 1
        return migrated_count

    @staticmethod
    def validate_date(date_iso: Any) -> str:
        """Return a ledger date or raise LedgerValidationError."""
        if dt_parse_ledger_date(date_iso) is None:
            raise LedgerValidationError(
                const.TRANS_KEY_ERROR_INVALID_DATE,
                f"Invalid ledger date: {date_iso!r}",
                date=str(date_iso),
            )
        return cast("str", date_iso)

    @staticmethod
    def get_bucket(task_list: dict[str, Any], date_iso: str) -> tuple[DateBucket, bool]:
        """Load the bucket for a date, writing migrated buckets back.

        Returns:
            Tuple of (bucket, migrated)
        """
        LedgerEngine.validate_date(date_iso)
        ledger = task_list.get(const.DATA_LIST_COMPLETED_TASKS) or {}
        raw = (ledger.get(dt_ledger_year(date_iso)) or {}).get(date_iso)
        bucket, migrated = LedgerEngine.migrate_bucket(raw)
        if migrated:
            LedgerEngine.store_bucket(task_list, date_iso, bucket)
        return bucket, migrated

    @staticmethod
    def store_bucket(
        task_list: dict[str, Any], date_iso: str, bucket: DateBucket
    ) -> None:
        """Write a bucket to completedTasks[year][date]."""
        ledger = task_list.get(const.DATA_LIST_COMPLETED_TASKS)
        if not isinstance(ledger, dict):
            ledger = {}
            task_list[const.DATA_LIST_COMPLETED_TASKS] = ledger
        ledger.setdefault(dt_ledger_year(date_iso), {})[date_iso] = bucket

    # =========================================================================
    # INSTANCES
    # =========================================================================

    @staticmethod
    def instance_from_task(task: dict[str, Any]) -> TaskInstanceData:
        """Copy a blueprint task into a fresh, open ledger instance."""
        instance = {
            k: copy.deepcopy(v)
            for k, v in task.items()
            if k not in const.TASK_RUNTIME_FIELDS
        }
        instance[const.DATA_TASK_TIMES] = StatusEngine.validate_times(
            task.get(const.DATA_TASK_TIMES)
        )
        instance[const.DATA_TASK_COUNT] = 0
        instance[const.DATA_TASK_STATUS] = const.TASK_STATUS_OPEN
        instance[const.DATA_TASK_COMPLETERS] = []
        return cast("TaskInstanceData", instance)

    @staticmethod
    def iter_instances(bucket: DateBucket) -> Iterable[TaskInstanceData]:
        """Yield open instances then closed instances."""
        yield from bucket.get(const.DATA_BUCKET_OPEN_TASKS, [])
        yield from bucket.get(const.DATA_BUCKET_CLOSED_TASKS, [])

    @staticmethod
    def find_instance(
        instances: list[TaskInstanceData], task_key: str
    ) -> TaskInstanceData | None:
        """Find an instance by key, then by case-insensitive name."""
        wanted = task_key.strip().lower()
        for instance in instances:
            if LedgerEngine.resolve_task_key(instance) == task_key:
                return instance
        for instance in instances:
            if LedgerEngine.matches_name(instance, {wanted}):
                return instance
        return None

    @staticmethod
    def seed_from_blueprint(task_list: dict[str, Any]) -> list[TaskInstanceData]:
        """Return fresh instances for every keyed blueprint task of a list."""
        instances: list[TaskInstanceData] = []
        for task in task_list.get(const.DATA_LIST_TASKS) or []:
            try:
                LedgerEngine.resolve_task_key(task)
            except TaskKeyError:
                const.LOGGER.warning(
                    "WARNING: Ledger - Skipping blueprint task without key: %s",
                    task,
                )
                continue
            instances.append(LedgerEngine.instance_from_task(task))
        return instances

    @staticmethod
    def _blueprint_times(task_list: dict[str, Any]) -> dict[str, Any]:
        times_by_key: dict[str, Any] = {}
        for task in task_list.get(const.DATA_LIST_TASKS) or []:
            try:
                key = LedgerEngine.resolve_task_key(task)
            except TaskKeyError:
                continue
            times_by_key.setdefault(key, task.get(const.DATA_TASK_TIMES))
        return times_by_key

    @staticmethod
    def validate_action(action: dict[str, Any], blueprint_times: Any = None) -> None:
        """Reject a day action carrying a malformed times, count or status.

        The count bound is the action's own times, else the blueprint's.

        Raises:
            LedgerValidationError: A present field is out of range or unknown
        """
        times_value = action.get(const.DATA_TASK_TIMES)
        if times_value is None:
            times_value = blueprint_times
        times = StatusEngine.validate_times(times_value)
        if action.get(const.DATA_TASK_COUNT) is not None:
            StatusEngine.validate_count(action[const.DATA_TASK_COUNT], times)
        if action.get(const.DATA_TASK_STATUS) is not None:
            StatusEngine.validate_status(action[const.DATA_TASK_STATUS])

    @staticmethod
    def _merge_fields(instance: dict[str, Any], action: dict[str, Any]) -> None:
        """Copy non-runtime fields of an action onto an instance."""
        for key, value in action.items():
            if key in const.TASK_RUNTIME_FIELDS:
                continue
            if key == const.DATA_TASK_TIMES:
                value = StatusEngine.validate_times(value)
            instance[key] = copy.deepcopy(value)
        times = instance.get(const.DATA_TASK_TIMES) or 1
        if instance.get(const.DATA_TASK_COUNT, 0) > times:
            instance[const.DATA_TASK_COUNT] = times
            instance[const.DATA_TASK_STATUS] = const.TASK_STATUS_DONE

    @staticmethod
    def _record_increment(
        instance: dict[str, Any],
        user_id: str,
        policy: AwardPolicy | None,
        completed_at: str,
    ) -> CompleterData | None:
        """Apply one Increment and append its completer, if it moved count."""
        transition = StatusEngine.increment(
            instance[const.DATA_TASK_COUNT],
            instance[const.DATA_TASK_TIMES],
            instance[const.DATA_TASK_STATUS],
        )
        instance[const.DATA_TASK_STATUS] = transition.status
        if not transition.changed:
            return None
        instance[const.DATA_TASK_COUNT] = transition.count
        return LedgerEngine._append_completer(
            instance, user_id, policy, transition.count, completed_at
        )

    @staticmethod
    def _append_completer(
        instance: dict[str, Any],
        user_id: str,
        policy: AwardPolicy | None,
        time: int,
        completed_at: str,
    ) -> CompleterData:
        prize = profit = 0.0
        if policy is not None:
            award = policy.next_award()
            prize, profit = award.prize, award.profit
        completer: CompleterData = {
            "id": user_id,
            "earnings": profit,
            "prize": prize,
            "time": time,
            "completedAt": completed_at,
        }
        instance[const.DATA_TASK_COMPLETERS].append(completer)
        return completer

    @staticmethod
    def _record_decrement(instance: dict[str, Any]) -> CompleterData | None:
        """Apply one Decrement and pop the last completer."""
        transition = StatusEngine.decrement(
            instance[const.DATA_TASK_COUNT],
            instance[const.DATA_TASK_TIMES],
            instance[const.DATA_TASK_STATUS],
        )
        instance[const.DATA_TASK_COUNT] = transition.count
        instance[const.DATA_TASK_STATUS] = transition.status
        completers = instance[const.DATA_TASK_COMPLETERS]
        if transition.changed and completers:
            return completers.pop()
        return None

    # =========================================================================
    # PARTITION
    # =========================================================================

    @staticmethod
    def _split(
        instances: Iterable[TaskInstanceData],
    ) -> tuple[list[TaskInstanceData], list[TaskInstanceData]]:
        open_tasks: list[TaskInstanceData] = []
        closed_tasks: list[TaskInstanceData] = []
        for instance in instances:
            if LedgerEngine.is_closed(instance):
                closed_tasks.append(instance)
            else:
                open_tasks.append(instance)
        return open_tasks, closed_tasks

    @staticmethod
    def _partition(
        instances: Iterable[TaskInstanceData],
        date_iso: str,
        previous: DateBucket | None = None,
    ) -> DateBucket:
        """Partition instances and maintain completedOn.

        An instance entering closedTasks without completedOn is stamped with
        the action date; one already carrying it keeps the original. Any
        instance landing in openTasks loses completedOn.
        """
        open_tasks, closed_tasks = LedgerEngine._split(instances)
        for instance in closed_tasks:
            if not instance.get(const.DATA_TASK_COMPLETED_ON):
                instance[const.DATA_TASK_COMPLETED_ON] = date_iso
        for instance in open_tasks:
            instance.pop(const.DATA_TASK_COMPLETED_ON, None)
        bucket = LedgerEngine.empty_bucket()
        bucket[const.DATA_BUCKET_OPEN_TASKS] = open_tasks
        bucket[const.DATA_BUCKET_CLOSED_TASKS] = closed_tasks
        if previous is not None and const.DATA_BUCKET_APPLIED_REQUESTS in previous:
            bucket[const.DATA_BUCKET_APPLIED_REQUESTS] = list(
                previous[const.DATA_BUCKET_APPLIED_REQUESTS]
            )
        return bucket

    @staticmethod
    def _remember_request(bucket: DateBucket, request_id: str | None) -> None:
        if not request_id:
            return
        applied = list(bucket.get(const.DATA_BUCKET_APPLIED_REQUESTS, []))
        applied.append(request_id)
        bucket[const.DATA_BUCKET_APPLIED_REQUESTS] = applied[
            -const.MAX_APPLIED_REQUESTS :
        ]

    # =========================================================================
    # MERGE
    # =========================================================================

    @staticmethod
    def merge_day_actions(
        task_list: dict[str, Any],
        date_iso: str,
        day_actions: list[dict[str, Any]],
        *,
        user_id: str,
        policy: AwardPolicy | None = None,
        just_completed_names: list[str] | None = None,
        just_uncompleted_names: list[str] | None = None,
        request_id: str | None = None,
        completed_at: str | None = None,
    ) -> LedgerMergeResult:
        """Merge incoming day actions into the date bucket of a list.

        Steps:
            1. Load the bucket (migrating the legacy flat form)
            2. Seed an empty bucket from the list's blueprint tasks
            3. Insert actions whose key is not yet in the bucket
            4. Increment actions selected by just_completed_names (all
               actions when no filter is given); merge non-runtime fields of
               every action
            5. Decrement instances named in just_uncompleted_names
            6. Partition by the closed predicate, stamping completedOn
            7. Leave persistence to store_bucket

        Client-sent count/status fields are validated, then ignored; progress
        only moves through Increment and Decrement. An Increment on a closed
        instance is a no-op, and a request id already applied to this bucket
        returns the bucket untouched.

        Args:
            task_list: List document (not mutated)
            date_iso: Ledger date "YYYY-MM-DD"
            day_actions: Task snapshots sent by the client
            user_id: User credited for increments
            policy: Award policy for completer earnings; None awards nothing
            just_completed_names: Names/keys to increment, or None for all
            just_uncompleted_names: Names/keys to decrement
            request_id: Optional idempotency token
            completed_at: Timestamp for new completers (defaults to now)

        Returns:
            LedgerMergeResult with the new bucket and completer changes

        Raises:
            LedgerValidationError: Invalid date, times, count or status
            TaskKeyError: An action has no resolvable key
        """
        LedgerEngine.validate_date(date_iso)
        stamp = completed_at or dt_now_iso()
        blueprint_times = LedgerEngine._blueprint_times(task_list)
        keyed_actions = []
        for action in day_actions or []:
            key = LedgerEngine.resolve_task_key(action)
            LedgerEngine.validate_action(action, blueprint_times.get(key))
            keyed_actions.append((key, action))

        working_list = copy.deepcopy(task_list)
        previous, migrated = LedgerEngine.get_bucket(working_list, date_iso)

        if request_id and request_id in previous.get(
            const.DATA_BUCKET_APPLIED_REQUESTS, []
        ):
            const.LOGGER.debug(
                "DEBUG: Ledger - Request '%s' already applied on %s, skipping",
                request_id,
                date_iso,
            )
            return LedgerMergeResult(bucket=previous, migrated=migrated, replayed=True)

        instances: list[TaskInstanceData] = list(LedgerEngine.iter_instances(previous))
        if not instances:
            instances = LedgerEngine.seed_from_blueprint(working_list)

        index: dict[str, TaskInstanceData] = {}
        for instance in instances:
            index.setdefault(LedgerEngine.resolve_task_key(instance), instance)

        result = LedgerMergeResult(bucket=previous, migrated=migrated)
        name_filter = (
            None
            if just_completed_names is None
            else {name.strip().lower() for name in just_completed_names}
        )

        incremented: set[str] = set()
        for key, action in keyed_actions:
            instance = index.get(key)
            if instance is None:
                instance = LedgerEngine.instance_from_task(action)
                instances.append(instance)
                index[key] = instance
            LedgerEngine._merge_fields(instance, action)

            selected = name_filter is None or LedgerEngine.matches_name(
                action, name_filter
            )
            if not selected or key in incremented:
                continue
            incremented.add(key)
            completer = LedgerEngine._record_increment(instance, user_id, policy, stamp)
            if completer is not None:
                result.completed_keys.append(key)
                result.added_completers.append(completer)

        for name in just_uncompleted_names or []:
            wanted = name.strip().lower()
            target = index.get(name) or next(
                (
                    inst
                    for inst in instances
                    if LedgerEngine.matches_name(inst, {wanted})
                ),
                None,
            )
            if target is None:
                const.LOGGER.warning(
                    "WARNING: Ledger - Cannot uncomplete '%s' on %s: not in ledger",
                    name,
                    date_iso,
                )
                continue
            removed = LedgerEngine._record_decrement(target)
            if removed is not None:
                result.removed_completers.append(removed)

        result.bucket = LedgerEngine._partition(instances, date_iso, previous)
        LedgerEngine._remember_request(result.bucket, request_id)
        return result

    @staticmethod
    def apply_status_change(
        task_list: dict[str, Any],
        date_iso: str,
        task_key: str,
        status: str,
        *,
        user_id: str,
        policy: AwardPolicy | None = None,
        completed_at: str | None = None,
    ) -> LedgerMergeResult:
        """Set the status of one instance, applying the implied count change.

        An empty bucket is seeded from the blueprint first, as in
        merge_day_actions, so the other tasks of the date are kept.

        Raises:
            LedgerValidationError: Invalid date or status
            TaskNotFoundError: Key matches neither the bucket nor the blueprint
        """
        LedgerEngine.validate_date(date_iso)
        stamp = completed_at or dt_now_iso()
        working_list = copy.deepcopy(task_list)
        previous, migrated = LedgerEngine.get_bucket(working_list, date_iso)
        instances: list[TaskInstanceData] = list(LedgerEngine.iter_instances(previous))
        if not instances:
            instances = LedgerEngine.seed_from_blueprint(working_list)

        instance = LedgerEngine.find_instance(instances, task_key)
        if instance is None:
            wanted = task_key.strip().lower()
            blueprint = next(
                (
                    task
                    for task in working_list.get(const.DATA_LIST_TASKS) or []
                    if LedgerEngine.resolve_task_key(task) == task_key
                    or LedgerEngine.matches_name(task, {wanted})
                ),
                None,
            )
            if blueprint is None:
                raise TaskNotFoundError(task_key)
            instance = LedgerEngine.instance_from_task(blueprint)
            instances.append(instance)

        transition = StatusEngine.plan_status_change(
            instance[const.DATA_TASK_COUNT],
            instance[const.DATA_TASK_TIMES],
            instance[const.DATA_TASK_STATUS],
            status,
        )
        result = LedgerMergeResult(bucket=previous, migrated=migrated)
        key = LedgerEngine.resolve_task_key(instance)

        if transition.action == STATUS_ACTION_INCREMENT:
            instance[const.DATA_TASK_COUNT] = transition.count
            completer = LedgerEngine._append_completer(
                instance, user_id, policy, transition.count, stamp
            )
            result.completed_keys.append(key)
            result.added_completers.append(completer)
        elif transition.action == STATUS_ACTION_DECREMENT:
            instance[const.DATA_TASK_COUNT] = transition.count
            completers = instance[const.DATA_TASK_COMPLETERS]
            if completers:
                result.removed_completers.append(completers.pop())
        instance[const.DATA_TASK_STATUS] = transition.status

        result.bucket = LedgerEngine._partition(instances, date_iso, previous)
        return result

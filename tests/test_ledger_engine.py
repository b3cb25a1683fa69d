"""Tests for LedgerEngine - pure logic, no HA fixtures needed.

These tests validate the date bucket merge: seeding from the blueprint,
increments and decrements, completedOn stickiness, legacy migration and
request replay.
"""

from __future__ import annotations

import pytest

from custom_components.habitledger import const
from custom_components.habitledger.engines.earnings_engine import AwardPolicy
from custom_components.habitledger.engines.ledger_engine import (
    LedgerEngine,
    TaskKeyError,
    TaskNotFoundError,
)
from custom_components.habitledger.engines.status_engine import LedgerValidationError
from tests.helpers import LEDGER_DATE, OWNER_ID, get_bucket, make_task_list, make_tasks

STAMP = "2025-01-10T08:00:00+00:00"


def _merge(task_list, actions, date_iso=LEDGER_DATE, **kwargs):
    """Merge and store the resulting bucket on the list, like LedgerManager."""
    kwargs.setdefault("user_id", OWNER_ID)
    kwargs.setdefault("completed_at", STAMP)
    result = LedgerEngine.merge_day_actions(task_list, date_iso, actions, **kwargs)
    LedgerEngine.store_bucket(task_list, date_iso, result.bucket)
    return result


def _keys(instances):
    return [LedgerEngine.resolve_task_key(instance) for instance in instances]


# =============================================================================
# TEST: IDENTITY
# =============================================================================


class TestResolveTaskKey:
    """Test task identity resolution."""

    def test_id_wins(self) -> None:
        """id is preferred over localeKey and name."""
        assert LedgerEngine.resolve_task_key(
            {"id": "t1", "localeKey": "read", "name": "Read"}
        ) == "t1"

    def test_locale_key_then_name(self) -> None:
        """localeKey, then lowercased name."""
        assert LedgerEngine.resolve_task_key({"localeKey": "meditate"}) == "meditate"
        assert LedgerEngine.resolve_task_key({"name": "Drink Water"}) == "drink water"

    def test_unresolvable(self) -> None:
        """A task with no identity raises TaskKeyError."""
        with pytest.raises(TaskKeyError) as err:
            LedgerEngine.resolve_task_key({"times": 2})
        assert err.value.translation_key == const.TRANS_KEY_ERROR_UNRESOLVABLE_TASK_KEY

    def test_closed_predicate(self) -> None:
        """Closed means status done or count >= times."""
        assert LedgerEngine.is_closed({"status": "done", "count": 0, "times": 3})
        assert LedgerEngine.is_closed({"status": "steady", "count": 2, "times": 2})
        assert not LedgerEngine.is_closed({"status": "open", "count": 1, "times": 2})


# =============================================================================
# TEST: MERGE
# =============================================================================


class TestMergeDayActions:
    """Test merge_day_actions."""

    def test_first_completion_seeds_blueprint(self) -> None:
        """An empty bucket is seeded from the blueprint, then one task closes."""
        task_list = make_task_list(make_tasks("Read", "Walk"))
        result = _merge(task_list, [{"id": "t1", "name": "Read"}])

        bucket = get_bucket(task_list)
        assert _keys(bucket["openTasks"]) == ["t2"]
        assert _keys(bucket["closedTasks"]) == ["t1"]
        closed = bucket["closedTasks"][0]
        assert closed["count"] == 1
        assert closed["status"] == const.TASK_STATUS_DONE
        assert closed["completedOn"] == LEDGER_DATE
        assert closed["completers"][0]["id"] == OWNER_ID
        assert closed["completers"][0]["time"] == 1
        assert result.completed_keys == ["t1"]
        assert result.completed_any

    def test_input_list_not_mutated(self) -> None:
        """The caller's list is left untouched."""
        task_list = make_task_list(make_tasks("Read"))
        LedgerEngine.merge_day_actions(
            task_list, LEDGER_DATE, [{"id": "t1"}], user_id=OWNER_ID
        )
        assert task_list["completedTasks"] == {}

    def test_unknown_action_is_inserted(self) -> None:
        """A task added after the date was first used is appended."""
        task_list = make_task_list(make_tasks("Read"))
        _merge(task_list, [{"id": "t1"}])
        _merge(task_list, [{"id": "t9", "name": "Stretch"}])

        bucket = get_bucket(task_list)
        assert sorted(_keys(bucket["closedTasks"])) == ["t1", "t9"]

    def test_times_three_progression(self) -> None:
        """Three calls record counts 1, 2, 3; the third closes the task."""
        task_list = make_task_list(make_tasks("Pushups", times=3))
        action = [{"id": "t1", "name": "Pushups"}]

        _merge(task_list, action)
        first = get_bucket(task_list)["openTasks"][0]
        assert (first["count"], first["status"]) == (1, const.TASK_STATUS_IN_PROGRESS)

        _merge(task_list, action)
        second = get_bucket(task_list)["openTasks"][0]
        assert (second["count"], second["status"]) == (2, const.TASK_STATUS_IN_PROGRESS)

        _merge(task_list, action)
        bucket = get_bucket(task_list)
        assert bucket["openTasks"] == []
        third = bucket["closedTasks"][0]
        assert (third["count"], third["status"]) == (3, const.TASK_STATUS_DONE)
        assert [c["time"] for c in third["completers"]] == [1, 2, 3]
        assert third["completedOn"] == LEDGER_DATE

    def test_duplicate_action_counts_once(self) -> None:
        """The same key twice in one call increments once."""
        task_list = make_task_list(make_tasks("Pushups", times=3))
        result = _merge(task_list, [{"id": "t1"}, {"id": "t1"}])
        assert len(result.added_completers) == 1

    def test_completing_closed_task_is_noop(self) -> None:
        """Re-sending a completed task adds no completer."""
        task_list = make_task_list(make_tasks("Read"))
        _merge(task_list, [{"id": "t1"}])
        result = _merge(task_list, [{"id": "t1"}])
        assert not result.changed
        assert len(get_bucket(task_list)["closedTasks"][0]["completers"]) == 1

    def test_client_count_is_ignored(self) -> None:
        """count/status sent by the client do not move progress."""
        task_list = make_task_list(make_tasks("Read", times=3))
        _merge(task_list, [{"id": "t1", "count": 3, "status": "done"}])
        instance = get_bucket(task_list)["openTasks"][0]
        assert instance["count"] == 1

    @pytest.mark.parametrize(
        ("action", "translation_key"),
        [
            ({"id": "t1", "count": -5}, const.TRANS_KEY_ERROR_INVALID_COUNT),
            ({"id": "t1", "count": 4}, const.TRANS_KEY_ERROR_INVALID_COUNT),
            ({"id": "t1", "count": "many"}, const.TRANS_KEY_ERROR_INVALID_COUNT),
            ({"id": "t1", "times": 0}, const.TRANS_KEY_ERROR_INVALID_COUNT),
            ({"id": "t1", "status": "bogus"}, const.TRANS_KEY_ERROR_INVALID_STATUS),
        ],
    )
    def test_malformed_client_fields_rejected(self, action, translation_key) -> None:
        """Bad count/status/times fail before the ledger is touched."""
        task_list = make_task_list(make_tasks("Read", times=3))
        with pytest.raises(LedgerValidationError) as err:
            _merge(task_list, [{"id": "t2"}, action])
        assert err.value.translation_key == translation_key
        assert task_list["completedTasks"] == {}

    def test_count_bounded_by_action_times(self) -> None:
        """An action's own times widens the count bound."""
        task_list = make_task_list(make_tasks("Read", times=1))
        result = _merge(task_list, [{"id": "t1", "times": 5, "count": 4}])
        assert result.completed_keys == ["t1"]

    def test_name_filter(self) -> None:
        """Only names in just_completed_names are incremented."""
        task_list = make_task_list(make_tasks("Read", "Walk"))
        result = _merge(
            task_list,
            [{"id": "t1", "name": "Read"}, {"id": "t2", "name": "Walk"}],
            just_completed_names=["walk"],
        )
        assert result.completed_keys == ["t2"]

    def test_uncomplete_done_task(self) -> None:
        """Uncompleting pops the completer and reopens the task."""
        task_list = make_task_list(make_tasks("Read", "Walk"))
        _merge(task_list, [{"id": "t1", "name": "Read"}])

        result = _merge(
            task_list,
            [{"id": "t1", "name": "Read"}],
            just_completed_names=[],
            just_uncompleted_names=["Read"],
        )

        bucket = get_bucket(task_list)
        assert bucket["closedTasks"] == []
        reopened = next(i for i in bucket["openTasks"] if i["id"] == "t1")
        assert reopened["count"] == 0
        assert reopened["status"] == const.TASK_STATUS_OPEN
        assert reopened["completers"] == []
        assert "completedOn" not in reopened
        assert len(result.removed_completers) == 1

    def test_uncomplete_unknown_is_skipped(self) -> None:
        """Uncompleting a task not in the ledger does nothing."""
        task_list = make_task_list(make_tasks("Read"))
        result = _merge(
            task_list, [], just_completed_names=[], just_uncompleted_names=["Nope"]
        )
        assert not result.changed

    def test_completed_on_sticky(self) -> None:
        """A task still closed keeps its original completedOn."""
        task_list = make_task_list(make_tasks("Read"))
        _merge(task_list, [{"id": "t1"}])
        bucket = get_bucket(task_list)
        bucket["closedTasks"][0]["completedOn"] = "2025-01-09"

        _merge(task_list, [{"id": "t1"}])
        assert get_bucket(task_list)["closedTasks"][0]["completedOn"] == "2025-01-09"

    def test_reclose_after_reopen_stamps_again(self) -> None:
        """Reopening clears completedOn; the next close stamps anew."""
        task_list = make_task_list(make_tasks("Read"))
        _merge(task_list, [{"id": "t1"}])
        get_bucket(task_list)["closedTasks"][0]["completedOn"] = "2025-01-09"
        _merge(task_list, [], just_completed_names=[], just_uncompleted_names=["t1"])
        _merge(task_list, [{"id": "t1"}])
        assert get_bucket(task_list)["closedTasks"][0]["completedOn"] == LEDGER_DATE

    def test_awards_from_policy(self) -> None:
        """Completers carry prize and profit from the award policy."""
        task_list = make_task_list(make_tasks("Read"), role="weekly.default", budget=400)
        policy = AwardPolicy(profit_per_task=100.0, prize_share=0.5, prize_pool=400.0)
        result = _merge(task_list, [{"id": "t1"}], policy=policy)
        completer = result.added_completers[0]
        assert completer["prize"] == 50.0
        assert completer["earnings"] == 50.0

    def test_request_replay(self) -> None:
        """A request id already applied returns the bucket untouched."""
        task_list = make_task_list(make_tasks("Read", times=2))
        _merge(task_list, [{"id": "t1"}], request_id="req-1")
        result = _merge(task_list, [{"id": "t1"}], request_id="req-1")
        assert result.replayed
        assert not result.changed
        assert get_bucket(task_list)["openTasks"][0]["count"] == 1
        assert get_bucket(task_list)["appliedRequests"] == ["req-1"]

    def test_applied_requests_bounded(self) -> None:
        """Only the most recent request ids are kept."""
        task_list = make_task_list(make_tasks("Read"))
        for index in range(const.MAX_APPLIED_REQUESTS + 5):
            _merge(task_list, [], request_id=f"req-{index}")
        applied = get_bucket(task_list)["appliedRequests"]
        assert len(applied) == const.MAX_APPLIED_REQUESTS
        assert applied[-1] == f"req-{const.MAX_APPLIED_REQUESTS + 4}"

    @pytest.mark.parametrize("bad_date", ["2025-1-10", "2025-02-30", "", "tomorrow"])
    def test_invalid_date(self, bad_date) -> None:
        """Malformed dates fail before anything is touched."""
        task_list = make_task_list(make_tasks("Read"))
        with pytest.raises(LedgerValidationError) as err:
            _merge(task_list, [{"id": "t1"}], date_iso=bad_date)
        assert err.value.translation_key == const.TRANS_KEY_ERROR_INVALID_DATE

    def test_unresolvable_action(self) -> None:
        """An action without identity is rejected."""
        task_list = make_task_list(make_tasks("Read"))
        with pytest.raises(TaskKeyError):
            _merge(task_list, [{"times": 1}])


# =============================================================================
# TEST: MIGRATION
# =============================================================================


class TestMigration:
    """Test legacy flat-array buckets."""

    LEGACY = [
        {"id": "t1", "name": "Read", "count": 1, "times": 1, "status": "Done"},
        {"id": "t2", "name": "Walk", "times": 2, "completers": [{"id": "u"}]},
    ]

    def test_migrate_bucket(self) -> None:
        """Flat arrays are partitioned by the closed predicate."""
        bucket, migrated = LedgerEngine.migrate_bucket(self.LEGACY)
        assert migrated
        assert _keys(bucket["closedTasks"]) == ["t1"]
        assert _keys(bucket["openTasks"]) == ["t2"]
        assert bucket["closedTasks"][0]["status"] == const.TASK_STATUS_DONE
        # count derived from completers when missing
        assert bucket["openTasks"][0]["count"] == 1

    def test_migrate_ledger_in_place(self) -> None:
        """Every legacy bucket of a list is rewritten."""
        task_list = make_task_list(make_tasks("Read", "Walk"))
        task_list["completedTasks"] = {
            "2025": {LEDGER_DATE: list(self.LEGACY), "2025-01-11": []}
        }
        assert LedgerEngine.migrate_ledger(task_list) == 2
        assert isinstance(get_bucket(task_list), dict)

    def test_merge_on_legacy_bucket(self) -> None:
        """A merge migrates first and reports it."""
        task_list = make_task_list(make_tasks("Read", "Walk"))
        task_list["completedTasks"] = {"2025": {LEDGER_DATE: list(self.LEGACY)}}
        result = _merge(task_list, [{"id": "t2"}])
        assert result.migrated
        assert sorted(_keys(get_bucket(task_list)["closedTasks"])) == ["t1", "t2"]

    def test_keyless_instance_dropped(self) -> None:
        """A stored instance without id, localeKey or name is discarded."""
        legacy = [*self.LEGACY, {"count": 1, "times": 1, "status": "done"}]
        bucket, _ = LedgerEngine.migrate_bucket(legacy)
        assert _keys(LedgerEngine.iter_instances(bucket)) == ["t2", "t1"]

    def test_keyless_instance_does_not_block_date(self) -> None:
        """Merging on a date holding a keyless record still works."""
        task_list = make_task_list(make_tasks("Read", "Walk"))
        task_list["completedTasks"] = {
            "2025": {
                LEDGER_DATE: {
                    "openTasks": [{"count": 0, "times": 1, "status": "open"}],
                    "closedTasks": [],
                }
            }
        }
        result = _merge(task_list, [{"id": "t1"}])
        assert result.completed_keys == ["t1"]
        bucket = get_bucket(task_list)
        assert _keys(bucket["closedTasks"]) == ["t1"]
        # nothing usable was stored, so the blueprint seeds the date
        assert _keys(bucket["openTasks"]) == ["t2"]


# =============================================================================
# TEST: DIRECT STATUS CHANGE
# =============================================================================


class TestApplyStatusChange:
    """Test apply_status_change."""

    def test_done_from_blueprint(self) -> None:
        """Setting done on an untouched task creates and closes the instance."""
        task_list = make_task_list(make_tasks("Read", "Walk"))
        result = LedgerEngine.apply_status_change(
            task_list, LEDGER_DATE, "t1", "done", user_id=OWNER_ID
        )
        closed = result.bucket["closedTasks"]
        assert _keys(closed) == ["t1"]
        assert closed[0]["count"] == 1
        assert closed[0]["completedOn"] == LEDGER_DATE
        assert len(result.added_completers) == 1
        # the rest of the blueprint is seeded alongside
        assert _keys(result.bucket["openTasks"]) == ["t2"]

    def test_seeded_bucket_survives_later_merge(self) -> None:
        """Tasks seeded by a status change stay in the date bucket."""
        task_list = make_task_list(make_tasks("Read", "Walk", "Stretch"))
        result = LedgerEngine.apply_status_change(
            task_list, LEDGER_DATE, "t2", "steady", user_id=OWNER_ID
        )
        LedgerEngine.store_bucket(task_list, LEDGER_DATE, result.bucket)
        _merge(task_list, [{"id": "t3"}])
        bucket = get_bucket(task_list)
        assert _keys(bucket["openTasks"]) == ["t1", "t2"]
        assert _keys(bucket["closedTasks"]) == ["t3"]

    def test_reopen_done_task(self) -> None:
        """Leaving done pops the completer."""
        task_list = make_task_list(make_tasks("Read"))
        _merge(task_list, [{"id": "t1"}])
        result = LedgerEngine.apply_status_change(
            task_list, LEDGER_DATE, "Read", "open", user_id=OWNER_ID
        )
        instance = result.bucket["openTasks"][0]
        assert instance["count"] == 0
        assert instance["status"] == const.TASK_STATUS_OPEN
        assert len(result.removed_completers) == 1

    def test_manual_status(self) -> None:
        """A manual status is stored without touching count."""
        task_list = make_task_list(make_tasks("Read", times=2))
        result = LedgerEngine.apply_status_change(
            task_list, LEDGER_DATE, "t1", "steady", user_id=OWNER_ID
        )
        instance = result.bucket["openTasks"][0]
        assert instance["status"] == const.TASK_STATUS_STEADY
        assert instance["count"] == 0
        assert not result.changed

    def test_unknown_task(self) -> None:
        """A key matching nothing raises TaskNotFoundError."""
        task_list = make_task_list(make_tasks("Read"))
        with pytest.raises(TaskNotFoundError):
            LedgerEngine.apply_status_change(
                task_list, LEDGER_DATE, "nope", "done", user_id=OWNER_ID
            )

"""Service-level tests: ledger actions, task list lifecycle and Day queries."""

from __future__ import annotations

from typing import Any

import pytest
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ServiceValidationError, Unauthorized
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.habitledger import const
from custom_components.habitledger.coordinator import HabitLedgerCoordinator
from tests.helpers import (
    LEDGER_DATE,
    OTHER_USER_ID,
    OWNER_ID,
    call_service,
    get_bucket,
    make_tasks,
)


async def _create_list(
    hass: HomeAssistant,
    *names: str,
    role: str = "daily.default",
    budget: float | None = 100,
    times: int = 1,
    **extra: Any,
) -> dict[str, Any]:
    response = await call_service(
        hass,
        const.SERVICE_UPSERT_TASK_LIST,
        {
            const.FIELD_NAME: "Morning",
            const.FIELD_ROLE: role,
            const.FIELD_BUDGET: budget,
            const.FIELD_TASKS: make_tasks(*names, times=times),
            **extra,
        },
    )
    return response[const.RESPONSE_TASK_LIST]


async def _record(
    hass: HomeAssistant,
    list_id: str,
    day_actions: list[dict[str, Any]],
    user_id: str | None = OWNER_ID,
    **extra: Any,
) -> dict[str, Any]:
    return await call_service(
        hass,
        const.SERVICE_RECORD_COMPLETIONS,
        {
            const.FIELD_TASK_LIST_ID: list_id,
            const.FIELD_DATE: extra.pop("date", LEDGER_DATE),
            const.FIELD_DAY_ACTIONS: day_actions,
            **extra,
        },
        user_id=user_id,
    )


# =============================================================================
# SETUP
# =============================================================================


async def test_services_registered(
    hass: HomeAssistant, init_integration: MockConfigEntry
) -> None:
    """All services exist after setup and go away on unload."""
    for service in (
        const.SERVICE_RECORD_COMPLETIONS,
        const.SERVICE_UPDATE_TASK_STATUS,
        const.SERVICE_EPHEMERAL_TASKS,
        const.SERVICE_DELETE_TASK_LIST,
        const.SERVICE_UPSERT_TASK_LIST,
        const.SERVICE_GET_DAY,
        const.SERVICE_GET_DAYS,
    ):
        assert hass.services.has_service(const.DOMAIN, service)

    assert await hass.config_entries.async_unload(init_integration.entry_id)
    await hass.async_block_till_done()
    assert not hass.services.has_service(const.DOMAIN, const.SERVICE_GET_DAY)


# =============================================================================
# RECORD COMPLETIONS
# =============================================================================


async def test_daily_completion_earnings_and_budget(
    hass: HomeAssistant, coordinator: HabitLedgerCoordinator
) -> None:
    """Completing one of two daily tasks on a 100 budget earns 100/2/30."""
    task_list = await _create_list(hass, "Read", "Walk")
    assert task_list[const.DATA_LIST_REMAINING_BUDGET] == 100.0

    response = await _record(hass, task_list["id"], [{"id": "t1"}])

    assert response[const.RESPONSE_EARNINGS] == pytest.approx(1.6667, abs=1e-3)
    updated = response[const.RESPONSE_TASK_LIST]
    assert updated[const.DATA_LIST_REMAINING_BUDGET] == 50.0
    bucket = get_bucket(updated)
    assert [t["id"] for t in bucket["closedTasks"]] == ["t1"]
    assert [t["id"] for t in bucket["openTasks"]] == ["t2"]
    completer = bucket["closedTasks"][0]["completers"][0]
    assert completer["id"] == OWNER_ID

    user = coordinator.store.data[const.DATA_USERS][OWNER_ID]
    assert user["equity"] == pytest.approx(1.6667, abs=1e-3)


async def test_completion_projects_day(hass: HomeAssistant, init_integration) -> None:
    """The Day of the acting user follows the ledger."""
    task_list = await _create_list(hass, "Read", "Walk")
    await _record(hass, task_list["id"], [{"id": "t1"}])

    response = await call_service(
        hass, const.SERVICE_GET_DAY, {const.FIELD_DATE: LEDGER_DATE}
    )
    day = response[const.RESPONSE_DAY]
    assert day["progress"] == 50.0
    assert [(e["listId"], e["taskId"]) for e in day["ticker"]] == [
        (task_list["id"], "t1")
    ]
    assert day["earnings"] > 0


async def test_weekly_completion(hass: HomeAssistant, init_integration) -> None:
    """A weekly 400 budget over one task is worth 100 per completion."""
    task_list = await _create_list(hass, "Clean", role="weekly.default", budget=400)
    response = await _record(hass, task_list["id"], [{"id": "t1"}])
    assert response[const.RESPONSE_EARNINGS] == pytest.approx(100.0)


async def test_repeated_task_progresses(hass: HomeAssistant, init_integration) -> None:
    """A times=3 task stays open until its third completion."""
    task_list = await _create_list(hass, "Water", times=3)
    for expected_count in (1, 2):
        response = await _record(hass, task_list["id"], [{"id": "t1"}])
        instance = get_bucket(response[const.RESPONSE_TASK_LIST])["openTasks"][0]
        assert instance["count"] == expected_count
        assert instance["status"] == "in-progress"

    response = await _record(hass, task_list["id"], [{"id": "t1"}])
    bucket = get_bucket(response[const.RESPONSE_TASK_LIST])
    assert bucket["openTasks"] == []
    assert bucket["closedTasks"][0]["count"] == 3
    assert len(bucket["closedTasks"][0]["completers"]) == 3


async def test_uncomplete_reverses_without_refund(
    hass: HomeAssistant, init_integration
) -> None:
    """Uncompleting reverses the stored earnings but not the budget."""
    task_list = await _create_list(hass, "Read", "Walk")
    await _record(hass, task_list["id"], [{"id": "t1"}])

    response = await _record(
        hass,
        task_list["id"],
        [],
        just_completed_names=[],
        just_uncompleted_names=["Read"],
    )
    assert response[const.RESPONSE_EARNINGS] == pytest.approx(-1.6667, abs=1e-3)
    updated = response[const.RESPONSE_TASK_LIST]
    assert updated[const.DATA_LIST_REMAINING_BUDGET] == 50.0
    assert get_bucket(updated)["closedTasks"] == []


async def test_request_replay_is_ignored(hass: HomeAssistant, init_integration) -> None:
    """A request id already applied earns nothing the second time."""
    task_list = await _create_list(hass, "Water", times=3)
    first = await _record(hass, task_list["id"], [{"id": "t1"}], request_id="req-1")
    second = await _record(hass, task_list["id"], [{"id": "t1"}], request_id="req-1")

    assert first[const.RESPONSE_EARNINGS] > 0
    assert second[const.RESPONSE_EARNINGS] == 0.0
    assert get_bucket(second[const.RESPONSE_TASK_LIST])["openTasks"][0]["count"] == 1


async def test_unknown_list(hass: HomeAssistant, init_integration) -> None:
    """Actions on a missing list are rejected."""
    with pytest.raises(ServiceValidationError) as err:
        await _record(hass, "missing", [{"id": "t1"}])
    assert err.value.translation_key == const.TRANS_KEY_ERROR_NOT_FOUND


async def test_invalid_date(hass: HomeAssistant, init_integration) -> None:
    """Dates must be zero-padded ISO."""
    task_list = await _create_list(hass, "Read")
    with pytest.raises(ServiceValidationError) as err:
        await _record(hass, task_list["id"], [{"id": "t1"}], date="2025-1-10")
    assert err.value.translation_key == const.TRANS_KEY_ERROR_INVALID_DATE


async def test_malformed_count_rejected(
    hass: HomeAssistant, coordinator: HabitLedgerCoordinator
) -> None:
    """A negative count is rejected and nothing is written."""
    task_list = await _create_list(hass, "Read")
    with pytest.raises(ServiceValidationError) as err:
        await _record(hass, task_list["id"], [{"id": "t1", "count": -5}])
    assert err.value.translation_key == const.TRANS_KEY_ERROR_INVALID_COUNT

    stored = coordinator.store.data[const.DATA_TASK_LISTS][task_list["id"]]
    assert stored[const.DATA_LIST_COMPLETED_TASKS] == {}
    assert stored[const.DATA_LIST_REMAINING_BUDGET] == 100.0


async def test_action_refreshes_every_member_day(
    hass: HomeAssistant, coordinator: HabitLedgerCoordinator
) -> None:
    """Members who did not act still get the updated progress."""
    task_list = await _create_list(hass, "Read", "Walk")
    stored = coordinator.store.data[const.DATA_TASK_LISTS][task_list["id"]]
    stored[const.DATA_LIST_USERS].append(
        {
            const.DATA_MEMBER_USER_ID: OTHER_USER_ID,
            const.DATA_MEMBER_ROLE: const.MEMBER_ROLE_COLLABORATOR,
        }
    )

    await _record(hass, task_list["id"], [{"id": "t1"}])

    day = coordinator.store.get_day(OTHER_USER_ID, LEDGER_DATE)
    assert day is not None
    assert day["progress"] == 50.0
    assert day["ticker"] == []


async def test_non_member_rejected(hass: HomeAssistant, init_integration) -> None:
    """Only members of a list may act on it."""
    task_list = await _create_list(hass, "Read")
    with pytest.raises(Unauthorized):
        await _record(hass, task_list["id"], [{"id": "t1"}], user_id=OTHER_USER_ID)


async def test_missing_user_rejected(hass: HomeAssistant, init_integration) -> None:
    """A call with neither user_id nor a context user is rejected."""
    with pytest.raises(Unauthorized):
        await call_service(
            hass,
            const.SERVICE_GET_DAY,
            {const.FIELD_DATE: LEDGER_DATE},
            user_id=None,
        )


# =============================================================================
# UPDATE TASK STATUS
# =============================================================================


async def test_status_done_records_completion(
    hass: HomeAssistant, init_integration
) -> None:
    """Setting done on an untouched task credits one completion."""
    task_list = await _create_list(hass, "Read", "Walk")
    response = await call_service(
        hass,
        const.SERVICE_UPDATE_TASK_STATUS,
        {
            const.FIELD_TASK_LIST_ID: task_list["id"],
            const.FIELD_TASK_KEY: "t2",
            const.FIELD_STATUS: "done",
            const.FIELD_DATE: LEDGER_DATE,
        },
    )
    assert response[const.RESPONSE_EARNINGS] == pytest.approx(1.6667, abs=1e-3)
    bucket = get_bucket(response[const.RESPONSE_TASK_LIST])
    assert [t["id"] for t in bucket["closedTasks"]] == ["t2"]
    assert [t["id"] for t in bucket["openTasks"]] == ["t1"]


async def test_status_unknown_task(hass: HomeAssistant, init_integration) -> None:
    """A key matching nothing is NotFound."""
    task_list = await _create_list(hass, "Read")
    with pytest.raises(ServiceValidationError) as err:
        await call_service(
            hass,
            const.SERVICE_UPDATE_TASK_STATUS,
            {
                const.FIELD_TASK_LIST_ID: task_list["id"],
                const.FIELD_TASK_KEY: "nope",
                const.FIELD_STATUS: "done",
                const.FIELD_DATE: LEDGER_DATE,
            },
        )
    assert err.value.translation_key == const.TRANS_KEY_ERROR_NOT_FOUND


# =============================================================================
# TASK LIST LIFECYCLE
# =============================================================================


async def test_upsert_by_role_updates_existing(
    hass: HomeAssistant, coordinator: HabitLedgerCoordinator
) -> None:
    """Upserting the same role again updates the owner's list."""
    first = await _create_list(hass, "Read")
    second = await _create_list(hass, "Read", "Walk", budget=200)
    assert second["id"] == first["id"]
    assert len(second["tasks"]) == 2
    assert second[const.DATA_LIST_REMAINING_BUDGET] == 200.0
    assert len(coordinator.store.data[const.DATA_TASK_LISTS]) == 1


async def test_budget_allocation_tracked_and_capped(
    hass: HomeAssistant, coordinator: HabitLedgerCoordinator
) -> None:
    """Owned budget percentages may not add up past 100."""
    await _create_list(hass, "Read", **{const.FIELD_BUDGET_PERCENTAGE: 70})
    user = coordinator.store.data[const.DATA_USERS][OWNER_ID]
    assert user["usedBudget"] == 70.0
    assert user["remainingBudget"] == 30.0

    with pytest.raises(ServiceValidationError) as err:
        await _create_list(
            hass, "Clean", role="weekly.default", **{const.FIELD_BUDGET_PERCENTAGE: 40}
        )
    assert err.value.translation_key == const.TRANS_KEY_ERROR_BUDGET_ALLOCATION_EXCEEDED
    assert err.value.translation_placeholders == {"requested": "40", "available": "30"}


async def test_delete_task_list(
    hass: HomeAssistant, coordinator: HabitLedgerCoordinator
) -> None:
    """Deletion needs the confirmation flag and removes the list."""
    task_list = await _create_list(hass, "Read")
    list_id = task_list["id"]

    response = await call_service(
        hass,
        const.SERVICE_DELETE_TASK_LIST,
        {const.FIELD_TASK_LIST_ID: list_id, const.FIELD_DELETE_TASK_LIST: False},
    )
    assert response == {const.RESPONSE_DELETED: False}
    assert list_id in coordinator.store.data[const.DATA_TASK_LISTS]

    response = await call_service(
        hass,
        const.SERVICE_DELETE_TASK_LIST,
        {const.FIELD_TASK_LIST_ID: list_id, const.FIELD_DELETE_TASK_LIST: True},
    )
    assert response == {const.RESPONSE_DELETED: True}
    assert list_id not in coordinator.store.data[const.DATA_TASK_LISTS]


async def test_delete_drops_list_from_days(
    hass: HomeAssistant, init_integration
) -> None:
    """Days no longer reference a deleted list."""
    task_list = await _create_list(hass, "Read", "Walk")
    await _record(hass, task_list["id"], [{"id": "t1"}])
    await call_service(
        hass,
        const.SERVICE_DELETE_TASK_LIST,
        {const.FIELD_TASK_LIST_ID: task_list["id"], const.FIELD_DELETE_TASK_LIST: True},
    )

    response = await call_service(
        hass, const.SERVICE_GET_DAY, {const.FIELD_DATE: LEDGER_DATE}
    )
    day = response[const.RESPONSE_DAY]
    assert day["ticker"] == []
    assert day["productivity"] == {}


# =============================================================================
# EPHEMERAL TASKS
# =============================================================================


async def test_ephemeral_lifecycle(hass: HomeAssistant, init_integration) -> None:
    """Ad-hoc tasks can be added, closed and reopened."""
    task_list = await _create_list(hass, "Read")
    list_id = task_list["id"]

    async def _ops(**ops: Any) -> dict[str, Any]:
        response = await call_service(
            hass,
            const.SERVICE_EPHEMERAL_TASKS,
            {const.FIELD_TASK_LIST_ID: list_id, **ops},
        )
        return response[const.RESPONSE_TASK_LIST][const.DATA_LIST_EPHEMERAL_TASKS]

    tasks = await _ops(add={"id": "e1", "name": "Buy milk"})
    assert [t["id"] for t in tasks["open"]] == ["e1"]

    tasks = await _ops(close={"id": "e1"})
    assert tasks["open"] == []
    assert tasks["closed"][0]["completedOn"]

    tasks = await _ops(reopen={"id": "e1"})
    assert [t["id"] for t in tasks["open"]] == ["e1"]
    assert "completedOn" not in tasks["open"][0]


# =============================================================================
# DAY QUERIES
# =============================================================================


async def test_get_day_errors(hass: HomeAssistant, init_integration) -> None:
    """Unknown and malformed dates are rejected."""
    with pytest.raises(ServiceValidationError) as err:
        await call_service(hass, const.SERVICE_GET_DAY, {const.FIELD_DATE: LEDGER_DATE})
    assert err.value.translation_key == const.TRANS_KEY_ERROR_NOT_FOUND

    with pytest.raises(ServiceValidationError) as err:
        await call_service(hass, const.SERVICE_GET_DAY, {const.FIELD_DATE: "10/01/2025"})
    assert err.value.translation_key == const.TRANS_KEY_ERROR_INVALID_DATE


async def test_get_days(hass: HomeAssistant, init_integration) -> None:
    """Summaries by year or by range, oldest first."""
    task_list = await _create_list(hass, "Read", "Walk")
    await _record(hass, task_list["id"], [{"id": "t1"}], date="2025-01-11")
    await _record(hass, task_list["id"], [{"id": "t2"}])

    response = await call_service(hass, const.SERVICE_GET_DAYS, {const.FIELD_YEAR: 2025})
    assert [d["date"] for d in response[const.RESPONSE_DAYS]] == [
        "2025-01-10",
        "2025-01-11",
    ]

    response = await call_service(
        hass,
        const.SERVICE_GET_DAYS,
        {const.FIELD_START_DATE: "2025-01-11", const.FIELD_END_DATE: "2025-01-31"},
    )
    assert [d["date"] for d in response[const.RESPONSE_DAYS]] == ["2025-01-11"]

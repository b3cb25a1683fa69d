# File: services.py
"""Defines the services of the HabitLedger integration.

These services are the transport for ledger actions: recording completions,
changing a task's status, ephemeral task ops and task list lifecycle, plus
read queries over Day projections. Every service acts for one user, the
explicit `user_id` field or else the user behind the call context.
"""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant.core import (
    HomeAssistant,
    ServiceCall,
    ServiceResponse,
    SupportsResponse,
)
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv

from . import const
from .coordinator import HabitLedgerCoordinator
from .helpers.auth_helpers import resolve_user_id
from .helpers.entity_helpers import get_first_habitledger_entry

# --- Service Schemas ---
_TASK_LIST = vol.All(cv.ensure_list, [dict])
_EPHEMERAL_OPS = vol.Any(dict, [dict])

RECORD_COMPLETIONS_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_TASK_LIST_ID): cv.string,
        vol.Required(const.FIELD_DAY_ACTIONS): _TASK_LIST,
        vol.Required(const.FIELD_DATE): cv.string,
        vol.Optional(const.FIELD_JUST_COMPLETED_NAMES): vol.All(
            cv.ensure_list, [cv.string]
        ),
        vol.Optional(const.FIELD_JUST_UNCOMPLETED_NAMES): vol.All(
            cv.ensure_list, [cv.string]
        ),
        vol.Optional(const.FIELD_REQUEST_ID): cv.string,
        vol.Optional(const.FIELD_USER_ID): cv.string,
    }
)

UPDATE_TASK_STATUS_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_TASK_LIST_ID): cv.string,
        vol.Required(const.FIELD_TASK_KEY): cv.string,
        vol.Required(const.FIELD_STATUS): cv.string,
        vol.Required(const.FIELD_DATE): cv.string,
        vol.Optional(const.FIELD_USER_ID): cv.string,
    }
)

EPHEMERAL_TASKS_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_TASK_LIST_ID): cv.string,
        vol.Optional(const.FIELD_EPHEMERAL_ADD): _EPHEMERAL_OPS,
        vol.Optional(const.FIELD_EPHEMERAL_UPDATE): _EPHEMERAL_OPS,
        vol.Optional(const.FIELD_EPHEMERAL_CLOSE): _EPHEMERAL_OPS,
        vol.Optional(const.FIELD_EPHEMERAL_REOPEN): _EPHEMERAL_OPS,
        vol.Optional(const.FIELD_USER_ID): cv.string,
    }
)

DELETE_TASK_LIST_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_TASK_LIST_ID): cv.string,
        vol.Required(const.FIELD_DELETE_TASK_LIST): cv.boolean,
        vol.Optional(const.FIELD_USER_ID): cv.string,
    }
)

UPSERT_TASK_LIST_SCHEMA = vol.Schema(
    {
        vol.Optional(const.FIELD_TASK_LIST_ID): cv.string,
        vol.Optional(const.FIELD_NAME): cv.string,
        vol.Optional(const.FIELD_ROLE): cv.string,
        vol.Optional(const.FIELD_BUDGET): vol.Any(None, vol.Coerce(float)),
        vol.Optional(const.FIELD_BUDGET_PERCENTAGE): vol.Coerce(float),
        vol.Optional(const.FIELD_TASKS): _TASK_LIST,
        vol.Optional(const.FIELD_TEMPLATE_TASKS): _TASK_LIST,
        vol.Optional(const.FIELD_USER_ID): cv.string,
    }
)

GET_DAY_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_DATE): cv.string,
        vol.Optional(const.FIELD_USER_ID): cv.string,
    }
)

GET_DAYS_SCHEMA = vol.Schema(
    {
        vol.Exclusive(const.FIELD_YEAR, "range"): vol.Coerce(int),
        vol.Exclusive(const.FIELD_START_DATE, "range"): cv.string,
        vol.Optional(const.FIELD_END_DATE): cv.string,
        vol.Optional(const.FIELD_USER_ID): cv.string,
    }
)

# Services that mutate data return a response only when asked for one
_MUTATING_SERVICES = (
    (const.SERVICE_RECORD_COMPLETIONS, RECORD_COMPLETIONS_SCHEMA),
    (const.SERVICE_UPDATE_TASK_STATUS, UPDATE_TASK_STATUS_SCHEMA),
    (const.SERVICE_EPHEMERAL_TASKS, EPHEMERAL_TASKS_SCHEMA),
    (const.SERVICE_DELETE_TASK_LIST, DELETE_TASK_LIST_SCHEMA),
    (const.SERVICE_UPSERT_TASK_LIST, UPSERT_TASK_LIST_SCHEMA),
)
_QUERY_SERVICES = (
    (const.SERVICE_GET_DAY, GET_DAY_SCHEMA),
    (const.SERVICE_GET_DAYS, GET_DAYS_SCHEMA),
)


def _get_coordinator(hass: HomeAssistant, service: str) -> HabitLedgerCoordinator:
    """Return the coordinator of the first entry or raise."""
    entry_id = get_first_habitledger_entry(hass)
    if not entry_id:
        const.LOGGER.warning("WARNING: %s: No HabitLedger entry found", service)
        raise HomeAssistantError(
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_NO_ENTRY,
        )
    return hass.data[const.DOMAIN][entry_id][const.COORDINATOR]


def async_setup_services(hass: HomeAssistant):
    """Register HabitLedger services."""

    async def handle_record_completions(call: ServiceCall) -> ServiceResponse:
        """Handle recording completions and uncompletions for a date."""
        coordinator = _get_coordinator(hass, const.SERVICE_RECORD_COMPLETIONS)
        user_id = resolve_user_id(call)
        list_id = call.data[const.FIELD_TASK_LIST_ID]

        response = await coordinator.ledger_manager.async_record_completions(
            list_id,
            user_id,
            call.data[const.FIELD_DATE],
            call.data[const.FIELD_DAY_ACTIONS],
            just_completed_names=call.data.get(const.FIELD_JUST_COMPLETED_NAMES),
            just_uncompleted_names=call.data.get(const.FIELD_JUST_UNCOMPLETED_NAMES),
            request_id=call.data.get(const.FIELD_REQUEST_ID),
        )
        const.LOGGER.info(
            "INFO: Completions recorded on task list '%s' for %s by user '%s'. Earnings: %s",
            list_id,
            call.data[const.FIELD_DATE],
            user_id,
            response[const.RESPONSE_EARNINGS],
        )
        return response

    async def handle_update_task_status(call: ServiceCall) -> ServiceResponse:
        """Handle setting one task's status for a date."""
        coordinator = _get_coordinator(hass, const.SERVICE_UPDATE_TASK_STATUS)
        user_id = resolve_user_id(call)
        list_id = call.data[const.FIELD_TASK_LIST_ID]
        task_key = call.data[const.FIELD_TASK_KEY]

        response = await coordinator.ledger_manager.async_update_task_status(
            list_id,
            user_id,
            call.data[const.FIELD_DATE],
            task_key,
            call.data[const.FIELD_STATUS],
        )
        const.LOGGER.info(
            "INFO: Task '%s' on task list '%s' set to '%s' by user '%s'",
            task_key,
            list_id,
            call.data[const.FIELD_STATUS],
            user_id,
        )
        return response

    async def handle_ephemeral_tasks(call: ServiceCall) -> ServiceResponse:
        """Handle a batch of ephemeral task ops."""
        coordinator = _get_coordinator(hass, const.SERVICE_EPHEMERAL_TASKS)
        user_id = resolve_user_id(call)
        ops = {
            kind: call.data[kind]
            for kind in (
                const.FIELD_EPHEMERAL_ADD,
                const.FIELD_EPHEMERAL_UPDATE,
                const.FIELD_EPHEMERAL_CLOSE,
                const.FIELD_EPHEMERAL_REOPEN,
            )
            if kind in call.data
        }
        return await coordinator.ephemeral_manager.async_apply_ops(
            call.data[const.FIELD_TASK_LIST_ID], user_id, ops
        )

    async def handle_delete_task_list(call: ServiceCall) -> ServiceResponse:
        """Handle deleting a task list."""
        coordinator = _get_coordinator(hass, const.SERVICE_DELETE_TASK_LIST)
        user_id = resolve_user_id(call)
        list_id = call.data[const.FIELD_TASK_LIST_ID]

        if not call.data[const.FIELD_DELETE_TASK_LIST]:
            const.LOGGER.warning(
                "WARNING: Delete Task List: '%s' not deleted, confirmation flag is false",
                list_id,
            )
            return {const.RESPONSE_DELETED: False}

        deleted = await coordinator.ledger_manager.async_delete_task_list(
            list_id, user_id
        )
        return {const.RESPONSE_DELETED: deleted}

    async def handle_upsert_task_list(call: ServiceCall) -> ServiceResponse:
        """Handle creating or updating a task list."""
        coordinator = _get_coordinator(hass, const.SERVICE_UPSERT_TASK_LIST)
        user_id = resolve_user_id(call)
        fields: dict[str, Any] = {
            key: value
            for key, value in call.data.items()
            if key not in (const.FIELD_TASK_LIST_ID, const.FIELD_USER_ID)
        }

        task_list = await coordinator.ledger_manager.async_upsert_task_list(
            user_id, fields, call.data.get(const.FIELD_TASK_LIST_ID)
        )
        return {const.RESPONSE_TASK_LIST: task_list}

    async def handle_get_day(call: ServiceCall) -> ServiceResponse:
        """Return the caller's Day projection for a date."""
        coordinator = _get_coordinator(hass, const.SERVICE_GET_DAY)
        user_id = resolve_user_id(call)
        day = coordinator.day_manager.get_day(user_id, call.data[const.FIELD_DATE])
        return {const.RESPONSE_DAY: day}

    async def handle_get_days(call: ServiceCall) -> ServiceResponse:
        """Return the caller's Day summaries for a date range or year."""
        coordinator = _get_coordinator(hass, const.SERVICE_GET_DAYS)
        user_id = resolve_user_id(call)
        days = coordinator.day_manager.get_days(
            user_id,
            start_date=call.data.get(const.FIELD_START_DATE),
            end_date=call.data.get(const.FIELD_END_DATE),
            year=call.data.get(const.FIELD_YEAR),
        )
        return {const.RESPONSE_DAYS: days}

    handlers = {
        const.SERVICE_RECORD_COMPLETIONS: handle_record_completions,
        const.SERVICE_UPDATE_TASK_STATUS: handle_update_task_status,
        const.SERVICE_EPHEMERAL_TASKS: handle_ephemeral_tasks,
        const.SERVICE_DELETE_TASK_LIST: handle_delete_task_list,
        const.SERVICE_UPSERT_TASK_LIST: handle_upsert_task_list,
        const.SERVICE_GET_DAY: handle_get_day,
        const.SERVICE_GET_DAYS: handle_get_days,
    }

    for service, schema in _MUTATING_SERVICES:
        hass.services.async_register(
            const.DOMAIN,
            service,
            handlers[service],
            schema=schema,
            supports_response=SupportsResponse.OPTIONAL,
        )
    for service, schema in _QUERY_SERVICES:
        hass.services.async_register(
            const.DOMAIN,
            service,
            handlers[service],
            schema=schema,
            supports_response=SupportsResponse.ONLY,
        )

    const.LOGGER.info("INFO: HabitLedger services have been registered successfully")


async def async_unload_services(hass: HomeAssistant):
    """Unregister HabitLedger services when unloading the integration."""
    services = [
        const.SERVICE_RECORD_COMPLETIONS,
        const.SERVICE_UPDATE_TASK_STATUS,
        const.SERVICE_EPHEMERAL_TASKS,
        const.SERVICE_DELETE_TASK_LIST,
        const.SERVICE_UPSERT_TASK_LIST,
        const.SERVICE_GET_DAY,
        const.SERVICE_GET_DAYS,
    ]

    for service in services:
        if hass.services.has_service(const.DOMAIN, service):
            hass.services.async_remove(const.DOMAIN, service)

    const.LOGGER.info("INFO: HabitLedger services have been unregistered")

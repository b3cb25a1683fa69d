# File: helpers/auth_helpers.py
"""Caller resolution and authorization helpers for HabitLedger.

A service call acts on behalf of one user id: the explicit `user_id` field
when an automation supplies one, else the Home Assistant user behind the
call context. Task lists with members only accept calls from those members.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.exceptions import Unauthorized

from .. import const

if TYPE_CHECKING:
    from homeassistant.core import ServiceCall


def resolve_user_id(call: ServiceCall) -> str:
    """Return the user a service call acts for.

    Raises:
        Unauthorized: Neither an explicit user_id nor a context user is present
    """
    user_id = call.data.get(const.FIELD_USER_ID) or call.context.user_id
    if not user_id:
        const.LOGGER.warning(
            "WARNING: %s.%s called without a resolvable user",
            call.domain,
            call.service,
        )
        raise Unauthorized(context=call.context)
    return user_id


def is_list_member(task_list: dict[str, Any], user_id: str) -> bool:
    """Return True if the user belongs to the list, or the list has no members."""
    members = task_list.get(const.DATA_LIST_USERS) or []
    if not members:
        return True
    return any(m.get(const.DATA_MEMBER_USER_ID) == user_id for m in members)


def list_member_ids(task_list: dict[str, Any]) -> list[str]:
    """Return the user ids of every member of a list."""
    return [
        member[const.DATA_MEMBER_USER_ID]
        for member in task_list.get(const.DATA_LIST_USERS) or []
        if member.get(const.DATA_MEMBER_USER_ID)
    ]


def get_list_owner(task_list: dict[str, Any]) -> str | None:
    """Return the user id of the list's OWNER member, if any."""
    for member in task_list.get(const.DATA_LIST_USERS) or []:
        if member.get(const.DATA_MEMBER_ROLE) == const.MEMBER_ROLE_OWNER:
            return member.get(const.DATA_MEMBER_USER_ID)
    return None


def ensure_list_member(task_list: dict[str, Any], user_id: str) -> None:
    """Raise Unauthorized unless the user may act on the list."""
    if is_list_member(task_list, user_id):
        return
    const.LOGGER.warning(
        "WARNING: User '%s' is not a member of task list '%s'",
        user_id,
        task_list.get(const.DATA_LIST_ID),
    )
    raise Unauthorized(user_id=user_id)

"""Base manager class for HabitLedger managers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

from homeassistant.exceptions import HomeAssistantError, ServiceValidationError
from homeassistant.helpers.dispatcher import (
    async_dispatcher_connect,
    async_dispatcher_send,
)

from .. import const
from ..engines import LedgerValidationError, TaskNotFoundError
from ..helpers.auth_helpers import ensure_list_member
from ..helpers.entity_helpers import get_event_signal
from ..store import DocumentChange, RevisionConflictError, StorageUnavailableError

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import HabitLedgerCoordinator
    from ..store import HabitLedgerStore

_OutcomeT = TypeVar("_OutcomeT")

# (task list copy) -> (new task list or None to skip the write, other changes, outcome)
ListMutation = Callable[
    [dict[str, Any]], tuple[dict[str, Any] | None, list[DocumentChange], _OutcomeT]
]


class BaseManager(ABC):
    """Base class for all HabitLedger managers with scoped event support.

    Provides:
    - Instance-scoped event emitting (emit)
    - Instance-scoped event listening (listen)
    - Serialized, revision-checked task list writes (async_mutate_task_list)
    - Translation of engine and storage errors into Home Assistant errors

    Subclasses must implement:
    - async_setup(): Subscribe to events, initialize state
    """

    def __init__(self, hass: HomeAssistant, coordinator: HabitLedgerCoordinator) -> None:
        """Initialize manager.

        Args:
            hass: Home Assistant instance
            coordinator: Parent coordinator managing this integration instance
        """
        self.hass = hass
        self.coordinator = coordinator
        self.entry_id = coordinator.config_entry.entry_id

    @property
    def store(self) -> HabitLedgerStore:
        """Storage wrapper shared by all managers."""
        return self.coordinator.store

    def emit(self, suffix: str, **payload: Any) -> None:
        """Emit instance-scoped event to other managers.

        Args:
            suffix: Signal suffix constant (e.g., const.SIGNAL_SUFFIX_LEDGER_UPDATED)
            **payload: Event data dict passed to listeners (must be JSON-serializable)

        Example:
            self.emit(
                const.SIGNAL_SUFFIX_LEDGER_UPDATED,
                list_id=list_id,
                date="2025-01-10",
                user_ids=[user_id],
            )
        """
        signal = get_event_signal(self.entry_id, suffix)
        const.LOGGER.debug(
            "Emitting event '%s' for instance %s with payload keys: %s",
            suffix,
            self.entry_id,
            list(payload.keys()),
        )
        # Pass payload as single dict argument (dispatcher only supports *args)
        async_dispatcher_send(self.hass, signal, payload)

    def listen(self, suffix: str, callback: Callable[..., Any]) -> None:
        """Subscribe to instance-scoped event with automatic cleanup.

        The subscription is cleaned up when the config entry is unloaded.
        Supports both sync and async callbacks.

        Args:
            suffix: Signal suffix constant to listen for
            callback: Function called when event fires (receives payload dict as arg)
        """
        signal = get_event_signal(self.entry_id, suffix)
        unsub = async_dispatcher_connect(self.hass, signal, callback)
        self.coordinator.config_entry.async_on_unload(unsub)
        const.LOGGER.debug(
            "Manager %s listening to event '%s' for instance %s",
            self.__class__.__name__,
            suffix,
            self.entry_id,
        )

    # -------------------------------------------------------------------------------------
    # Error translation
    # -------------------------------------------------------------------------------------

    @staticmethod
    def not_found(entity_type: str, name: str) -> ServiceValidationError:
        """Build the NotFound error for a missing record."""
        return ServiceValidationError(
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_NOT_FOUND,
            translation_placeholders={"entity_type": entity_type, "name": name},
        )

    @staticmethod
    def validation_error(err: LedgerValidationError) -> ServiceValidationError:
        """Translate an engine validation error."""
        return ServiceValidationError(
            translation_domain=const.DOMAIN,
            translation_key=err.translation_key,
            translation_placeholders=err.placeholders,
        )

    @staticmethod
    def storage_error() -> HomeAssistantError:
        """Build the DownstreamUnavailable error."""
        return HomeAssistantError(
            translation_domain=const.DOMAIN,
            translation_key=const.TRANS_KEY_ERROR_STORAGE_UNAVAILABLE,
        )

    # -------------------------------------------------------------------------------------
    # Task list writes
    # -------------------------------------------------------------------------------------

    async def async_mutate_task_list(
        self,
        list_id: str,
        user_id: str,
        mutation: ListMutation[_OutcomeT],
    ) -> tuple[dict[str, Any], _OutcomeT]:
        """Read, mutate and commit a task list under its lock.

        The mutation runs on a fresh copy; a revision conflict re-runs it once
        against the newer document. Nothing is written when the mutation
        returns no list, raises, or the save fails.

        Returns:
            Tuple of (committed task list, mutation outcome)

        Raises:
            ServiceValidationError: List missing or invalid input
            Unauthorized: User is not a member of the list
            HomeAssistantError: Storage unavailable or repeated conflict
        """
        async with self.coordinator.list_lock(list_id):
            for attempt in range(1, 3):
                task_list, revision = self.store.get_document(
                    const.DATA_TASK_LISTS, list_id
                )
                if task_list is None:
                    raise self.not_found(const.LABEL_TASK_LIST, list_id)
                ensure_list_member(task_list, user_id)

                try:
                    new_list, extra_changes, outcome = mutation(task_list)
                except LedgerValidationError as err:
                    const.LOGGER.debug(
                        "DEBUG: Rejected action on task list '%s': %s", list_id, err
                    )
                    raise self.validation_error(err) from err
                except TaskNotFoundError as err:
                    raise self.not_found(const.LABEL_TASK, err.task_key) from err

                if new_list is None:
                    return task_list, outcome

                try:
                    revisions = await self.store.async_commit(
                        [
                            DocumentChange(
                                const.DATA_TASK_LISTS, list_id, revision, new_list
                            ),
                            *extra_changes,
                        ]
                    )
                except RevisionConflictError as err:
                    if attempt == 1:
                        const.LOGGER.debug(
                            "DEBUG: Retrying action on task list '%s' after %s",
                            list_id,
                            err,
                        )
                        continue
                    raise HomeAssistantError(
                        translation_domain=const.DOMAIN,
                        translation_key=const.TRANS_KEY_ERROR_CONCURRENT_UPDATE,
                        translation_placeholders={"name": list_id},
                    ) from err
                except StorageUnavailableError as err:
                    raise self.storage_error() from err

                new_list[const.DATA_REVISION] = revisions[list_id]
                return new_list, outcome

        # Unreachable: the loop either returns or raises
        raise HomeAssistantError(f"Task list '{list_id}' was not updated")

    @abstractmethod
    async def async_setup(self) -> None:
        """Set up the manager (subscribe to events, initialize state).

        Called once during coordinator initialization.
        Subclasses should subscribe to events here using self.listen().
        """

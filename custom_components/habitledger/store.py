# File: store.py
"""Handles persistent data storage for the HabitLedger integration.

Uses Home Assistant's Storage helper to save and load task lists, users and
day projections, ensuring the ledger is preserved across restarts.

Every task list and user document carries a `revision` counter. Writes go
through `async_commit`, which checks the revision each change was computed
against (compare-and-swap), applies all changes in memory, saves with a
bounded timeout and one retry, and rolls the in-memory changes back when the
save still fails. A caller therefore never observes a partial action.
"""

from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from homeassistant.helpers.storage import Store

from . import const
from .engines import LedgerEngine

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant


class RevisionConflictError(Exception):
    """Raised when a document changed since it was read."""

    def __init__(
        self, collection: str, doc_id: str, expected: int, actual: int
    ) -> None:
        """Initialize RevisionConflictError."""
        self.collection = collection
        self.doc_id = doc_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{collection}/{doc_id}: expected revision {expected}, found {actual}"
        )


class StorageUnavailableError(Exception):
    """Raised when the storage backend could not persist a change."""


@dataclass
class DocumentChange:
    """One document write inside an atomic commit.

    Attributes:
        collection: const.DATA_TASK_LISTS or const.DATA_USERS
        doc_id: Document id within the collection
        expected_revision: Revision the change was computed from; 0 means the
            document must not exist yet, None skips the check
        value: New document, or None to delete it
    """

    collection: str
    doc_id: str
    expected_revision: int | None
    value: dict[str, Any] | None


class HabitLedgerStore:
    """Handles persistent storage operations for HabitLedger data.

    Thin wrapper around Home Assistant's Store API with revision-checked
    commits. Reads hand out deep copies so engines can never mutate the
    cache outside a commit.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        storage_key: str = const.STORAGE_KEY,
        timeout: float = const.DEFAULT_STORAGE_TIMEOUT,
    ) -> None:
        """Initialize the store.

        Args:
            hass: Home Assistant core object.
            storage_key: Key to identify storage location (default: const.STORAGE_KEY).
            timeout: Seconds allowed for one save attempt.

        """
        self.hass = hass
        self._storage_key = storage_key
        self._store: Store = Store(hass, const.STORAGE_VERSION, storage_key)
        self._data: dict[str, Any] = {}  # In-memory data cache for quick access.
        self.timeout = timeout

    @staticmethod
    def get_default_structure() -> dict[str, Any]:
        """Return canonical empty data structure for fresh installations."""
        return {
            const.DATA_META: {
                const.DATA_META_SCHEMA_VERSION: const.SCHEMA_VERSION,
                const.DATA_META_LEGACY_BUCKETS_MIGRATED: 0,
            },
            const.DATA_TASK_LISTS: {},
            const.DATA_USERS: {},
            const.DATA_DAYS: {},
        }

    async def async_initialize(self) -> None:
        """Load data from storage during startup.

        If no data exists, initializes with an empty structure. Legacy
        flat-array ledger buckets are migrated and written back once.
        """
        const.LOGGER.debug("DEBUG: HabitLedgerStore: Loading data from storage")
        existing_data = await self._store.async_load()

        if existing_data is None:
            const.LOGGER.info("INFO: No existing storage found. Initializing new data")
            self._data = HabitLedgerStore.get_default_structure()
            return

        self._data = existing_data
        for key, default in HabitLedgerStore.get_default_structure().items():
            self._data.setdefault(key, default)

        migrated = sum(
            LedgerEngine.migrate_ledger(task_list)
            for task_list in self._data[const.DATA_TASK_LISTS].values()
        )
        const.LOGGER.debug(
            "DEBUG: Loaded existing data from storage: %s entities",
            {
                "task_lists": len(self._data[const.DATA_TASK_LISTS]),
                "users": len(self._data[const.DATA_USERS]),
                "days": len(self._data[const.DATA_DAYS]),
            },
        )
        if migrated:
            meta = self._data[const.DATA_META]
            meta[const.DATA_META_LEGACY_BUCKETS_MIGRATED] = (
                meta.get(const.DATA_META_LEGACY_BUCKETS_MIGRATED, 0) + migrated
            )
            const.LOGGER.info(
                "INFO: Migrated %s legacy ledger buckets to open/closed form",
                migrated,
            )
            await self.async_save()

    @property
    def data(self) -> dict[str, Any]:
        """Retrieve the in-memory data cache."""
        return self._data

    # -------------------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------------------

    def get_document(
        self, collection: str, doc_id: str
    ) -> tuple[dict[str, Any] | None, int]:
        """Return a deep copy of a document and the revision it was read at.

        An absent document has revision 0.
        """
        doc = self._data.get(collection, {}).get(doc_id)
        if doc is None:
            return None, 0
        return copy.deepcopy(doc), int(doc.get(const.DATA_REVISION, 0))

    def get_day(self, user_id: str, date_iso: str) -> dict[str, Any] | None:
        """Return a deep copy of a stored Day, or None."""
        day = self._data[const.DATA_DAYS].get(user_id, {}).get(date_iso)
        return copy.deepcopy(day) if day is not None else None

    def get_days(self, user_id: str, dates: list[str]) -> list[dict[str, Any]]:
        """Return deep copies of the stored Days among the given dates."""
        stored = self._data[const.DATA_DAYS].get(user_id, {})
        return [copy.deepcopy(stored[d]) for d in dates if d in stored]

    # -------------------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------------------

    async def async_compare_and_swap(
        self,
        collection: str,
        doc_id: str,
        expected_revision: int,
        value: dict[str, Any] | None,
    ) -> int:
        """Replace one document if it is still at the expected revision.

        Returns:
            The new revision (0 after a delete)

        Raises:
            RevisionConflictError: The document moved on since it was read
            StorageUnavailableError: The save failed after one retry
        """
        revisions = await self.async_commit(
            [DocumentChange(collection, doc_id, expected_revision, value)]
        )
        return revisions[doc_id]

    async def async_commit(self, changes: list[DocumentChange]) -> dict[str, int]:
        """Atomically apply several document changes and persist them.

        All revisions are checked before anything is applied. If the save
        fails, every change is rolled back unless another commit has since
        replaced that document.

        Returns:
            Mapping of doc_id to its new revision

        Raises:
            RevisionConflictError: A document moved on since it was read
            StorageUnavailableError: The save failed after one retry
        """
        for change in changes:
            current = self._data[change.collection].get(change.doc_id)
            actual = int(current.get(const.DATA_REVISION, 0)) if current else 0
            if change.expected_revision is not None and actual != change.expected_revision:
                const.LOGGER.debug(
                    "DEBUG: Revision conflict on %s/%s (expected %s, found %s)",
                    change.collection,
                    change.doc_id,
                    change.expected_revision,
                    actual,
                )
                raise RevisionConflictError(
                    change.collection, change.doc_id, change.expected_revision, actual
                )

        previous: list[tuple[DocumentChange, dict[str, Any] | None]] = []
        revisions: dict[str, int] = {}
        for change in changes:
            collection = self._data[change.collection]
            current = collection.get(change.doc_id)
            previous.append((change, current))
            if change.value is None:
                collection.pop(change.doc_id, None)
                revisions[change.doc_id] = 0
                continue
            new_revision = (int(current.get(const.DATA_REVISION, 0)) if current else 0) + 1
            doc = copy.deepcopy(change.value)
            doc[const.DATA_REVISION] = new_revision
            collection[change.doc_id] = doc
            revisions[change.doc_id] = new_revision

        try:
            await self.async_save()
        except StorageUnavailableError:
            for change, old_doc in reversed(previous):
                collection = self._data[change.collection]
                current = collection.get(change.doc_id)
                current_revision = (
                    int(current.get(const.DATA_REVISION, 0)) if current else 0
                )
                if current_revision != revisions[change.doc_id]:
                    continue
                if old_doc is None:
                    collection.pop(change.doc_id, None)
                else:
                    collection[change.doc_id] = old_doc
            const.LOGGER.warning(
                "WARNING: Rolled back %s uncommitted document changes", len(changes)
            )
            raise

        const.LOGGER.debug(
            "DEBUG: Committed %s",
            {change.doc_id: revisions[change.doc_id] for change in changes},
        )
        return revisions

    async def async_put_day(self, user_id: str, date_iso: str, day: dict[str, Any]) -> None:
        """Store a Day projection and persist it."""
        self._data[const.DATA_DAYS].setdefault(user_id, {})[date_iso] = copy.deepcopy(day)
        await self.async_save()

    def find_days_with_list(self, list_id: str) -> set[tuple[str, str]]:
        """Return (user_id, date) pairs of Days that reference a list."""
        affected: set[tuple[str, str]] = set()
        for user_id, days in self._data[const.DATA_DAYS].items():
            for date_iso, day in days.items():
                if list_id in (day.get(const.DATA_DAY_PRODUCTIVITY) or {}):
                    affected.add((user_id, date_iso))
        return affected

    async def async_save(self) -> None:
        """Save the in-memory data with a bounded timeout and one retry.

        OSError and TimeoutError are retried once; TypeError and ValueError
        mean the data cannot be serialized and are not retried.

        Raises:
            StorageUnavailableError: The data could not be saved
        """
        attempts = 1 + const.STORAGE_RETRY_ATTEMPTS
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                async with asyncio.timeout(self.timeout):
                    await self._store.async_save(self._data)
            except (OSError, TimeoutError) as err:
                last_error = err
                const.LOGGER.warning(
                    "WARNING: Storage save attempt %s/%s failed: %s",
                    attempt,
                    attempts,
                    err,
                )
                continue
            except (TypeError, ValueError) as err:
                const.LOGGER.error(
                    "ERROR: Failed to save storage due to non-serializable data: %s",
                    err,
                )
                raise StorageUnavailableError(str(err)) from err
            const.LOGGER.debug("DEBUG: Data saved successfully to storage")
            return

        const.LOGGER.error(
            "ERROR: Failed to save storage after %s attempts: %s. "
            "Check disk space and file permissions for %s",
            attempts,
            last_error,
            self._store.path,
        )
        raise StorageUnavailableError(str(last_error)) from last_error

    async def async_delete_storage(self) -> None:
        """Delete the storage file completely from disk."""
        self._data = HabitLedgerStore.get_default_structure()
        try:
            await self._store.async_remove()
            const.LOGGER.info(
                "INFO: Storage file removed successfully: %s",
                self._store.path,
            )
        except OSError as err:
            const.LOGGER.error(
                "ERROR: Failed to remove storage file %s: %s. Check file permissions",
                self._store.path,
                err,
            )

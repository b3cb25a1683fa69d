# File: coordinator.py
"""Coordinator for the HabitLedger integration.

Owns the storage wrapper, the per-list write locks and the managers that
implement ledger actions, ephemeral tasks, user balances and Day
projections. Managers talk to each other through instance-scoped
dispatcher signals rather than direct calls, except LedgerManager which
plans balance updates through UserManager inside its atomic commit.
"""

from __future__ import annotations

import asyncio
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

from . import const
from .managers import DayManager, EphemeralManager, LedgerManager, UserManager
from .store import HabitLedgerStore


class HabitLedgerCoordinator(DataUpdateCoordinator):
    """Coordinator for HabitLedger.

    Data is event driven: every write goes through a manager, so there is
    no polling interval.
    """

    config_entry: ConfigEntry

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        store: HabitLedgerStore,
    ):
        """Initialize the HabitLedgerCoordinator."""
        super().__init__(
            hass,
            const.LOGGER,
            config_entry=config_entry,
            name=f"{const.DOMAIN}{const.COORDINATOR_SUFFIX}",
            update_interval=None,
        )
        self.config_entry = config_entry
        self.store = store
        self._list_locks: dict[str, asyncio.Lock] = {}

        self.user_manager = UserManager(hass, self)
        self.ledger_manager = LedgerManager(hass, self, self.user_manager)
        self.ephemeral_manager = EphemeralManager(hass, self)
        self.day_manager = DayManager(hass, self)

    @property
    def prize_share(self) -> float:
        """Share of each completion's value paid as budget-capped prize."""
        return float(
            self.config_entry.options.get(
                const.CONF_PRIZE_SHARE, const.DEFAULT_PRIZE_SHARE
            )
        )

    async def async_setup_managers(self) -> None:
        """Let every manager subscribe to the events it handles."""
        for manager in (
            self.user_manager,
            self.ledger_manager,
            self.ephemeral_manager,
            self.day_manager,
        ):
            await manager.async_setup()

    # -------------------------------------------------------------------------------------
    # Per-list write serialization
    # -------------------------------------------------------------------------------------

    def list_lock(self, list_id: str) -> asyncio.Lock:
        """Return the lock serializing writes to one task list."""
        lock = self._list_locks.get(list_id)
        if lock is None:
            lock = self._list_locks[list_id] = asyncio.Lock()
        return lock

    def release_list_lock(self, list_id: str) -> None:
        """Forget the lock of a deleted list."""
        lock = self._list_locks.get(list_id)
        if lock is not None and not lock.locked():
            self._list_locks.pop(list_id, None)

    async def _async_update_data(self) -> dict[str, Any]:
        """Expose the in-memory store to listeners."""
        return self.store.data

# File: __init__.py
"""Initialization file for the HabitLedger integration.

Handles setting up the integration, including loading configuration entries,
initializing data storage, and preparing the coordinator and its managers.

Key Features:
- Config entry setup and unload support.
- Coordinator initialization for data synchronization.
- Storage management for persistent data handling.
"""

from __future__ import annotations

from zoneinfo import ZoneInfo

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryNotReady

from . import const
from .coordinator import HabitLedgerCoordinator
from .services import async_setup_services, async_unload_services
from .store import HabitLedgerStore
from .utils.dt_utils import set_default_timezone


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up the integration from a config entry."""
    const.LOGGER.info("INFO: Starting setup for HabitLedger entry: %s", entry.entry_id)

    # Ledger dates default to "today" in the Home Assistant time zone
    set_default_timezone(ZoneInfo(hass.config.time_zone))

    store = HabitLedgerStore(
        hass,
        const.STORAGE_KEY,
        float(
            entry.options.get(const.CONF_STORAGE_TIMEOUT, const.DEFAULT_STORAGE_TIMEOUT)
        ),
    )
    await store.async_initialize()

    coordinator = HabitLedgerCoordinator(hass, entry, store)

    try:
        await coordinator.async_config_entry_first_refresh()
    except ConfigEntryNotReady as e:
        const.LOGGER.error("ERROR: Failed to refresh coordinator data: %s", e)
        raise

    hass.data.setdefault(const.DOMAIN, {})[entry.entry_id] = {
        const.COORDINATOR: coordinator,
        const.STORE: store,
    }

    await coordinator.async_setup_managers()
    async_setup_services(hass)

    # Option changes (prize share, storage timeout) take effect on reload
    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    const.LOGGER.info("INFO: HabitLedger setup complete for entry: %s", entry.entry_id)
    return True


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload the entry after its options changed."""
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    const.LOGGER.info("INFO: Unloading HabitLedger entry: %s", entry.entry_id)

    hass.data[const.DOMAIN].pop(entry.entry_id, None)
    if not hass.data[const.DOMAIN]:
        await async_unload_services(hass)

    return True


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle removal of a config entry."""
    const.LOGGER.info("INFO: Removing HabitLedger entry: %s", entry.entry_id)

    # The entry is already unloaded here, so open the storage file directly
    await HabitLedgerStore(hass, const.STORAGE_KEY).async_delete_storage()

    const.LOGGER.info("INFO: HabitLedger entry data cleared: %s", entry.entry_id)

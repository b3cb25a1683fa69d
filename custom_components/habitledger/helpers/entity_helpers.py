# File: helpers/entity_helpers.py
"""Config entry and dispatcher helpers for HabitLedger."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .. import const

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant


def get_event_signal(entry_id: str, suffix: str) -> str:
    """Build instance-scoped event signal name for dispatcher.

    Each config entry gets its own signal namespace using its entry_id.

    Format: 'habitledger_{entry_id}_{suffix}'

    Example:
        get_event_signal("abc123", "ledger_updated") → "habitledger_abc123_ledger_updated"
    """
    return f"{const.DOMAIN}_{entry_id}_{suffix}"


def get_first_habitledger_entry(hass: HomeAssistant) -> str | None:
    """Get the entry_id of the first set-up HabitLedger config entry.

    Returns:
        Config entry ID string, or None if no entry is set up
    """
    domain_entries = hass.data.get(const.DOMAIN)
    if not domain_entries:
        return None
    return next(iter(domain_entries.keys()), None)

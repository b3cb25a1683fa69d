# File: config_flow.py
"""Config flow for the HabitLedger integration.

HabitLedger keeps all task lists, users and day projections in its own
storage file, so setup only confirms creating the single instance. Tunables
(prize share, storage timeout) live in the options flow.
"""

from typing import Any

from homeassistant import config_entries
from homeassistant.core import callback
import voluptuous as vol

from . import const
from .helpers import flow_helpers as fh
from .options_flow import HabitLedgerOptionsFlowHandler


class HabitLedgerConfigFlow(config_entries.ConfigFlow, domain=const.DOMAIN):
    """Config Flow for HabitLedger."""

    VERSION = 1

    async def async_step_user(self, user_input: dict[str, Any] | None = None):
        """Confirm creating the HabitLedger instance."""
        if any(self._async_current_entries()):
            return self.async_abort(reason=const.TRANS_KEY_ERROR_SINGLE_INSTANCE)

        if user_input is not None:
            const.LOGGER.info("INFO: Creating HabitLedger config entry")
            return self.async_create_entry(
                title=const.HABITLEDGER_TITLE,
                data={},
                options=fh.build_default_options(),
            )

        return self.async_show_form(
            step_id=const.CONFIG_FLOW_STEP_USER, data_schema=vol.Schema({})
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        """Return the Options Flow."""
        return HabitLedgerOptionsFlowHandler(config_entry)

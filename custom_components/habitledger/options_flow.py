# File: options_flow.py
"""Options flow for the HabitLedger integration.

Edits the prize share of a completion's value and the storage timeout.
Saving the options reloads the entry so the coordinator picks them up.
"""

from homeassistant import config_entries

from . import const
from .helpers import flow_helpers as fh


class HabitLedgerOptionsFlowHandler(config_entries.OptionsFlow):
    """Options Flow for HabitLedger tunables."""

    def __init__(self, _config_entry: config_entries.ConfigEntry):
        """Initialize the options flow."""
        self._entry_options: dict = {}

    async def async_step_init(self, user_input=None):
        """Manage prize share and storage timeout."""
        self._entry_options = dict(self.config_entry.options)
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = fh.validate_general_options(user_input)
            if not errors:
                self._entry_options[const.CONF_PRIZE_SHARE] = float(
                    user_input[const.CONF_PRIZE_SHARE]
                )
                self._entry_options[const.CONF_STORAGE_TIMEOUT] = float(
                    user_input[const.CONF_STORAGE_TIMEOUT]
                )
                const.LOGGER.debug(
                    "DEBUG: General Options Updated: Prize Share=%s, Storage Timeout=%s",
                    self._entry_options[const.CONF_PRIZE_SHARE],
                    self._entry_options[const.CONF_STORAGE_TIMEOUT],
                )
                return self.async_create_entry(title="", data=self._entry_options)

        return self.async_show_form(
            step_id=const.OPTIONS_FLOW_STEP_INIT,
            data_schema=fh.build_general_options_schema(
                user_input or self._entry_options
            ),
            errors=errors,
        )

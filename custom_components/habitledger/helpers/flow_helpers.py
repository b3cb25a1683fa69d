# File: helpers/flow_helpers.py
"""Config and options flow helpers for HabitLedger."""

from __future__ import annotations

from typing import Any

from homeassistant.helpers import selector
import voluptuous as vol

from .. import const


def build_default_options() -> dict[str, Any]:
    """Return the options stored on a fresh config entry."""
    return {
        const.CONF_PRIZE_SHARE: const.DEFAULT_PRIZE_SHARE,
        const.CONF_STORAGE_TIMEOUT: const.DEFAULT_STORAGE_TIMEOUT,
    }


def build_general_options_schema(default: dict[str, Any] | None = None) -> vol.Schema:
    """Build schema for the prize share and storage timeout options."""
    default = default or {}
    default_prize_share = default.get(const.CONF_PRIZE_SHARE, const.DEFAULT_PRIZE_SHARE)
    default_timeout = default.get(
        const.CONF_STORAGE_TIMEOUT, const.DEFAULT_STORAGE_TIMEOUT
    )

    return vol.Schema(
        {
            vol.Required(
                const.CONF_PRIZE_SHARE, default=default_prize_share
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    mode=selector.NumberSelectorMode.BOX,
                    min=0,
                    max=1,
                    step=0.05,
                )
            ),
            vol.Required(
                const.CONF_STORAGE_TIMEOUT, default=default_timeout
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    mode=selector.NumberSelectorMode.BOX,
                    min=1,
                    max=120,
                    step=1,
                    unit_of_measurement="s",
                )
            ),
        }
    )


def validate_general_options(user_input: dict[str, Any]) -> dict[str, str]:
    """Validate options input.

    Returns:
        Dict of errors (empty if valid)
    """
    errors: dict[str, str] = {}
    try:
        prize_share = float(user_input.get(const.CONF_PRIZE_SHARE, -1))
    except (TypeError, ValueError):
        prize_share = -1.0
    if not 0.0 <= prize_share <= 1.0:
        errors[const.CONF_PRIZE_SHARE] = const.TRANS_KEY_CFOF_INVALID_PRIZE_SHARE
    try:
        timeout = float(user_input.get(const.CONF_STORAGE_TIMEOUT, 0))
    except (TypeError, ValueError):
        timeout = 0.0
    if not 1.0 <= timeout <= 120.0:
        errors[const.CONF_STORAGE_TIMEOUT] = const.TRANS_KEY_CFOF_INVALID_STORAGE_TIMEOUT
    return errors

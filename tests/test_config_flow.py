"""Tests for HabitLedger config flow."""

from unittest.mock import patch

from homeassistant import config_entries
from homeassistant.core import HomeAssistant
from homeassistant.data_entry_flow import FlowResultType
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.habitledger.const import (
    CONF_PRIZE_SHARE,
    CONF_STORAGE_TIMEOUT,
    DEFAULT_PRIZE_SHARE,
    DEFAULT_STORAGE_TIMEOUT,
    DOMAIN,
    HABITLEDGER_TITLE,
)


async def test_form_user_flow_success(hass: HomeAssistant) -> None:
    """Test the confirm form creates an entry with default options."""
    result = await hass.config_entries.flow.async_init(
        DOMAIN, context={"source": config_entries.SOURCE_USER}
    )
    assert result.get("type") == FlowResultType.FORM
    assert result.get("step_id") == "user"

    with patch(
        "custom_components.habitledger.async_setup_entry",
        return_value=True,
    ) as mock_setup_entry:
        result = await hass.config_entries.flow.async_configure(
            result.get("flow_id"), user_input={}
        )
        await hass.async_block_till_done()

    assert result.get("type") == FlowResultType.CREATE_ENTRY
    assert result.get("title") == HABITLEDGER_TITLE
    assert result.get("data") == {}
    assert result.get("options") == {
        CONF_PRIZE_SHARE: DEFAULT_PRIZE_SHARE,
        CONF_STORAGE_TIMEOUT: DEFAULT_STORAGE_TIMEOUT,
    }
    assert len(mock_setup_entry.mock_calls) == 1


async def test_form_single_instance(
    hass: HomeAssistant, mock_config_entry: MockConfigEntry
) -> None:
    """Test a second instance is refused."""
    mock_config_entry.add_to_hass(hass)

    result = await hass.config_entries.flow.async_init(
        DOMAIN, context={"source": config_entries.SOURCE_USER}
    )
    assert result.get("type") == FlowResultType.ABORT
    assert result.get("reason") == "single_instance_allowed"

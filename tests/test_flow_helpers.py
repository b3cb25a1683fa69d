"""Tests for flow_helpers.py option defaults and validation."""

import pytest

from custom_components.habitledger import const
from custom_components.habitledger.helpers.flow_helpers import (
    build_default_options,
    build_general_options_schema,
    validate_general_options,
)


def test_default_options() -> None:
    """Test defaults for a fresh entry."""
    assert build_default_options() == {
        const.CONF_PRIZE_SHARE: const.DEFAULT_PRIZE_SHARE,
        const.CONF_STORAGE_TIMEOUT: const.DEFAULT_STORAGE_TIMEOUT,
    }


def test_schema_uses_current_values() -> None:
    """Test the form is prefilled from the given options."""
    schema = build_general_options_schema(
        {const.CONF_PRIZE_SHARE: 0.3, const.CONF_STORAGE_TIMEOUT: 15}
    )
    defaults = {key.schema: key.default() for key in schema.schema}
    assert defaults == {const.CONF_PRIZE_SHARE: 0.3, const.CONF_STORAGE_TIMEOUT: 15}


@pytest.mark.parametrize(
    ("user_input", "expected"),
    [
        ({const.CONF_PRIZE_SHARE: 0.5, const.CONF_STORAGE_TIMEOUT: 10}, {}),
        ({const.CONF_PRIZE_SHARE: 0, const.CONF_STORAGE_TIMEOUT: 1}, {}),
        ({const.CONF_PRIZE_SHARE: 1, const.CONF_STORAGE_TIMEOUT: 120}, {}),
        (
            {const.CONF_PRIZE_SHARE: 1.5, const.CONF_STORAGE_TIMEOUT: 10},
            {const.CONF_PRIZE_SHARE: const.TRANS_KEY_CFOF_INVALID_PRIZE_SHARE},
        ),
        (
            {const.CONF_PRIZE_SHARE: "abc", const.CONF_STORAGE_TIMEOUT: 0},
            {
                const.CONF_PRIZE_SHARE: const.TRANS_KEY_CFOF_INVALID_PRIZE_SHARE,
                const.CONF_STORAGE_TIMEOUT: const.TRANS_KEY_CFOF_INVALID_STORAGE_TIMEOUT,
            },
        ),
        (
            {},
            {
                const.CONF_PRIZE_SHARE: const.TRANS_KEY_CFOF_INVALID_PRIZE_SHARE,
                const.CONF_STORAGE_TIMEOUT: const.TRANS_KEY_CFOF_INVALID_STORAGE_TIMEOUT,
            },
        ),
    ],
)
def test_validate_general_options(user_input, expected) -> None:
    """Test bounds on prize share and storage timeout."""
    assert validate_general_options(user_input) == expected

# File: utils/math_utils.py
"""Math and calculation utilities for HabitLedger.

Pure Python math functions with ZERO Home Assistant dependencies.

⚠️ UTILS PURITY: NO `homeassistant.*` imports allowed.

Functions:
    - round_money: Consistent rounding of earnings and balances
    - calculate_percentage: Progress percentage calculations
    - clamp: Bound a value to a range
    - floor_at_zero: Clamp a balance at zero
    - parse_money: Coerce stored numeric values (str/int/float/None)
"""

from __future__ import annotations

import logging

_LOGGER = logging.getLogger(__name__)

# ==============================================================================
# Constants (local copies to avoid circular imports)
# ==============================================================================

# Earnings are amortized over 30 days, so keep more digits than cents.
DATA_FLOAT_PRECISION = 4
PERCENTAGE_PRECISION = 2


def round_money(value: float, precision: int = DATA_FLOAT_PRECISION) -> float:
    """Round a monetary value to the configured precision.

    Prevents Python float arithmetic drift (e.g., 1.6666666666666667 → 1.6667).

    Examples:
        round_money(100 / 2 / 30) → 1.6667
        round_money(0.1 + 0.2) → 0.3
    """
    return round(value, precision)


def calculate_percentage(
    current: float,
    target: float,
    precision: int = PERCENTAGE_PRECISION,
) -> float:
    """Calculate progress percentage with proper rounding.

    Returns 0.0 if target is 0 (division by zero protection).

    Examples:
        calculate_percentage(1, 2) → 50.0
        calculate_percentage(1, 3) → 33.33
        calculate_percentage(5, 0) → 0.0
    """
    if target <= 0:
        return 0.0
    return round((current / target) * 100, precision)


def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp a value between minimum and maximum bounds.

    Examples:
        clamp(150, 0, 100) → 100
        clamp(-10, 0, 100) → 0
    """
    return max(min_val, min(value, max_val))


def floor_at_zero(value: float) -> float:
    """Return value, or 0.0 if it is negative."""
    return max(0.0, value)


def parse_money(raw: str | float | int | None, default: float = 0.0) -> float:
    """Coerce a stored monetary value to float.

    Older documents stored budgets as strings ("100", "12.5").

    Examples:
        parse_money("100") → 100.0
        parse_money(None) → 0.0
        parse_money("abc") → 0.0
    """
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        _LOGGER.warning("Invalid monetary value %r, using %s", raw, default)
        return default

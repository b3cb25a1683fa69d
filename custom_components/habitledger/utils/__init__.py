# File: utils/__init__.py
"""Pure Python utilities for HabitLedger.

This module contains pure Python functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Submodules:
    - dt_utils: Ledger date parsing, period fields, date ranges
    - math_utils: Money rounding, percentages, clamping
"""

from . import dt_utils, math_utils

__all__ = ["dt_utils", "math_utils"]

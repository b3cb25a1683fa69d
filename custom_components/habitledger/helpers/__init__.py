# File: helpers/__init__.py
"""Home Assistant-bound helper functions for HabitLedger.

This module contains functions that REQUIRE Home Assistant dependencies.

NOTE: Functions that need `hass` object belong here, NOT in utils/.

Submodules:
    - entity_helpers: Config entry lookup and event signals
    - auth_helpers: Caller resolution and task list membership checks
    - flow_helpers: Config/options flow schemas and validators

Usage:
    from .helpers import entity_helpers as eh
    from .helpers.auth_helpers import resolve_user_id
"""

from . import auth_helpers, entity_helpers, flow_helpers

__all__ = ["auth_helpers", "entity_helpers", "flow_helpers"]

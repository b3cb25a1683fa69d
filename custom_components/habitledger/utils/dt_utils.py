# File: utils/dt_utils.py
"""Date and time utilities for HabitLedger.

Pure Python date/time functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

⚠️ UTILS PURITY: NO `homeassistant.*` imports allowed.
   Uses standard library: datetime, zoneinfo, dateutil.

Functions:
    - dt_today_local: Get today's date in local timezone
    - dt_today_iso: Get today's date as ISO string
    - dt_now_iso: Get current datetime as ISO string (UTC)
    - dt_parse_ledger_date: Strict "YYYY-MM-DD" parsing for ledger keys
    - dt_ledger_year: Year key of a ledger date
    - dt_period_fields: ISO week, month, quarter and semester of a date
    - dt_date_range: Inclusive list of ISO dates between two dates
    - dt_year_bounds: First and last ISO date of a year
"""

from __future__ import annotations

from datetime import UTC, date, datetime
import logging
import re
from zoneinfo import ZoneInfo

# Third-party date utilities (no HA dependency)
from dateutil.relativedelta import relativedelta

# Module-level logger (no HA dependency)
_LOGGER = logging.getLogger(__name__)

# ==============================================================================
# Constants (local copies to avoid circular imports)
# ==============================================================================

# Default timezone - can be overridden by caller
DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")

# Ledger keys are always zero-padded ISO dates
LEDGER_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Safety limit for range expansion (a little over ten years of days)
MAX_DATE_RANGE_DAYS = 3700


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo) -> None:
    """Set the default timezone for all dt_utils functions.

    Call this during integration setup to configure the user's timezone.

    Args:
        tz: ZoneInfo object representing the default timezone
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = tz


# ==============================================================================
# Current Date/Time Functions
# ==============================================================================


def dt_today_local(tz: ZoneInfo | None = None) -> date:
    """Return today's date in local timezone as a `datetime.date`.

    Args:
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.
    """
    return datetime.now(tz or DEFAULT_TIME_ZONE).date()


def dt_today_iso(tz: ZoneInfo | None = None) -> str:
    """Return today's date in local timezone as ISO string (YYYY-MM-DD)."""
    return dt_today_local(tz).isoformat()


def dt_now_iso() -> str:
    """Return the current UTC time as ISO string.

    Completer and ephemeral timestamps are stored in UTC; only ledger dates
    are local.
    """
    return datetime.now(UTC).isoformat()


# ==============================================================================
# Ledger Dates
# ==============================================================================


def dt_parse_ledger_date(date_str: str | None) -> date | None:
    """Parse a ledger date key.

    Only the zero-padded ISO form "YYYY-MM-DD" is accepted, because the value
    is used verbatim as a storage key and must not have two spellings.

    Args:
        date_str: Date string to parse, or None

    Returns:
        datetime.date or None if the string is not a valid ledger date.

    Examples:
        dt_parse_ledger_date("2025-01-10") → date(2025, 1, 10)
        dt_parse_ledger_date("2025-1-10") → None
        dt_parse_ledger_date("2025-02-30") → None
    """
    if not date_str or not isinstance(date_str, str):
        return None
    if not LEDGER_DATE_PATTERN.match(date_str):
        return None
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        _LOGGER.debug("Rejected ledger date '%s'", date_str)
        return None


def dt_ledger_year(date_str: str) -> str:
    """Return the year key ("2025") under which a ledger date is stored."""
    return date_str.split("-", 1)[0]


def dt_period_fields(day: date) -> dict[str, int]:
    """Return ISO week, month, quarter and semester numbers for a date.

    Examples:
        dt_period_fields(date(2025, 1, 10)) → {"week": 2, "month": 1, "quarter": 1, "semester": 1}
        dt_period_fields(date(2025, 8, 1)) → {"week": 31, "month": 8, "quarter": 3, "semester": 2}
    """
    return {
        "week": day.isocalendar().week,
        "month": day.month,
        "quarter": (day.month - 1) // 3 + 1,
        "semester": 1 if day.month <= 6 else 2,
    }


def dt_date_range(start: date, end: date) -> list[str]:
    """Return every ISO date from start to end, inclusive.

    Returns an empty list when end precedes start. The range is capped at
    MAX_DATE_RANGE_DAYS entries.
    """
    if end < start:
        return []

    dates: list[str] = []
    current = start
    while current <= end and len(dates) < MAX_DATE_RANGE_DAYS:
        dates.append(current.isoformat())
        current = current + relativedelta(days=1)
    return dates


def dt_year_bounds(year: int) -> tuple[date, date]:
    """Return the first and last date of a calendar year."""
    start = date(year, 1, 1)
    return start, start + relativedelta(years=1, days=-1)

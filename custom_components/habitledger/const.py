# File: const.py
"""Constants for the HabitLedger integration.

This file centralizes storage keys, field names, defaults, task statuses,
list cadences, service names, event signal suffixes, and translation keys
for consistency across the integration.
"""

import logging

# ------------------------------------------------------------------------------------------------
# General / Integration Information
# ------------------------------------------------------------------------------------------------
HABITLEDGER_TITLE = "HabitLedger"

# Integration Domain
DOMAIN = "habitledger"

# Logger
LOGGER = logging.getLogger(__package__)

# Coordinator
COORDINATOR = "coordinator"
COORDINATOR_SUFFIX = "_coordinator"

# Storage and Versioning
STORE = "store"
STORAGE_KEY = "habitledger_data"
STORAGE_VERSION = 1
SCHEMA_VERSION = 1

# Bounded storage I/O (seconds) and retry policy for transient failures
DEFAULT_STORAGE_TIMEOUT = 10
STORAGE_RETRY_ATTEMPTS = 1

# ------------------------------------------------------------------------------------------------
# Configuration Keys (options flow)
# ------------------------------------------------------------------------------------------------
CONF_PRIZE_SHARE = "prize_share"
CONF_STORAGE_TIMEOUT = "storage_timeout"

# Share of a completion's value paid out as budget-capped prize; the rest is profit.
DEFAULT_PRIZE_SHARE = 0.5

# Flow steps
CONFIG_FLOW_STEP_USER = "user"
OPTIONS_FLOW_STEP_INIT = "init"

# ------------------------------------------------------------------------------------------------
# Storage Layout
# ------------------------------------------------------------------------------------------------
DATA_META = "meta"
DATA_META_SCHEMA_VERSION = "schema_version"
DATA_META_LEGACY_BUCKETS_MIGRATED = "legacy_buckets_migrated"
DATA_TASK_LISTS = "task_lists"
DATA_USERS = "users"
DATA_DAYS = "days"

# Compare-and-swap token carried by every stored document
DATA_REVISION = "revision"

# TaskList
DATA_LIST_ID = "id"
DATA_LIST_NAME = "name"
DATA_LIST_ROLE = "role"
DATA_LIST_BUDGET = "budget"
DATA_LIST_BUDGET_PERCENTAGE = "budgetPercentage"
DATA_LIST_REMAINING_BUDGET = "remainingBudget"
DATA_LIST_TASKS = "tasks"
DATA_LIST_TEMPLATE_TASKS = "templateTasks"
DATA_LIST_USERS = "users"
DATA_LIST_COMPLETED_TASKS = "completedTasks"
DATA_LIST_EPHEMERAL_TASKS = "ephemeralTasks"
DATA_LIST_CREATED_AT = "createdAt"
DATA_LIST_UPDATED_AT = "updatedAt"

# TaskList membership
DATA_MEMBER_USER_ID = "userId"
DATA_MEMBER_ROLE = "role"
MEMBER_ROLE_OWNER = "OWNER"
MEMBER_ROLE_COLLABORATOR = "COLLABORATOR"
MEMBER_ROLE_MANAGER = "MANAGER"

# Task (blueprint) and TaskInstance (ledger entry)
DATA_TASK_ID = "id"
DATA_TASK_NAME = "name"
DATA_TASK_LOCALE_KEY = "localeKey"
DATA_TASK_TIMES = "times"
DATA_TASK_COUNT = "count"
DATA_TASK_STATUS = "status"
DATA_TASK_COMPLETERS = "completers"
DATA_TASK_COMPLETED_ON = "completedOn"
DATA_TASK_COMPLETED_AT = "completedAt"
DATA_TASK_CREATED_AT = "createdAt"

# Runtime-only fields that a blueprint edit must never overwrite
TASK_RUNTIME_FIELDS = frozenset(
    {
        DATA_TASK_COUNT,
        DATA_TASK_STATUS,
        DATA_TASK_COMPLETERS,
        DATA_TASK_COMPLETED_ON,
        DATA_TASK_COMPLETED_AT,
    }
)

# Completer
DATA_COMPLETER_ID = "id"
DATA_COMPLETER_EARNINGS = "earnings"
DATA_COMPLETER_PRIZE = "prize"
DATA_COMPLETER_TIME = "time"
DATA_COMPLETER_COMPLETED_AT = "completedAt"

# DateBucket
DATA_BUCKET_OPEN_TASKS = "openTasks"
DATA_BUCKET_CLOSED_TASKS = "closedTasks"
DATA_BUCKET_APPLIED_REQUESTS = "appliedRequests"
MAX_APPLIED_REQUESTS = 50

# Ephemeral task store
DATA_EPHEMERAL_OPEN = "open"
DATA_EPHEMERAL_CLOSED = "closed"

# User
DATA_USER_AVAILABLE_BALANCE = "availableBalance"
DATA_USER_STASH = "stash"
DATA_USER_PROFIT = "profit"
DATA_USER_EQUITY = "equity"
DATA_USER_USED_BUDGET = "usedBudget"
DATA_USER_REMAINING_BUDGET = "remainingBudget"

# Day (read projection)
DATA_DAY_DATE = "date"
DATA_DAY_TASKS = "tasks"
DATA_DAY_TICKER = "ticker"
DATA_DAY_PRODUCTIVITY = "productivity"
DATA_DAY_PROGRESS = "progress"
DATA_DAY_BALANCE = "balance"
DATA_DAY_STASH = "stash"
DATA_DAY_EQUITY = "equity"
DATA_DAY_EARNINGS = "earnings"
DATA_DAY_WEEK = "week"
DATA_DAY_MONTH = "month"
DATA_DAY_QUARTER = "quarter"
DATA_DAY_SEMESTER = "semester"
DATA_DAY_UPDATED_AT = "updatedAt"

# Day task snapshot / ticker entry / productivity entry
DATA_SNAPSHOT_LIST_ID = "listId"
DATA_SNAPSHOT_KEY = "key"
DATA_TICKER_LIST_ID = "listId"
DATA_TICKER_TASK_ID = "taskId"
DATA_TICKER_PROFIT = "profit"
DATA_TICKER_PRIZE = "prize"
DATA_PRODUCTIVITY_TOTAL_TASKS = "totalTasks"
DATA_PRODUCTIVITY_COMPLETED_TASKS = "completedTasks"
DATA_PRODUCTIVITY_PERCENTAGE = "percentage"

# ------------------------------------------------------------------------------------------------
# Task Statuses
# ------------------------------------------------------------------------------------------------
TASK_STATUS_OPEN = "open"
TASK_STATUS_IN_PROGRESS = "in-progress"
TASK_STATUS_STEADY = "steady"
TASK_STATUS_READY = "ready"
TASK_STATUS_DONE = "done"
TASK_STATUS_IGNORED = "ignored"

TASK_STATUSES = [
    TASK_STATUS_OPEN,
    TASK_STATUS_IN_PROGRESS,
    TASK_STATUS_STEADY,
    TASK_STATUS_READY,
    TASK_STATUS_DONE,
    TASK_STATUS_IGNORED,
]

# Statuses a user may pick that survive partial progress
TASK_MANUAL_STATUSES = frozenset(
    {
        TASK_STATUS_IN_PROGRESS,
        TASK_STATUS_STEADY,
        TASK_STATUS_READY,
        TASK_STATUS_IGNORED,
    }
)

# Legacy spellings found in stored ledgers
TASK_STATUS_LEGACY_ALIASES = {
    "in progress": TASK_STATUS_IN_PROGRESS,
    "inprogress": TASK_STATUS_IN_PROGRESS,
}

# ------------------------------------------------------------------------------------------------
# List Cadences
# ------------------------------------------------------------------------------------------------
CADENCE_DAILY = "daily"
CADENCE_WEEKLY = "weekly"
CADENCE_ONE_OFF = "one-off"
CADENCE_MONTHLY = "monthly"
CADENCE_QUARTERLY = "quarterly"
CADENCE_SEMESTER = "semester"
CADENCE_YEARLY = "yearly"

CADENCES = [
    CADENCE_DAILY,
    CADENCE_WEEKLY,
    CADENCE_ONE_OFF,
    CADENCE_MONTHLY,
    CADENCE_QUARTERLY,
    CADENCE_SEMESTER,
    CADENCE_YEARLY,
]

# A daily budget covers a month of days, a weekly budget a month of weeks.
CADENCE_DIVISORS = {
    CADENCE_DAILY: 30,
    CADENCE_WEEKLY: 4,
    CADENCE_ONE_OFF: 1,
    CADENCE_MONTHLY: 1,
    CADENCE_QUARTERLY: 1,
    CADENCE_SEMESTER: 1,
    CADENCE_YEARLY: 1,
}

ROLE_SEPARATOR = "."
DEFAULT_ROLE_VARIANT = "default"

# ------------------------------------------------------------------------------------------------
# Defaults
# ------------------------------------------------------------------------------------------------
DEFAULT_ZERO = 0
DEFAULT_TASK_TIMES = 1
DATA_FLOAT_PRECISION = 4
PERCENTAGE_PRECISION = 2
MAX_BUDGET_PERCENTAGE = 100

# ------------------------------------------------------------------------------------------------
# Events (dispatcher signal suffixes)
# ------------------------------------------------------------------------------------------------
SIGNAL_SUFFIX_LEDGER_UPDATED = "ledger_updated"
SIGNAL_SUFFIX_BALANCE_CHANGED = "balance_changed"
SIGNAL_SUFFIX_TASK_LIST_DELETED = "task_list_deleted"
SIGNAL_SUFFIX_TASK_LIST_SAVED = "task_list_saved"

# ------------------------------------------------------------------------------------------------
# Services
# ------------------------------------------------------------------------------------------------
SERVICE_RECORD_COMPLETIONS = "record_completions"
SERVICE_UPDATE_TASK_STATUS = "update_task_status"
SERVICE_EPHEMERAL_TASKS = "ephemeral_tasks"
SERVICE_DELETE_TASK_LIST = "delete_task_list"
SERVICE_UPSERT_TASK_LIST = "upsert_task_list"
SERVICE_GET_DAY = "get_day"
SERVICE_GET_DAYS = "get_days"

# Service fields
FIELD_TASK_LIST_ID = "task_list_id"
FIELD_DAY_ACTIONS = "day_actions"
FIELD_DATE = "date"
FIELD_JUST_COMPLETED_NAMES = "just_completed_names"
FIELD_JUST_UNCOMPLETED_NAMES = "just_uncompleted_names"
FIELD_REQUEST_ID = "request_id"
FIELD_USER_ID = "user_id"
FIELD_TASK_KEY = "task_key"
FIELD_STATUS = "status"
FIELD_EPHEMERAL_ADD = "add"
FIELD_EPHEMERAL_CLOSE = "close"
FIELD_EPHEMERAL_UPDATE = "update"
FIELD_EPHEMERAL_REOPEN = "reopen"
FIELD_DELETE_TASK_LIST = "delete_task_list"
FIELD_NAME = "name"
FIELD_ROLE = "role"
FIELD_BUDGET = "budget"
FIELD_BUDGET_PERCENTAGE = "budget_percentage"
FIELD_TASKS = "tasks"
FIELD_TEMPLATE_TASKS = "template_tasks"
FIELD_START_DATE = "start_date"
FIELD_END_DATE = "end_date"
FIELD_YEAR = "year"

# Service response keys
RESPONSE_TASK_LIST = "task_list"
RESPONSE_EARNINGS = "earnings"
RESPONSE_DELETED = "deleted"
RESPONSE_DAY = "day"
RESPONSE_DAYS = "days"

# ------------------------------------------------------------------------------------------------
# Translation Keys
# ------------------------------------------------------------------------------------------------
TRANS_KEY_ERROR_SINGLE_INSTANCE = "single_instance_allowed"
TRANS_KEY_ERROR_NOT_FOUND = "not_found"
TRANS_KEY_ERROR_INVALID_DATE = "invalid_date"
TRANS_KEY_ERROR_INVALID_COUNT = "invalid_count"
TRANS_KEY_ERROR_INVALID_STATUS = "invalid_status"
TRANS_KEY_ERROR_UNRESOLVABLE_TASK_KEY = "unresolvable_task_key"
TRANS_KEY_ERROR_BUDGET_ALLOCATION_EXCEEDED = "budget_allocation_exceeded"
TRANS_KEY_ERROR_STORAGE_UNAVAILABLE = "storage_unavailable"
TRANS_KEY_ERROR_CONCURRENT_UPDATE = "concurrent_update"
TRANS_KEY_ERROR_NO_ENTRY = "no_entry"

# Config/options flow form errors
TRANS_KEY_CFOF_INVALID_PRIZE_SHARE = "invalid_prize_share"
TRANS_KEY_CFOF_INVALID_STORAGE_TIMEOUT = "invalid_storage_timeout"

# Entity type labels used in not_found placeholders
LABEL_TASK_LIST = "task list"
LABEL_TASK = "task"
LABEL_DAY = "day"

"""Type definitions for HabitLedger data structures.

Stored records keep the camelCase field names of the client contract
(`completedTasks`, `openTasks`, `remainingBudget`, ...), so the TypedDict
attributes below are camelCase too.

TypedDict is used for structures with fixed keys (tasks, completers, buckets,
users, days). The ledger itself (`completedTasks[year][date]`) and the
productivity map are keyed at runtime and stay `dict[str, Any]`.

IMPORTANT: This file must NOT import from coordinator.py, managers, or any
module that imports Home Assistant. Only const-free typing machinery.

NOTE: TypedDict is STATIC ANALYSIS ONLY. Runtime code still uses .get()
with defaults when reading stored documents.
"""

from typing import Any, NotRequired, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

TaskListId = str  # UUID string
TaskKey = str  # id, localeKey or lowercased name
UserId = str  # Home Assistant user id or external user id
ISODatetime = str  # "2025-01-10T08:30:00+00:00"
ISODate = str  # "2025-01-10"

# completedTasks: {"2025": {"2025-01-10": DateBucket}}
CompletionLedger = dict[str, dict[ISODate, Any]]


# =============================================================================
# Ledger Records
# =============================================================================


class CompleterData(TypedDict):
    """One unit of progress recorded against a task instance."""

    id: UserId
    earnings: float
    prize: float
    time: int  # 1-based repetition index
    completedAt: ISODatetime


class TaskData(TypedDict):
    """Blueprint task as authored on a list."""

    id: NotRequired[str]
    name: NotRequired[str]
    localeKey: NotRequired[str]
    times: NotRequired[int]
    categories: NotRequired[list[str]]
    area: NotRequired[str]
    favorite: NotRequired[bool]
    status: NotRequired[str]


class TaskInstanceData(TaskData):
    """Dated snapshot of a task carrying runtime completion state."""

    count: int
    completers: list[CompleterData]
    completedOn: NotRequired[ISODate]
    completedAt: NotRequired[ISODatetime]
    createdAt: NotRequired[ISODatetime]


class DateBucket(TypedDict):
    """Per-date ledger bucket partitioned by the closed predicate."""

    openTasks: list[TaskInstanceData]
    closedTasks: list[TaskInstanceData]
    appliedRequests: NotRequired[list[str]]


class EphemeralTasks(TypedDict):
    """Ad-hoc tasks scoped to a list, independent of date."""

    open: list[TaskInstanceData]
    closed: list[TaskInstanceData]


class ListMember(TypedDict):
    """Membership of a user in a task list."""

    userId: UserId
    role: str  # OWNER | COLLABORATOR | MANAGER


class TaskListData(TypedDict):
    """Owned aggregate root holding blueprint, ledger and ephemeral tasks."""

    id: TaskListId
    name: NotRequired[str]
    role: str
    budget: NotRequired[float | None]
    budgetPercentage: NotRequired[float]
    remainingBudget: NotRequired[float | None]
    tasks: list[TaskData]
    templateTasks: NotRequired[list[TaskData]]
    users: list[ListMember]
    completedTasks: CompletionLedger
    ephemeralTasks: EphemeralTasks
    createdAt: NotRequired[ISODatetime]
    updatedAt: NotRequired[ISODatetime]
    revision: int


class UserData(TypedDict):
    """Running balances for one user."""

    id: UserId
    availableBalance: float
    stash: float
    profit: float
    equity: float
    usedBudget: NotRequired[float]
    remainingBudget: NotRequired[float]
    revision: int


# =============================================================================
# Read Projection
# =============================================================================


class TickerEntry(TypedDict):
    """Per-task earnings line shown in the UI ticker."""

    listId: TaskListId
    taskId: TaskKey
    profit: float
    prize: float


class ProductivityEntry(TypedDict):
    """Completion ratio of one list for one day."""

    totalTasks: int
    completedTasks: int
    percentage: float


class DayData(TypedDict):
    """Per-user-per-date summary derived from the completion ledger."""

    date: ISODate
    tasks: list[dict[str, Any]]
    ticker: list[TickerEntry]
    productivity: dict[TaskListId, ProductivityEntry]
    progress: float
    balance: float
    stash: float
    equity: float
    earnings: float
    week: int
    month: int
    quarter: int
    semester: int
    updatedAt: ISODatetime

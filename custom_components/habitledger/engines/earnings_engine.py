"""Earnings Engine - Pure logic for completion value, budget and balances.

This engine provides stateless, pure Python functions for:
- Cadence parsing from a list role ("daily.custom" → "daily")
- Value of one task completion (budget / tasks / cadence divisor)
- Prize/profit split of that value, prize capped by the remaining budget
- Exact reversal of previously awarded completers
- Remaining budget initialization and consumption
- User balance reconciliation clamped at zero

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
State management belongs in LedgerManager and UserManager.

Budget consumption is a one-way meter: uncompleting a task reverses the
earnings credited to the user but never refunds the list's remaining budget.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.math_utils import clamp, floor_at_zero, parse_money, round_money

if TYPE_CHECKING:
    from ..type_defs import CompleterData


# =============================================================================
# VALUE OBJECTS
# =============================================================================


@dataclass(frozen=True)
class CompletionAward:
    """Value of completions split into budget-capped prize and profit."""

    prize: float = 0.0
    profit: float = 0.0

    @property
    def total(self) -> float:
        """Prize plus profit."""
        return round_money(self.prize + self.profit)


@dataclass(frozen=True)
class BalanceDelta:
    """Signed change to a user's stash (prize) and profit."""

    stash_delta: float = 0.0
    profit_delta: float = 0.0

    @property
    def total(self) -> float:
        """Net change in equity."""
        return round_money(self.stash_delta + self.profit_delta)

    def __add__(self, other: BalanceDelta) -> BalanceDelta:
        """Sum two deltas."""
        return BalanceDelta(
            stash_delta=round_money(self.stash_delta + other.stash_delta),
            profit_delta=round_money(self.profit_delta + other.profit_delta),
        )


@dataclass(frozen=True)
class UserBalances:
    """Reconciled balances of a user; all values are >= 0."""

    stash: float
    profit: float
    equity: float
    available_balance: float


@dataclass
class AwardPolicy:
    """Hands out awards for the completions of one action.

    The prize pool starts at the list's remaining budget and shrinks with
    every prize handed out, so several completions in one action can never
    pay more prize than the budget has left.
    """

    profit_per_task: float
    prize_share: float
    prize_pool: float

    def next_award(self) -> CompletionAward:
        """Return the award for the next completion and consume its prize."""
        award = EarningsEngine.split_award(
            self.profit_per_task, self.prize_share, self.prize_pool
        )
        self.prize_pool = round_money(floor_at_zero(self.prize_pool - award.prize))
        return award


# =============================================================================
# EARNINGS ENGINE
# =============================================================================


class EarningsEngine:
    """Pure logic engine for earnings, budget consumption and balances.

    All methods are static - no instance state.
    """

    # =========================================================================
    # CADENCE
    # =========================================================================

    @staticmethod
    def parse_cadence(role: str | None) -> str:
        """Return the cadence prefix of a list role.

        Unknown or missing cadences are treated as one-off, which consumes
        the full share per completion.

        Examples:
            parse_cadence("daily.custom") → "daily"
            parse_cadence("weekly") → "weekly"
            parse_cadence("sometimes.default") → "one-off"
        """
        if not role or not isinstance(role, str):
            return const.CADENCE_ONE_OFF
        cadence = role.split(const.ROLE_SEPARATOR, 1)[0].strip().lower()
        if cadence in const.CADENCES:
            return cadence
        return const.CADENCE_ONE_OFF

    @staticmethod
    def cadence_divisor(role: str | None) -> int:
        """Return how many periods one budget is amortized over."""
        return const.CADENCE_DIVISORS[EarningsEngine.parse_cadence(role)]

    # =========================================================================
    # COMPLETION VALUE
    # =========================================================================

    @staticmethod
    def total_tasks(task_list: dict[str, Any]) -> int:
        """Return the blueprint task count of a list (minimum 1)."""
        tasks = task_list.get(const.DATA_LIST_TASKS) or task_list.get(
            const.DATA_LIST_TEMPLATE_TASKS
        )
        return max(1, len(tasks or []))

    @staticmethod
    def action_profit(budget: Any, total_tasks: int) -> float:
        """Return budget / total_tasks, or 0 for a missing budget."""
        amount = parse_money(budget)
        if amount <= 0 or total_tasks <= 0:
            return 0.0
        return amount / total_tasks

    @staticmethod
    def profit_per_task(budget: Any, total_tasks: int, role: str | None) -> float:
        """Return the value of one completion for a list.

        Examples:
            profit_per_task(100, 2, "daily.custom") → 1.6667  # (100/2)/30
            profit_per_task(400, 1, "weekly.default") → 100.0
            profit_per_task(90, 3, "one-off.default") → 30.0
        """
        action_profit = EarningsEngine.action_profit(budget, total_tasks)
        return round_money(action_profit / EarningsEngine.cadence_divisor(role))

    @staticmethod
    def split_award(
        profit_per_task: float,
        prize_share: float,
        remaining_budget: float | None,
    ) -> CompletionAward:
        """Split one completion's value into prize and profit.

        The prize is `prize_share` of the value, capped by what is left of the
        list budget; the profit absorbs the remainder so that
        prize + profit == profit_per_task.
        """
        if profit_per_task <= 0:
            return CompletionAward()
        share = clamp(prize_share, 0.0, 1.0)
        cap = floor_at_zero(remaining_budget or 0.0)
        prize = round_money(min(profit_per_task * share, cap))
        profit = round_money(profit_per_task - prize)
        return CompletionAward(prize=prize, profit=profit)

    @staticmethod
    def build_award_policy(
        task_list: dict[str, Any],
        prize_share: float = const.DEFAULT_PRIZE_SHARE,
    ) -> AwardPolicy:
        """Build the award policy for one action against a list."""
        budget = task_list.get(const.DATA_LIST_BUDGET)
        remaining = EarningsEngine.initialize_remaining_budget(
            task_list.get(const.DATA_LIST_REMAINING_BUDGET), budget
        )
        return AwardPolicy(
            profit_per_task=EarningsEngine.profit_per_task(
                budget,
                EarningsEngine.total_tasks(task_list),
                task_list.get(const.DATA_LIST_ROLE),
            ),
            prize_share=prize_share,
            prize_pool=remaining,
        )

    @staticmethod
    def award_for_completers(award: CompletionAward, completers: int) -> CompletionAward:
        """Scale a single-completer award linearly to several completers."""
        count = max(0, completers)
        return CompletionAward(
            prize=round_money(award.prize * count),
            profit=round_money(award.profit * count),
        )

    @staticmethod
    def summarize_completers(
        completers: Iterable[CompleterData],
        user_id: str | None = None,
    ) -> CompletionAward:
        """Sum the stored prize/earnings of completer records.

        Args:
            completers: Completer records to sum
            user_id: Only count this user's records when given
        """
        prize = 0.0
        profit = 0.0
        for completer in completers:
            if user_id is not None and completer.get(const.DATA_COMPLETER_ID) != user_id:
                continue
            prize += parse_money(completer.get(const.DATA_COMPLETER_PRIZE))
            profit += parse_money(completer.get(const.DATA_COMPLETER_EARNINGS))
        return CompletionAward(prize=round_money(prize), profit=round_money(profit))

    @staticmethod
    def reversal_for_completers(removed: Iterable[CompleterData]) -> CompletionAward:
        """Return the exact negative of what the removed records were paid."""
        paid = EarningsEngine.summarize_completers(removed)
        return CompletionAward(prize=-paid.prize, profit=-paid.profit)

    @staticmethod
    def deltas_by_user(
        added: Iterable[CompleterData],
        removed: Iterable[CompleterData],
    ) -> dict[str, BalanceDelta]:
        """Group balance deltas by the user owning each completer record.

        Removed records are reversed using their stored values, never
        recomputed from the list's current budget or task count.
        """
        deltas: dict[str, BalanceDelta] = {}
        for records, is_addition in ((added, True), (removed, False)):
            sign = 1.0 if is_addition else -1.0
            for completer in records:
                user_id = completer.get(const.DATA_COMPLETER_ID)
                if not user_id:
                    continue
                delta = EarningsEngine.stash_and_profit_deltas(
                    sign * parse_money(completer.get(const.DATA_COMPLETER_PRIZE)),
                    sign * parse_money(completer.get(const.DATA_COMPLETER_EARNINGS)),
                    is_addition=is_addition,
                )
                deltas[user_id] = deltas.get(user_id, BalanceDelta()) + delta
        return deltas

    @staticmethod
    def net_earnings(
        added: Iterable[CompleterData],
        removed: Iterable[CompleterData],
    ) -> float:
        """Return the net value of an action (awards minus reversals)."""
        gained = EarningsEngine.summarize_completers(added).total
        lost = EarningsEngine.summarize_completers(removed).total
        return round_money(gained - lost)

    # =========================================================================
    # BUDGET CONSUMPTION TRACKER
    # =========================================================================

    @staticmethod
    def initialize_remaining_budget(current: Any, budget: Any) -> float:
        """Return the remaining budget, seeding it from the budget when unset."""
        if current is not None and current != "":
            return floor_at_zero(parse_money(current))
        return floor_at_zero(parse_money(budget))

    @staticmethod
    def calculate_budget_consumption(
        remaining: Any,
        budget: Any,
        total_tasks: int,
    ) -> float:
        """Consume one task's share of the budget, floored at zero.

        Called once per action that completed at least one task.

        Examples:
            calculate_budget_consumption(100, 100, 2) → 50.0
            calculate_budget_consumption(10, 100, 2) → 0.0
            calculate_budget_consumption(None, 0, 2) → 0.0
        """
        current = EarningsEngine.initialize_remaining_budget(remaining, budget)
        amount = parse_money(budget)
        if total_tasks <= 0 or amount <= 0:
            return current
        return round_money(floor_at_zero(current - amount / total_tasks))

    # =========================================================================
    # USER BALANCE RECONCILER
    # =========================================================================

    @staticmethod
    def stash_and_profit_deltas(
        prize_delta: float,
        profit_delta: float,
        is_addition: bool = True,
    ) -> BalanceDelta:
        """Keep only deltas whose sign matches the direction of the change.

        Additions can only raise balances and removals can only lower them.
        """
        if is_addition:
            return BalanceDelta(
                stash_delta=max(0.0, prize_delta),
                profit_delta=max(0.0, profit_delta),
            )
        return BalanceDelta(
            stash_delta=min(0.0, prize_delta),
            profit_delta=min(0.0, profit_delta),
        )

    @staticmethod
    def calculate_updated_user_values(
        current_stash: Any,
        current_profit: Any,
        current_available_balance: Any,
        delta: BalanceDelta,
    ) -> UserBalances:
        """Apply a delta to a user's balances, clamping everything at zero.

        Equity is derived as stash + profit after clamping.
        """
        stash = floor_at_zero(
            floor_at_zero(parse_money(current_stash)) + delta.stash_delta
        )
        profit = floor_at_zero(
            floor_at_zero(parse_money(current_profit)) + delta.profit_delta
        )
        return UserBalances(
            stash=round_money(stash),
            profit=round_money(profit),
            equity=round_money(stash + profit),
            available_balance=round_money(
                floor_at_zero(parse_money(current_available_balance))
            ),
        )

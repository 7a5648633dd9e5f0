"""
Budget Evaluator

Checks a new expense against the group's monthly budget.

The month is the calendar month (UTC) containing "now":
[first instant of the month, first instant of next month).
The new expense's own amount is included in the total.

IMPORTANT: The result is advisory. The expense is stored regardless and
the caller decides what to do with the warning.

CONCURRENCY: The month total is read, then the expense is inserted, with
no isolation between the two. Two expenses added at the same moment may
each miss the other. This is accepted best-effort behaviour.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from splitledger.models.ledger import BudgetCheck, Expense
from splitledger.models.money import from_minor_units, to_minor_units


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """First instant of the month and first instant of the next one, UTC."""
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, end


def current_month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Month window containing `now`."""
    now = now.astimezone(timezone.utc)
    return month_bounds(now.year, now.month)


def in_window(expense: Expense, start: datetime, end: datetime) -> bool:
    return start <= expense.created_at < end


def month_total_minor(
    expenses: Iterable[Expense],
    start: datetime,
    end: datetime,
) -> int:
    """Sum of expense amounts inside the window, in minor units."""
    return sum(
        to_minor_units(expense.amount)
        for expense in expenses
        if in_window(expense, start, end)
    )


def evaluate_budget(
    existing_expenses: Iterable[Expense],
    new_amount: Decimal,
    budget_limit: Optional[Decimal],
    now: datetime,
) -> BudgetCheck:
    """
    Month-to-date spend including the pending expense, and whether it
    breaks the limit.

    A total exactly equal to the limit is not over it. Without a limit
    the total is still reported and over_limit is False.
    """
    start, end = current_month_bounds(now)
    total = month_total_minor(existing_expenses, start, end) + to_minor_units(new_amount)

    over_limit = False
    if budget_limit is not None:
        over_limit = total > to_minor_units(budget_limit)

    return BudgetCheck(
        total=from_minor_units(total),
        budget_limit=budget_limit,
        over_limit=over_limit,
        window_start=start,
        window_end=end,
    )

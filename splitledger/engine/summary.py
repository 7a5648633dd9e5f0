"""Monthly spending summary for a group."""

from typing import Iterable

from splitledger.engine.budget import in_window, month_bounds
from splitledger.models.ledger import ContributorTotal, Expense, MonthlySummary
from splitledger.models.money import from_minor_units, to_minor_units


def monthly_summary(
    group_id: str,
    expenses: Iterable[Expense],
    year: int,
    month: int,
) -> MonthlySummary:
    """
    Total spend and per-payer totals for one calendar month.

    Contributors are sorted by amount, largest first. Equal amounts keep
    the order in which the payer first appeared.
    """
    start, end = month_bounds(year, month)

    total = 0
    count = 0
    contributors: dict[str, int] = {}
    for expense in expenses:
        if not in_window(expense, start, end):
            continue
        amount = to_minor_units(expense.amount)
        total += amount
        count += 1
        contributors[expense.payer] = contributors.get(expense.payer, 0) + amount

    ranked = sorted(contributors.items(), key=lambda item: -item[1])

    return MonthlySummary(
        group_id=group_id,
        year=year,
        month=month,
        total=from_minor_units(total),
        expense_count=count,
        top_contributors=[
            ContributorTotal(member=member, amount=from_minor_units(amount))
            for member, amount in ranked
        ],
    )

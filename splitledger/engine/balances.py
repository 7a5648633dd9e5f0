"""
Balance Calculator

Folds a group's full expense and settlement history into one signed net
amount per member.

Sign convention:
- Positive balance = is owed money (others owe them)
- Negative balance = owes money (they owe others)

An expense credits its amount to the payer and debits each split from
the split's member. A settlement means `from` already paid `to`, so it is
the inverse: `from` goes up, `to` goes down.

All sums are integer minor units. Decimals appear only in the report.
"""

from typing import Iterable

from splitledger.models.ledger import (
    BalanceReport,
    Expense,
    MemberBalance,
    Settlement,
)
from splitledger.models.money import from_minor_units, to_minor_units


def compute_balances(
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement] = (),
) -> dict[str, int]:
    """
    Compute each member's net balance in minor units.

    The returned dict is in order of first appearance: expenses in the
    order given (payer, then splits), followed by settlement parties not
    seen before. Members whose balance nets to zero stay in the mapping.

    Never fails on an empty history; it just returns an empty dict.
    """
    balances: dict[str, int] = {}

    for expense in expenses:
        balances[expense.payer] = (
            balances.get(expense.payer, 0) + to_minor_units(expense.amount)
        )
        for split in expense.splits:
            balances[split.member] = (
                balances.get(split.member, 0) - to_minor_units(split.amount)
            )

    for settlement in settlements:
        amount = to_minor_units(settlement.amount)
        balances[settlement.from_member] = (
            balances.get(settlement.from_member, 0) + amount
        )
        balances[settlement.to_member] = (
            balances.get(settlement.to_member, 0) - amount
        )

    return balances


def non_zero_balances(balances: dict[str, int]) -> dict[str, int]:
    """Drop settled members. A zero balance is neither creditor nor debtor."""
    return {member: amount for member, amount in balances.items() if amount != 0}


def balance_report(group_id: str, balances: dict[str, int]) -> BalanceReport:
    """Convert a minor-unit balance map into the Decimal report callers see."""
    return BalanceReport(
        group_id=group_id,
        balances=[
            MemberBalance(member=member, balance=from_minor_units(amount))
            for member, amount in balances.items()
        ],
    )

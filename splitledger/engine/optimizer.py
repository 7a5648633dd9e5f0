"""
Debt Optimizer

Turns a balance map into the fewest pairwise payments that zero it out.

ALGORITHM: two-pointer greedy merge.
1. Split members into creditors (balance > 0) and debtors (balance < 0,
   kept as a positive owed amount). Zero balances are skipped.
2. Order both sides by the configured SettlementOrdering.
3. Take the current debtor and creditor, pay the smaller outstanding
   amount, and advance past whichever side reached exactly zero. Both
   pointers move when the amounts tie.
4. Stop when either side runs out.

GUARANTEES (for a zero-sum input):
- At most (#creditors + #debtors - 1) payments, since every step retires
  at least one party and the last step retires two.
- Every debtor pays exactly what they owed.

If the input does not sum to zero the loop still terminates. Whatever is
left on the non-exhausted side is reported as a residual rather than
dropped.
"""

from typing import Optional

import structlog

from splitledger.errors import InconsistencyError
from splitledger.models.ledger import (
    MemberBalance,
    SettlementInstruction,
    SettlementOrdering,
    SettlementPlan,
)
from splitledger.models.money import from_minor_units


logger = structlog.get_logger(__name__)


def _order(parties: list[list], ordering: SettlementOrdering) -> list[list]:
    if ordering == SettlementOrdering.LARGEST_FIRST:
        # sorted() is stable, so equal amounts keep first-appearance order
        return sorted(parties, key=lambda party: -party[1])
    return parties


def optimize_debts(
    balances: dict[str, int],
    ordering: SettlementOrdering = SettlementOrdering.LARGEST_FIRST,
    group_id: Optional[str] = None,
    strict: bool = False,
) -> SettlementPlan:
    """
    Produce an ordered settlement plan from minor-unit balances.

    Args:
        balances: member -> signed minor units, in first-appearance order
        ordering: how creditors and debtors are ordered before merging
        group_id: carried through to the plan for the caller's benefit
        strict: raise InconsistencyError instead of reporting a residual

    Returns:
        SettlementPlan with Decimal amounts
    """
    creditors = [[m, amt] for m, amt in balances.items() if amt > 0]
    debtors = [[m, -amt] for m, amt in balances.items() if amt < 0]

    imbalance = sum(balances.values())
    if imbalance != 0 and strict:
        raise InconsistencyError(
            f"Balances for group {group_id} sum to "
            f"{from_minor_units(imbalance)} instead of zero",
            residual=from_minor_units(imbalance),
        )

    creditors = _order(creditors, ordering)
    debtors = _order(debtors, ordering)

    instructions = []
    i = j = 0
    while i < len(debtors) and j < len(creditors):
        debtor, creditor = debtors[i], creditors[j]
        pay = min(debtor[1], creditor[1])

        instructions.append(SettlementInstruction(
            from_member=debtor[0],
            to_member=creditor[0],
            amount=from_minor_units(pay),
        ))

        debtor[1] -= pay
        creditor[1] -= pay
        if debtor[1] == 0:
            i += 1
        if creditor[1] == 0:
            j += 1

    # Only one side can have leftovers: the loop stops when the other ran out
    unmatched = [
        MemberBalance(member=m, balance=from_minor_units(-amt))
        for m, amt in debtors[i:]
    ] + [
        MemberBalance(member=m, balance=from_minor_units(amt))
        for m, amt in creditors[j:]
    ]
    residual = sum((u.balance for u in unmatched), from_minor_units(0))

    if unmatched:
        logger.warning(
            "ledger_residual_imbalance",
            group_id=group_id,
            residual=str(residual),
            unmatched=[u.member for u in unmatched],
        )

    return SettlementPlan(
        group_id=group_id,
        ordering=ordering,
        settlements=instructions,
        residual=residual,
        unmatched=unmatched,
    )

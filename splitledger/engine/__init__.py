"""
Ledger Balance Engine

Pure computations over already-loaded records. Nothing in here caches
between calls. The lifecycle manager is the only piece that writes, and
it only writes the lock flag.
"""

from splitledger.engine.balances import (
    balance_report,
    compute_balances,
    non_zero_balances,
)
from splitledger.engine.budget import (
    current_month_bounds,
    evaluate_budget,
    month_bounds,
)
from splitledger.engine.lifecycle import (
    LOCK_THRESHOLD,
    LifecycleManager,
    age_exceeds_threshold,
)
from splitledger.engine.optimizer import optimize_debts
from splitledger.engine.summary import monthly_summary

__all__ = [
    "LOCK_THRESHOLD",
    "LifecycleManager",
    "age_exceeds_threshold",
    "balance_report",
    "compute_balances",
    "current_month_bounds",
    "evaluate_budget",
    "month_bounds",
    "monthly_summary",
    "non_zero_balances",
    "optimize_debts",
]

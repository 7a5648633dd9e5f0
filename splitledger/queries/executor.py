"""
Ledger Query Engine

Read-side operations over a group's history: filtered expense listing,
monthly summaries, and CSV export.

DESIGN DECISION: Every query reads fresh from storage and computes on the
spot. Nothing is cached between calls, so results always reflect the
current history.

Any expense a query returns has been passed through the lifecycle
manager first, so stale expenses get locked on read.
"""

import csv
import io
from datetime import MAXYEAR, MINYEAR, datetime
from typing import Optional

from splitledger.engine.lifecycle import LifecycleManager
from splitledger.engine.summary import monthly_summary
from splitledger.errors import LedgerValidationError
from splitledger.models.ledger import Expense, ExpenseFilter, MonthlySummary
from splitledger.models.money import format_amount
from splitledger.services.storage import LedgerStorageInterface


CSV_COLUMNS = [
    "id",
    "payer",
    "amount",
    "category",
    "description",
    "split_type",
    "created_at",
]


class LedgerQueryExecutor:
    """
    Executes read queries against ledger storage.

    GUARANTEES:
    - Only returns real data from storage
    - Never estimates or interpolates
    - An unknown group reads as empty, not as an error
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        lifecycle: LifecycleManager,
    ):
        self._storage = storage
        self._lifecycle = lifecycle

    async def list_expenses(
        self,
        group_id: str,
        filters: Optional[ExpenseFilter] = None,
        now: Optional[datetime] = None,
    ) -> list[Expense]:
        """List a group's expenses, locking any that have aged out."""
        expenses = await self._storage.list_expenses(group_id, filters)
        return await self._lifecycle.refresh_all(expenses, now=now)

    async def monthly_summary(
        self,
        group_id: str,
        year: int,
        month: int,
    ) -> MonthlySummary:
        """
        Total spend and top contributors for one calendar month.

        Raises:
            LedgerValidationError: month is not 1-12 or year is out of range
        """
        if not 1 <= month <= 12:
            raise LedgerValidationError(f"Month must be between 1 and 12, got {month}")
        if not MINYEAR <= year <= MAXYEAR:
            raise LedgerValidationError(f"Year out of range: {year}")
        if (year, month) == (MAXYEAR, 12):
            # The window end (first instant of the next month) is not representable
            raise LedgerValidationError(f"Month out of range: {year}-{month:02d}")

        expenses = await self._storage.list_expenses(group_id)
        return monthly_summary(group_id, expenses, year, month)

    async def export_expenses_csv(
        self,
        group_id: str,
        now: Optional[datetime] = None,
    ) -> str:
        """Render a group's expenses as CSV text with a header row."""
        expenses = await self.list_expenses(group_id, now=now)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_COLUMNS)
        for expense in expenses:
            writer.writerow([
                str(expense.id),
                expense.payer,
                format_amount(expense.amount),
                expense.category,
                expense.description or "",
                expense.split_type.value,
                expense.created_at.isoformat(),
            ])
        return buffer.getvalue()

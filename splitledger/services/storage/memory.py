"""
In-Memory Storage

Reference implementation of the storage interfaces, backed by dicts.
Used by the test suite and by `create_app_components` when no other
backend is supplied.

Records are copied on the way in and on the way out, so callers can
never mutate stored state except through the interface, the same as
with a real database.
"""

from typing import Optional
from uuid import UUID

from splitledger.errors import DuplicateError, NotFoundError
from splitledger.models.audit import AuditEvent
from splitledger.models.ledger import (
    Comment,
    Expense,
    ExpenseFilter,
    GroupBudget,
    Settlement,
)
from splitledger.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed ledger store. Insertion order is preserved."""

    def __init__(self, budgets: Optional[dict[str, GroupBudget]] = None):
        self._expenses: dict[UUID, Expense] = {}
        self._settlements: dict[UUID, Settlement] = {}
        self._budgets: dict[str, GroupBudget] = dict(budgets or {})
        self.lock_writes = 0

    def set_group_budget(self, budget: GroupBudget) -> None:
        """Stand-in for the group collaborator configuring a budget."""
        self._budgets[budget.group_id] = budget

    async def save_expense(self, expense: Expense) -> bool:
        if expense.id in self._expenses:
            raise DuplicateError(f"Expense {expense.id} already exists")
        self._expenses[expense.id] = expense.model_copy(deep=True)
        return True

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        return expense.model_copy(deep=True) if expense else None

    async def list_expenses(
        self,
        group_id: str,
        filters: Optional[ExpenseFilter] = None,
    ) -> list[Expense]:
        return [
            expense.model_copy(deep=True)
            for expense in self._expenses.values()
            if expense.group_id == group_id
            and (filters is None or filters.matches(expense))
        ]

    async def mark_expense_locked(self, expense_id: UUID) -> bool:
        expense = self._expenses.get(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense {expense_id} not found")
        if expense.locked:
            return False
        expense.locked = True
        self.lock_writes += 1
        return True

    async def append_comment(self, expense_id: UUID, comment: Comment) -> Expense:
        expense = self._expenses.get(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense {expense_id} not found")
        expense.comments.append(comment.model_copy())
        return expense.model_copy(deep=True)

    async def save_settlement(self, settlement: Settlement) -> bool:
        if settlement.id in self._settlements:
            raise DuplicateError(f"Settlement {settlement.id} already exists")
        self._settlements[settlement.id] = settlement.model_copy(deep=True)
        return True

    async def list_settlements(self, group_id: str) -> list[Settlement]:
        return [
            settlement.model_copy(deep=True)
            for settlement in self._settlements.values()
            if settlement.group_id == group_id
        ]

    async def get_group_budget(self, group_id: str) -> Optional[GroupBudget]:
        return self._budgets.get(group_id)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]

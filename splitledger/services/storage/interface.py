"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the record store.
This allows us to:
1. Keep the balance engine free of any persistence technology
2. Use in-memory storage for testing
3. Plug in a real database without touching the engine

The interface only has what the ledger needs: append expenses and
settlements, read them back by group, append comments, and flip the
lock flag. There is no delete and no general update.

Every method may raise StorageError. The ledger never catches it beyond
recording an audit event; it propagates to the caller.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from splitledger.models.audit import AuditEvent
from splitledger.models.ledger import (
    Comment,
    Expense,
    ExpenseFilter,
    GroupBudget,
    Settlement,
)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger record storage.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def save_expense(self, expense: Expense) -> bool:
        """
        Append a new expense.

        Raises:
            DuplicateError: an expense with this id already exists
            StorageError: if save fails
        """
        pass

    @abstractmethod
    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        """Retrieve an expense by id, or None if it does not exist."""
        pass

    @abstractmethod
    async def list_expenses(
        self,
        group_id: str,
        filters: Optional[ExpenseFilter] = None,
    ) -> list[Expense]:
        """
        List a group's expenses in insertion order.

        Args:
            group_id: Group to read
            filters: Optional category/amount/date filters

        Returns:
            Matching expenses. An unknown group gives an empty list.
        """
        pass

    @abstractmethod
    async def mark_expense_locked(self, expense_id: UUID) -> bool:
        """
        Set the expense's locked flag.

        Returns:
            True if the flag changed, False if it was already set

        Raises:
            NotFoundError: expense doesn't exist
        """
        pass

    @abstractmethod
    async def append_comment(self, expense_id: UUID, comment: Comment) -> Expense:
        """
        Append a comment and return the updated expense.

        Raises:
            NotFoundError: expense doesn't exist
        """
        pass

    @abstractmethod
    async def save_settlement(self, settlement: Settlement) -> bool:
        """Append a settlement record."""
        pass

    @abstractmethod
    async def list_settlements(self, group_id: str) -> list[Settlement]:
        """List a group's settlements in insertion order."""
        pass

    @abstractmethod
    async def get_group_budget(self, group_id: str) -> Optional[GroupBudget]:
        """
        Read the group's budget configuration.

        Returns None when the group is unknown to the budget collaborator.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the log."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events sharing a correlation id, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """All events about one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent events, newest first."""
        pass

"""
Main Orchestrator for Split Ledger

This module ties together storage, the balance engine, validation and
auditing, and defines the end-to-end flows for:
1. Expenses (validate → budget check → store; read; comment)
2. Balances (history → balances → settlement plan; record settlements)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every read of an expense goes through the lifecycle manager
- Budget checks are advisory and never stop an insert
- Storage failures are audited and then propagated unchanged
- Every mutation is audited

Storage calls are the only suspension points. The engine computations
between them are synchronous, so a cancelled request stops before or
after a fetch, never halfway through a calculation.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Union
from uuid import UUID

import structlog

from splitledger.audit import AuditLogger, create_correlation_id
from splitledger.config import LedgerSettings, get_settings
from splitledger.engine.balances import balance_report, compute_balances, non_zero_balances
from splitledger.engine.budget import current_month_bounds, evaluate_budget
from splitledger.engine.lifecycle import LifecycleManager
from splitledger.engine.optimizer import optimize_debts
from splitledger.errors import (
    ExpenseLockedError,
    InconsistencyError,
    LedgerValidationError,
    NotFoundError,
    StorageError,
)
from splitledger.models.audit import AuditEventBuilder
from splitledger.models.ledger import (
    AddExpenseResult,
    BalanceReport,
    Comment,
    Expense,
    ExpenseCreate,
    ExpenseFilter,
    MonthlySummary,
    Settlement,
    SettlementCreate,
    SettlementPlan,
    utc_now,
)
from splitledger.queries import LedgerQueryExecutor
from splitledger.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)
from splitledger.validation import ExpenseValidator, parse_request


logger = structlog.get_logger(__name__)


class _AuditedFlow:
    """Shared plumbing: audit helpers and storage-failure reporting."""

    def __init__(self, audit_logger: Optional[AuditLogger]):
        self._audit_logger = audit_logger

    async def _audit(self, event) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    @asynccontextmanager
    async def _storage_call(
        self,
        operation: str,
        group_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ):
        try:
            yield
        except StorageError as e:
            logger.error("storage_failure", operation=operation, error=str(e))
            await self._audit(AuditEventBuilder.storage_error(
                operation=operation,
                error_message=str(e),
                group_id=group_id,
                correlation_id=correlation_id,
            ))
            raise

    async def _validation_failed(
        self,
        error: LedgerValidationError,
        entity_type: str,
        group_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self._audit(AuditEventBuilder.validation_failed(
            entity_type=entity_type,
            issues=[
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in error.issues
            ],
            group_id=group_id,
            correlation_id=correlation_id,
        ))


class ExpenseFlow(_AuditedFlow):
    """
    Orchestrates adding, reading and commenting on expenses.

    Add flow:
    1. Parse and validate the request
    2. Read the month's expenses and the group budget
    3. Evaluate the budget (advisory)
    4. Store the expense
    5. Return the expense with the budget outcome
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        lifecycle: LifecycleManager,
        queries: LedgerQueryExecutor,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(audit_logger)
        self._storage = storage
        self._lifecycle = lifecycle
        self._queries = queries
        self._validator = validator or ExpenseValidator()
        self._clock = clock

    async def add_expense(
        self,
        request: Union[ExpenseCreate, dict[str, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> AddExpenseResult:
        """
        Validate, budget-check and store a new expense.

        Raises:
            LedgerValidationError: request is malformed
            StorageError: propagated from the record store
        """
        correlation_id = correlation_id or create_correlation_id()
        group_id = request.get("group_id") if isinstance(request, dict) else request.group_id

        try:
            if isinstance(request, dict):
                request = parse_request(ExpenseCreate, request)
            result = self._validator.validate_expense(request)
            self._validator.raise_for_errors(result, subject="expense")
        except LedgerValidationError as e:
            await self._validation_failed(e, "expense", group_id, correlation_id)
            raise

        now = self._clock()
        window_start, _ = current_month_bounds(now)

        async with self._storage_call("add_expense", request.group_id, correlation_id):
            budget = await self._storage.get_group_budget(request.group_id)
            month_expenses = await self._storage.list_expenses(
                request.group_id, ExpenseFilter(created_from=window_start)
            )

            check = evaluate_budget(
                month_expenses,
                request.amount,
                budget.budget_limit if budget else None,
                now,
            )

            expense = request.to_expense(created_at=now)
            await self._storage.save_expense(expense)

        await self._audit(AuditEventBuilder.expense_added(
            expense_id=expense.id,
            group_id=expense.group_id,
            payer=expense.payer,
            amount=expense.amount,
            correlation_id=correlation_id,
        ))

        if check.over_limit:
            logger.warning(
                "budget_exceeded",
                group_id=expense.group_id,
                total=str(check.total),
                budget_limit=str(check.budget_limit),
            )
            await self._audit(AuditEventBuilder.budget_exceeded(
                group_id=expense.group_id,
                total=check.total,
                budget_limit=check.budget_limit,
                correlation_id=correlation_id,
            ))

        return AddExpenseResult(
            expense=expense,
            over_limit=check.over_limit,
            total=check.total,
            budget_limit=check.budget_limit,
            warnings=result.warnings,
        )

    async def get_expense(
        self,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Read one expense, locking it if it has aged out.

        Raises:
            NotFoundError: no such expense
        """
        async with self._storage_call("get_expense", correlation_id=correlation_id):
            expense = await self._storage.get_expense(expense_id)
            if expense is None:
                raise NotFoundError(f"Expense {expense_id} not found")
            return await self._lifecycle.refresh(expense, correlation_id=correlation_id)

    async def list_expenses(
        self,
        group_id: str,
        filters: Optional[ExpenseFilter] = None,
    ) -> list[Expense]:
        """List a group's expenses with optional filters."""
        async with self._storage_call("list_expenses", group_id):
            return await self._queries.list_expenses(group_id, filters)

    async def add_comment(
        self,
        expense_id: UUID,
        author: str,
        text: Optional[str] = None,
        emoji: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Append a comment to an expense.

        Raises:
            LedgerValidationError: neither text nor emoji given
            NotFoundError: no such expense
            ExpenseLockedError: the expense is locked
        """
        correlation_id = correlation_id or create_correlation_id()
        comment = parse_request(Comment, {
            "author": author,
            "text": text,
            "emoji": emoji,
            "created_at": self._clock(),
        })

        expense = await self.get_expense(expense_id, correlation_id=correlation_id)

        try:
            await self._lifecycle.ensure_commentable(expense, correlation_id=correlation_id)
        except ExpenseLockedError:
            await self._audit(AuditEventBuilder.comment_rejected(
                expense_id=expense.id,
                group_id=expense.group_id,
                author=author,
                correlation_id=correlation_id,
            ))
            raise

        async with self._storage_call("add_comment", expense.group_id, correlation_id):
            updated = await self._storage.append_comment(expense.id, comment)

        await self._audit(AuditEventBuilder.comment_added(
            expense_id=expense.id,
            group_id=expense.group_id,
            author=author,
            correlation_id=correlation_id,
        ))
        return updated


class BalanceFlow(_AuditedFlow):
    """
    Orchestrates balance and settlement queries.

    Query flow:
    1. Fetch the group's expenses and settlements
    2. Lock any expenses that have aged out
    3. Fold everything into balances
    4. Optimize balances into a settlement plan
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        lifecycle: LifecycleManager,
        queries: LedgerQueryExecutor,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(audit_logger)
        self._storage = storage
        self._lifecycle = lifecycle
        self._queries = queries
        self._settings = settings or get_settings().ledger
        self._validator = ExpenseValidator(self._settings)
        self._clock = clock

    async def _balances(self, group_id: str, correlation_id: Optional[UUID]) -> dict[str, int]:
        async with self._storage_call("load_history", group_id, correlation_id):
            expenses = await self._storage.list_expenses(group_id)
            settlements = await self._storage.list_settlements(group_id)
            expenses = await self._lifecycle.refresh_all(
                expenses, now=self._clock(), correlation_id=correlation_id
            )
        return compute_balances(expenses, settlements)

    async def get_balances(
        self,
        group_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> BalanceReport:
        """Every member's net position. Settled members show as 0.00."""
        balances = await self._balances(group_id, correlation_id)
        return balance_report(group_id, balances)

    async def get_settlement_plan(
        self,
        group_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementPlan:
        """
        Fewest payments that settle the group.

        Raises:
            InconsistencyError: balances don't sum to zero and strict
                balance checking is enabled
        """
        correlation_id = correlation_id or create_correlation_id()
        balances = non_zero_balances(await self._balances(group_id, correlation_id))

        try:
            plan = optimize_debts(
                balances,
                ordering=self._settings.settlement_ordering,
                group_id=group_id,
                strict=self._settings.strict_balance_check,
            )
        except InconsistencyError as e:
            await self._audit(AuditEventBuilder.ledger_imbalance(
                group_id=group_id,
                residual=e.residual,
                correlation_id=correlation_id,
            ))
            raise

        if not plan.is_balanced:
            await self._audit(AuditEventBuilder.ledger_imbalance(
                group_id=group_id,
                residual=plan.residual,
                correlation_id=correlation_id,
            ))

        await self._audit(AuditEventBuilder.settlement_plan_computed(
            group_id=group_id,
            instruction_count=len(plan.settlements),
            total_amount=plan.total_amount,
            correlation_id=correlation_id,
        ))
        return plan

    async def record_settlement(
        self,
        request: Union[SettlementCreate, dict[str, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> Settlement:
        """
        Store a payment that already happened between two members.

        Raises:
            LedgerValidationError: request is malformed or self-settling
        """
        correlation_id = correlation_id or create_correlation_id()
        group_id = request.get("group_id") if isinstance(request, dict) else request.group_id

        try:
            if isinstance(request, dict):
                request = parse_request(SettlementCreate, request)
            self._validator.raise_for_errors(
                self._validator.validate_settlement(request), subject="settlement"
            )
        except LedgerValidationError as e:
            await self._validation_failed(e, "settlement", group_id, correlation_id)
            raise

        settlement = request.to_settlement(created_at=self._clock())
        async with self._storage_call("record_settlement", settlement.group_id, correlation_id):
            await self._storage.save_settlement(settlement)

        await self._audit(AuditEventBuilder.settlement_recorded(
            settlement_id=settlement.id,
            group_id=settlement.group_id,
            from_member=settlement.from_member,
            to_member=settlement.to_member,
            amount=settlement.amount,
            correlation_id=correlation_id,
        ))
        return settlement

    async def list_settlements(self, group_id: str) -> list[Settlement]:
        """Settlement history, newest first."""
        async with self._storage_call("list_settlements", group_id):
            settlements = await self._storage.list_settlements(group_id)
        return sorted(settlements, key=lambda s: s.created_at, reverse=True)

    async def monthly_summary(self, group_id: str, year: int, month: int) -> MonthlySummary:
        """Total spend and top contributors for one month."""
        async with self._storage_call("monthly_summary", group_id):
            return await self._queries.monthly_summary(group_id, year, month)


def create_app_components(
    storage: Optional[LedgerStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    settings: Optional[LedgerSettings] = None,
    clock: Callable[[], datetime] = utc_now,
) -> tuple[ExpenseFlow, BalanceFlow, LedgerQueryExecutor]:
    """
    Factory function to create all application components.

    Args:
        storage: Ledger record store. In-memory when omitted.
        audit_storage: Audit store. In-memory when omitted.
        settings: Ledger policy. Loaded from the environment when omitted.
        clock: Source of "now" for every flow.

    Returns:
        (expense_flow, balance_flow, query_executor)
    """
    settings = settings or get_settings().ledger
    storage = storage or InMemoryLedgerStorage()
    audit_logger = AuditLogger(audit_storage or InMemoryAuditStorage())

    lifecycle = LifecycleManager(
        storage,
        audit_logger=audit_logger,
        lock_after=timedelta(days=settings.lock_after_days),
        clock=clock,
    )
    queries = LedgerQueryExecutor(storage, lifecycle)

    expense_flow = ExpenseFlow(
        storage=storage,
        lifecycle=lifecycle,
        queries=queries,
        validator=ExpenseValidator(settings),
        audit_logger=audit_logger,
        clock=clock,
    )
    balance_flow = BalanceFlow(
        storage=storage,
        lifecycle=lifecycle,
        queries=queries,
        settings=settings,
        audit_logger=audit_logger,
        clock=clock,
    )

    return expense_flow, balance_flow, queries

"""
End-to-end flow tests against in-memory storage.

Covers the add-expense, comment, balance and settlement flows together
with the audit trail they leave behind.
"""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from splitledger.config import LedgerSettings
from splitledger.errors import (
    ExpenseLockedError,
    InconsistencyError,
    LedgerValidationError,
    NotFoundError,
    StorageError,
)
from splitledger.models.audit import AuditEventType
from splitledger.models.ledger import (
    Expense,
    ExpenseCreate,
    ExpenseFilter,
    SettlementOrdering,
    Split,
    SplitType,
)
from splitledger.orchestrator import create_app_components
from splitledger.services.storage import InMemoryLedgerStorage
from tests.factories import GROUP


def expense_request(payer, amount, splits, group_id=GROUP, **kwargs):
    return {
        "group_id": group_id,
        "payer": payer,
        "amount": amount,
        "category": kwargs.pop("category", "food"),
        "split_type": kwargs.pop("split_type", "equal"),
        "splits": [{"member": m, "amount": a} for m, a in splits.items()],
        **kwargs,
    }


THREE_WAY = {"alice": "30.00", "bob": "30.00", "carol": "30.00"}


async def event_types(audit_storage):
    events = await audit_storage.get_recent_events()
    return [e.event_type for e in reversed(events)]


class FailingLedgerStorage(InMemoryLedgerStorage):
    """Record store whose reads fail after `fail_reads` is set."""

    fail_reads = False

    async def list_expenses(self, group_id, filters=None):
        if self.fail_reads:
            raise StorageError("connection refused by ledger-db:5432")
        return await super().list_expenses(group_id, filters)


class YieldingLedgerStorage(InMemoryLedgerStorage):
    """Record store that hands control back to the loop after each fetch."""

    async def get_expense(self, expense_id):
        expense = await super().get_expense(expense_id)
        await asyncio.sleep(0)
        return expense


class TestAddExpense:
    """Validate, budget-check and store."""

    @pytest.mark.asyncio
    async def test_expense_is_stored_with_server_timestamp(self, expense_flow, storage, now):
        result = await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))

        stored = await storage.get_expense(result.expense.id)
        assert stored is not None
        assert stored.created_at == now
        assert stored.locked is False
        assert result.over_limit is False
        assert result.total == Decimal("90.00")
        assert result.budget_limit == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_budget_overrun_is_advisory(self, expense_flow, storage, audit_storage):
        """90 then 15 against a 100 budget: stored, but flagged."""
        await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))
        result = await expense_flow.add_expense(
            expense_request("bob", "15.00", {"alice": "5.00", "bob": "5.00", "carol": "5.00"})
        )

        assert result.over_limit is True
        assert result.total == Decimal("105.00")
        assert len(await storage.list_expenses(GROUP)) == 2
        assert AuditEventType.BUDGET_EXCEEDED in await event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_last_month_does_not_count(self, expense_flow, clock):
        await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))
        clock.advance(days=20)

        result = await expense_flow.add_expense(
            expense_request("bob", "15.00", {"alice": "15.00"})
        )

        assert result.total == Decimal("15.00")
        assert result.over_limit is False

    @pytest.mark.asyncio
    async def test_group_without_budget(self, expense_flow):
        result = await expense_flow.add_expense(
            expense_request("alice", "500.00", {"bob": "500.00"}, group_id="no-budget")
        )
        assert result.over_limit is False
        assert result.budget_limit is None

    @pytest.mark.asyncio
    async def test_accepts_request_model(self, expense_flow):
        request = ExpenseCreate(
            group_id=GROUP,
            payer="alice",
            amount=Decimal("20.00"),
            category="cab",
            split_type=SplitType.EXACT,
            splits=[Split(member="bob", amount=Decimal("20.00"))],
        )
        result = await expense_flow.add_expense(request)
        assert result.expense.category == "cab"

    @pytest.mark.asyncio
    async def test_split_mismatch_is_a_warning(self, expense_flow):
        result = await expense_flow.add_expense(
            expense_request("alice", "100.00", {"bob": "90.00"})
        )
        assert any("Splits add up to 90.00" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_missing_splits_rejected(self, expense_flow, storage, audit_storage):
        with pytest.raises(LedgerValidationError) as exc_info:
            await expense_flow.add_expense(expense_request("alice", "10.00", {}))

        assert "At least one split is required" in str(exc_info.value)
        assert await storage.list_expenses(GROUP) == []
        assert await event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    @pytest.mark.asyncio
    async def test_malformed_amount_rejected(self, expense_flow):
        with pytest.raises(LedgerValidationError) as exc_info:
            await expense_flow.add_expense(expense_request("alice", "-5", {"bob": "5"}))
        assert exc_info.value.issues[0].field == "amount"

    @pytest.mark.asyncio
    async def test_unknown_split_type_rejected(self, expense_flow):
        with pytest.raises(LedgerValidationError):
            await expense_flow.add_expense(
                expense_request("alice", "10.00", {"bob": "10.00"}, split_type="percent")
            )

    @pytest.mark.asyncio
    async def test_storage_failure_propagates(self, audit_storage, settings, clock):
        storage = FailingLedgerStorage()
        storage.fail_reads = True
        expense_flow, _, _ = create_app_components(
            storage=storage, audit_storage=audit_storage, settings=settings, clock=clock
        )

        with pytest.raises(StorageError) as exc_info:
            await expense_flow.add_expense(expense_request("alice", "10.00", {"bob": "10.00"}))

        assert "ledger-db" not in exc_info.value.user_message
        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.STORAGE_ERROR
        assert events[0].details["operation"] == "add_expense"


class TestExpenseReads:

    @pytest.mark.asyncio
    async def test_get_unknown_expense(self, expense_flow):
        with pytest.raises(NotFoundError):
            await expense_flow.get_expense(uuid4())

    @pytest.mark.asyncio
    async def test_get_locks_old_expense(self, expense_flow, clock):
        result = await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))
        clock.advance(days=8)

        expense = await expense_flow.get_expense(result.expense.id)

        assert expense.locked is True

    @pytest.mark.asyncio
    async def test_list_with_filters(self, expense_flow):
        await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))
        await expense_flow.add_expense(
            expense_request("bob", "12.00", {"alice": "12.00"}, category="cab")
        )

        cabs = await expense_flow.list_expenses(GROUP, ExpenseFilter(category="cab"))
        big = await expense_flow.list_expenses(GROUP, ExpenseFilter(min_amount=Decimal("50")))

        assert [e.payer for e in cabs] == ["bob"]
        assert [e.amount for e in big] == [Decimal("90.00")]


class TestComments:
    """Comments are allowed until the expense locks."""

    @pytest.mark.asyncio
    async def test_comment_on_fresh_expense(self, expense_flow, audit_storage):
        result = await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))

        updated = await expense_flow.add_comment(result.expense.id, "bob", text="thanks!")

        assert [c.text for c in updated.comments] == ["thanks!"]
        assert AuditEventType.COMMENT_ADDED in await event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_emoji_only_comment(self, expense_flow):
        result = await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))
        updated = await expense_flow.add_comment(result.expense.id, "carol", emoji="🍕")
        assert updated.comments[0].emoji == "🍕"

    @pytest.mark.asyncio
    async def test_empty_comment_rejected(self, expense_flow):
        result = await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))
        with pytest.raises(LedgerValidationError):
            await expense_flow.add_comment(result.expense.id, "bob")

    @pytest.mark.asyncio
    async def test_comment_on_eight_day_old_expense(self, expense_flow, storage, audit_storage, clock):
        """The attempt locks the expense and is refused."""
        result = await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))
        clock.advance(days=8)

        with pytest.raises(ExpenseLockedError):
            await expense_flow.add_comment(result.expense.id, "bob", text="late")

        stored = await storage.get_expense(result.expense.id)
        assert stored.locked is True
        assert stored.comments == []
        types = await event_types(audit_storage)
        assert AuditEventType.EXPENSE_LOCKED in types
        assert types[-1] == AuditEventType.COMMENT_REJECTED

    @pytest.mark.asyncio
    async def test_comment_exactly_at_threshold(self, expense_flow, clock):
        result = await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))
        clock.advance(days=7)

        updated = await expense_flow.add_comment(result.expense.id, "bob", text="just in time")

        assert updated.locked is False

    @pytest.mark.asyncio
    async def test_comment_on_unknown_expense(self, expense_flow):
        with pytest.raises(NotFoundError):
            await expense_flow.add_comment(uuid4(), "bob", text="hello")


class TestConcurrentReads:
    """Overlapping requests around the lock transition."""

    @pytest.fixture
    def flows(self, audit_storage, settings, clock):
        storage = YieldingLedgerStorage()
        expense_flow, _, _ = create_app_components(
            storage=storage, audit_storage=audit_storage, settings=settings, clock=clock
        )
        return storage, expense_flow

    @pytest.mark.asyncio
    async def test_overlapping_reads_record_one_transition(self, flows, audit_storage, clock):
        storage, expense_flow = flows
        result = await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))
        clock.advance(days=8)

        first, second = await asyncio.gather(
            expense_flow.get_expense(result.expense.id),
            expense_flow.get_expense(result.expense.id),
        )

        assert first.locked is True
        assert second.locked is True
        assert storage.lock_writes == 1
        locked_events = await audit_storage.get_events_by_entity("expense", str(result.expense.id))
        assert [e.event_type for e in locked_events].count(AuditEventType.EXPENSE_LOCKED) == 1

    @pytest.mark.asyncio
    async def test_comment_racing_the_lock(self, flows, audit_storage, clock):
        """Either outcome is acceptable, the lock is still written once."""
        storage, expense_flow = flows
        result = await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))
        clock.advance(days=8)

        commented, read = await asyncio.gather(
            expense_flow.add_comment(result.expense.id, "bob", text="late"),
            expense_flow.get_expense(result.expense.id),
            return_exceptions=True,
        )

        assert isinstance(commented, (Expense, ExpenseLockedError))
        assert read.locked is True
        assert (await storage.get_expense(result.expense.id)).locked is True
        assert storage.lock_writes == 1
        events = await audit_storage.get_events_by_entity("expense", str(result.expense.id))
        assert [e.event_type for e in events].count(AuditEventType.EXPENSE_LOCKED) == 1


class TestBalances:
    """Balance and settlement-plan queries."""

    @pytest.mark.asyncio
    async def test_three_way_split(self, expense_flow, balance_flow):
        await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))

        report = await balance_flow.get_balances(GROUP)
        plan = await balance_flow.get_settlement_plan(GROUP)

        assert report.as_dict() == {
            "alice": Decimal("60.00"),
            "bob": Decimal("-30.00"),
            "carol": Decimal("-30.00"),
        }
        assert [(s.from_member, s.to_member, s.amount) for s in plan.settlements] == [
            ("bob", "alice", Decimal("30.00")),
            ("carol", "alice", Decimal("30.00")),
        ]

    @pytest.mark.asyncio
    async def test_recorded_settlement_shrinks_the_plan(self, expense_flow, balance_flow):
        await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))
        await balance_flow.record_settlement(
            {"group_id": GROUP, "from": "bob", "to": "alice", "amount": "30.00"}
        )

        report = await balance_flow.get_balances(GROUP)
        plan = await balance_flow.get_settlement_plan(GROUP)

        assert report.as_dict()["bob"] == Decimal("0.00")
        assert [(s.from_member, s.to_member, s.amount) for s in plan.settlements] == [
            ("carol", "alice", Decimal("30.00")),
        ]

    @pytest.mark.asyncio
    async def test_unknown_group_is_empty(self, balance_flow):
        report = await balance_flow.get_balances("nobody")
        plan = await balance_flow.get_settlement_plan("nobody")
        assert report.balances == []
        assert plan.settlements == []

    @pytest.mark.asyncio
    async def test_reading_balances_locks_old_expenses(self, expense_flow, balance_flow, storage, clock):
        result = await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))
        clock.advance(days=9)

        await balance_flow.get_balances(GROUP)

        assert (await storage.get_expense(result.expense.id)).locked is True

    @pytest.mark.asyncio
    async def test_residual_is_reported(self, expense_flow, balance_flow, audit_storage):
        await expense_flow.add_expense(expense_request("alice", "100.00", {"bob": "90.00"}))

        plan = await balance_flow.get_settlement_plan(GROUP)

        assert plan.residual == Decimal("10.00")
        assert not plan.is_balanced
        assert AuditEventType.LEDGER_IMBALANCE in await event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_strict_mode_raises(self, storage, audit_storage, clock):
        expense_flow, balance_flow, _ = create_app_components(
            storage=storage,
            audit_storage=audit_storage,
            settings=LedgerSettings(strict_balance_check=True),
            clock=clock,
        )
        await expense_flow.add_expense(expense_request("alice", "100.00", {"bob": "90.00"}))

        with pytest.raises(InconsistencyError):
            await balance_flow.get_settlement_plan(GROUP)
        assert (await event_types(audit_storage))[-1] == AuditEventType.LEDGER_IMBALANCE

    @pytest.mark.asyncio
    async def test_configured_ordering_is_used(self, storage, audit_storage, clock):
        expense_flow, balance_flow, _ = create_app_components(
            storage=storage,
            audit_storage=audit_storage,
            settings=LedgerSettings(settlement_ordering=SettlementOrdering.FIRST_APPEARANCE),
            clock=clock,
        )
        await expense_flow.add_expense(expense_request("alice", "90.00", THREE_WAY))

        plan = await balance_flow.get_settlement_plan(GROUP)

        assert plan.ordering == SettlementOrdering.FIRST_APPEARANCE


class TestSettlements:

    @pytest.mark.asyncio
    async def test_record_and_list_newest_first(self, balance_flow, clock):
        first = await balance_flow.record_settlement(
            {"group_id": GROUP, "from": "bob", "to": "alice", "amount": "10.00"}
        )
        clock.advance(hours=1)
        second = await balance_flow.record_settlement(
            {"group_id": GROUP, "from": "carol", "to": "alice", "amount": "5.00", "note": "upi"}
        )

        history = await balance_flow.list_settlements(GROUP)

        assert [s.id for s in history] == [second.id, first.id]
        assert history[0].note == "upi"

    @pytest.mark.asyncio
    async def test_self_settlement_rejected(self, balance_flow, storage, audit_storage):
        with pytest.raises(LedgerValidationError, match="cannot settle with themselves"):
            await balance_flow.record_settlement(
                {"group_id": GROUP, "from": "bob", "to": "bob", "amount": "10.00"}
            )
        assert await storage.list_settlements(GROUP) == []
        assert await event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    @pytest.mark.asyncio
    async def test_non_positive_amount_rejected(self, balance_flow):
        with pytest.raises(LedgerValidationError):
            await balance_flow.record_settlement(
                {"group_id": GROUP, "from": "bob", "to": "alice", "amount": "0"}
            )

    @pytest.mark.asyncio
    async def test_settlement_is_audited(self, balance_flow, audit_storage):
        settlement = await balance_flow.record_settlement(
            {"group_id": GROUP, "from": "bob", "to": "alice", "amount": "10.00"}
        )
        events = await audit_storage.get_events_by_entity("settlement", str(settlement.id))
        assert events[0].details == {"from": "bob", "to": "alice", "amount": "10.00"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

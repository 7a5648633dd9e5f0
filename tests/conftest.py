"""
Shared fixtures for Split Ledger tests.

Nothing here touches the network: storage is in-memory and time comes
from a fixed clock the test can move.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from splitledger.config import LedgerSettings
from splitledger.models.ledger import GroupBudget
from splitledger.orchestrator import create_app_components
from splitledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage
from tests.factories import GROUP, FakeClock


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now) -> FakeClock:
    return FakeClock(now)


@pytest.fixture
def settings() -> LedgerSettings:
    return LedgerSettings(lock_after_days=7, strict_balance_check=False)


@pytest.fixture
def storage() -> InMemoryLedgerStorage:
    return InMemoryLedgerStorage(
        budgets={GROUP: GroupBudget(group_id=GROUP, budget_limit=Decimal("100.00"))}
    )


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def components(storage, audit_storage, settings, clock):
    return create_app_components(
        storage=storage,
        audit_storage=audit_storage,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def expense_flow(components):
    return components[0]


@pytest.fixture
def balance_flow(components):
    return components[1]


@pytest.fixture
def queries(components):
    return components[2]

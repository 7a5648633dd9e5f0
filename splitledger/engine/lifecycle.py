"""
Lifecycle Manager - expense locking.

An expense starts Unlocked and becomes Locked, permanently, once it is
older than the lock threshold (7 days by default). Locked expenses reject
new comments. Nothing else about an expense depends on the lock.

DESIGN DECISION: The check is lazy. It runs whenever an expense is read,
aggregated, or about to receive a comment, instead of in a background
sweep. The persisted `locked` flag is a memo of the age predicate:
once True it is trusted and never re-derived.

`lock_stale_expenses` is the sweep alternative, for deployments that
prefer to reconcile on a schedule.

CONCURRENCY: Locking is idempotent but not atomic against a comment that
races it. Given the day-level granularity, such a comment may or may not
land; both outcomes are acceptable. Overlapping readers may all see the
expiry, but only the one whose storage write changed the flag logs and
audits the transition.
"""

from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional
from uuid import UUID

import structlog

from splitledger.errors import ExpenseLockedError
from splitledger.models.audit import AuditEventBuilder
from splitledger.models.ledger import Expense, utc_now


logger = structlog.get_logger(__name__)

LOCK_THRESHOLD = timedelta(days=7)


def age_exceeds_threshold(
    now: datetime,
    created_at: datetime,
    threshold: timedelta = LOCK_THRESHOLD,
) -> bool:
    """True when the expense is strictly older than the threshold."""
    return now - created_at > threshold


class LifecycleManager:
    """
    Applies and enforces the lock transition.

    Every transition is written to storage before the call returns, so
    later reads see it without looking at the timestamp again.
    """

    def __init__(
        self,
        storage,
        audit_logger=None,
        lock_after: timedelta = LOCK_THRESHOLD,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            storage: LedgerStorageInterface used to persist the lock flag
            audit_logger: optional AuditLogger for lock events
            lock_after: age threshold
            clock: source of "now" when the caller does not pass one
        """
        self._storage = storage
        self._audit_logger = audit_logger
        self._lock_after = lock_after
        self._clock = clock

    @property
    def lock_after(self) -> timedelta:
        return self._lock_after

    def is_expired(self, expense: Expense, now: Optional[datetime] = None) -> bool:
        """Pure check: is this expense locked or due to be locked?"""
        if expense.locked:
            return True
        return age_exceeds_threshold(
            now or self._clock(), expense.created_at, self._lock_after
        )

    async def refresh(
        self,
        expense: Expense,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Lock the expense if it has aged past the threshold.

        Updates the passed-in expense in place and returns it. An expense
        that is already locked causes no storage write.
        """
        await self._lock_if_expired(expense, now, correlation_id)
        return expense

    async def _lock_if_expired(
        self,
        expense: Expense,
        now: Optional[datetime],
        correlation_id: Optional[UUID],
    ) -> bool:
        """Returns True only if this call performed the transition."""
        if expense.locked:
            return False

        now = now or self._clock()
        if not age_exceeds_threshold(now, expense.created_at, self._lock_after):
            return False

        changed = await self._storage.mark_expense_locked(expense.id)
        expense.locked = True
        if not changed:
            # A concurrent reader got there first and recorded the transition
            return False

        age_days = (now - expense.created_at).total_seconds() / 86400
        logger.info(
            "expense_locked",
            expense_id=str(expense.id),
            group_id=expense.group_id,
            age_days=round(age_days, 2),
        )
        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.expense_locked(
                expense_id=expense.id,
                group_id=expense.group_id,
                age_days=age_days,
                correlation_id=correlation_id,
            ))

        return True

    async def refresh_all(
        self,
        expenses: Iterable[Expense],
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Expense]:
        """Refresh a batch against a single "now"."""
        now = now or self._clock()
        return [
            await self.refresh(expense, now=now, correlation_id=correlation_id)
            for expense in expenses
        ]

    async def ensure_commentable(
        self,
        expense: Expense,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Refresh the lock state, then refuse if the expense is locked.

        Raises:
            ExpenseLockedError: the expense is locked
        """
        expense = await self.refresh(expense, now=now, correlation_id=correlation_id)
        if expense.locked:
            raise ExpenseLockedError(expense.id)
        return expense

    async def lock_stale_expenses(
        self,
        group_id: str,
        now: Optional[datetime] = None,
    ) -> list[UUID]:
        """
        Sweep a group and lock everything past the threshold.

        Returns the ids of expenses that were newly locked by this call.
        """
        now = now or self._clock()
        newly_locked = []
        for expense in await self._storage.list_expenses(group_id):
            if await self._lock_if_expired(expense, now, None):
                newly_locked.append(expense.id)
        return newly_locked

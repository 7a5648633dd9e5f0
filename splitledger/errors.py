"""
Ledger Error Taxonomy

Every failure the ledger reports to a caller is one of these.

DESIGN DECISION: Errors carry two messages.
- `str(error)` is the detailed message for logs
- `user_message` is what a caller may show to a person

Validation and forbidden errors are descriptive in both.
Storage errors keep their detail in the log only, so nothing about the
backend leaks to callers.

No error here is ever retried inside the ledger.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for all ledger failures."""

    code = "ledger_error"

    @property
    def user_message(self) -> str:
        return str(self)


class LedgerValidationError(LedgerError):
    """
    Missing or invalid input.

    `issues` holds the individual ValidationIssue objects when the error
    came out of the validation pipeline.
    """

    code = "validation_error"

    def __init__(self, message: str, issues: Optional[list] = None):
        super().__init__(message)
        self.issues = issues or []


class NotFoundError(LedgerError):
    """Referenced group or expense does not exist."""

    code = "not_found"


class ForbiddenError(LedgerError):
    """The requested mutation is not allowed in the entity's current state."""

    code = "forbidden"


class ExpenseLockedError(ForbiddenError):
    """Attempt to comment on an expense that has been locked."""

    code = "expense_locked"

    def __init__(self, expense_id):
        super().__init__(
            f"Expense {expense_id} is locked and cannot be commented on"
        )
        self.expense_id = expense_id


class InconsistencyError(LedgerError):
    """
    The group's balances do not sum to zero.

    Only raised when strict balance checking is enabled. Otherwise the
    imbalance is reported on the settlement plan as a residual.
    """

    code = "ledger_inconsistency"

    def __init__(self, message: str, residual=None):
        super().__init__(message)
        self.residual = residual


class StorageError(LedgerError):
    """Failure raised by the record store. Propagated, never handled locally."""

    code = "storage_failure"

    @property
    def user_message(self) -> str:
        return "The ledger is temporarily unavailable. Please try again later."


class DuplicateError(StorageError):
    """Attempted to insert a record whose id already exists."""

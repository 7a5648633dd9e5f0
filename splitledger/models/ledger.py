"""
Core Data Models for Split Ledger

These models define the strict schemas for every record the ledger reads
or produces. They are designed to:
1. Enforce type safety at runtime
2. Keep money as Decimal with currency precision (never float)
3. Be serializable for storage and logging

DESIGN DECISION: Members, groups and authors are opaque string references.
Who they are is owned by the membership collaborator, not the ledger.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive datetimes are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


PositiveAmount = Annotated[
    Decimal,
    Field(gt=0, decimal_places=2, description="Amount in major units"),
]

MemberRef = Annotated[
    str,
    Field(min_length=1, max_length=100, description="Member reference"),
]


# =============================================================================
# ENUMS
# =============================================================================

class SplitType(str, Enum):
    """
    How the payer intended the expense to be divided.

    The ledger does not derive split amounts from this. Splits always
    arrive pre-computed; the type is kept for display and export.
    """
    EQUAL = "equal"
    UNEQUAL = "unequal"
    SHARES = "shares"
    EXACT = "exact"


class SettlementOrdering(str, Enum):
    """
    Order in which the debt optimizer visits creditors and debtors.

    LARGEST_FIRST sorts each side by outstanding amount (stable, so ties
    keep first appearance). FIRST_APPEARANCE keeps balance-map order.
    The choice changes which pairs are produced, never the total moved.
    """
    LARGEST_FIRST = "largest_first"
    FIRST_APPEARANCE = "first_appearance"


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class Split(BaseModel):
    """One member's owed share of an expense."""
    model_config = ConfigDict(str_strip_whitespace=True)

    member: MemberRef
    amount: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Share owed by this member"
    )


class Comment(BaseModel):
    """A comment on an expense. Needs text, an emoji, or both."""
    model_config = ConfigDict(str_strip_whitespace=True)

    author: MemberRef
    text: Optional[str] = Field(default=None, max_length=1000)
    emoji: Optional[str] = Field(default=None, max_length=16)
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def require_content(self) -> 'Comment':
        if not self.text and not self.emoji:
            raise ValueError("Comment text or emoji required")
        return self


class Expense(BaseModel):
    """
    A recorded expense.

    CRITICAL: created_at never changes after insertion, and locked only
    ever moves from False to True. Comments are append-only.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    group_id: str = Field(..., min_length=1)
    payer: MemberRef
    amount: PositiveAmount
    category: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    split_type: SplitType
    splits: list[Split] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    created_by: Optional[str] = None
    locked: bool = False
    comments: list[Comment] = Field(default_factory=list)

    @field_validator('created_at')
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @property
    def split_total(self) -> Decimal:
        """Sum of all split amounts."""
        return sum((split.amount for split in self.splits), Decimal("0"))


class Settlement(BaseModel):
    """
    A payment already made between two members, outside the expense flow.

    Immutable once created. Serializes `from_member`/`to_member` as
    `from`/`to` when dumped by alias.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: UUID = Field(default_factory=uuid4)
    group_id: str = Field(..., min_length=1)
    from_member: MemberRef = Field(..., alias="from")
    to_member: MemberRef = Field(..., alias="to")
    amount: PositiveAmount
    note: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator('created_at')
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return _as_utc(v)


class GroupBudget(BaseModel):
    """Budget configuration owned by the group collaborator. Read-only here."""

    group_id: str
    budget_limit: Optional[PositiveAmount] = None


# =============================================================================
# REQUEST MODELS
# =============================================================================

class ExpenseCreate(BaseModel):
    """Input for adding an expense."""
    model_config = ConfigDict(str_strip_whitespace=True)

    group_id: str = Field(..., min_length=1)
    payer: MemberRef
    amount: PositiveAmount
    category: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    split_type: SplitType
    splits: list[Split] = Field(default_factory=list)
    created_by: Optional[str] = None

    def to_expense(self, created_at: datetime) -> Expense:
        return Expense(created_at=created_at, **self.model_dump())


class SettlementCreate(BaseModel):
    """Input for recording a settlement."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    group_id: str = Field(..., min_length=1)
    from_member: MemberRef = Field(..., alias="from")
    to_member: MemberRef = Field(..., alias="to")
    amount: PositiveAmount
    note: Optional[str] = Field(default=None, max_length=500)

    def to_settlement(self, created_at: datetime) -> Settlement:
        return Settlement(created_at=created_at, **self.model_dump())


class ExpenseFilter(BaseModel):
    """Optional filters for listing a group's expenses. Bounds are inclusive."""

    category: Optional[str] = None
    min_amount: Optional[Decimal] = Field(default=None, ge=0)
    max_amount: Optional[Decimal] = Field(default=None, ge=0)
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None

    @field_validator('created_from', 'created_to')
    @classmethod
    def normalize_bounds(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v) if v is not None else None

    @model_validator(mode='after')
    def validate_ranges(self) -> 'ExpenseFilter':
        if (
            self.min_amount is not None
            and self.max_amount is not None
            and self.max_amount < self.min_amount
        ):
            raise ValueError("max_amount cannot be below min_amount")
        if (
            self.created_from is not None
            and self.created_to is not None
            and self.created_to < self.created_from
        ):
            raise ValueError("created_to cannot be before created_from")
        return self

    def matches(self, expense: Expense) -> bool:
        if self.category is not None and expense.category != self.category:
            return False
        if self.min_amount is not None and expense.amount < self.min_amount:
            return False
        if self.max_amount is not None and expense.amount > self.max_amount:
            return False
        if self.created_from is not None and expense.created_at < self.created_from:
            return False
        if self.created_to is not None and expense.created_at > self.created_to:
            return False
        return True


# =============================================================================
# DERIVED RESULTS
# =============================================================================

class MemberBalance(BaseModel):
    """Net position of one member. Positive is owed money, negative owes."""

    member: str
    balance: Decimal


class BalanceReport(BaseModel):
    """All member balances of a group, in first-appearance order."""

    group_id: str
    balances: list[MemberBalance] = Field(default_factory=list)

    @property
    def total(self) -> Decimal:
        """Sum of all balances. Zero for a consistent ledger."""
        return sum((b.balance for b in self.balances), Decimal("0"))

    def as_dict(self) -> dict[str, Decimal]:
        return {b.member: b.balance for b in self.balances}


class SettlementInstruction(BaseModel):
    """One payment the optimizer recommends."""
    model_config = ConfigDict(populate_by_name=True)

    from_member: str = Field(..., alias="from")
    to_member: str = Field(..., alias="to")
    amount: Decimal


class SettlementPlan(BaseModel):
    """
    Ordered payments that zero out every balance.

    `residual` is non-zero only when the input balances did not sum to
    zero. `unmatched` then lists the parties the plan could not settle.
    """

    group_id: Optional[str] = None
    ordering: SettlementOrdering = SettlementOrdering.LARGEST_FIRST
    settlements: list[SettlementInstruction] = Field(default_factory=list)
    residual: Decimal = Decimal("0")
    unmatched: list[MemberBalance] = Field(default_factory=list)

    @property
    def is_balanced(self) -> bool:
        return self.residual == 0

    @property
    def total_amount(self) -> Decimal:
        return sum((s.amount for s in self.settlements), Decimal("0"))


class BudgetCheck(BaseModel):
    """Outcome of the month-to-date budget evaluation."""

    total: Decimal
    budget_limit: Optional[Decimal] = None
    over_limit: bool = False
    window_start: datetime
    window_end: datetime


class AddExpenseResult(BaseModel):
    """What the caller gets back after adding an expense."""

    expense: Expense
    over_limit: bool
    total: Decimal
    budget_limit: Optional[Decimal] = None
    warnings: list[str] = Field(default_factory=list)


class ContributorTotal(BaseModel):
    """How much one member paid in a period."""

    member: str
    amount: Decimal


class MonthlySummary(BaseModel):
    """Group spending for one calendar month."""

    group_id: str
    year: int
    month: int = Field(..., ge=1, le=12)
    total: Decimal
    expense_count: int = Field(default=0, ge=0)
    top_contributors: list[ContributorTotal] = Field(default_factory=list)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'split_mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (presence, ranges)
    Stage 2: Semantic validation (split consistency, sanity checks)
    """

    validated_at: datetime = Field(default_factory=utc_now)
    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]

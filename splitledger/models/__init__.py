"""
Data Models Package

This package contains all Pydantic models used in the Split Ledger.
All records flowing through the engine must conform to these schemas.
"""

from splitledger.models.ledger import (
    AddExpenseResult,
    BalanceReport,
    BudgetCheck,
    Comment,
    ContributorTotal,
    Expense,
    ExpenseCreate,
    ExpenseFilter,
    GroupBudget,
    MemberBalance,
    MonthlySummary,
    Settlement,
    SettlementCreate,
    SettlementInstruction,
    SettlementOrdering,
    SettlementPlan,
    Split,
    SplitType,
    ValidationIssue,
    ValidationResult,
    utc_now,
)
from splitledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AddExpenseResult",
    "BalanceReport",
    "BudgetCheck",
    "Comment",
    "ContributorTotal",
    "Expense",
    "ExpenseCreate",
    "ExpenseFilter",
    "GroupBudget",
    "MemberBalance",
    "MonthlySummary",
    "Settlement",
    "SettlementCreate",
    "SettlementInstruction",
    "SettlementOrdering",
    "SettlementPlan",
    "Split",
    "SplitType",
    "ValidationIssue",
    "ValidationResult",
    "utc_now",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]

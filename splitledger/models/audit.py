"""
Audit Models for Split Ledger

Every significant ledger action is logged for audit purposes.
This provides:
1. Traceability of who changed what in a group's history
2. Debugging information when balances look wrong
3. A record of budget warnings and lock transitions

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from splitledger.models.ledger import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expenses
    EXPENSE_ADDED = "expense_added"
    BUDGET_EXCEEDED = "budget_exceeded"
    EXPENSE_LOCKED = "expense_locked"

    # Comments
    COMMENT_ADDED = "comment_added"
    COMMENT_REJECTED = "comment_rejected"

    # Settlements
    SETTLEMENT_RECORDED = "settlement_recorded"
    SETTLEMENT_PLAN_COMPUTED = "settlement_plan_computed"
    LEDGER_IMBALANCE = "ledger_imbalance"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # Storage
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'settlement', 'group')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    group_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one request)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "group_id": self.group_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_row(self) -> list:
        """
        Flatten to a list of strings for tabular audit stores.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         group_id, correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.group_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_added(expense_id, group_id, ...)
        event = AuditEventBuilder.expense_locked(expense_id, group_id, age_days)
    """

    @staticmethod
    def expense_added(
        expense_id: UUID,
        group_id: str,
        payer: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=str(expense_id),
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Expense added: {payer} paid {amount}",
            details={
                "payer": payer,
                "amount": str(amount),
            },
        )

    @staticmethod
    def budget_exceeded(
        group_id: str,
        total: Decimal,
        budget_limit: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_EXCEEDED,
            severity=AuditSeverity.WARNING,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Monthly spend {total} is over the budget of {budget_limit}",
            details={
                "total": str(total),
                "budget_limit": str(budget_limit),
            },
        )

    @staticmethod
    def expense_locked(
        expense_id: UUID,
        group_id: str,
        age_days: float,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_LOCKED,
            entity_type="expense",
            entity_id=str(expense_id),
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Expense locked after {age_days:.1f} days",
            details={"age_days": round(age_days, 2)},
        )

    @staticmethod
    def comment_added(
        expense_id: UUID,
        group_id: str,
        author: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMENT_ADDED,
            entity_type="expense",
            entity_id=str(expense_id),
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Comment added by {author}",
            details={"author": author},
        )

    @staticmethod
    def comment_rejected(
        expense_id: UUID,
        group_id: str,
        author: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMENT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            entity_id=str(expense_id),
            group_id=group_id,
            correlation_id=correlation_id,
            description="Comment rejected: expense is locked",
            details={"author": author},
            error_code="expense_locked",
        )

    @staticmethod
    def settlement_recorded(
        settlement_id: UUID,
        group_id: str,
        from_member: str,
        to_member: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_RECORDED,
            entity_type="settlement",
            entity_id=str(settlement_id),
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Settlement recorded: {from_member} paid {to_member} {amount}",
            details={
                "from": from_member,
                "to": to_member,
                "amount": str(amount),
            },
        )

    @staticmethod
    def settlement_plan_computed(
        group_id: str,
        instruction_count: int,
        total_amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_PLAN_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Settlement plan: {instruction_count} payments totalling {total_amount}",
            details={
                "instruction_count": instruction_count,
                "total_amount": str(total_amount),
            },
        )

    @staticmethod
    def ledger_imbalance(
        group_id: str,
        residual: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_IMBALANCE,
            severity=AuditSeverity.WARNING,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Balances do not sum to zero (residual {residual})",
            details={"residual": str(residual)},
            error_code="ledger_inconsistency",
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        issues: list[dict],
        group_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
            error_code="validation_error",
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        group_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Storage failure during {operation}",
            details={"operation": operation},
            error_code="storage_failure",
            error_message=error_message,
        )

"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (pydantic already rejects most of this)
- At least one split with a non-zero amount
- This catches malformed requests

STAGE 2 - SEMANTIC VALIDATION:
- Splits that don't add up to the expense amount
- The same member listed twice in the splits
- Absurdly large amounts
- This catches requests that are well-formed but suspicious

IMPORTANT: A split/amount mismatch is reported as a warning, not an
error. The ledger accepts such an expense; the resulting imbalance then
shows up as a residual on the settlement plan instead of vanishing.
"""

from decimal import Decimal
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from splitledger.config import LedgerSettings, get_settings
from splitledger.errors import LedgerValidationError
from splitledger.models.ledger import (
    ExpenseCreate,
    SettlementCreate,
    ValidationIssue,
    ValidationResult,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_request(model_cls: type[ModelT], payload: dict[str, Any]) -> ModelT:
    """
    Build a request model from raw input.

    Raises:
        LedgerValidationError: with one issue per failing field
    """
    try:
        return model_cls.model_validate(payload)
    except ValidationError as e:
        issues = [
            ValidationIssue(
                field=".".join(str(part) for part in err["loc"]) or "request",
                issue_type=err["type"],
                message=err["msg"],
                severity="error",
            )
            for err in e.errors()
        ]
        fields = ", ".join(issue.field for issue in issues)
        raise LedgerValidationError(f"Invalid request: {fields}", issues=issues) from e


class ExpenseValidator:
    """
    Validates expense and settlement requests before they are stored.

    Stage 1: Schema validation
    Stage 2: Semantic validation (only when stage 1 passes)
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def _validate_expense_schema(
        self,
        request: ExpenseCreate,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not request.splits:
            issues.append(ValidationIssue(
                field="splits",
                issue_type="missing",
                message="At least one split is required",
                severity="error",
            ))
        elif all(split.amount == 0 for split in request.splits):
            issues.append(ValidationIssue(
                field="splits",
                issue_type="invalid_value",
                message="All split amounts are zero",
                severity="error",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_expense_semantic(
        self,
        request: ExpenseCreate,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        split_total = sum((split.amount for split in request.splits), Decimal("0"))
        if split_total != request.amount:
            issues.append(ValidationIssue(
                field="splits",
                issue_type="split_mismatch",
                message=(
                    f"Splits add up to {split_total} but the expense amount "
                    f"is {request.amount}"
                ),
                severity="warning",
            ))

        members = [split.member for split in request.splits]
        duplicates = sorted({m for m in members if members.count(m) > 1})
        if duplicates:
            issues.append(ValidationIssue(
                field="splits",
                issue_type="duplicate_member",
                message=f"Members listed more than once: {', '.join(duplicates)}",
                severity="warning",
            ))

        max_amount = self._settings.max_expense_amount
        if request.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({request.amount:,.2f}) seems unusually high",
                severity="warning",
            ))

        if request.payer not in members:
            issues.append(ValidationIssue(
                field="payer",
                issue_type="payer_not_split",
                message="Payer has no share in this expense",
                severity="info",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate_expense(self, request: ExpenseCreate) -> ValidationResult:
        """Run full two-stage validation on a new expense."""
        schema_valid, issues = self._validate_expense_schema(request)

        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_expense_semantic(request)
            issues.extend(semantic_issues)

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            issues=issues,
        )

    def validate_settlement(self, request: SettlementCreate) -> ValidationResult:
        """A settlement needs two different members."""
        issues = []
        if request.from_member == request.to_member:
            issues.append(ValidationIssue(
                field="to",
                issue_type="invalid_value",
                message="A member cannot settle with themselves",
                severity="error",
            ))

        valid = not issues
        return ValidationResult(
            schema_valid=valid,
            semantic_valid=valid,
            issues=issues,
        )

    @staticmethod
    def raise_for_errors(result: ValidationResult, subject: str = "request") -> None:
        """
        Raises:
            LedgerValidationError: if the result has any error-level issue
        """
        if not result.has_errors:
            return
        errors = [i for i in result.issues if i.severity == "error"]
        raise LedgerValidationError(
            f"Invalid {subject}: " + "; ".join(i.message for i in errors),
            issues=errors,
        )

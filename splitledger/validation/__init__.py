"""Request validation package."""

from splitledger.validation.validator import ExpenseValidator, parse_request

__all__ = ["ExpenseValidator", "parse_request"]

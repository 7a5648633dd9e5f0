"""Query execution package."""

from splitledger.queries.executor import CSV_COLUMNS, LedgerQueryExecutor

__all__ = ["CSV_COLUMNS", "LedgerQueryExecutor"]

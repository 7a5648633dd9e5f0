"""
Configuration Management for Split Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Ledger policy (lock age, optimizer ordering, strictness) is tunable per
deployment without touching the engine code.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from splitledger.models.ledger import SettlementOrdering


class LedgerSettings(BaseSettings):
    """Balance engine policy."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    lock_after_days: int = Field(
        default=7,
        ge=1,
        le=365,
        description="Age in days after which an expense is locked"
    )
    settlement_ordering: SettlementOrdering = Field(
        default=SettlementOrdering.LARGEST_FIRST,
        description="Order in which the optimizer pairs debtors and creditors"
    )
    strict_balance_check: bool = Field(
        default=False,
        description="Raise instead of reporting a residual when balances do not sum to zero"
    )
    max_expense_amount: Decimal = Field(
        default=Decimal("1000000.00"),
        gt=0,
        decimal_places=2,
        description="Amount above which a new expense gets a sanity warning"
    )


class AppSettings(BaseSettings):
    """
    Process-wide logging settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local logs"
    )
    log_format: str = Field(
        default="json",
        pattern="^(json|console)$",
        description="Render local logs as JSON lines or for a terminal"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results

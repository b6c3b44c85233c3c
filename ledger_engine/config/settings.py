"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ledger_engine.config.business_constants import (
    CURRENCY_MINOR_UNITS,
    DEFAULT_CURRENCY,
    MATURITY_SWEEP_INTERVAL_SECONDS,
    REFERRAL_DEPTH,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (for Dramatiq)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str = "logs/ledger_engine.log"
    health_check_port: int = Field(
        default=8081, ge=1, le=65535, description="Health check HTTP server port"
    )

    # Ledger
    default_currency: str = Field(
        default=DEFAULT_CURRENCY,
        description="Currency used when a caller does not name one"
    )

    # Referral commissions
    referral_depth: int = Field(
        default=REFERRAL_DEPTH, ge=1, le=REFERRAL_DEPTH,
        description="Number of ancestor levels that can earn commission"
    )
    inactive_ancestor_policy: str = Field(
        default="skip",
        description=(
            "What happens to an inactive ancestor's level: 'skip' leaves "
            "the slot unpaid, 'compress' moves active ancestors up"
        )
    )

    # Matrix boards
    matrix_reentry_funding: str = Field(
        default="payout",
        description=(
            "How the re-entry debit is funded: 'payout' nets it against the "
            "board payout, 'balance' requires the member's existing balance"
        )
    )

    # Fixed-term investments
    auto_payout_on_maturity: bool = Field(
        default=False,
        description="Pay matured investments out during the maturity sweep"
    )
    maturity_sweep_interval_seconds: int = Field(
        default=MATURITY_SWEEP_INTERVAL_SECONDS, ge=10,
        description="How often the maturity sweep runs"
    )
    commission_retry_lookback_hours: int = Field(
        default=24, gt=0,
        description="Age window of source entries re-checked by the commission retry job"
    )
    reconciliation_batch_size: int = Field(
        default=500, gt=0,
        description="Accounts reconciled per audit run"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("inactive_ancestor_policy")
    @classmethod
    def validate_inactive_ancestor_policy(cls, v: str) -> str:
        """Validate inactive ancestor policy."""
        v = v.lower()
        if v not in ("skip", "compress"):
            raise ValueError(
                "INACTIVE_ANCESTOR_POLICY must be 'skip' or 'compress'"
            )
        return v

    @field_validator("matrix_reentry_funding")
    @classmethod
    def validate_matrix_reentry_funding(cls, v: str) -> str:
        """Validate matrix re-entry funding mode."""
        v = v.lower()
        if v not in ("payout", "balance"):
            raise ValueError(
                "MATRIX_REENTRY_FUNDING must be 'payout' or 'balance'"
            )
        return v

    @field_validator("default_currency")
    @classmethod
    def validate_default_currency(cls, v: str) -> str:
        """Validate that the default currency has a known minor unit."""
        v = v.upper()
        if v not in CURRENCY_MINOR_UNITS:
            raise ValueError(
                f"DEFAULT_CURRENCY must be one of {sorted(CURRENCY_MINOR_UNITS)}"
            )
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Require an async driver in the database URL."""
        if not (
            v.startswith("postgresql+asyncpg://")
            or v.startswith("sqlite+aiosqlite://")
        ):
            raise ValueError(
                "DATABASE_URL must use an async driver "
                "(postgresql+asyncpg:// or sqlite+aiosqlite://)"
            )
        return v

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Validate production-specific requirements."""
        if self.environment == "production":
            if self.debug:
                raise ValueError(
                    "DEBUG must be False in production environment. "
                    "Set DEBUG=false in your .env file."
                )
            if self.database_url.startswith("sqlite"):
                # SQLite ignores SELECT ... FOR UPDATE, so only the
                # in-process account locks serialise writes.
                logger.warning(
                    "SQLite database configured in production; "
                    "row locks are not enforced across processes"
                )
        return self


# Global settings instance
settings = Settings()

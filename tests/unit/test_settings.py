"""
Unit tests for settings validation.

Tests cover:
- Async driver requirement for the database URL
- Policy and funding mode choices
- Production safety checks
"""

import pytest
from pydantic import ValidationError

from ledger_engine.config.settings import Settings

SQLITE_URL = "sqlite+aiosqlite:///:memory:"


class TestSettings:
    """Test settings validators."""

    def test_defaults(self):
        settings = Settings(database_url=SQLITE_URL, _env_file=None)
        assert settings.referral_depth == 5
        assert settings.default_currency == "USDT"
        assert settings.auto_payout_on_maturity is False

    def test_sync_driver_rejected(self):
        with pytest.raises(ValidationError):
            Settings(database_url="postgresql://u:p@localhost/db", _env_file=None)

    def test_policy_normalized(self):
        settings = Settings(
            database_url=SQLITE_URL, inactive_ancestor_policy="COMPRESS", _env_file=None
        )
        assert settings.inactive_ancestor_policy == "compress"

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValidationError):
            Settings(
                database_url=SQLITE_URL,
                inactive_ancestor_policy="promote",
                _env_file=None,
            )

    def test_unknown_reentry_funding_rejected(self):
        with pytest.raises(ValidationError):
            Settings(
                database_url=SQLITE_URL,
                matrix_reentry_funding="loan",
                _env_file=None,
            )

    def test_unknown_currency_rejected(self):
        with pytest.raises(ValidationError):
            Settings(database_url=SQLITE_URL, default_currency="XYZ", _env_file=None)

    def test_debug_forbidden_in_production(self):
        with pytest.raises(ValidationError):
            Settings(
                database_url=SQLITE_URL,
                environment="production",
                debug=True,
                _env_file=None,
            )

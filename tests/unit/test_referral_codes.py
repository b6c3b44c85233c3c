"""Unit tests for referral code generation."""

from ledger_engine.config.business_constants import (
    REFERRAL_CODE_MAX_LENGTH,
    REFERRAL_CODE_SUFFIX_LENGTH,
)
from ledger_engine.utils.referral_codes import (
    generate_referral_code,
    normalize_referral_code,
)


class TestReferralCodes:
    """Test referral code format."""

    def test_prefix_from_username(self):
        code = generate_referral_code("alice")
        assert code.startswith("ALICE")
        assert len(code) == len("ALICE") + REFERRAL_CODE_SUFFIX_LENGTH

    def test_non_alphanumeric_stripped(self):
        code = generate_referral_code("bob.smith-42")
        assert code.startswith("BOBSMITH42")
        assert code.isalnum()

    def test_long_username_fits_column(self):
        code = generate_referral_code("x" * 100)
        assert len(code) == REFERRAL_CODE_MAX_LENGTH

    def test_codes_differ(self):
        assert generate_referral_code("carol") != generate_referral_code("carol")

    def test_normalize(self):
        assert normalize_referral_code("  alice1234 ") == "ALICE1234"

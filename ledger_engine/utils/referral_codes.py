"""
Referral code generation.

Codes are the upper-cased username followed by a random suffix,
truncated to the column width.
"""

import re
import secrets
import string

from ledger_engine.config.business_constants import (
    REFERRAL_CODE_MAX_LENGTH,
    REFERRAL_CODE_SUFFIX_LENGTH,
)

_ALPHABET = string.ascii_uppercase + string.digits
_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def generate_referral_code(username: str) -> str:
    """
    Generate a referral code for username.

    Args:
        username: Member username

    Returns:
        Code of at most REFERRAL_CODE_MAX_LENGTH characters
    """
    prefix = _NON_ALNUM.sub("", username.upper())
    suffix = "".join(
        secrets.choice(_ALPHABET) for _ in range(REFERRAL_CODE_SUFFIX_LENGTH)
    )
    # Keep the full random suffix even for long usernames
    prefix = prefix[: REFERRAL_CODE_MAX_LENGTH - REFERRAL_CODE_SUFFIX_LENGTH]
    return f"{prefix}{suffix}"


def normalize_referral_code(code: str) -> str:
    """Normalize user input before lookup."""
    return code.strip().upper()

"""
Wallet services package.

- account_locks: per-account asyncio lock registry
- wallet_service: the only writer of ledger entries
"""

from ledger_engine.services.wallet.account_locks import (
    AccountLockRegistry,
    account_locks,
)
from ledger_engine.services.wallet.wallet_service import (
    LedgerPage,
    ReconciliationResult,
    WalletService,
)

__all__ = [
    "AccountLockRegistry",
    "account_locks",
    "WalletService",
    "LedgerPage",
    "ReconciliationResult",
]

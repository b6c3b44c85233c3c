"""
Dramatiq worker entry point.

Run with:
    dramatiq jobs.worker
"""

from jobs.broker import broker  # noqa: F401  (must be set before actors load)
from jobs.tasks.commission_retry import retry_missing_commissions
from jobs.tasks.matrix_completion_retry import retry_matrix_completions
from jobs.tasks.maturity_sweep import sweep_matured_investments
from jobs.tasks.reconciliation_audit import audit_account_balances
from ledger_engine.utils.logging_setup import setup_logging

setup_logging("ledger worker")

__all__ = [
    "audit_account_balances",
    "retry_matrix_completions",
    "retry_missing_commissions",
    "sweep_matured_investments",
]

"""
Reconciliation audit task.

Walks all unfrozen accounts in batches and compares the cached wallet
balance with the ledger sum. Mismatching accounts are frozen and
reported; each batch enqueues the next one.
"""

import dramatiq
from loguru import logger

from ledger_engine.config.settings import settings
from ledger_engine.services.engine import AuditResult, LedgerEngine
from jobs.async_runner import create_local_session, run_async


@dramatiq.actor(max_retries=2, time_limit=600_000)  # 10 min timeout
def audit_account_balances(after_id: int = 0) -> None:
    """
    Reconcile one batch of accounts.

    Args:
        after_id: Continue after this account ID
    """
    logger.info(f"Starting reconciliation audit after account {after_id}...")

    try:
        result = run_async(_audit_async(after_id))
    except Exception as e:
        logger.exception(f"Reconciliation audit failed: {e}")
        raise

    if result.mismatched:
        logger.critical(
            f"Reconciliation audit froze {len(result.mismatched)} accounts: "
            f"{result.mismatched}"
        )
    logger.info(
        f"Reconciliation audit batch complete: {result.checked} checked, "
        f"last account {result.last_account_id}"
    )

    if result.checked >= settings.reconciliation_batch_size:
        audit_account_balances.send(result.last_account_id)


async def _audit_async(after_id: int) -> AuditResult:
    async with create_local_session() as session:
        engine = LedgerEngine(session)
        return await engine.audit_balances(
            after_id=after_id, batch_size=settings.reconciliation_batch_size
        )

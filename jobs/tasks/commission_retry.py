"""
Commission retry task.

Re-runs referral commission distribution for recent deposits and plan
purchases. Levels that were already paid are skipped, so the task only
fills gaps left by crashes or frozen ancestors.
"""

from datetime import timedelta

import dramatiq
from loguru import logger

from ledger_engine.config.settings import settings
from ledger_engine.services.engine import LedgerEngine
from jobs.async_runner import create_local_session, run_async


@dramatiq.actor(max_retries=3, time_limit=600_000)  # 10 min timeout
def retry_missing_commissions() -> None:
    """Fill commission levels missing for recent source entries."""
    logger.info("Starting commission retry...")

    try:
        created = run_async(_retry_async())
        if created:
            logger.warning(f"Commission retry created {created} missing entries")
        else:
            logger.info("Commission retry complete: nothing missing")
    except Exception as e:
        logger.exception(f"Commission retry failed: {e}")
        raise


async def _retry_async() -> int:
    lookback = timedelta(hours=settings.commission_retry_lookback_hours)
    async with create_local_session() as session:
        engine = LedgerEngine(session)
        return await engine.retry_commissions(lookback)

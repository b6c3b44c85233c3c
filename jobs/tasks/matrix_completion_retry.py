"""
Matrix completion retry task.

Completes board positions that reached their referral requirement but
were not completed, for example after a failed re-entry.
"""

import dramatiq
from loguru import logger

from ledger_engine.services.engine import LedgerEngine
from jobs.async_runner import create_local_session, run_async


@dramatiq.actor(max_retries=3, time_limit=300_000)  # 5 min timeout
def retry_matrix_completions() -> None:
    """Complete filled positions that are still open."""
    logger.info("Starting matrix completion retry...")

    try:
        completed = run_async(_retry_async())
        logger.info(f"Matrix completion retry complete: {len(completed)} completed")
    except Exception as e:
        logger.exception(f"Matrix completion retry failed: {e}")
        raise


async def _retry_async() -> list[int]:
    async with create_local_session() as session:
        engine = LedgerEngine(session)
        return await engine.retry_matrix_completions()

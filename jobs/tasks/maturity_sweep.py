"""
Maturity sweep task.

Persists maturity of fixed-term investments whose term has ended and,
when auto payout is enabled, credits them. Runs every minute via
scheduler.
"""

import dramatiq
from loguru import logger

from ledger_engine.config.settings import settings
from ledger_engine.services.engine import LedgerEngine
from ledger_engine.services.investment.investment_service import SweepResult
from jobs.async_runner import create_local_session, run_async


@dramatiq.actor(max_retries=3, time_limit=300_000)  # 5 min timeout
def sweep_matured_investments() -> None:
    """Mark due investments matured and optionally pay them out."""
    logger.info("Starting maturity sweep...")

    try:
        result = run_async(_sweep_async())
        logger.info(
            f"Maturity sweep complete: {len(result.matured)} matured, "
            f"{len(result.paid_out)} paid out, {len(result.failed)} failed"
        )
    except Exception as e:
        logger.exception(f"Maturity sweep failed: {e}")
        raise


async def _sweep_async() -> SweepResult:
    async with create_local_session() as session:
        engine = LedgerEngine(session)
        return await engine.run_maturity_sweep(
            auto_payout=settings.auto_payout_on_maturity
        )

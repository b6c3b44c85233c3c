"""
Job scheduler.

Enqueues the ledger background jobs on a fixed cadence and serves the
health endpoints. Actors run in dramatiq workers; the scheduler only
sends messages.

Run with:
    python -m jobs.scheduler
"""

import asyncio
import signal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from jobs.broker import broker  # noqa: F401
from jobs.health import set_scheduler, start_health_server, stop_health_server
from jobs.tasks.commission_retry import retry_missing_commissions
from jobs.tasks.matrix_completion_retry import retry_matrix_completions
from jobs.tasks.maturity_sweep import sweep_matured_investments
from jobs.tasks.reconciliation_audit import audit_account_balances
from ledger_engine.config.settings import settings
from ledger_engine.utils.logging_setup import setup_logging


def create_scheduler() -> AsyncIOScheduler:
    """
    Create scheduler with all ledger jobs registered.

    Jobs:
    - Maturity sweep: every maturity_sweep_interval_seconds
    - Commission retry: every 10 minutes
    - Matrix completion retry: every 5 minutes
    - Reconciliation audit: daily at 03:00 UTC
    """
    scheduler = AsyncIOScheduler(
        timezone="UTC",
        job_defaults={
            "coalesce": True,  # Combine missed runs into one
            "max_instances": 1,
            "misfire_grace_time": 300,
        },
    )

    scheduler.add_job(
        sweep_matured_investments.send,
        trigger=IntervalTrigger(seconds=settings.maturity_sweep_interval_seconds),
        id="maturity_sweep",
        name="Maturity Sweep",
        replace_existing=True,
    )
    scheduler.add_job(
        retry_missing_commissions.send,
        trigger=IntervalTrigger(minutes=10),
        id="commission_retry",
        name="Commission Retry",
        replace_existing=True,
    )
    scheduler.add_job(
        retry_matrix_completions.send,
        trigger=IntervalTrigger(minutes=5),
        id="matrix_completion_retry",
        name="Matrix Completion Retry",
        replace_existing=True,
    )
    scheduler.add_job(
        audit_account_balances.send,
        trigger=CronTrigger(hour=3, minute=0),
        id="reconciliation_audit",
        name="Reconciliation Audit (03:00 UTC)",
        replace_existing=True,
    )
    return scheduler


async def main() -> None:
    """Run scheduler and health server until SIGINT/SIGTERM."""
    setup_logging("ledger scheduler")

    scheduler = create_scheduler()
    scheduler.start()
    set_scheduler(scheduler)
    logger.info(f"Scheduler started with {len(scheduler.get_jobs())} jobs")

    runner, _ = await start_health_server(port=settings.health_check_port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await stop_event.wait()
    finally:
        logger.info("Stopping scheduler...")
        scheduler.shutdown(wait=False)
        await stop_health_server(runner)


if __name__ == "__main__":
    asyncio.run(main())

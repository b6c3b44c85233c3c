#!/usr/bin/env python3
"""Create the default fixed-term plans and matrix boards."""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from loguru import logger

from ledger_engine.config.database import create_session_maker, create_task_engine
from ledger_engine.services.plan_service import PlanService

logger.remove()
logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level} | {message}")


async def seed_plans() -> None:
    """Insert catalogue plans that do not exist yet."""
    engine = create_task_engine()
    session_maker = create_session_maker(engine)

    try:
        async with session_maker() as session:
            created = await PlanService(session).seed_catalogue()
    finally:
        await engine.dispose()

    if not created:
        logger.info("Plan catalogue already up to date")
        return
    for plan in created:
        logger.success(f"Created {plan.family} plan {plan.name!r} (id={plan.id})")


if __name__ == "__main__":
    asyncio.run(seed_plans())

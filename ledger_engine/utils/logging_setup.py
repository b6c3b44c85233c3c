"""
Logging setup.

Configures the loguru logger for worker and scheduler processes.
Sets up log rotation and retention policies.
"""

import sys

from loguru import logger

from ledger_engine.config.settings import settings


def setup_logging(process_name: str = "ledger_engine") -> None:
    """
    Configure logger with stderr output and file rotation.

    Args:
        process_name: Name shown in the startup line
    """
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    logger.add(
        settings.log_file,
        rotation="1 day",
        retention="7 days",
        level=settings.log_level,
        encoding="utf-8",
    )

    logger.info(f"Starting {process_name} ({settings.environment})...")

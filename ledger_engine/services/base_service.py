"""
Base service class.

Every ledger service shares one AsyncSession per request. The helpers
here keep commits at the outermost service call so that a service
invoked from another service joins the caller's transaction.
"""

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.services.events import EventBus, event_bus as default_event_bus


T = TypeVar("T")

_DEPTH_KEY = "ledger_transaction_depth"


class BaseService:
    """
    Base service class.

    Holds the session, the event bus and a logger bound to the
    concrete service name.
    """

    def __init__(
        self, session: AsyncSession, events: EventBus | None = None
    ) -> None:
        """
        Initialize base service.

        Args:
            session: Async database session
            events: Event bus, defaults to the process-wide bus
        """
        self.session = session
        self.events = events if events is not None else default_event_bus
        self.logger = logger.bind(service=self.__class__.__name__)


def transaction(func: Callable[..., T]) -> Callable[..., T]:
    """
    Run a service method as a unit of work.

    The outermost decorated call commits on success and rolls back on
    error. Nested calls on the same session only contribute their
    changes.

    Usage:
        @transaction
        async def set_status(self, account_id, status):
            ...
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        info = self.session.info
        depth = info.get(_DEPTH_KEY, 0)
        info[_DEPTH_KEY] = depth + 1
        try:
            result = await func(self, *args, **kwargs)
            if depth == 0:
                await self.session.commit()
            return result
        except Exception as e:
            if depth == 0:
                await self.session.rollback()
                self.logger.warning(
                    f"Rolled back {func.__name__}: {type(e).__name__}: {e}"
                )
            raise
        finally:
            info[_DEPTH_KEY] = depth

    return wrapper


def log_operation(func: Callable[..., T]) -> Callable[..., T]:
    """Log start, completion and failure of a long-running operation."""
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        started = time.monotonic()
        self.logger.info(f"Starting {func.__name__}")

        try:
            result = await func(self, *args, **kwargs)
        except Exception as e:
            self.logger.error(
                f"Failed {func.__name__} after "
                f"{time.monotonic() - started:.3f}s: {e}"
            )
            raise

        self.logger.info(
            f"Completed {func.__name__}",
            extra={"duration_seconds": round(time.monotonic() - started, 3)},
        )
        return result

    return wrapper

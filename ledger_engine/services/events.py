"""
Engine event bus.

In-process publish/subscribe for ledger events. The notification
component subscribes here; delivery itself happens outside the engine.
"""

from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from loguru import logger

from ledger_engine.utils.datetime_utils import utc_now


class EventType(StrEnum):
    """Events published by the engine."""

    COMMISSION_EARNED = "commission_earned"
    BOARD_COMPLETED = "board_completed"
    INVESTMENT_MATURED = "investment_matured"
    INVESTMENT_CLOSED = "investment_closed"
    WITHDRAWAL_REQUESTED = "withdrawal_requested"
    WITHDRAWAL_PROCESSED = "withdrawal_processed"
    RECONCILIATION_FAILED = "reconciliation_failed"


@dataclass
class EngineEvent:
    """Published event with its payload."""

    type: EventType
    account_id: int
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utc_now)


EventHandler = Callable[[EngineEvent], Awaitable[None]]


class EventBus:
    """
    Minimal async event bus.

    Handlers run in subscription order after the ledger write that
    produced the event has committed. A failing handler is logged and
    does not affect the ledger or the other handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Register handler for event_type."""
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)
            logger.debug(f"Registered handler {handler!r} for {event_type}")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Remove handler for event_type if registered."""
        if handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()

    async def publish(self, event: EngineEvent) -> None:
        """
        Deliver event to every subscribed handler.

        Args:
            event: Event to publish
        """
        for handler in list(self._handlers.get(event.type, ())):
            try:
                await handler(event)
            except Exception as e:
                # Notification failures must never roll back money movement
                logger.error(
                    f"Event handler failed for {event.type}: {e}",
                    extra={
                        "event_type": event.type.value,
                        "account_id": event.account_id,
                    },
                )

    async def emit(
        self, event_type: EventType, account_id: int, **payload: Any
    ) -> None:
        """Build and publish an event."""
        await self.publish(
            EngineEvent(type=event_type, account_id=account_id, payload=payload)
        )


# Process-wide bus
event_bus = EventBus()

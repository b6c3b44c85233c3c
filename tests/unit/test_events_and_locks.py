"""
Unit tests for the event bus and the account lock registry.

Tests cover:
- Handlers receive published events
- A failing handler does not break publishing
- Account locks serialise work per account and are released
"""

import asyncio

import pytest

from ledger_engine.services.events import EngineEvent, EventBus, EventType
from ledger_engine.services.wallet.account_locks import AccountLockRegistry


class TestEventBus:
    """Test event delivery."""

    @pytest.mark.asyncio
    async def test_emit_reaches_handler(self):
        bus = EventBus()
        received: list[EngineEvent] = []

        async def handler(event: EngineEvent) -> None:
            received.append(event)

        bus.subscribe(EventType.COMMISSION_EARNED, handler)
        await bus.emit(EventType.COMMISSION_EARNED, 7, amount="1.00")

        assert len(received) == 1
        assert received[0].account_id == 7
        assert received[0].payload == {"amount": "1.00"}

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self):
        """Later handlers still run when an earlier one raises."""
        bus = EventBus()
        received: list[EngineEvent] = []

        async def broken(event: EngineEvent) -> None:
            raise RuntimeError("notification service down")

        async def handler(event: EngineEvent) -> None:
            received.append(event)

        bus.subscribe(EventType.BOARD_COMPLETED, broken)
        bus.subscribe(EventType.BOARD_COMPLETED, handler)
        await bus.emit(EventType.BOARD_COMPLETED, 1)

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = EventBus()
        received: list[EngineEvent] = []

        async def handler(event: EngineEvent) -> None:
            received.append(event)

        bus.subscribe(EventType.INVESTMENT_CLOSED, handler)
        bus.unsubscribe(EventType.INVESTMENT_CLOSED, handler)
        await bus.emit(EventType.INVESTMENT_CLOSED, 1)

        assert received == []


class TestAccountLockRegistry:
    """Test per-account serialisation."""

    @pytest.mark.asyncio
    async def test_same_account_is_serialised(self):
        locks = AccountLockRegistry()
        order: list[str] = []

        async def work(name: str) -> None:
            async with locks.hold(1):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(work("a"), work("b"))

        assert order in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )

    @pytest.mark.asyncio
    async def test_different_accounts_run_concurrently(self):
        locks = AccountLockRegistry()
        inside = asyncio.Event()

        async def first() -> None:
            async with locks.hold(1):
                await asyncio.wait_for(inside.wait(), timeout=1)

        async def second() -> None:
            async with locks.hold(2):
                inside.set()

        await asyncio.gather(first(), second())

    @pytest.mark.asyncio
    async def test_locks_released(self):
        locks = AccountLockRegistry()
        async with locks.hold(5):
            assert locks.held_count() == 1
        assert locks.held_count() == 0

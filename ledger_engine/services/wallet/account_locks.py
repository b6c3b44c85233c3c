"""
Per-account lock registry.

Serialises all writes to one account inside a process. Across processes
the row lock taken by SELECT ... FOR UPDATE does the same job.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from weakref import WeakKeyDictionary

from loguru import logger


class _LockSlot:
    """Lock plus the number of coroutines holding or waiting for it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class AccountLockRegistry:
    """
    Registry of asyncio locks keyed by account ID.

    Locks are kept per event loop (dramatiq workers run one loop per
    thread) and dropped once nobody holds or waits for them.
    """

    def __init__(self) -> None:
        self._slots: WeakKeyDictionary[
            asyncio.AbstractEventLoop, dict[int, _LockSlot]
        ] = WeakKeyDictionary()

    def _loop_slots(self) -> dict[int, _LockSlot]:
        loop = asyncio.get_running_loop()
        slots = self._slots.get(loop)
        if slots is None:
            slots = {}
            self._slots[loop] = slots
        return slots

    @asynccontextmanager
    async def hold(self, account_id: int) -> AsyncIterator[None]:
        """
        Hold the lock of account_id for the duration of the block.

        Args:
            account_id: Account to serialise on
        """
        slots = self._loop_slots()
        slot = slots.get(account_id)
        if slot is None:
            slot = _LockSlot()
            slots[account_id] = slot
        slot.users += 1

        if slot.lock.locked():
            logger.debug(f"Waiting for account lock {account_id}")

        try:
            async with slot.lock:
                yield
        finally:
            slot.users -= 1
            if slot.users == 0:
                slots.pop(account_id, None)

    def held_count(self) -> int:
        """Number of accounts with an active lock in the running loop."""
        return len(self._loop_slots())


# Process-wide registry shared by all WalletService instances
account_locks = AccountLockRegistry()

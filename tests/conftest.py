"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for settings validation
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("REDIS_HOST", "localhost")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.pool import StaticPool

from ledger_engine.config.database import create_engine, create_session_maker
from ledger_engine.models import Account, Base
from ledger_engine.models.enums import AdjustmentDirection
from ledger_engine.services.engine import LedgerEngine
from ledger_engine.services.events import EngineEvent, EventBus, EventType
from ledger_engine.utils.datetime_utils import utc_now


class FrozenClock:
    """Controllable clock for time-dependent services."""

    def __init__(self, now=None):
        self.now = now or utc_now()

    def __call__(self):
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    """Session factory bound to the test engine."""
    return create_session_maker(db_engine)


@pytest.fixture
async def session(session_maker):
    """Async session for one test."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def clock():
    """Frozen clock starting now."""
    return FrozenClock()


@pytest.fixture
def events():
    """Fresh event bus per test."""
    return EventBus()


@pytest.fixture
def recorded_events(events):
    """List that collects every event published on the test bus."""
    recorded: list[EngineEvent] = []

    async def record(event: EngineEvent) -> None:
        recorded.append(event)

    for event_type in EventType:
        events.subscribe(event_type, record)
    return recorded


@pytest.fixture
def ledger(session, events, clock):
    """LedgerEngine over the test session."""
    return LedgerEngine(session, events=events, clock=clock)


@pytest.fixture
def member(ledger):
    """
    Factory creating an account, optionally under a sponsor.

    Returns the new account ID.
    """

    async def _create(username: str, sponsor_id: int | None = None) -> int:
        code = None
        if sponsor_id is not None:
            sponsor = await ledger.accounts.get(sponsor_id)
            code = sponsor.referral_code
        account = await ledger.create_account(username, code)
        return account.id

    return _create


@pytest.fixture
def fund(ledger):
    """Factory crediting an account without triggering commissions."""

    async def _fund(account_id: int, amount: str) -> None:
        await ledger.admin_adjust_balance(
            account_id,
            Decimal(amount),
            AdjustmentDirection.CREDIT,
            note="test funding",
            admin_id=1,
        )

    return _fund


@pytest.fixture
def corrupt_balance(session):
    """Factory overwriting a cached balance behind the ledger's back."""

    async def _corrupt(account_id: int, balance: str) -> None:
        await session.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(wallet_balance=Decimal(balance))
        )
        await session.commit()

    return _corrupt

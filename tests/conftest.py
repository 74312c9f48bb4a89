"""
Test fixtures for the ledger engine test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory / db_session: a fresh SQLite database per test
  - fund_engine: a FundMovementEngine with fast retries for contention tests
  - open_account: helper that opens an account with a starting balance
  - read_balance / read_entries: helpers that read committed state
  - client: async HTTP test client with the test database injected

Key design decisions:
  - The database is a file under tmp_path, not :memory:. An in-memory
    SQLite database lives on a single shared connection, so "concurrent"
    sessions would really be one transaction. A file gives each session
    its own connection and real lock contention.
  - Starting balances are written with account_store.set_balance, the
    store's unconditional overwrite, so scenario tests start with an empty
    ledger and can count entries exactly.
"""

from decimal import Decimal

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import ledger_engine.models  # noqa: F401
from ledger_engine.database import Base, create_engine_for, get_db, get_session_factory
from ledger_engine.main import app
from ledger_engine.services import account_store, ledger_entry_store
from ledger_engine.services.fund_movement import FundMovementEngine


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a fresh async engine with all tables for each test."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def fund_engine(session_factory):
    """Engine with a generous, fast retry budget for contention tests."""
    return FundMovementEngine(
        session_factory,
        max_attempts=100,
        base_delay=0.001,
        max_delay=0.01,
    )


@pytest_asyncio.fixture
async def open_account(session_factory):
    """
    Return a helper that opens an account and commits it.

    Usage:
        account_id = await open_account("ACC001", balance="1000.00")
    """

    async def _open(account_number: str, owner_ref: str | None = None, balance: str = "0.00"):
        async with session_factory() as session, session.begin():
            account = await account_store.create_account(
                session,
                owner_ref=owner_ref or f"owner-{account_number}",
                account_number=account_number,
            )
            if Decimal(balance):
                await account_store.set_balance(session, account.id, Decimal(balance))
        return account.id

    return _open


@pytest_asyncio.fixture
async def read_balance(session_factory):
    """Return a helper that reads an account's committed balance."""

    async def _read(account_id) -> Decimal:
        async with session_factory() as session:
            account = await account_store.get_account(session, account_id)
            return account.balance

    return _read


@pytest_asyncio.fixture
async def read_entries(session_factory):
    """Return a helper that reads an account's committed entries, newest first."""

    async def _read(account_id):
        async with session_factory() as session:
            return await ledger_entry_store.list_by_account(session, account_id)

    return _read


@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async HTTP test client with the test database injected.

    Both the per-request read session and the engine's session factory are
    overridden, so every request hits the test database.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()

"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support:

  - engine: The async database engine (connection pool for production DBs)
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a read session per request
  - get_session_factory(): FastAPI dependency handing the session factory to
    the fund-movement engine, which opens one transaction per attempt

Session lifecycle:
  Reads go through get_db(), one session per request. Money movement does
  not: the engine needs a fresh transaction for every retry attempt, so it
  receives the factory and manages its own units of work.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from ledger_engine.config import settings


def _connect_args(url: str) -> dict:
    # sqlite3 waits this long on a locked database before raising
    # "database is locked"; other drivers take their timeouts elsewhere.
    if url.startswith("sqlite"):
        return {"timeout": settings.STORE_TIMEOUT_SECONDS}
    return {}


def create_engine_for(url: str):
    """Create an async engine configured the way the application expects."""
    return create_async_engine(
        url,
        echo=settings.DEBUG,
        connect_args=_connect_args(url),
    )


engine = create_engine_for(settings.DATABASE_URL)

# expire_on_commit=False keeps attributes readable after commit; lazy loads
# would otherwise issue a synchronous DB call from async code.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


async def get_db():
    """
    FastAPI dependency that provides a database session for read paths.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...

    The session is committed on success and rolled back on any exception,
    then closed when the request completes.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker:
    """FastAPI dependency returning the session factory for units of work."""
    return AsyncSessionLocal

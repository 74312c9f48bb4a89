"""
FastAPI dependencies: caller identity and the fund-movement engine.

Identity is established upstream (token verification is not this
service's job); the verified caller identity reaches us in the
X-Caller-Identity header. The dependency chain is:

  get_caller_identity (header -> identity)     [401 if absent]
      └── get_current_account_id (identity -> account id)  [403 if unlinked]

Every ledger endpoint takes one of these, so all operations are scoped to
the caller's own account before any handler code runs.
"""

import uuid

from fastapi import Depends
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledger_engine.database import get_db, get_session_factory
from ledger_engine.exceptions import AccountNotFoundError, UnauthenticatedError, UnauthorizedError
from ledger_engine.services import account_store
from ledger_engine.services.fund_movement import FundMovementEngine

CALLER_IDENTITY_HEADER = "X-Caller-Identity"

# auto_error=False so a missing header reaches our own UnauthenticatedError
caller_identity_scheme = APIKeyHeader(name=CALLER_IDENTITY_HEADER, auto_error=False)


async def get_caller_identity(
    caller_identity: str | None = Depends(caller_identity_scheme),
) -> str:
    """
    Return the verified caller identity.

    Raises:
        UnauthenticatedError: If no identity was presented.
    """
    if caller_identity is None or not caller_identity.strip():
        raise UnauthenticatedError()
    return caller_identity.strip()


async def resolve_caller_to_account_id(db: AsyncSession, caller_identity: str) -> uuid.UUID:
    """
    Resolve a caller identity to the id of its linked account.

    Raises:
        UnauthorizedError: If the identity has no account.
    """
    try:
        account = await account_store.get_account_by_owner(db, caller_identity)
    except AccountNotFoundError:
        raise UnauthorizedError(caller_identity)
    return account.id


async def get_current_account_id(
    caller_identity: str = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db),
) -> uuid.UUID:
    """Account id of the authenticated caller."""
    return await resolve_caller_to_account_id(db, caller_identity)


def get_fund_movement_engine(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> FundMovementEngine:
    """Build the engine over the configured session factory."""
    return FundMovementEngine(session_factory)

"""
Account store: keyed access to accounts and their balances.

This module handles:
  - Account creation (with unique account number generation)
  - Lookup by id, by account number, and by owner reference
  - Balance writes, unconditional or compare-and-swap on `version`

All functions run inside the caller's session and never commit; the unit
of work that calls them decides whether the writes stick.

Compare-and-swap:
  set_balance(..., expected_version=v) issues
      UPDATE accounts SET balance=:b, version=v+1 WHERE id=:id AND version=v
  and checks the matched row count. Zero rows means either the account is
  gone (AccountNotFoundError) or somebody else wrote it since it was read
  (BalanceConflictError). No row lock is held between the read and the
  write; the version check is what makes the write safe.
"""

import random
import string
import uuid
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.exceptions import (
    AccountNotFoundError,
    BalanceConflictError,
    DuplicateAccountError,
)
from ledger_engine.models.account import Account


def _generate_account_number() -> str:
    """Generate a random 10-digit account number."""
    return "".join(random.choices(string.digits, k=10))


async def _number_taken(db: AsyncSession, account_number: str) -> bool:
    result = await db.execute(
        select(Account.id).where(Account.account_number == account_number)
    )
    return result.scalar_one_or_none() is not None


async def create_account(
    db: AsyncSession,
    owner_ref: str,
    account_number: str | None = None,
) -> Account:
    """
    Create a new account with a zero balance.

    Args:
        db: Database session.
        owner_ref: The caller identity that owns the account.
        account_number: Human-facing number; generated when omitted.

    Returns:
        The newly created Account instance.

    Raises:
        DuplicateAccountError: If the number or the owner is already taken.
    """
    existing = await db.execute(select(Account.id).where(Account.owner_ref == owner_ref))
    if existing.scalar_one_or_none() is not None:
        raise DuplicateAccountError(f"Owner {owner_ref} already has an account")

    if account_number is None:
        # Retry on collision; with 10 random digits this practically never loops
        for _ in range(10):
            account_number = _generate_account_number()
            if not await _number_taken(db, account_number):
                break
        else:
            raise RuntimeError("Failed to generate a unique account number")
    elif await _number_taken(db, account_number):
        raise DuplicateAccountError(f"Account number {account_number} is already in use")

    account = Account(
        owner_ref=owner_ref,
        account_number=account_number,
        balance=Decimal("0.00"),
        version=0,
    )
    db.add(account)
    try:
        await db.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent registration for the same number/owner
        raise DuplicateAccountError(
            f"Account number {account_number} or owner {owner_ref} is already in use"
        ) from exc
    return account


async def get_account(db: AsyncSession, account_id: uuid.UUID) -> Account:
    """
    Get a single account by id.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
    """
    # populate_existing: balance writes bypass the identity map, so always
    # refresh from the row instead of trusting an already-loaded instance
    result = await db.execute(
        select(Account)
        .where(Account.id == account_id)
        .execution_options(populate_existing=True)
    )
    account = result.scalar_one_or_none()

    if account is None:
        raise AccountNotFoundError(account_id)

    return account


async def get_account_by_number(db: AsyncSession, account_number: str) -> Account:
    """
    Get a single account by its human-facing number.

    Raises:
        AccountNotFoundError: If no account carries this number.
    """
    result = await db.execute(
        select(Account)
        .where(Account.account_number == account_number)
        .execution_options(populate_existing=True)
    )
    account = result.scalar_one_or_none()

    if account is None:
        raise AccountNotFoundError(account_number)

    return account


async def get_account_by_owner(db: AsyncSession, owner_ref: str) -> Account:
    """
    Get the account linked to an owner reference.

    Raises:
        AccountNotFoundError: If the owner has no account.
    """
    result = await db.execute(
        select(Account)
        .where(Account.owner_ref == owner_ref)
        .execution_options(populate_existing=True)
    )
    account = result.scalar_one_or_none()

    if account is None:
        raise AccountNotFoundError(owner_ref)

    return account


async def set_balance(
    db: AsyncSession,
    account_id: uuid.UUID,
    new_balance: Decimal,
    expected_version: int | None = None,
) -> int:
    """
    Overwrite an account's balance and bump its version.

    With expected_version=None the write is unconditional. Otherwise it only
    applies if the stored version still equals expected_version.

    Args:
        db: Database session.
        account_id: The account to write.
        new_balance: The balance to store.
        expected_version: Version observed when the balance was read.

    Returns:
        The account's new version.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
        BalanceConflictError: If the version no longer matches.
    """
    stmt = (
        update(Account)
        .where(Account.id == account_id)
        .values(balance=new_balance, version=Account.version + 1)
        .returning(Account.version)
        .execution_options(synchronize_session=False)
    )
    if expected_version is not None:
        stmt = stmt.where(Account.version == expected_version)

    result = await db.execute(stmt)
    new_version = result.scalar_one_or_none()

    if new_version is None:
        # Tell a missing row apart from a stale version
        exists = await db.execute(select(Account.id).where(Account.id == account_id))
        if exists.scalar_one_or_none() is None:
            raise AccountNotFoundError(account_id)
        raise BalanceConflictError(account_id, expected_version)

    return new_version

"""
Query service: read-only views over the ledger.

All functions take the caller's account id (already resolved by the
identity provider) and only ever read. Nothing here writes, so repeated
calls with no writes in between return identical results.

Ownership enforcement:
  History listings are scoped to the caller's own account by construction.
  Single-entry and transfer lookups check that the caller owns the entry
  (or one leg of the transfer) and raise AccessDeniedError otherwise.
  Views that find entries by account number only return the caller's own
  legs.
"""

import uuid
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.exceptions import AccessDeniedError, TransferNotFoundError
from ledger_engine.models.ledger_entry import LedgerEntry
from ledger_engine.services import account_store, ledger_entry_store


async def get_history(db: AsyncSession, account_id: uuid.UUID) -> list[LedgerEntry]:
    """Full history for an account, newest first."""
    await account_store.get_account(db, account_id)
    return await ledger_entry_store.list_by_account(db, account_id)


async def get_history_page(
    db: AsyncSession,
    account_id: uuid.UUID,
    page: int = 0,
    page_size: int = 10,
) -> dict:
    """
    One page of an account's history, newest first.

    Args:
        db: Database session.
        account_id: The caller's account.
        page: Zero-based page number.
        page_size: Entries per page.

    Returns:
        Dict with items, page, page_size, total and total_pages.
    """
    await account_store.get_account(db, account_id)
    items = await ledger_entry_store.list_by_account(db, account_id, page, page_size)
    total = await ledger_entry_store.count_by_account(db, account_id)

    return {
        "items": items,
        "page": page,
        "page_size": page_size,
        "total": total,
        "total_pages": (total + page_size - 1) // page_size,
    }


async def get_history_between(
    db: AsyncSession,
    account_id: uuid.UUID,
    start: datetime,
    end: datetime,
) -> list[LedgerEntry]:
    """
    Entries with start <= occurred_at <= end, newest first.

    A range whose start is after its end matches nothing and returns [].
    """
    await account_store.get_account(db, account_id)
    if ledger_entry_store.as_utc(start) > ledger_entry_store.as_utc(end):
        return []
    return await ledger_entry_store.list_by_account_and_date_range(db, account_id, start, end)


async def get_entry(
    db: AsyncSession,
    account_id: uuid.UUID,
    entry_id: int,
) -> LedgerEntry:
    """
    Get a single entry, verifying the caller owns it.

    Raises:
        EntryNotFoundError: If the entry doesn't exist.
        AccessDeniedError: If the entry belongs to another account.
    """
    entry = await ledger_entry_store.get_by_id(db, entry_id)

    if entry.account_id != account_id:
        raise AccessDeniedError("Access denied to this ledger entry")

    return entry


async def get_by_account_number(
    db: AsyncSession,
    account_id: uuid.UUID,
    account_number: str,
) -> list[LedgerEntry]:
    """
    The caller's entries naming the account number as sender or
    counterparty, newest first.

    Both legs of a transfer carry both numbers, but only the leg the
    caller owns is returned; the other leg holds the other account's
    balance.

    Raises:
        AccountNotFoundError: If no account carries this number.
    """
    await account_store.get_account_by_number(db, account_number)
    return await ledger_entry_store.list_by_account_number_either_side(
        db, account_number, owner_account_id=account_id
    )


async def get_transfer(
    db: AsyncSession,
    account_id: uuid.UUID,
    transfer_group_id: uuid.UUID,
) -> dict:
    """
    Look up one transfer by its group id, from the caller's side.

    Returns:
        Dict with the shared transfer fields (group id, both account
        numbers, amount, description, occurred_at) and `entry`, the leg
        the caller owns.

    Raises:
        TransferNotFoundError: If no entries carry this group id.
        AccessDeniedError: If the caller is on neither side.
    """
    legs = await ledger_entry_store.list_by_transfer_group(db, transfer_group_id)
    if not legs:
        raise TransferNotFoundError(transfer_group_id)

    own = [leg for leg in legs if leg.account_id == account_id]
    if not own:
        raise AccessDeniedError("Access denied to this transfer")

    sent = legs[0]
    return {
        "transfer_group_id": transfer_group_id,
        "sender_account_number": sent.sender_account_number,
        "counterparty_account_number": sent.counterparty_account_number,
        "amount": sent.amount,
        "description": sent.description,
        "occurred_at": sent.occurred_at,
        "entry": own[0],
    }

"""
Ledger entry store: append-only storage and the history queries over it.

Entries are inserted once and never updated or deleted, so nothing here
needs concurrency coordination beyond unique ids, which the database's
autoincrement key provides.

Ordering:
  Every listing is newest first. Entries written by one transfer share a
  timestamp, so `id` descending breaks ties and the order is total.

Timestamps:
  Entries are stamped in UTC. Date-range bounds are normalized to UTC
  before they are compared; naive datetimes are taken to already be UTC.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.exceptions import EntryNotFoundError
from ledger_engine.models.ledger_entry import LedgerEntry

_NEWEST_FIRST = (LedgerEntry.occurred_at.desc(), LedgerEntry.id.desc())

# LIMIT and OFFSET are bound as signed 64-bit integers
_SQL_INT_MAX = 2**63 - 1


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _check_kind_fields(entry: LedgerEntry) -> None:
    transfer_fields = (
        entry.sender_account_number,
        entry.counterparty_account_number,
        entry.transfer_group_id,
    )
    if entry.kind.is_transfer:
        if any(field is None for field in transfer_fields):
            raise ValueError(
                f"{entry.kind.value} entries need sender, counterparty and transfer group"
            )
    elif any(field is not None for field in transfer_fields):
        raise ValueError(f"{entry.kind.value} entries cannot carry transfer fields")


async def append(db: AsyncSession, entry: LedgerEntry) -> int:
    """
    Insert a new entry and return its id.

    The id is assigned by the database; occurred_at defaults to now (UTC)
    when the caller left it unset.

    Raises:
        ValueError: If the transfer-only fields don't match the entry kind.
    """
    _check_kind_fields(entry)
    if entry.occurred_at is None:
        entry.occurred_at = datetime.now(timezone.utc)

    db.add(entry)
    await db.flush()
    return entry.id


async def get_by_id(db: AsyncSession, entry_id: int) -> LedgerEntry:
    """
    Get a single entry by id.

    Raises:
        EntryNotFoundError: If no entry has this id.
    """
    result = await db.execute(select(LedgerEntry).where(LedgerEntry.id == entry_id))
    entry = result.scalar_one_or_none()

    if entry is None:
        raise EntryNotFoundError(entry_id)

    return entry


async def list_by_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    page: int | None = None,
    page_size: int | None = None,
) -> list[LedgerEntry]:
    """
    List an account's entries, newest first.

    With page and page_size the result is the zero-based page window;
    without them it is the full history. A window that starts beyond any
    offset the database can address is empty.
    """
    query = (
        select(LedgerEntry)
        .where(LedgerEntry.account_id == account_id)
        .order_by(*_NEWEST_FIRST)
    )

    if page is not None or page_size is not None:
        if page is None or page_size is None:
            raise ValueError("page and page_size must be given together")
        if page < 0 or page_size < 1:
            raise ValueError("page must be >= 0 and page_size >= 1")
        offset = page * page_size
        if offset > _SQL_INT_MAX:
            return []
        query = query.limit(min(page_size, _SQL_INT_MAX)).offset(offset)

    result = await db.execute(query)
    return list(result.scalars().all())


async def count_by_account(db: AsyncSession, account_id: uuid.UUID) -> int:
    """Count every entry an account owns."""
    result = await db.execute(
        select(func.count(LedgerEntry.id)).where(LedgerEntry.account_id == account_id)
    )
    return result.scalar_one()


async def list_by_account_number_either_side(
    db: AsyncSession,
    account_number: str,
    owner_account_id: uuid.UUID | None = None,
) -> list[LedgerEntry]:
    """
    List entries where the number appears as the sender or the counterparty.

    Both legs of a transfer carry both numbers, so a transfer involving the
    account shows up once per leg. With owner_account_id only the entries
    that account owns are returned.
    """
    query = (
        select(LedgerEntry)
        .where(
            or_(
                LedgerEntry.sender_account_number == account_number,
                LedgerEntry.counterparty_account_number == account_number,
            )
        )
        .order_by(*_NEWEST_FIRST)
    )
    if owner_account_id is not None:
        query = query.where(LedgerEntry.account_id == owner_account_id)

    result = await db.execute(query)
    return list(result.scalars().all())


async def list_by_account_and_date_range(
    db: AsyncSession,
    account_id: uuid.UUID,
    start: datetime,
    end: datetime,
) -> list[LedgerEntry]:
    """List an account's entries with start <= occurred_at <= end, newest first."""
    result = await db.execute(
        select(LedgerEntry)
        .where(
            LedgerEntry.account_id == account_id,
            LedgerEntry.occurred_at.between(as_utc(start), as_utc(end)),
        )
        .order_by(*_NEWEST_FIRST)
    )
    return list(result.scalars().all())


async def list_by_transfer_group(
    db: AsyncSession,
    transfer_group_id: uuid.UUID,
) -> list[LedgerEntry]:
    """Return both legs of one transfer, sent leg first."""
    result = await db.execute(
        select(LedgerEntry)
        .where(LedgerEntry.transfer_group_id == transfer_group_id)
        .order_by(LedgerEntry.id.asc())
    )
    return list(result.scalars().all())

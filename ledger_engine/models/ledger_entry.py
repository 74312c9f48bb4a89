"""
LedgerEntry model: the immutable record of one account-side money movement.

Every committed operation writes entries, never updates them:

  - A deposit writes one DEPOSIT entry on the account
  - A withdrawal writes one WITHDRAWAL entry on the account
  - A transfer writes TWO entries: TRANSFER_SENT on the sender and
    TRANSFER_RECEIVED on the recipient, sharing a `transfer_group_id`

Key fields:
  - kind: which of the four movements this is
  - amount: always positive; the direction is implied by the kind
  - balance_after: the owning account's balance right after this entry
  - sender_account_number / counterparty_account_number: the two sides of
    a transfer, identical on both legs. Only transfer kinds carry them;
    the CHECK constraint below rejects anything else.
  - status: every entry written here is COMPLETED. The other states exist
    for asynchronous settlement, which this engine does not do.

The integer primary key doubles as the monotonically assigned entry id.
"""

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Integer, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_engine.database import Base
from ledger_engine.models.money import Money


class EntryKind(str, enum.Enum):
    """The closed set of money movements an entry can record."""
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER_SENT = "TRANSFER_SENT"
    TRANSFER_RECEIVED = "TRANSFER_RECEIVED"

    @property
    def is_transfer(self) -> bool:
        return self in (EntryKind.TRANSFER_SENT, EntryKind.TRANSFER_RECEIVED)


class EntryStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_ledger_entries_positive_amount"),
        CheckConstraint("balance_after >= 0", name="ck_ledger_entries_non_negative_balance"),
        # Transfer legs carry both account numbers and a group id; the
        # other kinds carry none of them.
        CheckConstraint(
            "(kind IN ('TRANSFER_SENT', 'TRANSFER_RECEIVED') "
            "AND sender_account_number IS NOT NULL "
            "AND counterparty_account_number IS NOT NULL "
            "AND transfer_group_id IS NOT NULL) "
            "OR (kind IN ('DEPOSIT', 'WITHDRAWAL') "
            "AND sender_account_number IS NULL "
            "AND counterparty_account_number IS NULL "
            "AND transfer_group_id IS NULL)",
            name="ck_ledger_entries_kind_fields",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    kind: Mapped[EntryKind] = mapped_column(
        Enum(EntryKind, native_enum=False, length=20),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Account number that sent the transfer (both legs)
    sender_account_number: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        index=True,
    )

    # Account number that received the transfer (both legs)
    counterparty_account_number: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        index=True,
    )

    balance_after: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
    )

    # Indexed for history ordering and date-range queries
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    status: Mapped[EntryStatus] = mapped_column(
        Enum(EntryStatus, native_enum=False, length=20),
        nullable=False,
        default=EntryStatus.COMPLETED,
    )

    transfer_group_id: Mapped[uuid.UUID | None] = mapped_column(
        nullable=True,
        index=True,
    )

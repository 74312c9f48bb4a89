"""
Account model: one balance-holding account per owner.

Each account has:
  - An opaque UUID primary key (the identifier the engine works with)
  - A unique, human-facing account number (what people type into transfers)
  - A unique owner reference (the caller identity it belongs to)
  - A balance, stored in cents through the Money type
  - A version counter used for optimistic concurrency control

Balance management:
  Only the fund-movement engine writes `balance`, and every write goes
  through a compare-and-swap on `version`: the UPDATE matches the version
  that was read, and bumps it. A concurrent writer that read the same
  version matches zero rows, and its whole unit of work is rolled back and
  retried. This is what rules out lost updates.

  A CHECK constraint keeps the balance non-negative at the database level
  as well; the engine checks first, the constraint is the last line.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Integer, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_engine.database import Base
from ledger_engine.models.money import Money


class Account(Base):
    __tablename__ = "accounts"

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_accounts_non_negative_balance"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    account_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
    )

    # Caller identity this account is linked to (one account per owner)
    owner_ref: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    balance: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        default=Decimal("0.00"),
    )

    # Incremented on every balance write; the compare-and-swap key
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

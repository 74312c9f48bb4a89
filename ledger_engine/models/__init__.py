"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from ledger_engine.models directly
"""

from ledger_engine.models.account import Account  # noqa: F401
from ledger_engine.models.ledger_entry import LedgerEntry, EntryKind, EntryStatus  # noqa: F401

"""
Tests for the query service: read-only views over an account's history.

Tests verify:
  - Full history and paged history, newest first
  - Date-range filtering, including an inverted range
  - Single-entry lookup with ownership enforcement
  - Lookup of the caller's transfer legs by account number
  - Transfer lookup by group id, from either side only
  - Reads are idempotent
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from ledger_engine.exceptions import (
    AccessDeniedError,
    AccountNotFoundError,
    EntryNotFoundError,
    TransferNotFoundError,
)
from ledger_engine.models.ledger_entry import EntryKind
from ledger_engine.services import query_service


@pytest_asyncio.fixture
async def funded_pair(open_account):
    """Two accounts: ACC001 with 1000.00 and ACC002 with 500.00."""
    first = await open_account("ACC001", owner_ref="alice", balance="1000.00")
    second = await open_account("ACC002", owner_ref="bob", balance="500.00")
    return first, second


class TestHistory:

    async def test_history_newest_first(self, db_session, funded_pair, fund_engine):
        first, _ = funded_pair
        deposit = await fund_engine.deposit(first, "10.00")
        withdrawal = await fund_engine.withdraw(first, "5.00")
        sent = await fund_engine.transfer(first, "ACC002", "1.00")

        history = await query_service.get_history(db_session, first)

        assert [e.id for e in history] == [sent.id, withdrawal.id, deposit.id]

    async def test_empty_history(self, db_session, funded_pair):
        first, _ = funded_pair

        assert await query_service.get_history(db_session, first) == []

    async def test_unknown_account(self, db_session):
        with pytest.raises(AccountNotFoundError):
            await query_service.get_history(db_session, uuid.uuid4())

    async def test_history_page(self, db_session, funded_pair, fund_engine):
        first, _ = funded_pair
        created = [await fund_engine.deposit(first, "1.00") for _ in range(5)]

        page = await query_service.get_history_page(db_session, first, page=1, page_size=2)

        assert [e.id for e in page["items"]] == [created[2].id, created[1].id]
        assert page["page"] == 1
        assert page["page_size"] == 2
        assert page["total"] == 5
        assert page["total_pages"] == 3

    async def test_history_page_past_the_end(self, db_session, funded_pair, fund_engine):
        first, _ = funded_pair
        await fund_engine.deposit(first, "1.00")

        page = await query_service.get_history_page(db_session, first, page=4, page_size=10)

        assert page["items"] == []
        assert page["total"] == 1

    async def test_repeated_reads_are_identical(self, db_session, funded_pair, fund_engine):
        first, _ = funded_pair
        await fund_engine.deposit(first, "1.00")
        await fund_engine.transfer(first, "ACC002", "2.00")

        once = [(e.id, e.balance_after) for e in await query_service.get_history(db_session, first)]
        twice = [(e.id, e.balance_after) for e in await query_service.get_history(db_session, first)]

        assert once == twice


class TestHistoryBetween:

    async def test_range_covers_recent_entries(self, db_session, funded_pair, fund_engine):
        first, _ = funded_pair
        before = datetime.now(timezone.utc) - timedelta(seconds=1)
        entry = await fund_engine.deposit(first, "1.00")
        after = datetime.now(timezone.utc) + timedelta(seconds=1)

        inside = await query_service.get_history_between(db_session, first, before, after)
        earlier = await query_service.get_history_between(
            db_session, first, before - timedelta(days=2), before - timedelta(days=1)
        )

        assert [e.id for e in inside] == [entry.id]
        assert earlier == []

    async def test_inverted_range_is_empty(self, db_session, funded_pair, fund_engine):
        first, _ = funded_pair
        await fund_engine.deposit(first, "1.00")
        now = datetime.now(timezone.utc)

        result = await query_service.get_history_between(
            db_session, first, now + timedelta(days=1), now - timedelta(days=1)
        )

        assert result == []


class TestGetEntry:

    async def test_own_entry(self, db_session, funded_pair, fund_engine):
        first, _ = funded_pair
        deposit = await fund_engine.deposit(first, "3.00")

        entry = await query_service.get_entry(db_session, first, deposit.id)

        assert entry.id == deposit.id
        assert entry.kind == EntryKind.DEPOSIT

    async def test_other_accounts_entry_is_denied(self, db_session, funded_pair, fund_engine):
        first, second = funded_pair
        deposit = await fund_engine.deposit(second, "3.00")

        with pytest.raises(AccessDeniedError):
            await query_service.get_entry(db_session, first, deposit.id)

    async def test_missing_entry(self, db_session, funded_pair):
        first, _ = funded_pair

        with pytest.raises(EntryNotFoundError):
            await query_service.get_entry(db_session, first, 424242)


class TestByAccountNumber:

    async def test_only_callers_legs(self, db_session, funded_pair, fund_engine):
        first, second = funded_pair
        await fund_engine.deposit(first, "1.00")
        out = await fund_engine.transfer(first, "ACC002", "10.00")
        back = await fund_engine.transfer(second, "ACC001", "4.00")

        entries = await query_service.get_by_account_number(db_session, first, "ACC001")

        assert [e.kind for e in entries] == [EntryKind.TRANSFER_RECEIVED, EntryKind.TRANSFER_SENT]
        assert all(e.account_id == first for e in entries)
        assert [e.transfer_group_id for e in entries] == [
            back.transfer_group_id,
            out.transfer_group_id,
        ]

    async def test_counterparty_balance_is_not_exposed(self, db_session, funded_pair, fund_engine):
        first, second = funded_pair
        await fund_engine.transfer(second, "ACC001", "5.00")

        entries = await query_service.get_by_account_number(db_session, first, "ACC001")

        assert len(entries) == 1
        assert entries[0].account_id == first
        assert entries[0].balance_after == Decimal("1005.00")

    async def test_unknown_number(self, db_session, funded_pair):
        first, _ = funded_pair

        with pytest.raises(AccountNotFoundError):
            await query_service.get_by_account_number(db_session, first, "ACC999")


class TestGetTransfer:

    async def test_each_side_sees_its_own_leg(self, db_session, funded_pair, fund_engine):
        first, second = funded_pair
        sent = await fund_engine.transfer(first, "ACC002", "25.00", "rent")

        as_sender = await query_service.get_transfer(db_session, first, sent.transfer_group_id)
        as_recipient = await query_service.get_transfer(db_session, second, sent.transfer_group_id)

        assert as_sender["entry"].kind == EntryKind.TRANSFER_SENT
        assert as_sender["entry"].balance_after == Decimal("975.00")
        assert as_recipient["entry"].kind == EntryKind.TRANSFER_RECEIVED
        assert as_recipient["entry"].balance_after == Decimal("525.00")
        for summary in (as_sender, as_recipient):
            assert summary["sender_account_number"] == "ACC001"
            assert summary["counterparty_account_number"] == "ACC002"
            assert summary["amount"] == Decimal("25.00")
            assert summary["description"] == "rent"

    async def test_outsider_is_denied(self, db_session, funded_pair, fund_engine, open_account):
        first, _ = funded_pair
        outsider = await open_account("ACC003", owner_ref="carol")
        sent = await fund_engine.transfer(first, "ACC002", "1.00")

        with pytest.raises(AccessDeniedError):
            await query_service.get_transfer(db_session, outsider, sent.transfer_group_id)

    async def test_unknown_transfer(self, db_session, funded_pair):
        first, _ = funded_pair

        with pytest.raises(TransferNotFoundError):
            await query_service.get_transfer(db_session, first, uuid.uuid4())

"""
Fund-movement engine: deposits, withdrawals and transfers.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. It handles:
  - Amount validation (positive, at most two decimal places, below MAX_BALANCE)
  - Balance enforcement (never negative, never above MAX_BALANCE)
  - Atomic balance writes plus ledger entries, one unit of work per attempt
  - Paired entries for transfers, linked by a transfer group id

Atomicity:
  Every balance write and its ledger entries are made inside the SAME
  database transaction, committed once at the end of the attempt. Any
  exception before the commit, including cancellation or the timeout
  below, closes the session and rolls the whole unit back, so a balance
  never changes without its entry or vice versa.

Concurrency (optimistic):
  Balance updates are read-modify-write, so two concurrent operations on
  one account could both read the old balance and one update would be
  lost. Each balance write is therefore a compare-and-swap on the account
  version (see account_store.set_balance). The loser of a race gets a
  BalanceConflictError, its unit of work rolls back, and the engine runs
  the whole operation again on fresh reads, with exponential backoff.

  Transfers write their two accounts in ascending id order. Under the
  optimistic scheme this is not needed for correctness, but it keeps the
  row-lock order fixed on databases that take write locks on UPDATE, so
  opposite-direction transfers cannot deadlock each other.

  Retries are safe: an attempt that failed committed nothing, so running
  it again cannot duplicate an entry.

Bounded waits:
  The work of each attempt (reads, balance writes, entry appends) is
  capped at STORE_TIMEOUT_SECONDS. A timeout surfaces immediately as
  StoreUnavailableError. The commit itself is outside that bound: once
  it starts, the caller learns its real outcome, so a reported timeout
  always means nothing was written. The commit is bounded by the
  driver's own lock timeout instead (see database._connect_args).

  Contention (lost CAS, locked database) is retried up to MAX_ATTEMPTS
  times and then surfaces as StoreUnavailableError too. Business-rule
  errors are never retried.
"""

import asyncio
import logging
import random
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledger_engine.config import settings
from ledger_engine.exceptions import (
    BalanceLimitError,
    InsufficientFundsError,
    InvalidAmountError,
    SelfTransferError,
    StoreUnavailableError,
)
from ledger_engine.models.ledger_entry import EntryKind, EntryStatus, LedgerEntry
from ledger_engine.models.money import CENT, MAX_BALANCE
from ledger_engine.services import account_store, ledger_entry_store

logger = logging.getLogger(__name__)


def normalize_amount(amount) -> Decimal:
    """
    Validate a money-movement amount and return it as a scale-2 Decimal.

    Accepts Decimal, int, str, or float (floats go through their shortest
    repr, so 0.1 means 0.1 and not its binary expansion).

    Raises:
        InvalidAmountError: If the amount is not a finite positive number
            no larger than MAX_BALANCE with at most two fractional digits.
    """
    if isinstance(amount, bool):
        raise InvalidAmountError(amount)
    try:
        if isinstance(amount, float):
            value = Decimal(repr(amount))
        else:
            value = Decimal(amount)
        if not value.is_finite() or value <= 0 or value > MAX_BALANCE:
            raise InvalidAmountError(amount)
        quantized = value.quantize(CENT)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidAmountError(amount) from exc

    if quantized != value:
        raise InvalidAmountError(amount)
    return quantized


class FundMovementEngine:
    """
    Runs each money movement as one atomic, retried unit of work.

    The engine owns no state of its own. It opens a fresh session and
    transaction from `session_factory` for every attempt.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        *,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        max_delay: float | None = None,
        timeout: float | None = None,
    ):
        self._session_factory = session_factory
        self._max_attempts = max_attempts or settings.MAX_ATTEMPTS
        self._base_delay = settings.RETRY_BASE_DELAY_SECONDS if base_delay is None else base_delay
        self._max_delay = settings.RETRY_MAX_DELAY_SECONDS if max_delay is None else max_delay
        self._timeout = timeout or settings.STORE_TIMEOUT_SECONDS

    # -----------------------
    # Public API
    # -----------------------

    async def deposit(
        self,
        account_id: uuid.UUID,
        amount,
        description: str | None = None,
    ) -> LedgerEntry:
        """
        Add money to an account.

        Returns:
            The DEPOSIT entry, with balance_after set to the new balance.

        Raises:
            InvalidAmountError: If amount <= 0 or has more than two decimals.
            AccountNotFoundError: If the account doesn't exist.
            BalanceLimitError: If the new balance would exceed MAX_BALANCE.
            StoreUnavailableError: On timeout or exhausted retries.
        """
        value = normalize_amount(amount)
        return await self._run("deposit", self._deposit, account_id, value, description)

    async def withdraw(
        self,
        account_id: uuid.UUID,
        amount,
        description: str | None = None,
    ) -> LedgerEntry:
        """
        Take money out of an account.

        Returns:
            The WITHDRAWAL entry.

        Raises:
            InvalidAmountError: If amount <= 0 or has more than two decimals.
            AccountNotFoundError: If the account doesn't exist.
            InsufficientFundsError: If the balance is lower than the amount.
            StoreUnavailableError: On timeout or exhausted retries.
        """
        value = normalize_amount(amount)
        return await self._run("withdraw", self._withdraw, account_id, value, description)

    async def transfer(
        self,
        sender_account_id: uuid.UUID,
        recipient_account_number: str,
        amount,
        description: str | None = None,
    ) -> LedgerEntry:
        """
        Move money from the sender's account to the account with the given number.

        Writes a TRANSFER_SENT entry on the sender and a TRANSFER_RECEIVED
        entry on the recipient in the same transaction as both balance
        writes. The sum of the two balances is unchanged.

        Returns:
            The sender-side TRANSFER_SENT entry.

        Raises:
            InvalidAmountError: If amount <= 0 or has more than two decimals.
            AccountNotFoundError: If the sender or the recipient number is unknown.
            SelfTransferError: If the recipient number is the sender's own.
            InsufficientFundsError: If the sender's balance is too low.
            BalanceLimitError: If the recipient's balance would exceed MAX_BALANCE.
            StoreUnavailableError: On timeout or exhausted retries.
        """
        value = normalize_amount(amount)
        return await self._run(
            "transfer", self._transfer,
            sender_account_id, recipient_account_number, value, description,
        )

    # -----------------------
    # Unit-of-work execution
    # -----------------------

    async def _run(self, operation: str, fn, *args) -> LedgerEntry:
        delay = self._base_delay
        for attempt in range(1, self._max_attempts + 1):
            try:
                entry = await self._attempt(fn, *args)
            except asyncio.TimeoutError as exc:
                logger.error(
                    "%s timed out", operation,
                    extra={"operation": operation, "attempt": attempt, "timeout": self._timeout},
                )
                raise StoreUnavailableError(
                    f"{operation} timed out after {self._timeout}s"
                ) from exc
            except StoreUnavailableError as exc:
                if attempt >= self._max_attempts:
                    logger.error(
                        "%s gave up after %d attempts", operation, attempt,
                        extra={"operation": operation, "attempt": attempt, "reason": exc.detail},
                    )
                    raise StoreUnavailableError(
                        f"{operation} could not complete after {attempt} attempts: {exc.detail}"
                    ) from exc
                logger.warning(
                    "%s retrying after contention", operation,
                    extra={"operation": operation, "attempt": attempt, "reason": exc.detail},
                )
                # Full jitter keeps colliding retries from lining up again
                await asyncio.sleep(random.uniform(0, delay))
                delay = min(self._max_delay, delay * 2)
                continue

            logger.info(
                "%s committed", operation,
                extra={
                    "operation": operation,
                    "attempt": attempt,
                    "entry_id": entry.id,
                    "account_id": str(entry.account_id),
                    "amount": str(entry.amount),
                    "balance_after": str(entry.balance_after),
                },
            )
            return entry

        # The loop always returns or raises; this satisfies type checkers
        raise StoreUnavailableError(f"{operation} could not complete")

    async def _attempt(self, fn, *args) -> LedgerEntry:
        # Leaving the block without a commit closes the session, which
        # rolls back whatever the attempt wrote.
        async with self._session_factory() as session:
            try:
                entry = await asyncio.wait_for(fn(session, *args), timeout=self._timeout)
                await session.commit()
                return entry
            except OperationalError as exc:
                # Locked database, dropped connection and the like: transient
                raise StoreUnavailableError(f"store error: {exc.orig}") from exc

    # -----------------------
    # Implementations
    # -----------------------

    async def _deposit(
        self,
        db: AsyncSession,
        account_id: uuid.UUID,
        amount: Decimal,
        description: str | None,
    ) -> LedgerEntry:
        account = await account_store.get_account(db, account_id)
        new_balance = account.balance + amount
        if new_balance > MAX_BALANCE:
            raise BalanceLimitError(account.id, MAX_BALANCE)

        await account_store.set_balance(db, account.id, new_balance, expected_version=account.version)

        entry = LedgerEntry(
            account_id=account.id,
            kind=EntryKind.DEPOSIT,
            amount=amount,
            description=description,
            balance_after=new_balance,
            status=EntryStatus.COMPLETED,
        )
        await ledger_entry_store.append(db, entry)
        return entry

    async def _withdraw(
        self,
        db: AsyncSession,
        account_id: uuid.UUID,
        amount: Decimal,
        description: str | None,
    ) -> LedgerEntry:
        account = await account_store.get_account(db, account_id)

        if account.balance < amount:
            raise InsufficientFundsError(
                account_id=account.id,
                requested=amount,
                available=account.balance,
            )

        new_balance = account.balance - amount
        await account_store.set_balance(db, account.id, new_balance, expected_version=account.version)

        entry = LedgerEntry(
            account_id=account.id,
            kind=EntryKind.WITHDRAWAL,
            amount=amount,
            description=description,
            balance_after=new_balance,
            status=EntryStatus.COMPLETED,
        )
        await ledger_entry_store.append(db, entry)
        return entry

    async def _transfer(
        self,
        db: AsyncSession,
        sender_account_id: uuid.UUID,
        recipient_account_number: str,
        amount: Decimal,
        description: str | None,
    ) -> LedgerEntry:
        sender = await account_store.get_account(db, sender_account_id)
        recipient = await account_store.get_account_by_number(db, recipient_account_number)

        if sender.account_number == recipient_account_number:
            raise SelfTransferError(recipient_account_number)

        if sender.balance < amount:
            raise InsufficientFundsError(
                account_id=sender.id,
                requested=amount,
                available=sender.balance,
            )

        sender_new_balance = sender.balance - amount
        recipient_new_balance = recipient.balance + amount
        if recipient_new_balance > MAX_BALANCE:
            raise BalanceLimitError(recipient.id, MAX_BALANCE)

        # Write in ascending id order (see module docstring)
        writes = sorted(
            [(sender, sender_new_balance), (recipient, recipient_new_balance)],
            key=lambda pair: pair[0].id,
        )
        for account, new_balance in writes:
            await account_store.set_balance(
                db, account.id, new_balance, expected_version=account.version
            )

        transfer_group_id = uuid.uuid4()
        occurred_at = datetime.now(timezone.utc)

        sent = LedgerEntry(
            account_id=sender.id,
            kind=EntryKind.TRANSFER_SENT,
            amount=amount,
            description=description,
            sender_account_number=sender.account_number,
            counterparty_account_number=recipient.account_number,
            balance_after=sender_new_balance,
            occurred_at=occurred_at,
            status=EntryStatus.COMPLETED,
            transfer_group_id=transfer_group_id,
        )
        received = LedgerEntry(
            account_id=recipient.id,
            kind=EntryKind.TRANSFER_RECEIVED,
            amount=amount,
            description=description,
            sender_account_number=sender.account_number,
            counterparty_account_number=recipient.account_number,
            balance_after=recipient_new_balance,
            occurred_at=occurred_at,
            status=EntryStatus.COMPLETED,
            transfer_group_id=transfer_group_id,
        )
        await ledger_entry_store.append(db, sent)
        await ledger_entry_store.append(db, received)
        return sent

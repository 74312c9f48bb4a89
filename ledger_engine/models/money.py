"""
Money column type: Decimal in Python, integer cents in the database.

Balances and amounts are fixed-point decimals with two fractional digits.
Storing them as integer minor units keeps every backend exact. SQLite in
particular has no native decimal type and would otherwise round-trip
through floating point, where 0.1 + 0.2 != 0.3.

The conversion is strict: a value that does not fit two fractional digits
is a bug upstream (amounts are validated before they reach the store), so
binding one raises instead of rounding silently.
"""

from decimal import Decimal

from sqlalchemy import BigInteger
from sqlalchemy.types import TypeDecorator

CENT = Decimal("0.01")

# Largest count of cents a BIGINT column holds
MAX_CENTS = 2**63 - 1


def to_cents(value: Decimal) -> int:
    """Convert a scale-2 Decimal into integer cents."""
    quantized = value.quantize(CENT)
    if quantized != value:
        raise ValueError(f"{value} has more than two fractional digits")
    cents = int(quantized.scaleb(2))
    if abs(cents) > MAX_CENTS:
        raise ValueError(f"{value} does not fit in a BIGINT count of cents")
    return cents


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back into a scale-2 Decimal."""
    return Decimal(cents).scaleb(-2).quantize(CENT)


# Upper bound for any amount or balance: 92,233,720,368,547,758.07
MAX_BALANCE = from_cents(MAX_CENTS)


class Money(TypeDecorator):
    """A Decimal amount persisted as a BIGINT count of cents."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return to_cents(Decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return from_cents(value)

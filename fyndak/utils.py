"""
Utility functions
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

CENTS = Decimal("0.01")

# Largest value a Numeric(12,2) column holds
MAX_MONEY = Decimal("9999999999.99")


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the store keeps naive UTC)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    """Generate an opaque entity id"""
    return str(uuid.uuid4())


def to_money(value) -> Decimal:
    """
    Convert a number or numeric string to a 2-place Decimal

    Amounts are never rounded: more than two decimal places is an error.

    Raises:
        ValueError: If the value is not a finite number, has more than
            two decimal places or does not fit the money columns
    """
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Not a valid amount: {value!r}") from e

    if not amount.is_finite():
        raise ValueError(f"Not a valid amount: {value!r}")

    if abs(amount) > MAX_MONEY:
        raise ValueError(f"Amount cannot exceed {MAX_MONEY}")

    quantized = amount.quantize(CENTS)
    if quantized != amount:
        raise ValueError("Amount cannot have more than two decimal places")

    return quantized


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None

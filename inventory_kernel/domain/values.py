"""
Values -- Input checks and money precision shared by every layer.

Responsibility:
    Normalises the primitive inputs of purchases and sales (product id,
    quantity, unit price, timestamp) and fixes the ledger's money
    precision.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Imported by engines, services and
    the ingestion validators so that every entry point applies the same
    rules.

Invariants enforced:
    - Quantities are positive ints up to the BIGINT maximum; bool is not
      a quantity.
    - Prices are positive, finite Decimals at 9 decimal places with at
      most 29 integer digits; floats are never used for money.
    - Money arithmetic runs in ledger_context(), never the 28-digit default.
    - Timestamps are timezone-aware UTC.

Failure modes:
    - ValidationError (or its InvalidQuantityError / InvalidPriceError
      subclasses) on any rejected input.
"""

from contextlib import AbstractContextManager
from datetime import datetime
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext

from inventory_kernel.db.types import to_utc
from inventory_kernel.exceptions import (
    InvalidPriceError,
    InvalidQuantityError,
    ValidationError,
)

# Matches the Numeric(38, 9) ledger columns
MONEY_DECIMAL_PLACES = 9
MONEY_INTEGER_DIGITS = 29
MONEY_QUANTUM = Decimal("0.000000001")
# Exclusive upper bound of a storable money value
MONEY_LIMIT = Decimal(10) ** MONEY_INTEGER_DIGITS

# Largest value a BIGINT quantity column holds
MAX_QUANTITY = 2**63 - 1

# Exact for any stored price times any stored quantity, and for their sums
_LEDGER_CONTEXT = Context(prec=80, rounding=ROUND_HALF_UP)

MAX_PRODUCT_ID_LENGTH = 100


def ledger_context() -> AbstractContextManager:
    """Decimal context for money arithmetic; the default 28 digits are too few."""
    return localcontext(_LEDGER_CONTEXT)


def quantize_money(value: Decimal) -> Decimal:
    """Round to ledger precision (9 places, half up)."""
    with ledger_context():
        return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def require_storable_money(value: Decimal, field: str) -> Decimal:
    """Reject amounts the Numeric(38, 9) columns cannot hold."""
    if value.copy_abs() >= MONEY_LIMIT:
        raise ValidationError(
            field, f"exceeds {MONEY_INTEGER_DIGITS} integer digits"
        )
    return value


def is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def require_quantity(value: object) -> int:
    if not is_positive_int(value):
        raise InvalidQuantityError(value)
    if value > MAX_QUANTITY:
        raise InvalidQuantityError(value, f"must be at most {MAX_QUANTITY}")
    return value


def require_product_id(product_id: object) -> str:
    if not isinstance(product_id, str) or not product_id.strip():
        raise ValidationError("product_id", "must be a non-empty string")
    if len(product_id) > MAX_PRODUCT_ID_LENGTH:
        raise ValidationError(
            "product_id", f"must be at most {MAX_PRODUCT_ID_LENGTH} characters"
        )
    return product_id


def require_timestamp(timestamp: object, field: str = "timestamp") -> datetime:
    if not isinstance(timestamp, datetime):
        raise ValidationError(field, f"must be a datetime, got {timestamp!r}")
    return to_utc(timestamp)


def coerce_unit_price(value: object) -> Decimal:
    """
    Convert a caller-supplied price to a ledger Decimal.

    Floats go through ``str`` so 10.1 becomes Decimal("10.1") rather than
    its binary expansion.

    Raises:
        InvalidPriceError: not numeric, not finite, not positive, or
            wider than the ledger columns.
    """
    if isinstance(value, bool):
        raise InvalidPriceError(value)
    if isinstance(value, Decimal):
        price = value
    elif isinstance(value, (int, float, str)):
        try:
            price = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidPriceError(value) from None
    else:
        raise InvalidPriceError(value)

    if not price.is_finite() or price <= 0:
        raise InvalidPriceError(value)
    if price >= MONEY_LIMIT:
        raise InvalidPriceError(
            value, f"must have at most {MONEY_INTEGER_DIGITS} integer digits"
        )

    price = quantize_money(price)
    if price <= 0:
        # Positive but below ledger precision
        raise InvalidPriceError(value)
    return price

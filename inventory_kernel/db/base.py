"""
Module: inventory_kernel.db.base
Responsibility: Declarative base class for all SQLAlchemy ORM models.  Provides
    the type annotation map for consistent column types and the surrogate
    integer key type used by ledger rows.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Decimal precision: type_annotation_map maps Python Decimal to
      Numeric(38, 9).  NEVER use float for monetary amounts.
    - Timezone-aware timestamps: datetime maps to UTCDateTime, which
      normalises to UTC on write and re-attaches UTC on read.
    - Ledger keys: BigIntegerKey autoincrements on every backend, so batch
      ids grow monotonically and can break FIFO timestamp ties.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import BigInteger, Integer, Numeric
from sqlalchemy.orm import DeclarativeBase

from inventory_kernel.db.types import UTCDateTime

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntegerKey = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Contract:
        Every ORM model in the system inherits from Base.  Unlike a UUID
        convention, each model declares its own primary key: products are
        keyed by the caller-supplied id, ledger rows by BigIntegerKey.

    Guarantees:
        - Decimal maps to Numeric(38, 9).
        - datetime maps to UTCDateTime (always timezone-aware on read).
        - int maps to BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        int: BigInteger,
    }

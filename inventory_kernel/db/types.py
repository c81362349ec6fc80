"""
Module: inventory_kernel.db.types
Responsibility: Column types shared by every model.
    Centralizes monetary precision and timestamp normalisation so that models,
    services and selectors agree on representation.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money.  Money columns are Numeric(38, 9)
      (see db/base.py) and Python Decimal.
    - All timestamps are stored in UTC.  Naive datetimes are taken to be UTC.
      Lexical ordering of stored values equals chronological ordering, which
      FIFO selection relies on.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator


def to_utc(value: datetime) -> datetime:
    """Normalise a datetime to timezone-aware UTC (naive means UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as UTC.

    Contract:
        Bind: any datetime is converted to UTC before it reaches the driver.
        Result: naive values (SQLite) get UTC attached; aware values
        (PostgreSQL) are converted to UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = to_utc(value)
        if dialect.name == "sqlite":
            # SQLite compares text; keep a single representation
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return to_utc(value)

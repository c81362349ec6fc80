"""Database layer - engine, base classes and column types."""

from inventory_kernel.db.base import Base, BigIntegerKey
from inventory_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)
from inventory_kernel.db.types import UTCDateTime, to_utc

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "BigIntegerKey",
    "UTCDateTime",
    "to_utc",
]

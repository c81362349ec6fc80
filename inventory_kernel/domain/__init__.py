"""
Pure domain layer.

Immutable result objects and the injectable clock.  Nothing here touches
the database.
"""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import (
    BatchView,
    ConsumedBatch,
    InventoryStatus,
    SaleRecord,
    SaleResult,
    SaleView,
    TransactionEntry,
)

__all__ = [
    "BatchView",
    "Clock",
    "ConsumedBatch",
    "DeterministicClock",
    "InventoryStatus",
    "SaleRecord",
    "SaleResult",
    "SaleView",
    "SystemClock",
    "TransactionEntry",
]

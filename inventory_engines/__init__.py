"""
Module: inventory_engines
Responsibility:
    Pure calculation engines for the inventory ledger.

Architecture position:
    Engines -- zero I/O.  MUST NOT import inventory_services or
    inventory_ingestion, and never read the clock.

Usage:
    from inventory_engines import AvailableBatch, allocate_fifo
"""

from inventory_engines.fifo import (
    AvailableBatch,
    FifoAllocation,
    FifoLine,
    allocate_fifo,
)

__all__ = [
    "AvailableBatch",
    "FifoAllocation",
    "FifoLine",
    "allocate_fifo",
]

"""
inventory_services -- Package init and public API.

Responsibility:
    Stateful orchestration that composes the pure FIFO engine with
    database sessions.  The only layer that opens units of work.

Architecture position:
    Services -- over engines + kernel.

    Dependency direction:
        inventory_services/ -> inventory_engines/  (allowed)
        inventory_services/ -> inventory_kernel/   (allowed)
        inventory_engines/  -> inventory_services/ (FORBIDDEN)
        inventory_kernel/   -> inventory_services/ (FORBIDDEN)
"""

from inventory_services.inventory_service import (
    InventoryService,
    translate_storage_error,
)
from inventory_services.sale_coordinator import SaleCoordinator

__all__ = [
    "InventoryService",
    "SaleCoordinator",
    "translate_storage_error",
]

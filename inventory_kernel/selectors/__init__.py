"""Read-only projections over the ledger."""

from inventory_kernel.selectors.inventory_selector import (
    MAX_HISTORY_LIMIT,
    InventorySelector,
)

__all__ = ["InventorySelector", "MAX_HISTORY_LIMIT"]

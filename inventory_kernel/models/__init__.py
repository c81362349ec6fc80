"""Ledger models for the inventory kernel."""

from inventory_kernel.models.batch import Batch
from inventory_kernel.models.processed_event import ProcessedEvent
from inventory_kernel.models.product import Product
from inventory_kernel.models.sale import Sale, SaleBatchDetail

__all__ = [
    "Batch",
    "ProcessedEvent",
    "Product",
    "Sale",
    "SaleBatchDetail",
]

"""Flush-only write services of the inventory kernel."""

from inventory_kernel.services.base import BaseService
from inventory_kernel.services.purchase_recorder import PurchaseRecorder

__all__ = ["BaseService", "PurchaseRecorder"]

"""
inventory_ingestion -- Stream ingestion of purchase and sale events.

Provides event validation, idempotent dispatch to InventoryService and a
lifecycle-owning consumer over a pluggable MessageSource.

Architecture:
    inventory_ingestion/ is a top-level package.  Nothing in
    inventory_kernel/, inventory_engines/ or inventory_services/ imports
    from ingestion.
"""

from inventory_ingestion.consumer import (
    InMemoryMessageSource,
    InventoryEventConsumer,
    MessageSource,
)

__all__ = [
    "InMemoryMessageSource",
    "InventoryEventConsumer",
    "MessageSource",
]

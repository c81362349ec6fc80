"""
inventory_ingestion.domain -- Pure types and validators for inbound events.

ZERO I/O. Imports only from inventory_kernel domain, exceptions and utils.
"""

from inventory_ingestion.domain.types import (
    ConsumerState,
    EventType,
    InboundMessage,
    InventoryEvent,
    OutcomeStatus,
    ProcessOutcome,
)
from inventory_ingestion.domain.validators import (
    derive_idempotency_key,
    parse_inventory_event,
)

__all__ = [
    "ConsumerState",
    "EventType",
    "InboundMessage",
    "InventoryEvent",
    "OutcomeStatus",
    "ProcessOutcome",
    "derive_idempotency_key",
    "parse_inventory_event",
]

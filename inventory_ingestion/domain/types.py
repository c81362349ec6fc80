"""
inventory_ingestion.domain.types -- Pure frozen dataclasses for event ingestion.

ZERO I/O.  Imports only from the standard library.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """Kinds of inventory event a producer may send."""

    PURCHASE = "purchase"
    SALE = "sale"


class OutcomeStatus(str, Enum):
    """What happened to one delivered message."""

    APPLIED = "applied"  # Purchase or sale committed
    DUPLICATE = "duplicate"  # Idempotency key already applied; acknowledged
    REJECTED = "rejected"  # Malformed; never retried
    FAILED = "failed"  # Well-formed but could not be applied


class ConsumerState(str, Enum):
    """Consumer lifecycle: STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True)
class InboundMessage:
    """
    One message as delivered by the transport.

    ``source``/``partition``/``offset`` identify the delivery position when
    the transport has one; redeliveries of the same message share it.
    """

    value: bytes | str | dict[str, Any]
    source: str | None = None
    partition: int | None = None
    offset: int | None = None
    received_at: datetime | None = None

    @property
    def position(self) -> str | None:
        if self.source is None or self.offset is None:
            return None
        return f"{self.source}:{self.partition if self.partition is not None else 0}:{self.offset}"


@dataclass(frozen=True)
class InventoryEvent:
    """A validated purchase or sale event."""

    product_id: str
    event_type: EventType
    quantity: int
    timestamp: datetime
    unit_price: Decimal | None = None
    event_id: str | None = None
    timestamp_defaulted: bool = False
    payload: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class ProcessOutcome:
    """Result of processing one message.  Never raised, always returned."""

    status: OutcomeStatus
    idempotency_key: str | None = None
    event: InventoryEvent | None = None
    result_ref: int | None = None
    error_code: str | None = None
    error_message: str | None = None
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status in (OutcomeStatus.APPLIED, OutcomeStatus.DUPLICATE)

"""
Module: inventory_kernel.models.processed_event
Responsibility: ORM persistence for the idempotency marker of every applied
    inventory event.
Architecture position: Kernel > Models.  May import from db/ and
    exceptions.py only.

Invariants enforced:
    - idempotency_key is unique (UNIQUE constraint uq_processed_event_key).
    - The marker is inserted in the same unit of work as the purchase or
      sale it records, so an event is applied at most once.
    - Markers are immutable (ORM before_update / before_delete).

Failure modes:
    - IntegrityError on a duplicate key; translated to DuplicateEventError
      by inventory_services.
"""

from datetime import datetime

from sqlalchemy import String, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, BigIntegerKey
from inventory_kernel.exceptions import ImmutabilityViolationError


class ProcessedEvent(Base):
    """
    Record that an externally delivered event has been applied.

    Contract:
        result_ref holds the batch id (purchase) or sale id (sale) produced
        by the event, so a redelivery can be traced to its original effect.
    """

    __tablename__ = "processed_events"

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_processed_event_key"),
    )

    id: Mapped[int] = mapped_column(BigIntegerKey, primary_key=True, autoincrement=True)

    idempotency_key: Mapped[str] = mapped_column(String(200), nullable=False)

    # "purchase" or "sale"
    event_type: Mapped[str] = mapped_column(String(20), nullable=False)

    product_id: Mapped[str] = mapped_column(String(100), nullable=False)

    result_ref: Mapped[int] = mapped_column(nullable=False)

    processed_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<ProcessedEvent {self.idempotency_key} -> {self.event_type}:{self.result_ref}>"


@event.listens_for(ProcessedEvent, "before_update")
def prevent_processed_event_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ProcessedEvent",
        entity_id=target.idempotency_key,
        reason="Processed-event markers are immutable",
    )


@event.listens_for(ProcessedEvent, "before_delete")
def prevent_processed_event_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ProcessedEvent",
        entity_id=target.idempotency_key,
        reason="Processed-event markers cannot be deleted",
    )

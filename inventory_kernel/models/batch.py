"""
Module: inventory_kernel.models.batch
Responsibility: ORM persistence for purchase batches -- the only mutable,
    shared rows in the ledger.
Architecture position: Kernel > Models.  May import from db/ and
    exceptions.py only.

Invariants enforced:
    - 0 <= remaining_quantity <= original_quantity (CHECK constraints).
    - original_quantity > 0 and unit_price > 0 (CHECK constraints).
    - product_id, original_quantity, unit_price and purchase_timestamp are
      immutable; remaining_quantity never increases (ORM before_update).
    - Batches are never deleted (ORM before_delete).
    - FIFO order is (purchase_timestamp ASC, id ASC); idx_batch_product_fifo
      serves that scan.

Failure modes:
    - IntegrityError if a write would violate a CHECK constraint.
    - ImmutabilityViolationError on an ORM update of a frozen column, an
      increase of remaining_quantity, or a delete.

Audit relevance:
    Exhausted batches stay in place so that every SaleBatchDetail keeps a
    resolvable batch_id.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Index, event
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.db.base import Base, BigIntegerKey
from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("models.batch")

_FROZEN_COLUMNS = (
    "product_id",
    "original_quantity",
    "unit_price",
    "purchase_timestamp",
)


class Batch(Base):
    """
    A lot of stock received in one purchase at one unit cost.

    Contract:
        Inserted full (remaining == original).  Thereafter only the sale
        path lowers remaining_quantity, through a guarded UPDATE inside the
        sale's unit of work.

    Guarantees:
        - id is assigned by the store and increases monotonically, so it
          breaks purchase_timestamp ties in creation order.
        - remaining_quantity stays within [0, original_quantity].

    Non-goals:
        - Batches carry no currency; all prices share one unit.
    """

    __tablename__ = "batches"

    __table_args__ = (
        CheckConstraint("original_quantity > 0", name="ck_batch_original_positive"),
        CheckConstraint("remaining_quantity >= 0", name="ck_batch_remaining_nonneg"),
        CheckConstraint(
            "remaining_quantity <= original_quantity",
            name="ck_batch_remaining_le_original",
        ),
        CheckConstraint("unit_price > 0", name="ck_batch_price_positive"),
        Index("idx_batch_product_fifo", "product_id", "purchase_timestamp", "id"),
    )

    id: Mapped[int] = mapped_column(BigIntegerKey, primary_key=True, autoincrement=True)

    product_id: Mapped[str] = mapped_column(
        ForeignKey("products.id"),
        nullable=False,
    )

    # Quantity received; set once at creation
    original_quantity: Mapped[int] = mapped_column(nullable=False)

    # Quantity not yet drawn by sales
    remaining_quantity: Mapped[int] = mapped_column(nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    # Caller-supplied; drives FIFO order
    purchase_timestamp: Mapped[datetime] = mapped_column(nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    product = relationship("Product", back_populates="batches", lazy="raise")

    def __repr__(self) -> str:
        return (
            f"<Batch {self.id} {self.product_id} "
            f"{self.remaining_quantity}/{self.original_quantity}@{self.unit_price}>"
        )

    @property
    def is_exhausted(self) -> bool:
        return self.remaining_quantity == 0


# =============================================================================
# ORM-level immutability protection
# =============================================================================


@event.listens_for(Batch, "before_update")
def prevent_batch_rewrite(mapper, connection, target):
    """Reject changes to frozen columns and any increase of remaining stock."""
    for column in _FROZEN_COLUMNS:
        if get_history(target, column).has_changes():
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Batch",
                    "entity_id": str(target.id),
                    "column": column,
                    "operation": "UPDATE",
                },
            )
            raise ImmutabilityViolationError(
                entity_type="Batch",
                entity_id=str(target.id),
                reason=f"{column} is fixed at purchase time",
            )

    history = get_history(target, "remaining_quantity")
    if history.deleted and history.added:
        if history.added[0] > history.deleted[0]:
            raise ImmutabilityViolationError(
                entity_type="Batch",
                entity_id=str(target.id),
                reason="remaining_quantity can only decrease",
            )


@event.listens_for(Batch, "before_delete")
def prevent_batch_delete(mapper, connection, target):
    """Batches are retained for audit, including exhausted ones."""
    raise ImmutabilityViolationError(
        entity_type="Batch",
        entity_id=str(target.id),
        reason="Batches cannot be deleted",
    )

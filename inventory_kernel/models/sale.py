"""
Module: inventory_kernel.models.sale
Responsibility: ORM persistence for sales and their per-batch consumption
    detail.
Architecture position: Kernel > Models.  May import from db/ and
    exceptions.py only.

Invariants enforced:
    - For every sale: sum(detail.quantity_used) == sale.quantity and
      sum(detail.quantity_used * detail.unit_price) == sale.total_cost
      (established by SaleCoordinator; both rows are written in one flush).
    - (sale_id, batch_id) is unique: one detail row per batch drawn upon.
    - Sale and SaleBatchDetail rows are immutable (ORM before_update /
      before_delete).

Failure modes:
    - ImmutabilityViolationError on any UPDATE or DELETE through the ORM.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Index, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, BigIntegerKey
from inventory_kernel.domain.values import ledger_context
from inventory_kernel.exceptions import ImmutabilityViolationError


class Sale(Base):
    """
    One sale operation, costed FIFO.

    Contract:
        Written only by SaleCoordinator, in the same unit of work as the
        batch deductions it records.

    Guarantees:
        - average_unit_cost == total_cost / quantity.
        - details are listed in FIFO draw order.
    """

    __tablename__ = "sales"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_quantity_positive"),
        Index("idx_sale_product_timestamp", "product_id", "sale_timestamp"),
    )

    id: Mapped[int] = mapped_column(BigIntegerKey, primary_key=True, autoincrement=True)

    product_id: Mapped[str] = mapped_column(
        ForeignKey("products.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(nullable=False)

    total_cost: Mapped[Decimal] = mapped_column(nullable=False)

    average_unit_cost: Mapped[Decimal] = mapped_column(nullable=False)

    sale_timestamp: Mapped[datetime] = mapped_column(nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    details: Mapped[list["SaleBatchDetail"]] = relationship(
        back_populates="sale",
        order_by="SaleBatchDetail.draw_order",
        lazy="selectin",
        passive_deletes="all",
    )

    def __repr__(self) -> str:
        return f"<Sale {self.id} {self.product_id} x{self.quantity} = {self.total_cost}>"


class SaleBatchDetail(Base):
    """
    Quantity drawn from one batch by one sale, at the batch's unit price.
    """

    __tablename__ = "sale_batch_details"

    __table_args__ = (
        CheckConstraint("quantity_used > 0", name="ck_detail_quantity_positive"),
        Index("idx_detail_batch", "batch_id"),
    )

    sale_id: Mapped[int] = mapped_column(
        BigIntegerKey,
        ForeignKey("sales.id"),
        primary_key=True,
    )

    batch_id: Mapped[int] = mapped_column(
        BigIntegerKey,
        ForeignKey("batches.id"),
        primary_key=True,
    )

    # Position of this batch in the FIFO walk (0 = oldest)
    draw_order: Mapped[int] = mapped_column(nullable=False)

    quantity_used: Mapped[int] = mapped_column(nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    sale: Mapped[Sale] = relationship(back_populates="details")

    @property
    def cost(self) -> Decimal:
        with ledger_context():
            return self.unit_price * self.quantity_used

    def __repr__(self) -> str:
        return f"<SaleBatchDetail sale={self.sale_id} batch={self.batch_id} x{self.quantity_used}>"


# =============================================================================
# ORM-level immutability protection
# =============================================================================


@event.listens_for(Sale, "before_update")
def prevent_sale_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="Sale",
        entity_id=str(target.id),
        reason="Sales are immutable once recorded",
    )


@event.listens_for(Sale, "before_delete")
def prevent_sale_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="Sale",
        entity_id=str(target.id),
        reason="Sales cannot be deleted",
    )


@event.listens_for(SaleBatchDetail, "before_update")
def prevent_detail_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="SaleBatchDetail",
        entity_id=f"{target.sale_id}:{target.batch_id}",
        reason="Sale details are immutable once recorded",
    )


@event.listens_for(SaleBatchDetail, "before_delete")
def prevent_detail_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="SaleBatchDetail",
        entity_id=f"{target.sale_id}:{target.batch_id}",
        reason="Sale details cannot be deleted",
    )

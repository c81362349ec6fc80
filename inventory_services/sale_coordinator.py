"""
SaleCoordinator -- FIFO sale inside one locked unit of work.

Responsibility:
    Turns a sale request into batch deductions, a Sale row and its
    SaleBatchDetail rows, using the pure allocator over the batches it
    holds locked.

Architecture position:
    Services -- stateful orchestration over the kernel.  Flush-only: the
    caller (InventoryService.record_sale) owns commit and rollback.

Invariants enforced:
    - Availability is re-checked against the locked rows; the unlocked
      pre-check is advisory and only logged.
    - Every deduction is a guarded UPDATE (remaining >= drawn), so
      remaining_quantity can never go negative even if a lock was missed.
    - Deductions, the Sale and its details are flushed in one transaction;
      an exception at any step leaves nothing behind once the caller rolls
      back.
    - Consumption is oldest purchase first, ties broken by batch id.

Failure modes:
    - InvalidQuantityError / ValidationError on bad input, before any
      statement is issued.
    - InsufficientInventoryError(available, requested) when the locked rows
      cannot cover the sale.  No mutation has happened.
    - BatchConflictError if a guarded UPDATE matches no row.
    - sqlalchemy OperationalError on lock timeout or deadlock; translated by
      InventoryService.

Audit relevance:
    ``sale_processed`` records every batch drawn and the resulting cost;
    ``sale_rejected_insufficient_inventory`` records refusals.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, update

from inventory_engines.fifo import AvailableBatch, FifoAllocation, allocate_fifo
from inventory_kernel.domain.dtos import ConsumedBatch, SaleRecord, SaleResult
from inventory_kernel.domain.values import (
    require_product_id,
    require_quantity,
    require_timestamp,
)
from inventory_kernel.exceptions import BatchConflictError, InsufficientInventoryError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.batch import Batch
from inventory_kernel.models.sale import Sale, SaleBatchDetail
from inventory_kernel.services.base import BaseService

logger = get_logger("services.sale_coordinator")


class SaleCoordinator(BaseService):
    """
    Applies one sale to the ledger.

    Contract:
        ``process_sale`` must run inside a transaction that the caller
        commits only if it returns normally.

    Guarantees:
        - Two concurrent sales of the same product are serialized by the
          batch row locks taken in step 2.  Sales of different products do
          not contend on PostgreSQL.
        - The returned SaleResult mirrors exactly what was flushed.

    Non-goals:
        - No retries.  Lock timeouts and conflicts propagate to the caller.
    """

    def process_sale(
        self,
        product_id: str,
        quantity: int,
        timestamp: datetime,
    ) -> SaleResult:
        product_id = require_product_id(product_id)
        require_quantity(quantity)
        sale_ts = require_timestamp(timestamp)

        # 1. Advisory, unlocked
        advisory = self._available_unlocked(product_id)
        logger.debug(
            "sale_advisory_availability",
            extra={"product_id": product_id, "available": advisory, "requested": quantity},
        )

        # 2. Lock every non-exhausted batch in FIFO order
        locked = self._lock_available_batches(product_id)
        available = sum(b.remaining_quantity for b in locked)

        # 3. Authoritative check against the locked snapshot
        if available < quantity:
            logger.warning(
                "sale_rejected_insufficient_inventory",
                extra={
                    "product_id": product_id,
                    "available": available,
                    "requested": quantity,
                },
            )
            raise InsufficientInventoryError(
                product_id=product_id,
                available=available,
                requested=quantity,
            )

        # 4. Allocate
        allocation = allocate_fifo(
            [
                AvailableBatch(
                    batch_id=b.id,
                    remaining_quantity=b.remaining_quantity,
                    unit_price=b.unit_price,
                )
                for b in locked
            ],
            quantity,
            product_id=product_id,
        )

        # 5. Deduct
        for line in allocation.lines:
            self._deduct(line.batch_id, line.quantity)

        # 6. Persist the sale and its detail rows
        sale = self._insert_sale(product_id, allocation, sale_ts)

        logger.info(
            "sale_processed",
            extra={
                "product_id": product_id,
                "sale_id": sale.id,
                "quantity": quantity,
                "total_cost": str(allocation.total_cost),
                "average_unit_cost": str(allocation.average_unit_cost),
                "batches_used": [
                    {"batch_id": line.batch_id, "quantity": line.quantity}
                    for line in allocation.lines
                ],
            },
        )

        return SaleResult(
            sale=SaleRecord.from_model(sale),
            consumed_batches=tuple(
                ConsumedBatch(
                    batch_id=line.batch_id,
                    quantity_used=line.quantity,
                    unit_price=line.unit_price,
                    cost=line.cost,
                )
                for line in allocation.lines
            ),
            total_cost=allocation.total_cost,
            average_unit_cost=allocation.average_unit_cost,
        )

    def _available_unlocked(self, product_id: str) -> int:
        total = self.session.execute(
            select(func.coalesce(func.sum(Batch.remaining_quantity), 0)).where(
                Batch.product_id == product_id,
                Batch.remaining_quantity > 0,
            )
        ).scalar_one()
        return int(total)

    def _lock_available_batches(self, product_id: str) -> list[Batch]:
        """
        SELECT ... FOR UPDATE over the product's non-exhausted batches.

        Rows are locked in FIFO order so that concurrent sales of the same
        product acquire them in the same order.  SQLite ignores FOR UPDATE;
        there the IMMEDIATE transaction already holds the write lock.
        """
        return list(
            self.session.execute(
                select(Batch)
                .where(
                    Batch.product_id == product_id,
                    Batch.remaining_quantity > 0,
                )
                .order_by(Batch.purchase_timestamp.asc(), Batch.id.asc())
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def _deduct(self, batch_id: int, quantity: int) -> None:
        """Guarded decrement of one batch; raises if the row cannot cover it."""
        result = self.session.execute(
            update(Batch)
            .where(Batch.id == batch_id, Batch.remaining_quantity >= quantity)
            .values(remaining_quantity=Batch.remaining_quantity - quantity)
            .execution_options(synchronize_session="evaluate")
        )
        if result.rowcount != 1:
            logger.error(
                "batch_deduction_conflict",
                extra={"batch_id": batch_id, "quantity": quantity},
            )
            raise BatchConflictError(batch_id=batch_id, quantity=quantity)

    def _insert_sale(
        self,
        product_id: str,
        allocation: FifoAllocation,
        sale_ts: datetime,
    ) -> Sale:
        sale = Sale(
            product_id=product_id,
            quantity=allocation.total_quantity,
            total_cost=allocation.total_cost,
            average_unit_cost=allocation.average_unit_cost,
            sale_timestamp=sale_ts,
            created_at=self._clock.now(),
        )
        self.session.add(sale)
        self.session.flush()

        self.session.add_all(
            [
                SaleBatchDetail(
                    sale_id=sale.id,
                    batch_id=line.batch_id,
                    draw_order=position,
                    quantity_used=line.quantity,
                    unit_price=line.unit_price,
                )
                for position, line in enumerate(allocation.lines)
            ]
        )
        self.session.flush()
        return sale

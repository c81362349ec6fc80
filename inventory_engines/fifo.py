"""
inventory_engines.fifo -- Pure first-in-first-out allocator.

Responsibility:
    Given the non-exhausted batches of one product, oldest first, and a sale
    quantity, decide how much to draw from each batch and what the sale
    costs.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  May import
    inventory_kernel.domain.values, inventory_kernel.exceptions and
    inventory_kernel.logging_config only.
    The caller (SaleCoordinator) is responsible for passing the batches it
    holds locked, in (purchase_timestamp, id) order.

Invariants enforced:
    - sum(line.quantity) == quantity_to_sell for every returned allocation.
    - No line draws more than its batch holds; lines keep input order.
    - average_unit_cost is computed only after the request is fully met.
    - Decimal-only arithmetic for money, exact in ledger_context().

Failure modes:
    - InvalidQuantityError if quantity_to_sell is not a positive int
      (bool is rejected).
    - InsufficientInventoryError(available, requested) if the supplied
      batches cannot cover the request.  No partial allocation is returned.
    - ValidationError if the total cost does not fit the ledger columns.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.values import (
    ledger_context,
    quantize_money,
    require_quantity,
    require_storable_money,
)
from inventory_kernel.exceptions import InsufficientInventoryError
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.fifo")


@dataclass(frozen=True)
class AvailableBatch:
    """A batch offered to the allocator: what is left and at what price."""

    batch_id: int
    remaining_quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class FifoLine:
    """Quantity drawn from one batch."""

    batch_id: int
    quantity: int
    unit_price: Decimal
    cost: Decimal


@dataclass(frozen=True)
class FifoAllocation:
    """
    Complete allocation for one sale.

    Guarantees:
        - lines is non-empty and in FIFO order.
        - total_quantity == sum(line.quantity)
        - total_cost == sum(line.cost)
        - average_unit_cost == total_cost / total_quantity at ledger precision.
    """

    product_id: str | None
    lines: tuple[FifoLine, ...]
    total_quantity: int
    total_cost: Decimal
    average_unit_cost: Decimal

    @property
    def batch_ids(self) -> tuple[int, ...]:
        return tuple(line.batch_id for line in self.lines)


def _trace_summary(allocation: FifoAllocation) -> dict[str, object]:
    return {
        "batch_ids": list(allocation.batch_ids),
        "total_quantity": allocation.total_quantity,
        "total_cost": allocation.total_cost,
    }


@traced_engine(
    "fifo",
    "1.0",
    fingerprint_fields=("batches", "quantity_to_sell"),
    summarize=_trace_summary,
)
def allocate_fifo(
    batches: Sequence[AvailableBatch],
    quantity_to_sell: int,
    product_id: str | None = None,
) -> FifoAllocation:
    """
    Draw ``quantity_to_sell`` units from ``batches``, oldest first.

    Args:
        batches: Non-exhausted batches in FIFO order.  Entries with
            remaining_quantity <= 0 are skipped.
        quantity_to_sell: Units required; a positive int.
        product_id: Only used to label errors and logs.

    Returns:
        FifoAllocation covering exactly quantity_to_sell.

    Raises:
        InvalidQuantityError: quantity_to_sell is not a positive int.
        InsufficientInventoryError: the batches hold fewer units than asked.
        ValidationError: total_cost has more than 29 integer digits.
    """
    require_quantity(quantity_to_sell)

    available = sum(b.remaining_quantity for b in batches if b.remaining_quantity > 0)
    if available < quantity_to_sell:
        logger.info(
            "fifo_allocation_insufficient",
            extra={
                "product_id": product_id,
                "available": available,
                "requested": quantity_to_sell,
            },
        )
        raise InsufficientInventoryError(
            product_id=product_id or "",
            available=available,
            requested=quantity_to_sell,
        )

    lines: list[FifoLine] = []
    still_needed = quantity_to_sell
    total_cost = Decimal("0")

    for batch in batches:
        if still_needed == 0:
            break
        if batch.remaining_quantity <= 0:
            continue

        drawn = min(batch.remaining_quantity, still_needed)
        with ledger_context():
            cost = batch.unit_price * drawn
            total_cost += cost
        lines.append(
            FifoLine(
                batch_id=batch.batch_id,
                quantity=drawn,
                unit_price=batch.unit_price,
                cost=cost,
            )
        )
        still_needed -= drawn

    require_storable_money(total_cost, "total_cost")
    with ledger_context():
        average_unit_cost = quantize_money(total_cost / quantity_to_sell)

    return FifoAllocation(
        product_id=product_id,
        lines=tuple(lines),
        total_quantity=quantity_to_sell,
        total_cost=total_cost,
        average_unit_cost=average_unit_cost,
    )

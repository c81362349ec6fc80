"""
DTOs -- Immutable results handed across the service boundary.

Responsibility:
    Defines the frozen data structures returned by the purchase and sale
    paths and by the inventory projection: BatchView, ConsumedBatch,
    SaleRecord, SaleResult, SaleView, InventoryStatus and TransactionEntry.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  from_model() class methods are
    boundary converters invoked only by services and selectors; the ORM
    types are imported for annotations only.

Invariants enforced:
    - Callers never receive ORM entities, so a result cannot be used to
      mutate the ledger outside a unit of work.
    - Money is Decimal throughout.

Serialization:
    ``to_dict()`` renders the camelCase JSON shape the HTTP layer returns.
    Decimals are rendered as strings and datetimes as ISO-8601 so that no
    precision is lost on the wire.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from inventory_kernel.models.batch import Batch as BatchModel
    from inventory_kernel.models.sale import Sale as SaleModel
    from inventory_kernel.models.sale import SaleBatchDetail as SaleBatchDetailModel


def _money(value: Decimal) -> str:
    return str(value)


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class BatchView:
    """A purchase batch as seen by callers."""

    batch_id: int
    product_id: str
    remaining_quantity: int
    original_quantity: int
    unit_price: Decimal
    purchase_timestamp: datetime
    created_at: datetime

    @classmethod
    def from_model(cls, model: BatchModel) -> BatchView:
        return cls(
            batch_id=model.id,
            product_id=model.product_id,
            remaining_quantity=model.remaining_quantity,
            original_quantity=model.original_quantity,
            unit_price=model.unit_price,
            purchase_timestamp=model.purchase_timestamp,
            created_at=model.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "productId": self.product_id,
            "remainingQuantity": self.remaining_quantity,
            "originalQuantity": self.original_quantity,
            "unitPrice": _money(self.unit_price),
            "purchaseTimestamp": _ts(self.purchase_timestamp),
        }


@dataclass(frozen=True)
class ConsumedBatch:
    """Quantity one sale drew from one batch, and what it cost."""

    batch_id: int
    quantity_used: int
    unit_price: Decimal
    cost: Decimal

    @classmethod
    def from_model(cls, model: SaleBatchDetailModel) -> ConsumedBatch:
        return cls(
            batch_id=model.batch_id,
            quantity_used=model.quantity_used,
            unit_price=model.unit_price,
            cost=model.cost,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "quantityUsed": self.quantity_used,
            "unitPrice": _money(self.unit_price),
            "cost": _money(self.cost),
        }


@dataclass(frozen=True)
class SaleRecord:
    """A persisted sale row."""

    sale_id: int
    product_id: str
    quantity: int
    total_cost: Decimal
    average_unit_cost: Decimal
    sale_timestamp: datetime
    created_at: datetime

    @classmethod
    def from_model(cls, model: SaleModel) -> SaleRecord:
        return cls(
            sale_id=model.id,
            product_id=model.product_id,
            quantity=model.quantity,
            total_cost=model.total_cost,
            average_unit_cost=model.average_unit_cost,
            sale_timestamp=model.sale_timestamp,
            created_at=model.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.sale_id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "totalCost": _money(self.total_cost),
            "averageUnitCost": _money(self.average_unit_cost),
            "saleTimestamp": _ts(self.sale_timestamp),
            "createdAt": _ts(self.created_at),
        }


@dataclass(frozen=True)
class SaleResult:
    """
    Outcome of a successful sale.

    Guarantees:
        - sum(c.quantity_used) == sale.quantity
        - sum(c.cost) == total_cost == sale.total_cost
        - consumed_batches are in FIFO draw order.
    """

    sale: SaleRecord
    consumed_batches: tuple[ConsumedBatch, ...]
    total_cost: Decimal
    average_unit_cost: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "sale": self.sale.to_dict(),
            "consumedBatches": [c.to_dict() for c in self.consumed_batches],
            "totalCost": _money(self.total_cost),
            "averageUnitCost": _money(self.average_unit_cost),
        }


@dataclass(frozen=True)
class SaleView:
    """A past sale with the batches it consumed."""

    sale: SaleRecord
    consumed_batches: tuple[ConsumedBatch, ...]

    @classmethod
    def from_model(cls, model: SaleModel) -> SaleView:
        return cls(
            sale=SaleRecord.from_model(model),
            consumed_batches=tuple(ConsumedBatch.from_model(d) for d in model.details),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sale": self.sale.to_dict(),
            "consumedBatches": [c.to_dict() for c in self.consumed_batches],
        }


@dataclass(frozen=True)
class InventoryStatus:
    """Current stock position of one product."""

    product_id: str
    product_name: str
    description: str | None
    current_quantity: int
    total_value: Decimal
    weighted_average_cost: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "description": self.description,
            "currentQuantity": self.current_quantity,
            "totalValue": _money(self.total_value),
            "weightedAverageCost": _money(self.weighted_average_cost),
        }


@dataclass(frozen=True)
class TransactionEntry:
    """
    One row of the derived purchase/sale history.

    For purchases unit_price is the batch price and total_amount is
    original_quantity * unit_price.  For sales unit_price is the sale's
    average unit cost and total_amount its total cost.
    """

    transaction_type: str
    record_id: int
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    timestamp: datetime
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.transaction_type,
            "id": self.record_id,
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "unitPrice": _money(self.unit_price),
            "totalAmount": _money(self.total_amount),
            "timestamp": _ts(self.timestamp),
        }

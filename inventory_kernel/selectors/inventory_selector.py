"""
Module: inventory_kernel.selectors.inventory_selector
Responsibility: Read-only inventory projection -- stock positions, FIFO batch
    listings, sales with their consumption detail, and the merged
    purchase/sale history.
Architecture position: Kernel > Selectors.  Imports models/ and
    domain/dtos.  Never writes, never locks.

Invariants enforced:
    - current_quantity and total_value are derived from non-exhausted
      batches only; there are no stored balances.
    - weighted_average_cost == total_value / current_quantity, and 0 when
      current_quantity is 0.
    - Batch listings use the same (purchase_timestamp, id) order as the
      sale path, so summing them equals current_quantity in one snapshot.
    - History is newest first: event timestamp desc, then creation time
      desc, then type and id desc so that pages are stable.

Failure modes:
    - ValidationError for limit outside 1..MAX_HISTORY_LIMIT or a negative
      offset.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import (
    Numeric,
    String,
    and_,
    func,
    literal_column,
    select,
    type_coerce,
    union_all,
)

from inventory_kernel.domain.dtos import (
    BatchView,
    InventoryStatus,
    SaleView,
    TransactionEntry,
)
from inventory_kernel.domain.values import ledger_context, quantize_money
from inventory_kernel.exceptions import ValidationError
from inventory_kernel.models.batch import Batch
from inventory_kernel.models.processed_event import ProcessedEvent
from inventory_kernel.models.product import Product
from inventory_kernel.models.sale import Sale
from inventory_kernel.selectors.base import BaseSelector

MAX_HISTORY_LIMIT = 1000

_MONEY = Numeric(38, 9)


def _to_money(value: object) -> Decimal:
    if value is None:
        return Decimal("0")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return quantize_money(value)


class InventorySelector(BaseSelector):
    """
    Projections over the batch ledger.

    Contract:
        Every method returns frozen DTOs built from a single query (plus
        eager detail loading for sales) in the caller's session.
    """

    def _status_query(self):
        quantity = func.coalesce(func.sum(Batch.remaining_quantity), 0)
        value = func.coalesce(
            func.sum(type_coerce(Batch.remaining_quantity * Batch.unit_price, _MONEY)),
            0,
        )
        return (
            select(
                Product.id.label("product_id"),
                Product.name.label("product_name"),
                Product.description.label("description"),
                quantity.label("current_quantity"),
                type_coerce(value, _MONEY).label("total_value"),
            )
            .outerjoin(
                Batch,
                and_(Batch.product_id == Product.id, Batch.remaining_quantity > 0),
            )
            .group_by(Product.id, Product.name, Product.description)
        )

    @staticmethod
    def _status_from_row(row) -> InventoryStatus:
        current_quantity = int(row.current_quantity)
        total_value = _to_money(row.total_value)
        if current_quantity == 0:
            weighted = Decimal("0")
        else:
            with ledger_context():
                weighted = quantize_money(total_value / current_quantity)
        return InventoryStatus(
            product_id=row.product_id,
            product_name=row.product_name,
            description=row.description,
            current_quantity=current_quantity,
            total_value=total_value,
            weighted_average_cost=weighted,
        )

    def get_inventory_status(self, product_id: str) -> InventoryStatus | None:
        """Stock position of one product, or None if it has never been bought."""
        row = self.session.execute(
            self._status_query().where(Product.id == product_id)
        ).one_or_none()
        if row is None:
            return None
        return self._status_from_row(row)

    def get_all_inventory_status(self) -> list[InventoryStatus]:
        rows = self.session.execute(self._status_query().order_by(Product.id))
        return [self._status_from_row(row) for row in rows]

    def get_product_batches(self, product_id: str) -> list[BatchView]:
        """Non-exhausted batches of a product in FIFO order."""
        batches = self.session.execute(
            select(Batch)
            .where(Batch.product_id == product_id, Batch.remaining_quantity > 0)
            .order_by(Batch.purchase_timestamp.asc(), Batch.id.asc())
        ).scalars()
        return [BatchView.from_model(b) for b in batches]

    def get_sales_by_product(self, product_id: str) -> list[SaleView]:
        """Sales of a product, newest first, each with its consumed batches."""
        sales = self.session.execute(
            select(Sale)
            .where(Sale.product_id == product_id)
            .order_by(Sale.sale_timestamp.desc(), Sale.id.desc())
        ).scalars()
        return [SaleView.from_model(s) for s in sales]

    def get_transaction_history(
        self,
        limit: int = 50,
        offset: int = 0,
    ) -> list[TransactionEntry]:
        """
        Purchases and sales merged, newest first, one page at a time.

        Purchases report the batch price and original_quantity * price;
        sales report their average unit cost and total cost.
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or not (
            1 <= limit <= MAX_HISTORY_LIMIT
        ):
            raise ValidationError("limit", f"must be an integer in 1..{MAX_HISTORY_LIMIT}")
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise ValidationError("offset", "must be a non-negative integer")

        purchases = select(
            literal_column("'purchase'", String).label("transaction_type"),
            Batch.id.label("record_id"),
            Batch.product_id.label("product_id"),
            Product.name.label("product_name"),
            Batch.original_quantity.label("quantity"),
            type_coerce(Batch.unit_price, _MONEY).label("unit_price"),
            type_coerce(Batch.original_quantity * Batch.unit_price, _MONEY).label(
                "total_amount"
            ),
            Batch.purchase_timestamp.label("event_timestamp"),
            Batch.created_at.label("created_at"),
        ).join(Product, Product.id == Batch.product_id)

        sales = select(
            literal_column("'sale'", String),
            Sale.id,
            Sale.product_id,
            Product.name,
            Sale.quantity,
            Sale.average_unit_cost,
            Sale.total_cost,
            Sale.sale_timestamp,
            Sale.created_at,
        ).join(Product, Product.id == Sale.product_id)

        history = union_all(purchases, sales).subquery("history")

        rows = self.session.execute(
            select(history)
            .order_by(
                history.c.event_timestamp.desc(),
                history.c.created_at.desc(),
                history.c.transaction_type.desc(),
                history.c.record_id.desc(),
            )
            .limit(limit)
            .offset(offset)
        )

        return [
            TransactionEntry(
                transaction_type=row.transaction_type,
                record_id=row.record_id,
                product_id=row.product_id,
                product_name=row.product_name,
                quantity=int(row.quantity),
                unit_price=_to_money(row.unit_price),
                total_amount=_to_money(row.total_amount),
                timestamp=row.event_timestamp,
                created_at=row.created_at,
            )
            for row in rows
        ]

    def is_processed(self, idempotency_key: str) -> bool:
        """True if an event with this key has been applied."""
        return (
            self.session.execute(
                select(ProcessedEvent.id).where(
                    ProcessedEvent.idempotency_key == idempotency_key
                )
            ).first()
            is not None
        )

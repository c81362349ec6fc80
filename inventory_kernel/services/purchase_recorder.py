"""
PurchaseRecorder -- appends purchase batches to the ledger.

Responsibility:
    Validate a purchase, make sure its product exists, and insert a new,
    full batch.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.  Called by
    InventoryService inside its unit of work.

Invariants enforced:
    - A new batch starts with remaining_quantity == original_quantity.
    - quantity is a positive int and unit_price a positive, finite Decimal;
      both are checked before any statement is issued.
    - Product creation is insert-if-absent: it never updates an existing
      product, so racing purchases of a new product both succeed.

Failure modes:
    - InvalidQuantityError / InvalidPriceError / ValidationError on bad input.
    - IntegrityError from a concurrent product insert is absorbed by a
      savepoint rollback and a re-read; any other IntegrityError propagates.

Audit relevance:
    Emits ``purchase_recorded`` with batch id, quantity and price, and
    ``product_created`` the first time a product is seen.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from inventory_kernel.domain.dtos import BatchView
from inventory_kernel.domain.values import (
    coerce_unit_price,
    require_product_id,
    require_quantity,
    require_timestamp,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.batch import Batch
from inventory_kernel.models.product import Product
from inventory_kernel.services.base import BaseService

logger = get_logger("services.purchase_recorder")


class PurchaseRecorder(BaseService):
    """
    Records purchases as new batches.

    Contract:
        ``process_purchase`` flushes a Batch (and possibly a Product) into
        the caller's transaction and returns its view.  It takes no locks.

    Non-goals:
        - Does NOT merge purchases into existing batches.
        - Does NOT edit product names; placeholders are only used on create.
    """

    def process_purchase(
        self,
        product_id: str,
        quantity: int,
        unit_price: Decimal,
        timestamp: datetime,
    ) -> BatchView:
        product_id = require_product_id(product_id)
        require_quantity(quantity)
        price = coerce_unit_price(unit_price)
        purchase_ts = require_timestamp(timestamp)

        self._ensure_product(product_id)

        batch = Batch(
            product_id=product_id,
            original_quantity=quantity,
            remaining_quantity=quantity,
            unit_price=price,
            purchase_timestamp=purchase_ts,
            created_at=self._clock.now(),
        )
        self.session.add(batch)
        self.session.flush()

        logger.info(
            "purchase_recorded",
            extra={
                "product_id": product_id,
                "batch_id": batch.id,
                "quantity": quantity,
                "unit_price": str(price),
                "purchase_timestamp": purchase_ts.isoformat(),
            },
        )
        return BatchView.from_model(batch)

    def _ensure_product(self, product_id: str) -> None:
        """Insert the product if it does not exist yet."""
        if self.session.get(Product, product_id) is not None:
            return

        # Savepoint so a lost race does not roll back the caller's work
        savepoint = self.session.begin_nested()
        try:
            self.session.add(
                Product(
                    id=product_id,
                    name=Product.placeholder_name(product_id),
                    description=Product.placeholder_description(product_id),
                    created_at=self._clock.now(),
                )
            )
            self.session.flush()
            savepoint.commit()
            logger.info("product_created", extra={"product_id": product_id})
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "product_create_race_absorbed",
                extra={"product_id": product_id},
            )
            if self.session.get(Product, product_id, populate_existing=True) is None:
                # The conflict was not a concurrent insert of this product
                raise

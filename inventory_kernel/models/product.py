"""
Module: inventory_kernel.models.product
Responsibility: ORM persistence for the product catalogue entry that batches
    and sales hang off.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Product id is caller-supplied and unique (primary key).
    - Products are never deleted by the ledger.

Failure modes:
    - IntegrityError on a concurrent insert of the same id; PurchaseRecorder
      absorbs it inside a savepoint.
"""

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base


class Product(Base):
    """
    Product that stock is bought and sold under.

    Contract:
        Created lazily by the first purchase that names it, with a
        placeholder name and description when the caller supplies none.
    """

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    batches = relationship("Batch", back_populates="product", lazy="raise")

    def __repr__(self) -> str:
        return f"<Product {self.id}>"

    @staticmethod
    def placeholder_name(product_id: str) -> str:
        return f"Product {product_id}"

    @staticmethod
    def placeholder_description(product_id: str) -> str:
        return f"Auto-generated product {product_id}"

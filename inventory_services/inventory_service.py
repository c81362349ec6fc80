"""
InventoryService -- public operations of the inventory ledger.

Responsibility:
    The single entry point for HTTP handlers, the event consumer and
    scripts.  Each write runs in its own unit of work: open a session,
    delegate to PurchaseRecorder / SaleCoordinator, record the idempotency
    marker if one was given, commit.  Reads go through InventorySelector.

Architecture position:
    Services -- owns transaction boundaries and error translation.  Kernel
    services below it are flush-only.

Invariants enforced:
    - All-or-nothing: any exception inside a unit of work rolls the whole
      transaction back before it reaches the caller.
    - Lock waits are bounded: every unit of work sets lock_timeout on
      PostgreSQL.
    - At-most-once application per idempotency key: the ProcessedEvent row
      is written in the same transaction as the purchase or sale.
    - Callers only see kernel exceptions, never raw SQLAlchemy errors.

Failure modes:
    - ValidationError subclasses for malformed input (no storage access).
    - InsufficientInventoryError / ProductNotFoundError.
    - DuplicateEventError when the idempotency key was already applied.
    - ConcurrencyTimeoutError on lock timeout, deadlock, serialization
      failure or a busy SQLite database (retryable).
    - StorageFailureError for any other storage error.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from inventory_kernel.config import LedgerSettings
from inventory_kernel.db.engine import apply_lock_timeout, begin_read_only, session_scope
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    BatchView,
    InventoryStatus,
    SaleResult,
    SaleView,
    TransactionEntry,
)
from inventory_kernel.exceptions import (
    ConcurrencyTimeoutError,
    DuplicateEventError,
    InventoryKernelError,
    ProductNotFoundError,
    StorageFailureError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.processed_event import ProcessedEvent
from inventory_kernel.selectors.inventory_selector import InventorySelector
from inventory_kernel.services.purchase_recorder import PurchaseRecorder
from inventory_services.sale_coordinator import SaleCoordinator

logger = get_logger("services.inventory")

# PostgreSQL SQLSTATEs that mean "try again"
_RETRYABLE_SQLSTATES = {
    "55P03": "lock_not_available",
    "40P01": "deadlock_detected",
    "40001": "serialization_failure",
    "57014": "query_canceled",
}


def _sqlstate(exc: SQLAlchemyError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def translate_storage_error(operation: str, exc: SQLAlchemyError) -> InventoryKernelError:
    """Map a SQLAlchemy error to the kernel taxonomy."""
    detail = str(getattr(exc, "orig", None) or exc)
    state = _sqlstate(exc)
    if state in _RETRYABLE_SQLSTATES:
        return ConcurrencyTimeoutError(operation, f"{_RETRYABLE_SQLSTATES[state]}: {detail}")
    if isinstance(exc, OperationalError) and "database is locked" in detail:
        return ConcurrencyTimeoutError(operation, detail)
    return StorageFailureError(operation, detail)


class InventoryService:
    """
    Facade over the ledger.

    Contract:
        Thread-safe as long as the session factory is: each call opens and
        closes its own session.

    Guarantees:
        - record_sale never leaves a partial deduction behind.
        - Read methods return DTOs only.

    Non-goals:
        - No retries.  ConcurrencyError subclasses are marked retryable;
          the caller decides.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._settings = settings or LedgerSettings()

    @property
    def clock(self) -> Clock:
        return self._clock

    @contextmanager
    def _unit_of_work(
        self,
        operation: str,
        read_only: bool = False,
    ) -> Generator[Session, None, None]:
        """
        Session scope that bounds lock waits and translates storage errors.

        Read-only scopes begin as readers and do not wait for a sale or
        purchase in progress.
        """
        try:
            with session_scope(self._session_factory) as session:
                if read_only:
                    begin_read_only(session)
                else:
                    apply_lock_timeout(session, self._settings.lock_timeout_ms)
                yield session
        except InventoryKernelError:
            raise
        except SQLAlchemyError as exc:
            error = translate_storage_error(operation, exc)
            logger.error(
                "unit_of_work_failed",
                extra={
                    "operation": operation,
                    "error_code": error.code,
                    "retryable": error.retryable,
                    "detail": str(exc),
                },
            )
            raise error from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_purchase(
        self,
        product_id: str,
        quantity: int,
        unit_price: Decimal,
        timestamp: datetime,
        *,
        idempotency_key: str | None = None,
    ) -> BatchView:
        """
        Append a purchase batch, creating the product if needed.

        Raises:
            InvalidQuantityError, InvalidPriceError, ValidationError,
            DuplicateEventError, ConcurrencyTimeoutError, StorageFailureError.
        """
        with LogContext.bind(product_id=product_id, idempotency_key=idempotency_key):
            with self._unit_of_work("record_purchase") as session:
                self._reject_if_processed(session, idempotency_key)
                batch = PurchaseRecorder(session, self._clock).process_purchase(
                    product_id, quantity, unit_price, timestamp
                )
                self._mark_processed(
                    session, idempotency_key, "purchase", batch.product_id, batch.batch_id
                )
            return batch

    def record_sale(
        self,
        product_id: str,
        quantity: int,
        timestamp: datetime,
        *,
        idempotency_key: str | None = None,
    ) -> SaleResult:
        """
        Sell ``quantity`` units FIFO in one atomic unit of work.

        Raises:
            InsufficientInventoryError: with ``available`` and ``requested``.
            InvalidQuantityError, ValidationError, DuplicateEventError,
            ConcurrencyError subclasses, StorageFailureError.
        """
        with LogContext.bind(product_id=product_id, idempotency_key=idempotency_key):
            with self._unit_of_work("record_sale") as session:
                self._reject_if_processed(session, idempotency_key)
                result = SaleCoordinator(session, self._clock).process_sale(
                    product_id, quantity, timestamp
                )
                self._mark_processed(
                    session, idempotency_key, "sale", product_id, result.sale.sale_id
                )
            return result

    def _reject_if_processed(self, session: Session, idempotency_key: str | None) -> None:
        if idempotency_key is None:
            return
        if InventorySelector(session).is_processed(idempotency_key):
            logger.info("duplicate_event_skipped", extra={"reason": "already_processed"})
            raise DuplicateEventError(idempotency_key)

    def _mark_processed(
        self,
        session: Session,
        idempotency_key: str | None,
        event_type: str,
        product_id: str,
        result_ref: int,
    ) -> None:
        if idempotency_key is None:
            return
        savepoint = session.begin_nested()
        try:
            session.add(
                ProcessedEvent(
                    idempotency_key=idempotency_key,
                    event_type=event_type,
                    product_id=product_id,
                    result_ref=result_ref,
                    processed_at=self._clock.now(),
                )
            )
            session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            # A concurrent delivery of the same event committed first
            savepoint.rollback()
            logger.info("duplicate_event_skipped", extra={"reason": "concurrent_delivery"})
            raise DuplicateEventError(idempotency_key) from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_inventory_status(self, product_id: str) -> InventoryStatus:
        """
        Raises:
            ProductNotFoundError: the product has never been purchased.
        """
        with self._unit_of_work("get_inventory_status", read_only=True) as session:
            status = InventorySelector(session).get_inventory_status(product_id)
        if status is None:
            raise ProductNotFoundError(product_id)
        return status

    def get_all_inventory_status(self) -> list[InventoryStatus]:
        with self._unit_of_work("get_all_inventory_status", read_only=True) as session:
            return InventorySelector(session).get_all_inventory_status()

    def get_product_batches(self, product_id: str) -> list[BatchView]:
        with self._unit_of_work("get_product_batches", read_only=True) as session:
            return InventorySelector(session).get_product_batches(product_id)

    def get_sales_by_product(self, product_id: str) -> list[SaleView]:
        with self._unit_of_work("get_sales_by_product", read_only=True) as session:
            return InventorySelector(session).get_sales_by_product(product_id)

    def get_transaction_history(
        self,
        limit: int = 50,
        offset: int = 0,
    ) -> list[TransactionEntry]:
        with self._unit_of_work("get_transaction_history", read_only=True) as session:
            return InventorySelector(session).get_transaction_history(limit, offset)

    def is_processed(self, idempotency_key: str) -> bool:
        with self._unit_of_work("is_processed", read_only=True) as session:
            return InventorySelector(session).is_processed(idempotency_key)

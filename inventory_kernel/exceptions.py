"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from InventoryKernelError:

    InventoryKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- InvalidPriceError
    |   +-- InvalidEventError
    |
    +-- InventoryError
    |   +-- InsufficientInventoryError
    |   +-- ProductNotFoundError
    |
    +-- ConcurrencyError
    |   +-- ConcurrencyTimeoutError
    |   +-- BatchConflictError
    |
    +-- StorageFailureError
    |
    +-- ImmutabilityViolationError
    |
    +-- DuplicateEventError
    |
    +-- ConsumerStateError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Malformed input rejected before storage
                | INVALID_QUANTITY            | Quantity not a positive integer
                | INVALID_PRICE               | Unit price not a positive decimal
                | INVALID_EVENT               | Stream event failed shape validation
----------------|-----------------------------|-----------------------------------------
Inventory       | INSUFFICIENT_INVENTORY      | Sale exceeds locked available stock
                | PRODUCT_NOT_FOUND           | Product id has no record
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENCY_TIMEOUT         | Lock wait expired / deadlock (retryable)
                | BATCH_CONFLICT              | Guarded decrement matched no row
----------------|-----------------------------|-----------------------------------------
Storage         | STORAGE_FAILURE             | Store unreachable or commit rejected
                | IMMUTABILITY_VIOLATION      | ORM update/delete of an append-only row
----------------|-----------------------------|-----------------------------------------
Ingestion       | DUPLICATE_EVENT             | Idempotency key already applied
                | CONSUMER_STATE              | Invalid consumer lifecycle transition

===============================================================================
HANDLING PATTERNS
===============================================================================

1. RETRY ONLY CONCURRENCY ERRORS:

    try:
        service.record_sale(product_id, quantity, ts)
    except ConcurrencyError:
        # Nothing was persisted; safe to run the whole operation again
        ...
    except InsufficientInventoryError as e:
        # Retrying without new purchases fails identically
        api_response(code=e.code, available=e.available, requested=e.requested)

2. NEVER PARSE MESSAGES; READ ATTRIBUTES:

    except InvalidEventError as e:
        for err in e.field_errors:
            log.warning(err["field"], err["message"])
"""

from typing import Any


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"
    retryable: bool = False


# Validation-related exceptions


class ValidationError(InventoryKernelError):
    """Malformed input, rejected before any storage access."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class InvalidQuantityError(ValidationError):
    """Quantity is not a positive integer, or too large to store."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, value: Any, reason: str | None = None):
        self.value = value
        super().__init__(
            "quantity", reason or f"must be a positive integer, got {value!r}"
        )


class InvalidPriceError(ValidationError):
    """Unit price is not a positive decimal, or too large to store."""

    code: str = "INVALID_PRICE"

    def __init__(self, value: Any, reason: str | None = None):
        self.value = value
        super().__init__(
            "unit_price", reason or f"must be a positive number, got {value!r}"
        )


class InvalidEventError(ValidationError):
    """
    Inbound stream event does not have the required shape.

    Carries every field-level problem found, not just the first.
    """

    code: str = "INVALID_EVENT"

    def __init__(self, field_errors: list[dict[str, str]]):
        self.field_errors = field_errors
        InventoryKernelError.__init__(
            self,
            "Invalid inventory event: "
            + "; ".join(f"{e['field']}: {e['message']}" for e in field_errors),
        )
        self.field = ",".join(e["field"] for e in field_errors)
        self.reason = "invalid event"


# Inventory-related exceptions


class InventoryError(InventoryKernelError):
    """Base exception for inventory state errors."""

    code: str = "INVENTORY_ERROR"


class InsufficientInventoryError(InventoryError):
    """Sale quantity exceeds the stock available at lock time."""

    code: str = "INSUFFICIENT_INVENTORY"

    def __init__(self, product_id: str, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient inventory for {product_id}. "
            f"Available: {available}, Requested: {requested}"
        )


class ProductNotFoundError(InventoryError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


# Concurrency-related exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for transient concurrency failures (safe to retry)."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class ConcurrencyTimeoutError(ConcurrencyError):
    """Row locks could not be acquired in time."""

    code: str = "CONCURRENCY_TIMEOUT"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Lock wait failed during {operation}: {detail}")


class BatchConflictError(ConcurrencyError):
    """Guarded decrement found the batch already below the drawn quantity."""

    code: str = "BATCH_CONFLICT"

    def __init__(self, batch_id: int, quantity: int):
        self.batch_id = batch_id
        self.quantity = quantity
        super().__init__(
            f"Batch {batch_id} no longer holds {quantity} units: "
            "modified by another transaction"
        )


# Storage-related exceptions


class StorageFailureError(InventoryKernelError):
    """Transactional store unreachable or rejected the commit."""

    code: str = "STORAGE_FAILURE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage failure during {operation}: {detail}")


class ImmutabilityViolationError(InventoryKernelError):
    """
    Attempted to modify or delete an append-only ledger record.

    Sales, sale details and processed-event markers are immutable once
    written; a batch may only have its remaining quantity lowered.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Ingestion-related exceptions


class DuplicateEventError(InventoryKernelError):
    """Event with this idempotency key was already applied."""

    code: str = "DUPLICATE_EVENT"

    def __init__(self, idempotency_key: str):
        self.idempotency_key = idempotency_key
        super().__init__(f"Event already processed: {idempotency_key}")


class ConsumerStateError(InventoryKernelError):
    """Consumer lifecycle transition is not allowed from the current state."""

    code: str = "CONSUMER_STATE"

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot {requested} consumer while {current}")

"""
Event processor: decode -> validate -> dedupe -> apply, one message at a time.

Turns every delivered message into a ProcessOutcome.  A bad message is
logged and reported, never raised, so the consumer loop keeps going.
Concurrency errors are the only ones retried; everything else is final.

Uses structured logging (LogContext, get_logger("ingestion.*")).
"""

from __future__ import annotations

import time
from collections.abc import Callable

from inventory_kernel.domain.clock import Clock
from inventory_kernel.exceptions import (
    ConcurrencyError,
    DuplicateEventError,
    InvalidEventError,
    InventoryKernelError,
    ValidationError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_services.inventory_service import InventoryService

from inventory_ingestion.domain.types import (
    EventType,
    InboundMessage,
    InventoryEvent,
    OutcomeStatus,
    ProcessOutcome,
)
from inventory_ingestion.domain.validators import (
    derive_idempotency_key,
    parse_inventory_event,
)

logger = get_logger("ingestion.event_processor")


class EventProcessor:
    """
    Applies inventory events through InventoryService.

    Contract:
        ``process`` returns exactly one ProcessOutcome per message and only
        raises for programming errors outside the kernel taxonomy.

    Guarantees:
        - A message whose idempotency key was already applied is reported
          DUPLICATE and has no effect.
        - ConcurrencyError is retried up to ``max_retries`` times; the
          whole unit of work is re-run each time.
    """

    def __init__(
        self,
        service: InventoryService,
        clock: Clock | None = None,
        max_retries: int = 3,
        retry_backoff: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        self._service = service
        self._clock = clock or service.clock
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff
        self._sleep = sleep

    def process(self, message: InboundMessage) -> ProcessOutcome:
        with LogContext.bind(correlation_id=message.position):
            try:
                event = parse_inventory_event(
                    message.value,
                    default_timestamp=message.received_at or self._clock.now(),
                )
            except InvalidEventError as exc:
                logger.warning(
                    "event_rejected",
                    extra={"field_errors": exc.field_errors, "position": message.position},
                )
                return ProcessOutcome(
                    status=OutcomeStatus.REJECTED,
                    error_code=exc.code,
                    error_message=str(exc),
                )

            key = derive_idempotency_key(message, event)
            with LogContext.bind(idempotency_key=key, product_id=event.product_id):
                return self._apply_with_retry(event, key)

    def _apply_with_retry(self, event: InventoryEvent, key: str) -> ProcessOutcome:
        attempt = 0
        while True:
            attempt += 1
            try:
                result_ref = self._apply(event, key)
            except DuplicateEventError as exc:
                return ProcessOutcome(
                    status=OutcomeStatus.DUPLICATE,
                    idempotency_key=key,
                    event=event,
                    error_code=exc.code,
                    attempts=attempt,
                )
            except ConcurrencyError as exc:
                if attempt <= self._max_retries:
                    logger.info(
                        "event_retry_scheduled",
                        extra={"attempt": attempt, "error_code": exc.code},
                    )
                    self._sleep(self._retry_backoff * attempt)
                    continue
                return self._failed(event, key, exc, attempt)
            except ValidationError as exc:
                # Passed shape checks but the ledger refused the values
                logger.warning(
                    "event_rejected",
                    extra={"error_code": exc.code, "field": exc.field},
                )
                return ProcessOutcome(
                    status=OutcomeStatus.REJECTED,
                    idempotency_key=key,
                    event=event,
                    error_code=exc.code,
                    error_message=str(exc),
                    attempts=attempt,
                )
            except InventoryKernelError as exc:
                return self._failed(event, key, exc, attempt)

            logger.info(
                "event_applied",
                extra={
                    "event_type": event.event_type.value,
                    "quantity": event.quantity,
                    "result_ref": result_ref,
                    "attempts": attempt,
                    "timestamp_defaulted": event.timestamp_defaulted,
                },
            )
            return ProcessOutcome(
                status=OutcomeStatus.APPLIED,
                idempotency_key=key,
                event=event,
                result_ref=result_ref,
                attempts=attempt,
            )

    def _apply(self, event: InventoryEvent, key: str) -> int:
        if event.event_type is EventType.PURCHASE:
            batch = self._service.record_purchase(
                event.product_id,
                event.quantity,
                event.unit_price,
                event.timestamp,
                idempotency_key=key,
            )
            return batch.batch_id

        result = self._service.record_sale(
            event.product_id,
            event.quantity,
            event.timestamp,
            idempotency_key=key,
        )
        return result.sale.sale_id

    @staticmethod
    def _failed(
        event: InventoryEvent,
        key: str,
        exc: InventoryKernelError,
        attempts: int,
    ) -> ProcessOutcome:
        logger.error(
            "event_failed",
            extra={
                "event_type": event.event_type.value,
                "error_code": exc.code,
                "error_message": str(exc),
                "attempts": attempts,
            },
        )
        return ProcessOutcome(
            status=OutcomeStatus.FAILED,
            idempotency_key=key,
            event=event,
            error_code=exc.code,
            error_message=str(exc),
            attempts=attempts,
        )

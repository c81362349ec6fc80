"""
Tests for InventoryService idempotency markers and storage error translation.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from inventory_kernel.exceptions import (
    ConcurrencyTimeoutError,
    DuplicateEventError,
    InsufficientInventoryError,
    StorageFailureError,
)
from inventory_kernel.models import Batch, ProcessedEvent, Sale
from inventory_services.inventory_service import translate_storage_error


def _count(session_factory, model) -> int:
    with session_factory() as s:
        return s.execute(select(func.count()).select_from(model)).scalar_one()


class TestIdempotencyKeys:

    def test_purchase_applied_once(self, service, session_factory, at):
        first = service.record_purchase(
            "PRD001", 10, Decimal("1"), at(0), idempotency_key="event:p-1"
        )

        with pytest.raises(DuplicateEventError) as exc_info:
            service.record_purchase("PRD001", 10, Decimal("1"), at(0), idempotency_key="event:p-1")

        assert exc_info.value.code == "DUPLICATE_EVENT"
        assert _count(session_factory, Batch) == 1
        assert service.is_processed("event:p-1")

        with session_factory() as s:
            marker = s.execute(
                select(ProcessedEvent).where(ProcessedEvent.idempotency_key == "event:p-1")
            ).scalar_one()
        assert marker.event_type == "purchase"
        assert marker.result_ref == first.batch_id
        assert marker.product_id == "PRD001"

    def test_sale_applied_once(self, service, session_factory, at):
        service.record_purchase("PRD001", 10, Decimal("1"), at(0))
        service.record_sale("PRD001", 3, at(1), idempotency_key="event:s-1")

        with pytest.raises(DuplicateEventError):
            service.record_sale("PRD001", 3, at(1), idempotency_key="event:s-1")

        assert _count(session_factory, Sale) == 1
        assert service.get_inventory_status("PRD001").current_quantity == 7

    def test_rejected_sale_leaves_no_marker(self, service, at):
        service.record_purchase("PRD001", 1, Decimal("1"), at(0))

        with pytest.raises(InsufficientInventoryError):
            service.record_sale("PRD001", 5, at(1), idempotency_key="event:s-2")

        assert not service.is_processed("event:s-2")

    def test_no_key_means_no_marker(self, service, session_factory, at):
        service.record_purchase("PRD001", 1, Decimal("1"), at(0))
        service.record_purchase("PRD001", 1, Decimal("1"), at(0))

        assert _count(session_factory, ProcessedEvent) == 0
        assert _count(session_factory, Batch) == 2

    def test_keys_are_independent_of_payload(self, service, at):
        service.record_purchase("PRD001", 1, Decimal("1"), at(0), idempotency_key="event:a")
        service.record_purchase("PRD001", 1, Decimal("1"), at(0), idempotency_key="event:b")

        assert service.get_inventory_status("PRD001").current_quantity == 2


class _PgError(Exception):
    def __init__(self, message, pgcode):
        super().__init__(message)
        self.pgcode = pgcode


class TestStorageErrorTranslation:

    @pytest.mark.parametrize("pgcode", ["55P03", "40P01", "40001", "57014"])
    def test_retryable_postgres_states(self, pgcode):
        exc = OperationalError("SELECT 1", {}, _PgError("lock", pgcode))
        error = translate_storage_error("record_sale", exc)

        assert isinstance(error, ConcurrencyTimeoutError)
        assert error.retryable
        assert error.operation == "record_sale"

    def test_sqlite_busy_is_concurrency(self):
        exc = OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))
        error = translate_storage_error("record_purchase", exc)

        assert isinstance(error, ConcurrencyTimeoutError)

    def test_other_errors_are_storage_failures(self):
        exc = DBAPIError("INSERT", {}, Exception("connection refused"))
        error = translate_storage_error("record_purchase", exc)

        assert isinstance(error, StorageFailureError)
        assert not error.retryable
        assert "connection refused" in error.detail

    def test_integrity_error_is_storage_failure(self):
        exc = IntegrityError("INSERT", {}, _PgError("unique violation", "23505"))
        assert isinstance(translate_storage_error("record_sale", exc), StorageFailureError)

    def test_unit_of_work_logs_translation(self, service, captured_logs, monkeypatch, at):
        from inventory_kernel.services.purchase_recorder import PurchaseRecorder

        def broken(self, *args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(PurchaseRecorder, "process_purchase", broken)

        with pytest.raises(ConcurrencyTimeoutError):
            service.record_purchase("PRD001", 1, Decimal("1"), at(0))

        failures = [r for r in captured_logs() if r["message"] == "unit_of_work_failed"]
        assert failures[0]["operation"] == "record_purchase"
        assert failures[0]["retryable"] is True

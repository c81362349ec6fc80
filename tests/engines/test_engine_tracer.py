"""Tests for the @traced_engine decorator (inventory_engines/tracer.py)."""

from decimal import Decimal

import pytest

from inventory_engines.fifo import AvailableBatch, allocate_fifo
from inventory_engines.tracer import compute_input_fingerprint, traced_engine
from inventory_kernel.exceptions import InsufficientInventoryError


class TestInputFingerprint:

    def test_deterministic(self):
        args = {"batches": [AvailableBatch(1, 10, Decimal("2.5"))], "quantity_to_sell": 4}
        fp1 = compute_input_fingerprint(("batches", "quantity_to_sell"), args)
        fp2 = compute_input_fingerprint(("batches", "quantity_to_sell"), dict(args))
        assert fp1 == fp2
        assert len(fp1) == 16

    def test_sensitive_to_inputs(self):
        fields = ("quantity_to_sell",)
        assert compute_input_fingerprint(fields, {"quantity_to_sell": 4}) != (
            compute_input_fingerprint(fields, {"quantity_to_sell": 5})
        )

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(
            ("x",), {"x": None}
        )


class TestTracedEngine:

    def test_allocation_emits_engine_trace(self, captured_logs):
        allocate_fifo([AvailableBatch(1, 10, Decimal("1"))], 3)

        traces = [r for r in captured_logs() if r["message"] == "ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "fifo"
        assert traces[0]["engine_version"] == "1.0"
        assert len(traces[0]["input_fingerprint"]) == 16
        assert "duration_ms" in traces[0]
        assert traces[0]["batch_ids"] == [1]
        assert traces[0]["total_quantity"] == 3
        assert Decimal(traces[0]["total_cost"]) == Decimal("3")

    def test_positional_and_keyword_calls_fingerprint_alike(self, captured_logs):
        batches = [AvailableBatch(1, 10, Decimal("1"))]
        allocate_fifo(batches, 3)
        allocate_fifo(batches=batches, quantity_to_sell=3)

        fps = [r["input_fingerprint"] for r in captured_logs() if r["message"] == "ENGINE_TRACE"]
        assert len(fps) == 2
        assert fps[0] == fps[1]

    def test_failed_call_emits_no_trace(self, captured_logs):
        with pytest.raises(InsufficientInventoryError):
            allocate_fifo([], 1)
        assert not [r for r in captured_logs() if r["message"] == "ENGINE_TRACE"]

    def test_wraps_preserves_name(self):
        @traced_engine("demo", "0.1")
        def compute(x):
            return x * 2

        assert compute.__name__ == "compute"
        assert compute(4) == 8

"""
Tests for inbound event validation and idempotency key derivation.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from inventory_ingestion.domain.types import EventType, InboundMessage
from inventory_ingestion.domain.validators import (
    decode_payload,
    derive_idempotency_key,
    parse_inventory_event,
    validate_quantity,
    validate_unit_price,
)
from inventory_kernel.exceptions import InvalidEventError

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _fields(exc_info) -> list[str]:
    return [e["field"] for e in exc_info.value.field_errors]


class TestDecodePayload:

    def test_bytes_json(self):
        assert decode_payload(b'{"a": 1}') == {"a": 1}

    def test_fractional_numbers_become_decimal(self):
        assert decode_payload('{"unit_price": 10.10}')["unit_price"] == Decimal("10.10")

    def test_dict_passes_through(self):
        payload = {"product_id": "PRD001"}
        assert decode_payload(payload) is payload

    @pytest.mark.parametrize("raw", [b"\xff\xfe", "not json", "[1, 2]", "42", 3.5])
    def test_rejects_non_objects(self, raw):
        with pytest.raises(InvalidEventError) as exc_info:
            decode_payload(raw)
        assert _fields(exc_info) == ["payload"]


class TestParseInventoryEvent:

    def test_purchase(self):
        event = parse_inventory_event(
            b'{"product_id": "PRD001", "event_type": "purchase", "quantity": 100,'
            b' "unit_price": 50.0, "timestamp": "2024-01-01T09:00:00Z"}',
            default_timestamp=NOW,
        )

        assert event.product_id == "PRD001"
        assert event.event_type is EventType.PURCHASE
        assert event.quantity == 100
        assert event.unit_price == Decimal("50.0")
        assert event.timestamp == datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
        assert not event.timestamp_defaulted

    def test_sale_ignores_unit_price(self):
        event = parse_inventory_event(
            {"product_id": "PRD001", "event_type": "SALE", "quantity": 5, "unit_price": "junk"},
            default_timestamp=NOW,
        )
        assert event.event_type is EventType.SALE
        assert event.unit_price is None

    def test_missing_timestamp_defaults(self):
        event = parse_inventory_event(
            {"product_id": "PRD001", "event_type": "sale", "quantity": 5},
            default_timestamp=NOW,
        )
        assert event.timestamp == NOW
        assert event.timestamp_defaulted

    def test_offset_timestamp_normalised(self):
        event = parse_inventory_event(
            {
                "product_id": "PRD001",
                "event_type": "sale",
                "quantity": 5,
                "timestamp": "2024-01-01T11:00:00+02:00",
            },
            default_timestamp=NOW,
        )
        assert event.timestamp == datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

    def test_integral_float_quantity_accepted(self):
        event = parse_inventory_event(
            '{"product_id": "P", "event_type": "sale", "quantity": 5.0}', default_timestamp=NOW
        )
        assert event.quantity == 5
        assert isinstance(event.quantity, int)

    def test_all_errors_reported(self):
        with pytest.raises(InvalidEventError) as exc_info:
            parse_inventory_event(
                {"event_type": "purchase", "quantity": -1, "timestamp": "yesterday"},
                default_timestamp=NOW,
            )
        assert set(_fields(exc_info)) == {"product_id", "quantity", "timestamp", "unit_price"}

    def test_product_id_message(self):
        with pytest.raises(InvalidEventError) as exc_info:
            parse_inventory_event(
                {"product_id": "  ", "event_type": "sale", "quantity": 1}, default_timestamp=NOW
            )
        assert exc_info.value.field_errors[0]["message"] == "Invalid or missing product_id"

    @pytest.mark.parametrize("event_type", [None, "refund", 3, ""])
    def test_bad_event_type(self, event_type):
        with pytest.raises(InvalidEventError) as exc_info:
            parse_inventory_event(
                {"product_id": "P", "event_type": event_type, "quantity": 1},
                default_timestamp=NOW,
            )
        assert _fields(exc_info) == ["event_type"]

    def test_event_id_length(self):
        with pytest.raises(InvalidEventError) as exc_info:
            parse_inventory_event(
                {"product_id": "P", "event_type": "sale", "quantity": 1, "event_id": "e" * 151},
                default_timestamp=NOW,
            )
        assert _fields(exc_info) == ["event_id"]


class TestFieldValidators:

    @pytest.mark.parametrize(
        "quantity", [None, True, 0, -4, 2.5, Decimal("1.1"), "5", 2**63]
    )
    def test_invalid_quantities(self, quantity):
        assert validate_quantity({"quantity": quantity})

    @pytest.mark.parametrize("quantity", [1, 5.0, Decimal("7"), 2**63 - 1])
    def test_valid_quantities(self, quantity):
        assert validate_quantity({"quantity": quantity}) == []

    @pytest.mark.parametrize(
        "price",
        [
            None,
            False,
            0,
            -1,
            "12.5",
            Decimal("NaN"),
            Decimal("1.0000000001"),
            Decimal("1E+29"),
            10**29,
        ],
    )
    def test_invalid_prices(self, price):
        assert validate_unit_price({"unit_price": price})

    @pytest.mark.parametrize(
        "price",
        [1, 0.5, Decimal("0.000000001"), Decimal("12345.678"), 10**20, 10**29 - 1],
    )
    def test_valid_prices(self, price):
        assert validate_unit_price({"unit_price": price}) == []


class TestIdempotencyKey:

    def _event(self, raw):
        return parse_inventory_event(raw, default_timestamp=NOW)

    def test_event_id_preferred(self):
        raw = {"product_id": "P", "event_type": "sale", "quantity": 1, "event_id": "abc"}
        message = InboundMessage(value=raw, source="inventory-events", partition=0, offset=9)
        assert derive_idempotency_key(message, self._event(raw)) == "event:abc"

    def test_transport_position(self):
        raw = {"product_id": "P", "event_type": "sale", "quantity": 1}
        message = InboundMessage(value=raw, source="inventory-events", partition=2, offset=9)
        assert derive_idempotency_key(message, self._event(raw)) == "offset:inventory-events:2:9"

    def test_content_hash_ignores_key_order_and_spacing(self):
        a = '{"product_id": "P", "event_type": "purchase", "quantity": 1, "unit_price": 10.50}'
        b = '{"unit_price":10.5,"quantity":1,"event_type":"purchase","product_id":"P"}'
        key_a = derive_idempotency_key(InboundMessage(value=a), self._event(a))
        key_b = derive_idempotency_key(InboundMessage(value=b), self._event(b))

        assert key_a.startswith("sha256:")
        assert key_a == key_b

    def test_content_hash_differs_for_different_events(self):
        a = {"product_id": "P", "event_type": "sale", "quantity": 1}
        b = {"product_id": "P", "event_type": "sale", "quantity": 2}
        assert derive_idempotency_key(InboundMessage(value=a), self._event(a)) != (
            derive_idempotency_key(InboundMessage(value=b), self._event(b))
        )

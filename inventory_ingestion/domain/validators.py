"""
Validators for inbound inventory events.

Each ``validate_*`` function inspects one field and returns a list of
field errors (``{"field": ..., "message": ...}``) so that a rejected event
reports every problem at once.  ``parse_inventory_event`` composes them and
raises InvalidEventError if any fired.

Architecture: inventory_ingestion/domain. ZERO I/O. Imports only from
inventory_kernel domain, exceptions and utils.
"""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from inventory_kernel.db.types import to_utc
from inventory_kernel.domain.values import (
    MAX_PRODUCT_ID_LENGTH,
    MAX_QUANTITY,
    MONEY_DECIMAL_PLACES,
    MONEY_INTEGER_DIGITS,
    MONEY_LIMIT,
)
from inventory_kernel.exceptions import InvalidEventError
from inventory_kernel.utils.hashing import hash_payload

from inventory_ingestion.domain.types import EventType, InboundMessage, InventoryEvent

MAX_EVENT_ID_LENGTH = 150

FieldError = dict[str, str]


def _error(field: str, message: str) -> FieldError:
    return {"field": field, "message": message}


def _as_decimal(value: Any) -> Decimal | None:
    """JSON number -> Decimal; None for anything that is not a number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        try:
            d = Decimal(str(value))
        except InvalidOperation:
            return None
        return d if d.is_finite() else None
    return None


# -----------------------------------------------------------------------------
# Payload decoding
# -----------------------------------------------------------------------------


def decode_payload(raw: bytes | str | dict[str, Any]) -> dict[str, Any]:
    """
    Turn a transport value into a JSON object.

    JSON numbers with a fraction are decoded as Decimal so prices keep
    their exact spelling.

    Raises:
        InvalidEventError: undecodable bytes, malformed JSON, or a JSON
            value that is not an object.
    """
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidEventError([_error("payload", f"not valid UTF-8: {exc.reason}")]) from exc
    if not isinstance(raw, str):
        raise InvalidEventError(
            [_error("payload", f"unsupported payload type {type(raw).__name__}")]
        )
    try:
        data = json.loads(raw, parse_float=Decimal)
    except json.JSONDecodeError as exc:
        raise InvalidEventError([_error("payload", f"malformed JSON: {exc.msg}")]) from exc
    if not isinstance(data, dict):
        raise InvalidEventError([_error("payload", "must be a JSON object")])
    return data


# -----------------------------------------------------------------------------
# Field validators
# -----------------------------------------------------------------------------


def validate_product_id(payload: dict[str, Any]) -> list[FieldError]:
    value = payload.get("product_id")
    if not isinstance(value, str) or not value.strip():
        return [_error("product_id", "Invalid or missing product_id")]
    if len(value) > MAX_PRODUCT_ID_LENGTH:
        return [_error("product_id", f"must be at most {MAX_PRODUCT_ID_LENGTH} characters")]
    return []


def validate_event_type(payload: dict[str, Any]) -> list[FieldError]:
    value = payload.get("event_type")
    if not isinstance(value, str) or value.strip().lower() not in (
        EventType.PURCHASE.value,
        EventType.SALE.value,
    ):
        return [
            _error(
                "event_type",
                'Invalid or missing event_type. Must be "purchase" or "sale"',
            )
        ]
    return []


def validate_quantity(payload: dict[str, Any]) -> list[FieldError]:
    d = _as_decimal(payload.get("quantity"))
    if d is None or d <= 0:
        return [_error("quantity", "Invalid or missing quantity. Must be a positive number")]
    if d != d.to_integral_value():
        return [_error("quantity", "must be a whole number of units")]
    if d > MAX_QUANTITY:
        return [_error("quantity", "exceeds the largest storable quantity")]
    return []


def validate_unit_price(payload: dict[str, Any]) -> list[FieldError]:
    """Purchases only: a positive number within ledger precision."""
    d = _as_decimal(payload.get("unit_price"))
    if d is None or d <= 0:
        return [
            _error(
                "unit_price",
                "Invalid or missing unit_price for purchase event. Must be a positive number",
            )
        ]
    exp = d.as_tuple().exponent
    if exp < -MONEY_DECIMAL_PLACES:
        return [_error("unit_price", f"exceeds {MONEY_DECIMAL_PLACES} decimal places")]
    if d >= MONEY_LIMIT:
        return [_error("unit_price", f"exceeds {MONEY_INTEGER_DIGITS} integer digits")]
    return []


def validate_timestamp(payload: dict[str, Any]) -> list[FieldError]:
    value = payload.get("timestamp")
    if value is None or isinstance(value, datetime):
        return []
    if not isinstance(value, str) or _parse_iso8601(value) is None:
        return [_error("timestamp", "must be an ISO-8601 timestamp")]
    return []


def validate_event_id(payload: dict[str, Any]) -> list[FieldError]:
    value = payload.get("event_id")
    if value is None:
        return []
    if not isinstance(value, str) or not value.strip():
        return [_error("event_id", "must be a non-empty string")]
    if len(value) > MAX_EVENT_ID_LENGTH:
        return [_error("event_id", f"must be at most {MAX_EVENT_ID_LENGTH} characters")]
    return []


def _parse_iso8601(value: str) -> datetime | None:
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


# -----------------------------------------------------------------------------
# Composition
# -----------------------------------------------------------------------------


def parse_inventory_event(
    raw: bytes | str | dict[str, Any],
    default_timestamp: datetime,
) -> InventoryEvent:
    """
    Validate and normalise one inbound event.

    Args:
        raw: Transport value (JSON bytes/str) or an already decoded object.
        default_timestamp: Used when the event carries no timestamp
            (normally the ingestion time).

    Raises:
        InvalidEventError: carrying every field error found.
    """
    payload = decode_payload(raw)

    errors: list[FieldError] = []
    errors.extend(validate_product_id(payload))
    errors.extend(validate_event_type(payload))
    errors.extend(validate_quantity(payload))
    errors.extend(validate_timestamp(payload))
    errors.extend(validate_event_id(payload))

    event_type_raw = payload.get("event_type")
    is_purchase = (
        isinstance(event_type_raw, str)
        and event_type_raw.strip().lower() == EventType.PURCHASE.value
    )
    if is_purchase:
        errors.extend(validate_unit_price(payload))

    if errors:
        raise InvalidEventError(errors)

    ts_value = payload.get("timestamp")
    if ts_value is None:
        timestamp = to_utc(default_timestamp)
    elif isinstance(ts_value, datetime):
        timestamp = to_utc(ts_value)
    else:
        timestamp = to_utc(_parse_iso8601(ts_value))

    return InventoryEvent(
        product_id=payload["product_id"],
        event_type=EventType(event_type_raw.strip().lower()),
        quantity=int(_as_decimal(payload["quantity"])),
        unit_price=_as_decimal(payload["unit_price"]) if is_purchase else None,
        timestamp=timestamp,
        event_id=payload.get("event_id"),
        timestamp_defaulted=ts_value is None,
        payload=payload,
    )


def derive_idempotency_key(message: InboundMessage, event: InventoryEvent) -> str:
    """
    Key identifying this event across redeliveries.

    Preference order: the producer's event_id, then the transport position,
    then a SHA-256 of the canonical decoded payload.
    """
    if event.event_id is not None:
        return f"event:{event.event_id}"
    position = message.position
    if position is not None:
        return f"offset:{position}"
    return f"sha256:{hash_payload(event.payload)}"

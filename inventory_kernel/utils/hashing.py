"""
Content hashes for events that arrive with neither an event id nor a
transport position.

Two deliveries of the same event must hash the same even when a producer
reorders keys, adds whitespace or writes 10.50 instead of 10.5.
"""

import hashlib
import json
from datetime import datetime
from decimal import Decimal
from typing import Any

from inventory_kernel.domain.values import ledger_context


def _canonical_value(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        with ledger_context():
            return str(obj.normalize())
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Cannot canonicalize {type(obj).__name__}")


def canonical_json(payload: dict[str, Any]) -> str:
    """Sorted keys, no whitespace, normalized Decimals."""
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        default=_canonical_value,
    )


def hash_payload(payload: dict[str, Any]) -> str:
    """Hex SHA-256 of ``canonical_json(payload)``."""
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()

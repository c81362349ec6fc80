#!/usr/bin/env python3
"""
Replay inventory events through the consumer against a real database.

Publishes JSON events onto an in-memory topic, runs InventoryEventConsumer
until every message is acknowledged, then prints the outcomes and the
resulting inventory status as JSON.

Commands:
  purchase   one purchase event
  sale       one sale event
  simulate   the 13-event demonstration stream (three products, restocks at
             higher prices, sales that span batches)
  status     print inventory status only

Simulation events carry fixed event ids, so running ``simulate`` twice
against the same database reports the second pass as duplicates.

Usage:
    python3 scripts/simulate_events.py simulate
    python3 scripts/simulate_events.py --db-url sqlite:///demo.db purchase PRD001 100 50.0
    python3 scripts/simulate_events.py sale PRD001 25
"""

import argparse
import json
import sys
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from inventory_ingestion.consumer import InMemoryMessageSource, InventoryEventConsumer  # noqa: E402
from inventory_ingestion.domain.types import OutcomeStatus, ProcessOutcome  # noqa: E402
from inventory_ingestion.services.event_processor import EventProcessor  # noqa: E402
from inventory_kernel.config import load_settings, settings_as_dict  # noqa: E402
from inventory_kernel.db.engine import (  # noqa: E402
    create_tables,
    get_session_factory,
    init_engine_from_settings,
    reset_engine,
)
from inventory_kernel.domain.clock import SystemClock  # noqa: E402
from inventory_kernel.logging_config import configure_logging, get_logger  # noqa: E402
from inventory_services.inventory_service import InventoryService  # noqa: E402

logger = get_logger("scripts.simulate_events")

SIMULATION_START = datetime(2024, 1, 1, 9, 0, 0, tzinfo=timezone.utc)

# (event_type, product_id, quantity, unit_price, description)
SIMULATION_EVENTS: list[tuple[str, str, int, float | None, str]] = [
    ("purchase", "PRD001", 100, 50.0, "Initial stock for Widget A"),
    ("purchase", "PRD002", 200, 30.0, "Initial stock for Gadget B"),
    ("purchase", "PRD003", 150, 75.0, "Initial stock for Tool C"),
    ("sale", "PRD001", 25, None, "First sale of Widget A"),
    ("sale", "PRD002", 50, None, "First sale of Gadget B"),
    ("purchase", "PRD001", 80, 55.0, "Restock Widget A at higher price"),
    ("purchase", "PRD002", 120, 32.0, "Restock Gadget B at slightly higher price"),
    ("sale", "PRD001", 40, None, "Second sale of Widget A"),
    ("sale", "PRD003", 30, None, "First sale of Tool C"),
    ("sale", "PRD001", 50, None, "Third sale of Widget A, spans batches"),
    ("sale", "PRD002", 80, None, "Second sale of Gadget B"),
    ("purchase", "PRD003", 100, 80.0, "Restock Tool C at higher price"),
    ("sale", "PRD003", 60, None, "Second sale of Tool C"),
]


def _event(
    event_type: str,
    product_id: str,
    quantity: int,
    unit_price: float | None,
    timestamp: datetime,
    event_id: str,
) -> dict[str, Any]:
    event: dict[str, Any] = {
        "event_id": event_id,
        "product_id": product_id,
        "event_type": event_type,
        "quantity": quantity,
        "timestamp": timestamp.isoformat().replace("+00:00", "Z"),
    }
    if unit_price is not None:
        event["unit_price"] = unit_price
    return event


def simulation_events() -> list[dict[str, Any]]:
    """The demonstration stream, one minute apart."""
    return [
        _event(
            event_type,
            product_id,
            quantity,
            unit_price,
            SIMULATION_START + timedelta(minutes=i),
            f"simulate-{i + 1:02d}",
        )
        for i, (event_type, product_id, quantity, unit_price, _) in enumerate(SIMULATION_EVENTS)
    ]


def _outcome_dict(outcome: ProcessOutcome) -> dict[str, Any]:
    event = outcome.event
    return {
        "status": outcome.status.value,
        "idempotencyKey": outcome.idempotency_key,
        "eventType": event.event_type.value if event else None,
        "productId": event.product_id if event else None,
        "quantity": event.quantity if event else None,
        "resultRef": outcome.result_ref,
        "errorCode": outcome.error_code,
        "errorMessage": outcome.error_message,
    }


def run_events(
    service: InventoryService,
    events: list[dict[str, Any]],
    *,
    topic: str,
    group_id: str,
    max_retries: int,
    poll_interval: float,
    batch_size: int,
    timeout: float = 60.0,
) -> tuple[list[ProcessOutcome], dict[str, Any]]:
    """Publish ``events`` and consume them until all are acknowledged."""
    outcomes: list[ProcessOutcome] = []
    source = InMemoryMessageSource(topic, clock=service.clock)
    processor = EventProcessor(service, max_retries=max_retries)
    consumer = InventoryEventConsumer(
        source,
        processor,
        poll_interval=poll_interval,
        batch_size=batch_size,
        group_id=group_id,
        on_outcome=outcomes.append,
    )

    for event in events:
        source.publish(json.dumps(event).encode("utf-8"))

    consumer.start()
    try:
        if not source.wait_until_committed(timeout=timeout):
            raise TimeoutError(f"{source.lag} event(s) still unacknowledged after {timeout}s")
    finally:
        consumer.stop()
    return outcomes, consumer.get_status()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay inventory events through the consumer")
    parser.add_argument("--config", help="YAML settings file (default: $INVENTORY_CONFIG)")
    parser.add_argument("--db-url", help="Database URL (overrides settings)")
    parser.add_argument(
        "--timeout", type=float, default=60.0, help="Seconds to wait for the consumer"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    purchase = sub.add_parser("purchase", help="Send one purchase event")
    purchase.add_argument("product_id")
    purchase.add_argument("quantity", type=int)
    purchase.add_argument("unit_price", type=float)

    sale = sub.add_parser("sale", help="Send one sale event")
    sale.add_argument("product_id")
    sale.add_argument("quantity", type=int)

    sub.add_parser("simulate", help="Send the demonstration stream")
    sub.add_parser("status", help="Print inventory status only")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    settings = load_settings(args.config)
    if args.db_url:
        settings = replace(settings, database_url=args.db_url)

    configure_logging(level=settings.log_level_number)
    logger.info("settings_loaded", extra={"settings": settings_as_dict(settings)})
    init_engine_from_settings(settings)
    try:
        create_tables()
        clock = SystemClock()
        service = InventoryService(get_session_factory(), clock=clock, settings=settings)

        if args.command == "simulate":
            events = simulation_events()
        elif args.command == "purchase":
            events = [
                _event(
                    "purchase",
                    args.product_id,
                    args.quantity,
                    args.unit_price,
                    clock.now(),
                    uuid4().hex,
                )
            ]
        elif args.command == "sale":
            events = [
                _event("sale", args.product_id, args.quantity, None, clock.now(), uuid4().hex)
            ]
        else:
            events = []

        report: dict[str, Any] = {}
        outcomes: list[ProcessOutcome] = []
        if events:
            outcomes, consumer_status = run_events(
                service,
                events,
                topic=settings.consumer_topic,
                group_id=settings.consumer_group_id,
                max_retries=settings.consumer_max_retries,
                poll_interval=settings.consumer_poll_interval,
                batch_size=settings.consumer_batch_size,
                timeout=args.timeout,
            )
            report["outcomes"] = [_outcome_dict(o) for o in outcomes]
            report["consumer"] = consumer_status

        report["inventory"] = [s.to_dict() for s in service.get_all_inventory_status()]
        print(json.dumps(report, indent=2))
    finally:
        reset_engine()

    failed = [o for o in outcomes if o.status in (OutcomeStatus.FAILED, OutcomeStatus.REJECTED)]
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())

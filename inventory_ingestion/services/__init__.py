"""Event ingestion services (validate, dedupe, apply)."""

from inventory_ingestion.services.event_processor import EventProcessor

__all__ = ["EventProcessor"]

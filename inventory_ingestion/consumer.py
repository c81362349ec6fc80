"""
InventoryEventConsumer -- lifecycle-owning stream consumer.

Contract:
    Polls a MessageSource on a background thread, hands every message to
    EventProcessor and acknowledges it once processed.  The lifecycle is
    explicit: STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED.

Architecture: inventory_ingestion.  The broker client is hidden behind
    the MessageSource protocol; InMemoryMessageSource is the bundled
    implementation.

Invariants enforced:
    - Invalid lifecycle transitions raise ConsumerStateError.
    - One failing message never stops the loop; it is logged, counted and
      acknowledged.
    - Graceful shutdown: the stop signal is checked between messages, and
      unacknowledged messages stay with the source for redelivery.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.exceptions import ConsumerStateError
from inventory_kernel.logging_config import LogContext, get_logger

from inventory_ingestion.domain.types import (
    ConsumerState,
    InboundMessage,
    OutcomeStatus,
    ProcessOutcome,
)
from inventory_ingestion.services.event_processor import EventProcessor

logger = get_logger("ingestion.consumer")


@runtime_checkable
class MessageSource(Protocol):
    """What the consumer needs from a broker client."""

    name: str

    def connect(self) -> None: ...

    def poll(self, max_messages: int) -> list[InboundMessage]: ...

    def commit(self, message: InboundMessage) -> None: ...

    def close(self) -> None: ...


class InMemoryMessageSource:
    """
    Thread-safe, single-partition topic held in memory.

    Offsets start at 0.  ``poll`` hands out messages past the read cursor;
    ``commit`` advances the committed offset; ``redeliver_uncommitted``
    rewinds the read cursor to it, as a broker does after a consumer
    restart.
    """

    def __init__(
        self,
        name: str = "inventory-events",
        partition: int = 0,
        clock: Clock | None = None,
    ):
        self.name = name
        self.partition = partition
        self._clock = clock or SystemClock()
        self._messages: list[InboundMessage] = []
        self._read_cursor = 0
        self._committed = 0
        self._connected = False
        self._cond = threading.Condition()

    def publish(self, value: bytes | str | dict[str, Any]) -> InboundMessage:
        with self._cond:
            message = InboundMessage(
                value=value,
                source=self.name,
                partition=self.partition,
                offset=len(self._messages),
                received_at=self._clock.now(),
            )
            self._messages.append(message)
            self._cond.notify_all()
            return message

    def connect(self) -> None:
        with self._cond:
            self._connected = True

    def poll(self, max_messages: int) -> list[InboundMessage]:
        with self._cond:
            batch = self._messages[self._read_cursor : self._read_cursor + max_messages]
            self._read_cursor += len(batch)
            return batch

    def commit(self, message: InboundMessage) -> None:
        with self._cond:
            self._committed = max(self._committed, message.offset + 1)
            self._cond.notify_all()

    def close(self) -> None:
        with self._cond:
            self._connected = False
            # Anything handed out but not committed will be redelivered
            self._read_cursor = self._committed

    def redeliver_uncommitted(self) -> None:
        with self._cond:
            self._read_cursor = self._committed

    def rewind(self, offset: int = 0) -> None:
        """Replay from ``offset``, including already committed messages."""
        with self._cond:
            self._read_cursor = offset
            self._committed = min(self._committed, offset)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def lag(self) -> int:
        with self._cond:
            return len(self._messages) - self._committed

    def wait_until_committed(self, timeout: float = 5.0) -> bool:
        """Block until every published message is committed."""
        with self._cond:
            return self._cond.wait_for(
                lambda: self._committed >= len(self._messages), timeout=timeout
            )


_TRANSITIONS: dict[ConsumerState, set[ConsumerState]] = {
    ConsumerState.STOPPED: {ConsumerState.STARTING},
    ConsumerState.STARTING: {ConsumerState.RUNNING, ConsumerState.STOPPED},
    ConsumerState.RUNNING: {ConsumerState.STOPPING},
    ConsumerState.STOPPING: {ConsumerState.STOPPED},
}


class InventoryEventConsumer:
    """
    Background consumer of inventory events.

    Contract:
        - ``poll_once()`` processes one batch synchronously (public for
          testing and for scripts that drain a source).
        - ``start()`` / ``stop()`` run the poll loop on a background thread.
        - ``get_status()`` reports state and counters.

    Non-goals:
        - Single partition, single thread.  No rebalancing.
    """

    def __init__(
        self,
        source: MessageSource,
        processor: EventProcessor,
        poll_interval: float = 0.1,
        batch_size: int = 100,
        group_id: str = "inventory-ledger",
        on_outcome: Callable[[ProcessOutcome], None] | None = None,
    ):
        self._source = source
        self._processor = processor
        self._poll_interval = poll_interval
        self._batch_size = batch_size
        self._group_id = group_id
        self._on_outcome = on_outcome

        self._state = ConsumerState.STOPPED
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        self._counts = {status: 0 for status in OutcomeStatus}
        self._received = 0
        self._last_error: str | None = None
        self._started_at: datetime | None = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConsumerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is ConsumerState.RUNNING

    def _transition(self, target: ConsumerState, action: str) -> None:
        with self._state_lock:
            if target not in _TRANSITIONS[self._state]:
                raise ConsumerStateError(self._state.value, action)
            previous = self._state
            self._state = target
        logger.debug(
            "consumer_state_changed",
            extra={"from_state": previous.value, "to_state": target.value},
        )

    def start(self) -> None:
        """Connect the source and start polling in a background thread."""
        self._transition(ConsumerState.STARTING, "start")
        try:
            self._source.connect()
        except Exception:
            logger.exception("consumer_connect_failed", extra={"source": self._source.name})
            self._transition(ConsumerState.STOPPED, "start")
            raise

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name=f"inventory-consumer-{self._source.name}",
            daemon=True,
        )
        self._started_at = SystemClock().now()
        self._transition(ConsumerState.RUNNING, "start")
        self._thread.start()
        logger.info(
            "consumer_started",
            extra={"source": self._source.name, "group_id": self._group_id},
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop, wait for the current message, then close the source."""
        self._transition(ConsumerState.STOPPING, "stop")
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None
        try:
            self._source.close()
        finally:
            self._transition(ConsumerState.STOPPED, "stop")
        logger.info("consumer_stopped", extra=self._count_extra())

    # -------------------------------------------------------------------------
    # Processing
    # -------------------------------------------------------------------------

    def poll_once(self) -> int:
        """Process one batch from the source.  Returns messages handled."""
        handled = 0
        for message in self._source.poll(self._batch_size):
            if self._stop_event.is_set() and self._state is ConsumerState.STOPPING:
                # Left uncommitted; the source redelivers it
                break
            self._handle(message)
            handled += 1
        return handled

    def _handle(self, message: InboundMessage) -> None:
        self._received += 1
        with LogContext.bind(producer=self._source.name):
            try:
                outcome = self._processor.process(message)
            except Exception as exc:
                logger.exception(
                    "consumer_message_exception",
                    extra={"position": message.position},
                )
                outcome = ProcessOutcome(
                    status=OutcomeStatus.FAILED,
                    error_code=getattr(exc, "code", type(exc).__name__),
                    error_message=str(exc),
                )

        self._counts[outcome.status] += 1
        if outcome.status is OutcomeStatus.FAILED or outcome.status is OutcomeStatus.REJECTED:
            self._last_error = outcome.error_message
        self._source.commit(message)
        if self._on_outcome is not None:
            self._on_outcome(outcome)

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                handled = self.poll_once()
            except Exception:
                logger.exception("consumer_poll_exception")
                handled = 0
            if handled == 0:
                self._stop_event.wait(timeout=self._poll_interval)

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def _count_extra(self) -> dict[str, int]:
        return {
            "received": self._received,
            "applied": self._counts[OutcomeStatus.APPLIED],
            "duplicates": self._counts[OutcomeStatus.DUPLICATE],
            "rejected": self._counts[OutcomeStatus.REJECTED],
            "failed": self._counts[OutcomeStatus.FAILED],
        }

    def get_status(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "isRunning": self.is_running,
            "groupId": self._group_id,
            "topic": self._source.name,
            "startedAt": self._started_at.isoformat() if self._started_at else None,
            "lastError": self._last_error,
            **self._count_extra(),
        }

"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for the ledger's
    write services.  Services receive a SQLAlchemy ``Session`` and use
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell.  SaleCoordinator and
    PurchaseRecorder extend this class.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back.  InventoryService owns
      the unit of work, which is what makes a sale all-or-nothing.

Failure modes:
    - A subclass that commits on its own would expose partial deductions.
"""

from abc import ABC

from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only projections -- those belong in
          ``inventory_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source for created_at stamps. Defaults to SystemClock.
        """
        self.session = session
        self._clock = clock or SystemClock()

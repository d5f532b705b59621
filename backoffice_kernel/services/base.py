"""
BaseService -- abstract base for all back-office services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service.  Concrete services receive a SQLAlchemy ``Session``
    that they use via ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back themselves.  The caller
    (``session_scope()``, a route handler, or the test harness) owns
    commit/rollback, so a multi-step operation such as "create revision,
    deactivate original, link both" is all-or-nothing.

Failure modes:
    - If a subclass calls ``session.commit()``, a later failure in the same
      request can no longer undo the earlier writes.
"""

from abc import ABC

from sqlalchemy.orm import Session

from backoffice_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.  Time is read from the injected ``Clock``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

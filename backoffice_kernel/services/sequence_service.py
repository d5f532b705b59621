"""
SequenceService -- monotonic counters via locked rows.

Responsibility:
    Provides strictly increasing values for named counters.  Uses a
    dedicated counter table with row-level locking (``SELECT ... FOR
    UPDATE``) so that concurrent writers for the same name are serialized.

    Two families of counters exist:

    * ``project_code:<yy>`` -- allocates the ``nnn`` part of ``J<yy><nnn>``.
    * ``invoice_sequence:<project_code>`` -- the per-project lock taken
      before an invoice's ordinal and cumulative percentage are computed.
      Because sequence numbers are never reused after deletion, this
      counter is also the source of the next ``invoice_sequence``.

Invariants enforced:
    - The aggregate-max-plus-one pattern is never used for allocation;
      the locked counter row is the sole source of truth.
    - Transactional: an increment becomes visible only when the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent creation of the same counter row
      (handled via savepoint rollback and retry).
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from backoffice_kernel.db.base import Base
from backoffice_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named counter with its current value.
    """

    __tablename__ = "sequence_counters"

    # e.g. "project_code:25", "invoice_sequence:J25001"
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


def project_code_sequence(year_suffix: str) -> str:
    return f"project_code:{year_suffix}"


def invoice_sequence(project_code: str) -> str:
    return f"invoice_sequence:{project_code}"


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Usage:
        seq = SequenceService(session).next_value(invoice_sequence("J25001"))
        # Row stays locked until the caller's transaction ends.
    """

    def __init__(self, session: Session):
        self._session = session

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def lock(self, sequence_name: str, floor: int = 0) -> SequenceCounter:
        """
        Lock (creating if needed) the counter row without incrementing it.

        ``floor`` seeds a brand-new counter, so counters introduced after
        data already exists start above the highest value in use.

        Postconditions:
            The returned row is locked until the caller's transaction ends.
        """
        counter = self._lock_counter(sequence_name)
        if counter is not None:
            if counter.current_value < floor:
                counter.current_value = floor
                self._session.flush()
            return counter

        savepoint = self._session.begin_nested()
        try:
            counter = SequenceCounter(name=sequence_name, current_value=floor)
            self._session.add(counter)
            self._session.flush()
            savepoint.commit()
            return counter
        except IntegrityError:
            # Another transaction created the row first; lock theirs.
            logger.debug(
                "sequence_counter_race_retry",
                extra={"sequence_name": sequence_name},
            )
            savepoint.rollback()
            counter = self._lock_counter(sequence_name)
            if counter is None:
                raise
            if counter.current_value < floor:
                counter.current_value = floor
                self._session.flush()
            return counter

    def next_value(self, sequence_name: str, floor: int = 0) -> int:
        """
        Lock the counter, increment it, and return the new value.

        Args:
            sequence_name: Name of the counter.
            floor: Lowest value the counter may hold before incrementing.

        Returns:
            The next value (always > floor and > 0).
        """
        counter = self.lock(sequence_name, floor=floor)
        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a counter without locking, or None if absent."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

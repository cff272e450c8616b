"""
Named counters for lot, blend and transfer codes.

A value is taken by locking the counter row (SELECT ... FOR UPDATE) and
incrementing it in place, never by scanning existing codes.  The increment
belongs to the caller's transaction: it is released by a rollback and
becomes permanent on commit.  This service never commits.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cellar_kernel.logging_config import get_logger
from cellar_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:

    def __init__(self, session: Session):
        self._session = session

    def next_value(self, sequence_name: str) -> int:
        """
        Increment ``sequence_name`` and return the new value (1 on first use).

        The counter row stays locked until the caller's transaction ends, so
        two transactions drawing from the same sequence serialize.
        """
        counter = self._lock(sequence_name) or self._create(sequence_name)
        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Last value handed out, or None for a sequence never used."""
        return self._session.scalar(
            select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
        )

    def _lock(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.scalars(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).one_or_none()

    def _create(self, sequence_name: str) -> SequenceCounter:
        """
        Insert a zeroed counter inside a savepoint and return it locked.

        If another transaction inserted the row first, the unique name
        constraint fails, only the savepoint is rolled back, and the winner's
        row is locked instead.
        """
        try:
            with self._session.begin_nested():
                self._session.add(SequenceCounter(name=sequence_name, current_value=0))
        except IntegrityError:
            logger.debug("sequence_create_conflict", extra={"sequence_name": sequence_name})
        counter = self._lock(sequence_name)
        if counter is None:
            raise RuntimeError(f"Sequence counter {sequence_name!r} vanished after insert")
        return counter

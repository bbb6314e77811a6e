"""
SequenceService -- entry and booking numbers from locked counter rows.

Responsibility:
    Hands out journal entry numbers (``JE-000001``) and per-year booking
    numbers (``BKG-2025-000001``).  Each number comes from a named row in
    ``sequence_counters`` that is read ``FOR UPDATE``, incremented and
    flushed, so two concurrent transactions can never observe the same
    value.

Architecture position:
    Kernel > Services.  Called by JournalPoster.create() and by booking
    intake through AccountingService.

Invariants enforced:
    - Numbers are strictly increasing per sequence name.  Reading the
      current maximum entry_number and adding one is never done.
    - The increment is transactional: a rolled-back caller returns its value.

Failure modes:
    - IntegrityError when two transactions create the same counter row at
      once.  The loser rolls back its savepoint and re-reads the row.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Allocates monotonic sequence values.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT guarantee gap-free numbers across rolled-back callers on
          databases that release row locks early.

    Usage:
        numbers = SequenceService(session)
        numbers.next_entry_number()          # "JE-000001"
        numbers.next_booking_number(2025)    # "BKG-2025-000001"
    """

    JOURNAL_ENTRY = "journal_entry"
    BOOKING_PREFIX = "booking"

    ENTRY_NUMBER_FORMAT = "JE-{value:06d}"
    BOOKING_NUMBER_FORMAT = "BKG-{year}-{value:06d}"

    def __init__(self, session: Session):
        self._session = session

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the named counter, increment it and return the new value.

        The first call for a name creates the row with value 1.

        Returns:
            An integer > 0, greater than every value previously returned
            for ``sequence_name``.
        """
        counter = self._lock_counter(sequence_name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._lock_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def next_entry_number(self) -> str:
        value = self.next_value(self.JOURNAL_ENTRY)
        return self.ENTRY_NUMBER_FORMAT.format(value=value)

    def next_booking_number(self, year: int) -> str:
        """Next booking number; each calendar year counts from 1."""
        value = self.next_value(f"{self.BOOKING_PREFIX}:{year}")
        return self.BOOKING_NUMBER_FORMAT.format(year=year, value=value)

"""
Gap-free invoice numbers from locked counter rows.

Each named sequence is one ``sequence_counters`` row.  ``next_value``
locks it with ``SELECT ... FOR UPDATE``, bumps it and flushes, so two
invoices generated at once queue on the row instead of both reading the
same maximum.  The bump is part of the caller's transaction: a rollback
gives the number back, which keeps a year's numbers dense.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from bench_kernel.db.base import Base
from bench_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    current_value: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)


class SequenceService:
    """Allocates the next number of a named sequence; never commits."""

    INVOICE_NUMBER = "invoice_number"

    def __init__(self, session: Session):
        self._session = session

    @classmethod
    def invoice_sequence(cls, year: int) -> str:
        return f"{cls.INVOICE_NUMBER}:{year}"

    def _locked_counter(self, name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _create_counter(self, name: str) -> SequenceCounter | None:
        """Insert the counter at 1, or return None if a concurrent insert won."""
        savepoint = self._session.begin_nested()
        counter = SequenceCounter(name=name, current_value=1)
        self._session.add(counter)
        try:
            self._session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("sequence_counter_race_retry", extra={"sequence_name": name})
            return None
        savepoint.commit()
        return counter

    def next_value(self, sequence_name: str) -> int:
        """Return a value one above the last one handed out for ``sequence_name``."""
        counter = self._locked_counter(sequence_name)
        if counter is None:
            created = self._create_counter(sequence_name)
            if created is not None:
                value = created.current_value
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": value},
                )
                return value
            counter = self._locked_counter(sequence_name)
            if counter is None:
                raise RuntimeError(f"sequence counter {sequence_name!r} vanished")

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

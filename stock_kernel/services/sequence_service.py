"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers for document reference
    numbers (transfers, opnames, purchase orders).  Uses a dedicated counter
    table with row-level locking (``SELECT ... FOR UPDATE``) to guarantee
    uniqueness under concurrent access.

Architecture position:
    Kernel > Services.  Called by TransferService, OpnameService and
    ReplenishmentService as the last step before their records are written,
    so the counter lock is held for as short a time as possible.

Invariants enforced:
    - The aggregate-max-plus-one pattern is never used; the locked counter
      row is the sole source of the next value.
    - The increment is transactional: a rollback returns the value.

Failure modes:
    - IntegrityError on a concurrent first creation of a counter, handled by
      savepoint rollback and re-read.
"""

from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.references import (
    OPNAME_PREFIX,
    PURCHASE_ORDER_PREFIX,
    TRANSFER_PREFIX,
    format_reference,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        with session_scope() as session:
            ref = SequenceService(session).next_reference(SequenceService.TRANSFER, today)
    """

    TRANSFER = "transfer"
    OPNAME = "opname"
    PURCHASE_ORDER = "purchase_order"

    _PREFIXES = {
        TRANSFER: TRANSFER_PREFIX,
        OPNAME: OPNAME_PREFIX,
        PURCHASE_ORDER: PURCHASE_ORDER_PREFIX,
    }

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
        Lock the named counter (creating it on first use), increment it and
        return the new value.

        Postconditions:
            - Returns an integer > 0, greater than any value previously
              committed for this name.
            - The counter row stays locked until the transaction ends.
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
        """Current value without incrementing, or None if never used."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter is not None else None

    def next_reference(self, document_kind: str, on: date | datetime) -> str:
        """
        Next ``PREFIX-YYYYMMDD-NNNNNN`` reference for a document kind.

        Raises:
            ValueError: If ``document_kind`` is not a known kind.
        """
        try:
            prefix = self._PREFIXES[document_kind]
        except KeyError:
            raise ValueError(f"Unknown document kind: {document_kind!r}") from None
        return format_reference(prefix, on, self.next_value(document_kind))

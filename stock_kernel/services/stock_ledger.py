"""
StockLedger -- authoritative quantity on hand per (product, branch).

Responsibility:
    Reads quantities and applies signed base-unit deltas.  ``apply_delta`` is
    the single mutation primitive: transfers and opnames are expressed as
    deltas through it so the no-negative-stock check lives in one place.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only; the caller owns the
    transaction.

Concurrency:
    ``lock(keys)`` takes row locks (``SELECT ... FOR UPDATE``) on every
    existing entry in sorted key order, so two operations touching
    overlapping keys queue instead of deadlocking, and operations on
    unrelated keys never wait on each other.  Every check that follows reads
    the locked row, so the check-then-act window is closed.

    Backstops for what a row lock cannot cover:
      - A missing entry cannot be locked.  Two transactions creating the same
        entry collide on uq_stock_entry_key -> ConcurrentModificationRetry.
      - The ``version`` column makes every UPDATE a compare-and-swap; a lost
        swap raises StaleDataError -> ConcurrentModificationRetry.

Invariants enforced:
    - quantity_on_hand >= 0 after every applied delta.
    - A rejected delta leaves state unchanged.
    - Every non-zero delta writes one StockMovement row.
    - Entries are created lazily and never deleted.

Failure modes:
    - InsufficientStockError: the delta would drive the quantity below zero.
    - InvalidQuantityError: the delta has more decimal places than the
      configured precision.
    - ConcurrentModificationRetry: lost a creation race or a version check.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from stock_kernel.db.types import QUANTITY_DECIMAL_PLACES, round_quantity, to_decimal
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import MovementType
from stock_kernel.exceptions import (
    ConcurrentModificationRetry,
    InsufficientStockError,
    InvalidQuantityError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.stock import StockEntryModel, StockMovementModel
from stock_kernel.services.base import BaseService

logger = get_logger("services.stock_ledger")

ZERO = Decimal("0")

StockKey = tuple[UUID, UUID]


def _sort_key(key: StockKey) -> tuple[str, str]:
    return (str(key[0]), str(key[1]))


class StockLedger(BaseService[StockEntryModel]):
    """
    Stock ledger over StockEntryModel rows.

    Contract:
        ``get`` never fails for a missing entry (absence is 0).
        ``apply_delta`` either applies the whole delta and records a movement,
        or raises and changes nothing.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        decimal_places: int = QUANTITY_DECIMAL_PLACES,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._decimal_places = decimal_places

    def _select_entry(self, product_id: UUID, branch_id: UUID, *, for_update: bool):
        query = select(StockEntryModel).where(
            StockEntryModel.product_id == product_id,
            StockEntryModel.branch_id == branch_id,
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(query).scalar_one_or_none()

    def get(self, product_id: UUID, branch_id: UUID) -> Decimal:
        """Quantity on hand in base units; 0 if no entry exists."""
        entry = self._select_entry(product_id, branch_id, for_update=False)
        return entry.quantity_on_hand if entry is not None else ZERO

    def get_many(self, product_ids: Iterable[UUID], branch_id: UUID) -> dict[UUID, Decimal]:
        """Quantity per product at one branch.  Missing entries map to 0."""
        wanted = list(dict.fromkeys(product_ids))
        result = {product_id: ZERO for product_id in wanted}
        if not wanted:
            return result
        rows = self.session.execute(
            select(StockEntryModel).where(
                StockEntryModel.branch_id == branch_id,
                StockEntryModel.product_id.in_(wanted),
            )
        ).scalars()
        for row in rows:
            result[row.product_id] = row.quantity_on_hand
        return result

    def lock(self, keys: Iterable[StockKey]) -> dict[StockKey, Decimal]:
        """
        Lock every existing entry among ``keys`` and return current
        quantities (0 for missing entries).

        Locks are taken in sorted key order.  They are held until the
        caller's transaction ends.
        """
        ordered = sorted(set(keys), key=_sort_key)
        quantities: dict[StockKey, Decimal] = {}
        for product_id, branch_id in ordered:
            entry = self._select_entry(product_id, branch_id, for_update=True)
            quantities[(product_id, branch_id)] = (
                entry.quantity_on_hand if entry is not None else ZERO
            )
        logger.debug("stock_keys_locked", extra={"key_count": len(ordered)})
        return quantities

    def apply_delta(
        self,
        product_id: UUID,
        branch_id: UUID,
        delta: Decimal | int | str,
        *,
        actor_id: UUID,
        movement_type: MovementType = MovementType.ADJUSTMENT,
        operation_id: UUID | None = None,
    ) -> Decimal:
        """
        Apply a signed base-unit delta and return the new quantity.

        A zero delta is a no-op: nothing is written and no entry is created.

        Raises:
            InsufficientStockError: If the result would be negative.
            InvalidQuantityError: If ``delta`` exceeds the configured
                precision.
            ConcurrentModificationRetry: On a lost creation race or version
                check.
        """
        delta = to_decimal(delta)
        if round_quantity(delta, self._decimal_places) != delta:
            raise InvalidQuantityError(
                str(product_id),
                delta,
                f"more than {self._decimal_places} decimal places",
            )

        entry = self._select_entry(product_id, branch_id, for_update=True)
        available = entry.quantity_on_hand if entry is not None else ZERO

        if delta == 0:
            return available

        new_quantity = available + delta
        if new_quantity < 0:
            logger.info(
                "stock_delta_rejected",
                extra={
                    "product_id": str(product_id),
                    "branch_id": str(branch_id),
                    "delta": str(delta),
                    "available": str(available),
                },
            )
            raise InsufficientStockError(
                product_id=str(product_id),
                branch_id=str(branch_id),
                requested=-delta,
                available=available,
            )

        now = self._clock.now()
        if entry is None:
            self._create_entry(product_id, branch_id, new_quantity, now)
        else:
            entry.quantity_on_hand = new_quantity
            entry.updated_at = now
            try:
                self.session.flush()
            except StaleDataError as exc:
                raise ConcurrentModificationRetry(
                    "StockEntry", f"{product_id}@{branch_id}"
                ) from exc

        self.session.add(
            StockMovementModel(
                product_id=product_id,
                branch_id=branch_id,
                delta=delta,
                quantity_after=new_quantity,
                movement_type=movement_type.value,
                operation_id=operation_id,
                actor_id=actor_id,
                created_at=now,
            )
        )
        self.session.flush()

        logger.debug(
            "stock_delta_applied",
            extra={
                "product_id": str(product_id),
                "branch_id": str(branch_id),
                "delta": str(delta),
                "quantity_after": str(new_quantity),
                "movement_type": movement_type.value,
            },
        )
        return new_quantity

    def _create_entry(self, product_id, branch_id, quantity, now) -> StockEntryModel:
        """Insert a new entry inside a savepoint; a duplicate means another
        transaction created it first."""
        savepoint = self.session.begin_nested()
        try:
            entry = StockEntryModel(
                product_id=product_id,
                branch_id=branch_id,
                quantity_on_hand=quantity,
                updated_at=now,
            )
            self.session.add(entry)
            self.session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            logger.info(
                "stock_entry_creation_race",
                extra={"product_id": str(product_id), "branch_id": str(branch_id)},
            )
            raise ConcurrentModificationRetry(
                "StockEntry", f"{product_id}@{branch_id}"
            ) from exc
        logger.debug(
            "stock_entry_created",
            extra={"product_id": str(product_id), "branch_id": str(branch_id)},
        )
        return entry

"""
Module: stock_kernel.models.stock
Responsibility: ORM persistence for the stock ledger: one quantity-on-hand
    row per (product, branch) and the append-only movement log of every
    applied delta.
Architecture position: Kernel > Models.  May import from db/ and domain/
    DTOs only.  MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - One StockEntry per (product_id, branch_id) (uq_stock_entry_key).
    - quantity_on_hand >= 0 at every committed state.  The CHECK constraint
      backs this on PostgreSQL; StockLedger.apply_delta is the enforcement
      point on every backend.
    - ``version`` is the optimistic-concurrency column: an UPDATE whose
      version no longer matches raises StaleDataError.
    - StockEntry rows are never deleted (zero is a valid persisted state).
    - StockMovement rows are append-only.

Failure modes:
    - IntegrityError on a concurrent lazy creation of the same entry.
    - StaleDataError on a lost compare-and-swap.
    - ImmutabilityViolationError on DELETE of an entry or UPDATE/DELETE of a
      movement (db/immutability.py).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString
from stock_kernel.domain.dtos import MovementType, StockLevel, StockMovement


class StockEntryModel(Base):
    """
    Quantity on hand for one (product, branch) pair, in base units.

    Contract:
        Created lazily on the first positive delta.  Mutated only through
        StockLedger.apply_delta.
    """

    __tablename__ = "stock_entries"

    __table_args__ = (
        UniqueConstraint("product_id", "branch_id", name="uq_stock_entry_key"),
        CheckConstraint("quantity_on_hand >= 0", name="ck_stock_entry_non_negative"),
        Index("idx_stock_entry_branch", "branch_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )
    branch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("branches.id"),
        nullable=False,
    )
    quantity_on_hand: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self) -> StockLevel:
        return StockLevel(
            product_id=self.product_id,
            branch_id=self.branch_id,
            quantity_on_hand=self.quantity_on_hand,
        )

    def __repr__(self) -> str:
        return (
            f"<StockEntry {self.product_id}@{self.branch_id}: "
            f"{self.quantity_on_hand} v{self.version}>"
        )


class StockMovementModel(Base):
    """
    One applied ledger delta.

    Contract:
        Append-only.  ``quantity_after`` is the entry's quantity right after
        this delta, so a key's movements replay to its current quantity.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        Index("idx_movement_key", "product_id", "branch_id"),
        Index("idx_movement_operation", "operation_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )
    branch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("branches.id"),
        nullable=False,
    )
    delta: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_after: Mapped[Decimal] = mapped_column(nullable=False)
    movement_type: Mapped[str] = mapped_column(String(30), nullable=False)
    operation_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_dto(self) -> StockMovement:
        return StockMovement(
            id=self.id,
            product_id=self.product_id,
            branch_id=self.branch_id,
            delta=self.delta,
            quantity_after=self.quantity_after,
            movement_type=MovementType(self.movement_type),
            operation_id=self.operation_id,
            actor_id=self.actor_id,
            created_at=self.created_at,
        )

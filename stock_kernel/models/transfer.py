"""
Module: stock_kernel.models.transfer
Responsibility: ORM persistence for inter-branch stock transfers and their
    lines.
Architecture position: Kernel > Models.  May import from db/ and domain/
    DTOs only.

Invariants enforced:
    - source_branch_id != destination_branch_id (ck_transfer_distinct_branches).
    - reference_number is unique.
    - Each line stores the unit and conversion factor that were in force at
      transfer time, plus the resulting base-unit quantity, so later edits
      to a product's units never rewrite history.
    - Transfers and their lines are immutable once written.

Failure modes:
    - ImmutabilityViolationError on UPDATE or DELETE (db/immutability.py).
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_kernel.domain.dtos import TransferLine, TransferRecord, TransferStatus


class StockTransferModel(TrackedBase):
    """Header of one transfer request, applied or rejected."""

    __tablename__ = "stock_transfers"

    __table_args__ = (
        CheckConstraint(
            "source_branch_id <> destination_branch_id",
            name="ck_transfer_distinct_branches",
        ),
        Index("idx_transfer_source", "source_branch_id"),
        Index("idx_transfer_destination", "destination_branch_id"),
    )

    reference_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    source_branch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("branches.id"),
        nullable=False,
    )
    destination_branch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("branches.id"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    lines: Mapped[list[TransferLineModel]] = relationship(
        back_populates="transfer",
        cascade="all",
        lazy="selectin",
        order_by="TransferLineModel.line_no",
    )

    def to_dto(self) -> TransferRecord:
        return TransferRecord(
            id=self.id,
            reference_number=self.reference_number,
            source_branch_id=self.source_branch_id,
            destination_branch_id=self.destination_branch_id,
            lines=tuple(line.to_dto() for line in self.lines),
            status=TransferStatus(self.status),
            created_at=self.created_at,
            created_by_id=self.created_by_id,
            notes=self.notes,
            rejection_reason=self.rejection_reason,
        )


class TransferLineModel(Base):
    """One product line of a transfer."""

    __tablename__ = "stock_transfer_lines"

    transfer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_transfers.id"),
        nullable=False,
        index=True,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_name: Mapped[str] = mapped_column(String(50), nullable=False)
    conversion_factor: Mapped[Decimal] = mapped_column(nullable=False)
    base_quantity: Mapped[Decimal] = mapped_column(nullable=False)

    transfer: Mapped[StockTransferModel] = relationship(back_populates="lines")

    def to_dto(self) -> TransferLine:
        return TransferLine(
            product_id=self.product_id,
            quantity=self.quantity,
            unit_name=self.unit_name,
            conversion_factor=self.conversion_factor,
            base_quantity=self.base_quantity,
        )

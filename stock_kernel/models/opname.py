"""
Module: stock_kernel.models.opname
Responsibility: ORM persistence for stock count reconciliations (opname).
Architecture position: Kernel > Models.  May import from db/ and domain/
    DTOs only.

Invariants enforced:
    - difference == actual_stock - system_stock on every line (the service
      computes it from the system stock read under lock at save time).
    - Opnames are append-only history: a re-count is a new record.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_kernel.domain.dtos import OpnameLine, OpnameRecord


class StockOpnameModel(TrackedBase):
    """Header of one count reconciliation."""

    __tablename__ = "stock_opnames"

    __table_args__ = (
        Index("idx_opname_branch", "branch_id"),
    )

    reference_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    branch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("branches.id"),
        nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    lines: Mapped[list[OpnameLineModel]] = relationship(
        back_populates="opname",
        cascade="all",
        lazy="selectin",
        order_by="OpnameLineModel.line_no",
    )

    def to_dto(self) -> OpnameRecord:
        return OpnameRecord(
            id=self.id,
            reference_number=self.reference_number,
            branch_id=self.branch_id,
            lines=tuple(line.to_dto() for line in self.lines),
            created_at=self.created_at,
            created_by_id=self.created_by_id,
            notes=self.notes,
        )


class OpnameLineModel(Base):
    """Snapshot, count and variance for one product."""

    __tablename__ = "stock_opname_lines"

    opname_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_opnames.id"),
        nullable=False,
        index=True,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )
    system_stock: Mapped[Decimal] = mapped_column(nullable=False)
    actual_stock: Mapped[Decimal] = mapped_column(nullable=False)
    difference: Mapped[Decimal] = mapped_column(nullable=False)
    counted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    opname: Mapped[StockOpnameModel] = relationship(back_populates="lines")

    def to_dto(self) -> OpnameLine:
        return OpnameLine(
            product_id=self.product_id,
            system_stock=self.system_stock,
            actual_stock=self.actual_stock,
            difference=self.difference,
            counted=self.counted,
        )

"""
Module: stock_kernel.models.purchase_order
Responsibility: ORM persistence for submitted purchase orders.
Architecture position: Kernel > Models.  May import from db/ and domain/
    DTOs only.

Invariants enforced:
    - line_total == quantity * unit_cost, total_amount == sum(line_total),
      both fixed at submission.
    - Purchase orders are immutable once submitted.  Receiving goods is a
      separate ledger posting and never edits the order.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_kernel.domain.dtos import (
    LineOrigin,
    PurchaseOrderLineRecord,
    PurchaseOrderRecord,
)


class PurchaseOrderModel(TrackedBase):
    """Header of one submitted purchase order."""

    __tablename__ = "purchase_orders"

    __table_args__ = (
        Index("idx_po_destination", "destination_branch_id"),
    )

    po_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    destination_branch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("branches.id"),
        nullable=False,
    )
    supplier: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    expected_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    lines: Mapped[list[PurchaseOrderLineModel]] = relationship(
        back_populates="purchase_order",
        cascade="all",
        lazy="selectin",
        order_by="PurchaseOrderLineModel.line_no",
    )

    def to_dto(self) -> PurchaseOrderRecord:
        return PurchaseOrderRecord(
            id=self.id,
            po_number=self.po_number,
            destination_branch_id=self.destination_branch_id,
            lines=tuple(line.to_dto() for line in self.lines),
            total_amount=self.total_amount,
            created_at=self.created_at,
            created_by_id=self.created_by_id,
            supplier=self.supplier,
            notes=self.notes,
            expected_date=self.expected_date,
        )


class PurchaseOrderLineModel(Base):
    """One purchase order line."""

    __tablename__ = "purchase_order_lines"

    purchase_order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_orders.id"),
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
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)
    line_total: Mapped[Decimal] = mapped_column(nullable=False)
    origin: Mapped[str] = mapped_column(String(20), nullable=False)

    purchase_order: Mapped[PurchaseOrderModel] = relationship(back_populates="lines")

    def to_dto(self) -> PurchaseOrderLineRecord:
        return PurchaseOrderLineRecord(
            product_id=self.product_id,
            quantity=self.quantity,
            unit_name=self.unit_name,
            conversion_factor=self.conversion_factor,
            unit_cost=self.unit_cost,
            line_total=self.line_total,
            origin=LineOrigin(self.origin),
        )

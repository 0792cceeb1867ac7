"""
Module: stock_kernel.models.sku
Responsibility: ORM persistence for SKU sequence state and the registry of
    issued SKUs.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One counter row per (prefix, date_bucket) (uq_sku_sequence_bucket).
      The row is locked for the read-then-increment, so allocations in one
      bucket are serialized and allocations in different buckets are not.
    - Every issued SKU is unique (uq_sku_allocation_sku).  A collision here
      means the counter was bypassed; it surfaces as IntegrityError.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString


class SkuSequenceModel(Base):
    """Last issued sequence number for one (prefix, date bucket)."""

    __tablename__ = "sku_sequences"

    __table_args__ = (
        UniqueConstraint("prefix", "date_bucket", name="uq_sku_sequence_bucket"),
    )

    prefix: Mapped[str] = mapped_column(String(50), nullable=False)
    date_bucket: Mapped[str] = mapped_column(String(8), nullable=False)
    last_sequence: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    last_sku: Mapped[str | None] = mapped_column(String(100), nullable=True)


class SkuAllocationModel(Base):
    """One issued SKU."""

    __tablename__ = "sku_allocations"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_sku_allocation_sku"),
    )

    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    category_name: Mapped[str] = mapped_column(String(100), nullable=False)
    allocated_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    allocated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

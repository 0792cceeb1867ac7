"""
Module: stock_kernel.models.audit_event
Responsibility: ORM persistence for the inventory audit log.
Architecture position: Kernel > Models.  May import from db/ and domain/
    DTOs only.

Invariants enforced:
    - Audit rows are append-only; no UPDATE or DELETE (db/immutability.py).

Minimum coverage (each action writes one row):
    create_transfer, reject_transfer, stock_adjustment, create_purchase_order,
    create_product, create_branch, allocate_sku.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString
from stock_kernel.domain.dtos import AuditEntry


class AuditAction(str, Enum):
    """Types of auditable inventory actions."""

    CREATE_TRANSFER = "create_transfer"
    REJECT_TRANSFER = "reject_transfer"
    STOCK_ADJUSTMENT = "stock_adjustment"
    CREATE_PURCHASE_ORDER = "create_purchase_order"
    CREATE_PRODUCT = "create_product"
    CREATE_BRANCH = "create_branch"
    UPDATE_BRANCH = "update_branch"
    ALLOCATE_SKU = "allocate_sku"


class AuditEvent(Base):
    """
    One audit log row.

    Contract:
        Append-only.  ``details`` is a JSON object of plain values.
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_entity", "entity", "entity_id"),
        Index("idx_audit_action", "action"),
    )

    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    actor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_dto(self) -> AuditEntry:
        return AuditEntry(
            id=self.id,
            action=self.action,
            entity=self.entity,
            entity_id=self.entity_id,
            details=dict(self.details or {}),
            actor_id=self.actor_id,
            created_at=self.occurred_at,
        )

    def __repr__(self) -> str:
        return f"<AuditEvent {self.action} on {self.entity}:{self.entity_id}>"

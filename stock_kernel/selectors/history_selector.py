"""
HistorySelector -- read access to committed transfers, opnames, purchase
orders and audit entries.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select

from stock_kernel.domain.dtos import (
    AuditEntry,
    OpnameRecord,
    PurchaseOrderRecord,
    TransferRecord,
    TransferStatus,
)
from stock_kernel.models.audit_event import AuditEvent
from stock_kernel.models.opname import StockOpnameModel
from stock_kernel.models.purchase_order import PurchaseOrderModel
from stock_kernel.models.transfer import StockTransferModel
from stock_kernel.selectors.base import BaseSelector


class HistorySelector(BaseSelector[StockTransferModel]):
    """Immutable history lookups."""

    def get_transfer(self, transfer_id: UUID) -> TransferRecord | None:
        row = self.session.get(StockTransferModel, transfer_id)
        return row.to_dto() if row is not None else None

    def get_transfer_by_reference(self, reference_number: str) -> TransferRecord | None:
        row = self.session.execute(
            select(StockTransferModel)
            .where(StockTransferModel.reference_number == reference_number)
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def list_transfers(
        self,
        branch_id: UUID | None = None,
        status: TransferStatus | None = None,
    ) -> list[TransferRecord]:
        """Transfers touching ``branch_id`` (either side), newest first."""
        query = select(StockTransferModel).order_by(
            StockTransferModel.created_at.desc(),
            StockTransferModel.reference_number.desc(),
        )
        if branch_id is not None:
            query = query.where(
                or_(
                    StockTransferModel.source_branch_id == branch_id,
                    StockTransferModel.destination_branch_id == branch_id,
                )
            )
        if status is not None:
            query = query.where(StockTransferModel.status == status.value)
        return [row.to_dto() for row in self.session.execute(query).scalars()]

    def get_opname(self, opname_id: UUID) -> OpnameRecord | None:
        row = self.session.get(StockOpnameModel, opname_id)
        return row.to_dto() if row is not None else None

    def list_opnames(self, branch_id: UUID | None = None) -> list[OpnameRecord]:
        query = select(StockOpnameModel).order_by(
            StockOpnameModel.created_at.desc(),
            StockOpnameModel.reference_number.desc(),
        )
        if branch_id is not None:
            query = query.where(StockOpnameModel.branch_id == branch_id)
        return [row.to_dto() for row in self.session.execute(query).scalars()]

    def get_purchase_order(self, purchase_order_id: UUID) -> PurchaseOrderRecord | None:
        row = self.session.get(PurchaseOrderModel, purchase_order_id)
        return row.to_dto() if row is not None else None

    def list_purchase_orders(
        self,
        destination_branch_id: UUID | None = None,
    ) -> list[PurchaseOrderRecord]:
        query = select(PurchaseOrderModel).order_by(
            PurchaseOrderModel.created_at.desc(),
            PurchaseOrderModel.po_number.desc(),
        )
        if destination_branch_id is not None:
            query = query.where(
                PurchaseOrderModel.destination_branch_id == destination_branch_id
            )
        return [row.to_dto() for row in self.session.execute(query).scalars()]

    def audit_entries(
        self,
        entity: str | None = None,
        entity_id: str | None = None,
        action: str | None = None,
    ) -> list[AuditEntry]:
        """Audit rows in the order they were written."""
        query = select(AuditEvent).order_by(AuditEvent.occurred_at, AuditEvent.id)
        if entity is not None:
            query = query.where(AuditEvent.entity == entity)
        if entity_id is not None:
            query = query.where(AuditEvent.entity_id == entity_id)
        if action is not None:
            query = query.where(AuditEvent.action == action)
        return [row.to_dto() for row in self.session.execute(query).scalars()]

"""
ReplenishmentService -- auto-fill purchase order drafts and submit them.

Responsibility:
    Feeds the pure planner (domain/replenishment.py) with the catalog and the
    destination branch's current stock, and persists submitted drafts as
    immutable purchase orders.

Architecture position:
    Kernel > Services.  Flush-only.  Submitting an order does not touch the
    ledger; receiving goods is a separate posting.

Failure modes:
    - BranchNotFoundError / BranchInactiveError for the destination.
    - EmptyPurchaseOrderError: submitting a draft with no lines.
    - ProductNotFoundError: a draft line names an unknown product.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from stock_kernel.db.types import round_money
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import PurchaseOrderRecord
from stock_kernel.domain.replenishment import (
    DraftLine,
    PurchaseOrderDraft,
    filter_by_supplier,
    plan_auto_fill,
)
from stock_kernel.exceptions import EmptyPurchaseOrderError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.audit_event import AuditAction
from stock_kernel.models.purchase_order import PurchaseOrderLineModel, PurchaseOrderModel
from stock_kernel.selectors.catalog_selector import CatalogSelector
from stock_kernel.services.audit_service import AuditService
from stock_kernel.services.base import BaseService
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.replenishment")


def apply_plan(draft: PurchaseOrderDraft, new_lines: list[DraftLine]) -> list[DraftLine]:
    """Append planned lines to the draft and return them."""
    draft.extend(new_lines)
    logger.info(
        "replenishment_planned",
        extra={
            "branch_id": str(draft.destination_branch_id),
            "supplier": draft.supplier_filter,
            "added_count": len(new_lines),
            "draft_line_count": len(draft.lines),
        },
    )
    return new_lines


class ReplenishmentService(BaseService[PurchaseOrderModel]):

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger: StockLedger | None = None,
        audit: AuditService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._ledger = ledger or StockLedger(session, self._clock)
        self._audit = audit or AuditService(session, self._clock)
        self._catalog = CatalogSelector(session)
        self._sequences = SequenceService(session)

    def plan(self, draft: PurchaseOrderDraft) -> list[DraftLine]:
        """Compute auto-fill lines for ``draft`` without changing it."""
        self._catalog.require_active_branch(draft.destination_branch_id)
        products = filter_by_supplier(
            self._catalog.list_products(active_only=True), draft.supplier_filter,
        )
        stock = self._ledger.get_many(
            (p.id for p in products), draft.destination_branch_id,
        )
        return plan_auto_fill(draft.destination_branch_id, products, stock, draft.lines)

    def submit(
        self,
        draft: PurchaseOrderDraft,
        actor_id: UUID,
        notes: str | None = None,
        expected_date: date | None = None,
    ) -> PurchaseOrderRecord:
        """
        Persist ``draft`` as an immutable purchase order.

        Raises:
            EmptyPurchaseOrderError: If the draft has no lines.
        """
        if not draft.lines:
            raise EmptyPurchaseOrderError(str(draft.destination_branch_id))
        self._catalog.require_active_branch(draft.destination_branch_id)
        self._catalog.get_products(line.product_id for line in draft.lines)

        line_models = [
            PurchaseOrderLineModel(
                line_no=i,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_name=line.unit_name,
                conversion_factor=line.conversion_factor,
                unit_cost=line.unit_cost,
                line_total=round_money(line.line_total),
                origin=line.origin.value,
            )
            for i, line in enumerate(draft.lines, start=1)
        ]
        total = sum((m.line_total for m in line_models), Decimal("0"))

        now = self._clock.now()
        model = PurchaseOrderModel(
            id=uuid4(),
            po_number=self._sequences.next_reference(SequenceService.PURCHASE_ORDER, now),
            destination_branch_id=draft.destination_branch_id,
            supplier=draft.supplier_filter,
            notes=notes,
            expected_date=expected_date,
            total_amount=total,
            created_by_id=actor_id,
            created_at=now,
            updated_at=now,
            lines=line_models,
        )
        self.session.add(model)
        self.session.flush()
        record = model.to_dto()

        self._audit.record(
            AuditAction.CREATE_PURCHASE_ORDER,
            entity="purchase_order",
            entity_id=record.id,
            details={
                "po_number": record.po_number,
                "destination_branch_id": record.destination_branch_id,
                "line_count": len(record.lines),
                "total_amount": record.total_amount,
            },
            actor_id=actor_id,
        )
        logger.info(
            "purchase_order_submitted",
            extra={
                "purchase_order_id": str(record.id),
                "po_number": record.po_number,
                "branch_id": str(record.destination_branch_id),
                "line_count": len(record.lines),
                "total_amount": str(record.total_amount),
            },
        )
        return record

"""
Committed history is append-only: transfer, opname and purchase order
records, movements, audit rows and SKU allocations cannot be edited or
deleted, and stock entries cannot be deleted.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from stock_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from stock_kernel.domain.dtos import CountedLine, TransferLineRequest
from stock_kernel.domain.replenishment import PurchaseOrderDraft
from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.models.audit_event import AuditEvent
from stock_kernel.models.opname import StockOpnameModel
from stock_kernel.models.purchase_order import PurchaseOrderLineModel
from stock_kernel.models.sku import SkuAllocationModel
from stock_kernel.models.stock import StockEntryModel, StockMovementModel
from stock_kernel.models.transfer import StockTransferModel, TransferLineModel
from stock_kernel.services.opname_service import OpnameService
from stock_kernel.services.replenishment_service import ReplenishmentService
from stock_kernel.services.sku_service import SkuAllocator
from stock_kernel.services.transfer_service import TransferService


@pytest.fixture
def history(session, clock, branch_factory, product_factory, seed_stock, actor_id):
    """One of each history record."""
    source, destination = branch_factory(), branch_factory()
    product = product_factory("Rice", unit_cost="100")
    seed_stock(product.id, source.id, 10)

    TransferService(session, clock).transfer(
        source.id, destination.id, [TransferLineRequest(product.id, Decimal("2"))], actor_id,
    )
    OpnameService(session, clock).reconcile(
        source.id, [CountedLine(product.id, Decimal("7"))], actor_id, scope_product_ids=[],
    )
    draft = PurchaseOrderDraft(source.id)
    draft.add_manual_line(product, Decimal("1"))
    ReplenishmentService(session, clock).submit(draft, actor_id)
    SkuAllocator(session, clock).allocate("Grocery", actor_id)
    session.flush()
    return session


def _first(session, model):
    return session.execute(select(model)).scalars().first()


class TestUpdatesBlocked:

    def test_transfer_header(self, history):
        transfer = _first(history, StockTransferModel)
        transfer.notes = "edited"
        with pytest.raises(ImmutabilityViolationError):
            history.flush()

    def test_transfer_line(self, history):
        line = _first(history, TransferLineModel)
        line.quantity = Decimal("99")
        with pytest.raises(ImmutabilityViolationError):
            history.flush()

    def test_purchase_order_line(self, history):
        line = _first(history, PurchaseOrderLineModel)
        line.unit_cost = Decimal("1")
        with pytest.raises(ImmutabilityViolationError):
            history.flush()

    def test_movement(self, history):
        movement = _first(history, StockMovementModel)
        movement.delta = Decimal("1000")
        with pytest.raises(ImmutabilityViolationError):
            history.flush()

    def test_audit_event(self, history):
        event = _first(history, AuditEvent)
        event.action = "nothing_happened"
        with pytest.raises(ImmutabilityViolationError):
            history.flush()

    def test_sku_allocation(self, history):
        allocation = _first(history, SkuAllocationModel)
        allocation.sku = "OTHER-1"
        with pytest.raises(ImmutabilityViolationError):
            history.flush()


class TestDeletesBlocked:

    @pytest.mark.parametrize(
        "model",
        [StockOpnameModel, StockMovementModel, AuditEvent, StockEntryModel],
        ids=lambda m: m.__name__,
    )
    def test_delete(self, history, model):
        history.delete(_first(history, model))
        with pytest.raises(ImmutabilityViolationError):
            history.flush()

    def test_stock_entry_update_allowed(self, history):
        entry = _first(history, StockEntryModel)
        entry.quantity_on_hand = entry.quantity_on_hand + 1
        history.flush()


class TestListenerRegistration:

    def test_register_is_idempotent(self, history):
        register_immutability_listeners()
        register_immutability_listeners()
        event = _first(history, AuditEvent)
        event.entity = "x"
        with pytest.raises(ImmutabilityViolationError):
            history.flush()

    def test_unregister_allows_edit(self, history):
        unregister_immutability_listeners()
        try:
            event = _first(history, AuditEvent)
            event.entity = "corrected"
            history.flush()
        finally:
            register_immutability_listeners()

    def test_violation_logged(self, history, captured_logs):
        event = _first(history, AuditEvent)
        event.action = "x"
        with pytest.raises(ImmutabilityViolationError):
            history.flush()
        assert "immutability_violation_blocked" in captured_logs.messages()

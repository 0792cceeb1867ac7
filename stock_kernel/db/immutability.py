"""
ORM-level immutability enforcement for stock history.

Committed history is append-only.  SQLAlchemy fires mapper events before an
UPDATE or DELETE reaches the database; the listeners registered here
intercept those events and raise ImmutabilityViolationError, which aborts the
flush and leaves the database untouched.

Protected entities:

    Entity                    | Rule
    --------------------------|------------------------------------------
    StockTransfer (+ lines)   | no UPDATE, no DELETE
    StockOpname (+ lines)     | no UPDATE, no DELETE
    PurchaseOrder (+ lines)   | no UPDATE, no DELETE
    StockMovement             | no UPDATE, no DELETE
    AuditEvent                | no UPDATE, no DELETE
    SkuAllocation             | no UPDATE, no DELETE
    StockEntry                | no DELETE (zero is a valid persisted state)

Usage:

    from stock_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once, at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    # ... forbidden operation ...
    register_immutability_listeners()
"""

from sqlalchemy import event

from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "invariant": "IMMUTABLE_HISTORY",
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_history_update(mapper, connection, target):
    """History rows are written once and never modified."""
    entity_type = type(target).__name__
    _block(entity_type, target, "UPDATE", f"{entity_type} rows are immutable history")


def _check_history_delete(mapper, connection, target):
    """History rows are never deleted."""
    entity_type = type(target).__name__
    _block(entity_type, target, "DELETE", f"{entity_type} rows cannot be deleted")


def _check_stock_entry_delete(mapper, connection, target):
    """
    Stock entries are never physically deleted.

    A zero quantity is a valid state; deleting the row would lose the key
    that low-stock alerts and history queries rely on.
    """
    _block(
        "StockEntry",
        target,
        "DELETE",
        "Stock entries cannot be deleted; apply a delta to reach zero instead",
    )


def _history_models():
    from stock_kernel.models.audit_event import AuditEvent
    from stock_kernel.models.opname import OpnameLineModel, StockOpnameModel
    from stock_kernel.models.purchase_order import (
        PurchaseOrderLineModel,
        PurchaseOrderModel,
    )
    from stock_kernel.models.sku import SkuAllocationModel
    from stock_kernel.models.stock import StockMovementModel
    from stock_kernel.models.transfer import StockTransferModel, TransferLineModel

    return (
        StockTransferModel,
        TransferLineModel,
        StockOpnameModel,
        OpnameLineModel,
        PurchaseOrderModel,
        PurchaseOrderLineModel,
        StockMovementModel,
        AuditEvent,
        SkuAllocationModel,
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: a listener already registered is not added twice.
    """
    from stock_kernel.models.stock import StockEntryModel

    for model in _history_models():
        if not event.contains(model, "before_update", _check_history_update):
            event.listen(model, "before_update", _check_history_update)
        if not event.contains(model, "before_delete", _check_history_delete):
            event.listen(model, "before_delete", _check_history_delete)

    if not event.contains(StockEntryModel, "before_delete", _check_stock_entry_delete):
        event.listen(StockEntryModel, "before_delete", _check_stock_entry_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where a forbidden operation is needed
    on purpose.
    """
    from stock_kernel.models.stock import StockEntryModel

    for model in _history_models():
        _safe_remove_listener(model, "before_update", _check_history_update)
        _safe_remove_listener(model, "before_delete", _check_history_delete)

    _safe_remove_listener(StockEntryModel, "before_delete", _check_stock_entry_delete)

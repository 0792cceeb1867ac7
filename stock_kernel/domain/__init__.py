"""
Pure domain layer.

Data transfer objects and stock rules with no dependencies on the ORM, the
database or I/O.  Time comes in through an injected Clock.
"""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.dtos import (
    AuditEntry,
    BranchInfo,
    CountedLine,
    LineOrigin,
    LowStockAlert,
    MovementType,
    OpnameLine,
    OpnameRecord,
    PurchaseOrderLineRecord,
    PurchaseOrderRecord,
    StockLevel,
    StockMovement,
    TransferLine,
    TransferLineRequest,
    TransferRecord,
    TransferStatus,
)
from stock_kernel.domain.references import format_reference
from stock_kernel.domain.replenishment import (
    DraftLine,
    PurchaseOrderDraft,
    filter_by_supplier,
    order_quantity,
    plan_auto_fill,
)
from stock_kernel.domain.sku import next_sku, sku_prefix, validate_barcode
from stock_kernel.domain.units import (
    ProductDefinition,
    ProductUnit,
    from_base_units,
    to_base_units,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "AuditEntry",
    "BranchInfo",
    "CountedLine",
    "LineOrigin",
    "LowStockAlert",
    "MovementType",
    "OpnameLine",
    "OpnameRecord",
    "PurchaseOrderLineRecord",
    "PurchaseOrderRecord",
    "StockLevel",
    "StockMovement",
    "TransferLine",
    "TransferLineRequest",
    "TransferRecord",
    "TransferStatus",
    "format_reference",
    "DraftLine",
    "PurchaseOrderDraft",
    "filter_by_supplier",
    "order_quantity",
    "plan_auto_fill",
    "next_sku",
    "sku_prefix",
    "validate_barcode",
    "ProductDefinition",
    "ProductUnit",
    "from_base_units",
    "to_base_units",
]

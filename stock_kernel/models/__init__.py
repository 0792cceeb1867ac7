"""ORM models for the stock kernel."""

from stock_kernel.models.audit_event import AuditAction, AuditEvent
from stock_kernel.models.catalog import BranchModel, ProductModel, ProductUnitModel
from stock_kernel.models.opname import OpnameLineModel, StockOpnameModel
from stock_kernel.models.purchase_order import PurchaseOrderLineModel, PurchaseOrderModel
from stock_kernel.models.sequence import SequenceCounter
from stock_kernel.models.sku import SkuAllocationModel, SkuSequenceModel
from stock_kernel.models.stock import StockEntryModel, StockMovementModel
from stock_kernel.models.transfer import StockTransferModel, TransferLineModel

__all__ = [
    "AuditAction",
    "AuditEvent",
    "BranchModel",
    "ProductModel",
    "ProductUnitModel",
    "StockEntryModel",
    "StockMovementModel",
    "StockTransferModel",
    "TransferLineModel",
    "StockOpnameModel",
    "OpnameLineModel",
    "PurchaseOrderModel",
    "PurchaseOrderLineModel",
    "SkuSequenceModel",
    "SkuAllocationModel",
    "SequenceCounter",
]

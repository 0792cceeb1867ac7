"""Kernel services.  Every service flushes; none commits."""

from stock_kernel.services.audit_service import AuditService
from stock_kernel.services.catalog_service import CatalogService
from stock_kernel.services.opname_service import OpnameService
from stock_kernel.services.replenishment_service import ReplenishmentService
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.sku_service import SkuAllocator
from stock_kernel.services.stock_ledger import StockLedger
from stock_kernel.services.transfer_service import TransferService

__all__ = [
    "AuditService",
    "CatalogService",
    "OpnameService",
    "ReplenishmentService",
    "SequenceService",
    "SkuAllocator",
    "StockLedger",
    "TransferService",
]

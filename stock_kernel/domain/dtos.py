"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that flow in and out of the stock
    services: operator requests (TransferLineRequest, CountedLine), ledger
    views (StockLevel, LowStockAlert, StockMovement), and committed history
    records (TransferRecord, OpnameRecord, PurchaseOrderRecord, AuditEntry).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  ORM models convert to these via ``to_dto()``
    in the models layer; services and selectors return only these.

Invariants enforced:
    - Domain logic accepts/returns DTOs, never ORM entities.
    - All quantities are base-unit Decimals unless a field says otherwise.
    - OpnameLine.difference == actual_stock - system_stock.
    - TransferRecord.source_branch_id != destination_branch_id.

Data flow:
    TransferLineRequest -> TransferLine -> TransferRecord
    CountedLine -> OpnameLine -> OpnameRecord
    PurchaseOrderDraft (domain/replenishment.py) -> PurchaseOrderRecord
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class TransferStatus(str, Enum):
    """Outcome of a transfer request."""

    APPLIED = "applied"
    REJECTED = "rejected"


class MovementType(str, Enum):
    """What caused a ledger delta."""

    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    OPNAME = "opname"
    RECEIPT = "receipt"
    SALE = "sale"
    ADJUSTMENT = "adjustment"


class LineOrigin(str, Enum):
    """How a purchase order line entered the draft."""

    MANUAL = "manual"
    AUTO_FILL = "auto_fill"


@dataclass(frozen=True)
class BranchInfo:
    """A store or warehouse.  Branches are peers; there is no hierarchy."""

    id: UUID
    code: str
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class StockLevel:
    """Quantity on hand for one (product, branch) pair, in base units."""

    product_id: UUID
    branch_id: UUID
    quantity_on_hand: Decimal

    def __post_init__(self):
        if self.quantity_on_hand < 0:
            raise ValueError("quantity_on_hand cannot be negative")


@dataclass(frozen=True)
class LowStockAlert:
    """A (product, branch) pair at or below its minimum-stock threshold."""

    product_id: UUID
    branch_id: UUID
    sku: str
    product_name: str
    quantity_on_hand: Decimal
    min_stock_alert: Decimal

    @property
    def deficit(self) -> Decimal:
        return max(self.min_stock_alert - self.quantity_on_hand, Decimal("0"))


@dataclass(frozen=True)
class StockMovement:
    """One applied ledger delta.  Written for every non-zero mutation."""

    id: UUID
    product_id: UUID
    branch_id: UUID
    delta: Decimal
    quantity_after: Decimal
    movement_type: MovementType
    operation_id: UUID | None
    actor_id: UUID
    created_at: datetime


@dataclass(frozen=True)
class TransferLineRequest:
    """
    One operator-entered transfer line.

    ``unit_name`` of None means the product's base unit.
    """

    product_id: UUID
    quantity: Decimal
    unit_name: str | None = None


@dataclass(frozen=True)
class TransferLine:
    """A validated transfer line with its resolved base-unit amount."""

    product_id: UUID
    quantity: Decimal
    unit_name: str
    conversion_factor: Decimal
    base_quantity: Decimal


@dataclass(frozen=True)
class TransferRecord:
    """
    Immutable history of one transfer request.

    Contract: ``status`` APPLIED means every line moved; REJECTED means
    nothing moved and ``rejection_reason`` says why.
    """

    id: UUID
    reference_number: str
    source_branch_id: UUID
    destination_branch_id: UUID
    lines: tuple[TransferLine, ...]
    status: TransferStatus
    created_at: datetime
    created_by_id: UUID
    notes: str | None = None
    rejection_reason: str | None = None

    def __post_init__(self):
        if self.source_branch_id == self.destination_branch_id:
            raise ValueError("source and destination branch must differ")

    @property
    def total_base_quantity(self) -> Decimal:
        return sum((line.base_quantity for line in self.lines), Decimal("0"))


@dataclass(frozen=True)
class CountedLine:
    """
    One physically counted product.

    ``unit_name`` of None means ``actual_stock`` is already in base units.
    """

    product_id: UUID
    actual_stock: Decimal
    unit_name: str | None = None


@dataclass(frozen=True)
class OpnameLine:
    """Snapshot and signed variance for one product in an opname."""

    product_id: UUID
    system_stock: Decimal
    actual_stock: Decimal
    difference: Decimal
    counted: bool = True

    def __post_init__(self):
        if self.difference != self.actual_stock - self.system_stock:
            raise ValueError(
                f"difference ({self.difference}) must equal actual_stock - "
                f"system_stock ({self.actual_stock - self.system_stock})"
            )


@dataclass(frozen=True)
class OpnameRecord:
    """Immutable history of one count reconciliation."""

    id: UUID
    reference_number: str
    branch_id: UUID
    lines: tuple[OpnameLine, ...]
    created_at: datetime
    created_by_id: UUID
    notes: str | None = None

    @property
    def total_variance(self) -> Decimal:
        """Signed sum of all line differences.  Display only."""
        return sum((line.difference for line in self.lines), Decimal("0"))

    @property
    def has_changes(self) -> bool:
        return any(line.difference != 0 for line in self.lines)


@dataclass(frozen=True)
class PurchaseOrderLineRecord:
    """A committed purchase order line."""

    product_id: UUID
    quantity: Decimal
    unit_name: str
    conversion_factor: Decimal
    unit_cost: Decimal
    line_total: Decimal
    origin: LineOrigin


@dataclass(frozen=True)
class PurchaseOrderRecord:
    """Immutable history of one submitted purchase order."""

    id: UUID
    po_number: str
    destination_branch_id: UUID
    lines: tuple[PurchaseOrderLineRecord, ...]
    total_amount: Decimal
    created_at: datetime
    created_by_id: UUID
    supplier: str | None = None
    notes: str | None = None
    expected_date: date | None = None


@dataclass(frozen=True)
class AuditEntry:
    """One audit log row."""

    id: UUID
    action: str
    entity: str
    entity_id: str | None
    details: dict[str, Any] = field(default_factory=dict)
    actor_id: UUID | None = None
    created_at: datetime | None = None

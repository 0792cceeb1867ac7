"""
Replenishment Planner -- purchase order drafts and low-stock auto-fill.

Responsibility:
    Holds the operator's purchase order draft as an explicit mutable object
    (add / remove / aggregate lines) and computes auto-fill lines from
    minimum-stock thresholds and current branch stock.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Current stock is
    passed in as a mapping; services/replenishment_service.py reads it from
    the ledger and persists submitted orders.

Policy (preserve exactly):
    A product qualifies when ``stock <= min_stock_alert``.  The quantity to
    order is ``max(min_stock_alert - stock, min_stock_alert)``: at least the
    deficit, and never less than one full minimum-stock's worth.  This
    over-orders on purpose.  Products already in the draft are skipped so
    manual edits are never overwritten.  A computed quantity of 0 (threshold
    0, stock 0) yields no line.

Invariants enforced:
    - At most one line per (product, unit) in a draft: adding an existing
      product/unit increases its quantity instead of appending.
    - line_total == quantity * unit_cost, recomputed on every change.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal
from uuid import UUID

from stock_kernel.domain.dtos import LineOrigin
from stock_kernel.domain.units import ProductDefinition
from stock_kernel.exceptions import DraftLineNotFoundError, InvalidQuantityError
from stock_kernel.logging_config import get_logger

logger = get_logger("domain.replenishment")

ZERO = Decimal("0")


@dataclass(frozen=True)
class DraftLine:
    """
    One purchase order draft line.

    ``quantity`` is in ``unit_name``; ``unit_cost`` is the cost of one
    ``unit_name``.
    """

    product_id: UUID
    quantity: Decimal
    unit_name: str
    conversion_factor: Decimal
    unit_cost: Decimal
    origin: LineOrigin = LineOrigin.MANUAL
    supplier: str | None = None

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_cost

    @property
    def base_quantity(self) -> Decimal:
        return self.quantity * self.conversion_factor


def order_quantity(min_stock_alert: Decimal, stock: Decimal) -> Decimal | None:
    """
    Auto-fill quantity for one product, or None if it does not qualify.

    >>> order_quantity(Decimal(20), Decimal(5))
    Decimal('20')
    >>> order_quantity(Decimal(20), Decimal(25)) is None
    True
    """
    if stock > min_stock_alert:
        return None
    return max(min_stock_alert - stock, min_stock_alert)


def filter_by_supplier(
    products: Iterable[ProductDefinition],
    supplier: str | None,
) -> list[ProductDefinition]:
    """Supplier pre-filter.  None keeps every product."""
    if not supplier:
        return list(products)
    return [p for p in products if p.supplier == supplier]


def plan_auto_fill(
    destination_branch_id: UUID,
    products: Sequence[ProductDefinition],
    stock_at_destination: Mapping[UUID, Decimal],
    existing_lines: Sequence[DraftLine],
) -> list[DraftLine]:
    """
    Compute new draft lines for every under-threshold product.

    Args:
        destination_branch_id: Branch the order replenishes.
        products: Candidate products (already supplier-filtered).
        stock_at_destination: product_id -> base-unit stock at the
            destination.  Missing products count as 0.
        existing_lines: Lines already in the draft.  Their products are
            skipped.

    Returns:
        New lines in base units, priced at the product's base unit cost,
        in the order of ``products``.
    """
    present = {line.product_id for line in existing_lines}
    new_lines: list[DraftLine] = []

    for product in products:
        if product.id in present or not product.is_active:
            continue
        stock = stock_at_destination.get(product.id, ZERO)
        quantity = order_quantity(product.min_stock_alert, stock)
        if quantity is None or quantity <= 0:
            continue
        new_lines.append(
            DraftLine(
                product_id=product.id,
                quantity=quantity,
                unit_name=product.base_unit,
                conversion_factor=Decimal("1"),
                unit_cost=product.unit_cost,
                origin=LineOrigin.AUTO_FILL,
                supplier=product.supplier,
            )
        )
        present.add(product.id)

    logger.debug(
        "auto_fill_planned",
        extra={
            "destination_branch_id": str(destination_branch_id),
            "candidate_count": len(products),
            "line_count": len(new_lines),
        },
    )
    return new_lines


@dataclass
class PurchaseOrderDraft:
    """
    Mutable editing buffer for a purchase order.

    Contract: Owned by one operator session and passed into the service at
    commit time.  Never shared global state.
    """

    destination_branch_id: UUID
    supplier_filter: str | None = None
    lines: list[DraftLine] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((line.line_total for line in self.lines), ZERO)

    def has_product(self, product_id: UUID) -> bool:
        return any(line.product_id == product_id for line in self.lines)

    def _index_of(self, product_id: UUID, unit_name: str) -> int | None:
        for i, line in enumerate(self.lines):
            if line.product_id == product_id and line.unit_name == unit_name:
                return i
        return None

    def add_manual_line(
        self,
        product: ProductDefinition,
        quantity: Decimal,
        unit_name: str | None = None,
        unit_cost: Decimal | None = None,
    ) -> DraftLine:
        """
        Add ``quantity`` of ``product`` in ``unit_name`` (base if None).

        An existing line for the same product and unit grows instead of a
        second line being appended.  Default unit cost is the base unit cost
        times the unit's conversion factor.

        Raises:
            InvalidQuantityError: If quantity <= 0.
            UnknownUnitError: If the unit is not defined for the product.
        """
        if quantity <= 0:
            raise InvalidQuantityError(
                str(product.id), quantity, "purchase quantity must be positive",
            )
        unit = product.resolve_unit(unit_name)
        index = self._index_of(product.id, unit.name)

        if index is not None:
            existing = self.lines[index]
            updated = replace(existing, quantity=existing.quantity + quantity)
            self.lines[index] = updated
            return updated

        line = DraftLine(
            product_id=product.id,
            quantity=quantity,
            unit_name=unit.name,
            conversion_factor=unit.conversion_factor,
            unit_cost=(
                unit_cost
                if unit_cost is not None
                else product.unit_cost * unit.conversion_factor
            ),
            origin=LineOrigin.MANUAL,
            supplier=product.supplier,
        )
        self.lines.append(line)
        return line

    def remove_line(self, product_id: UUID, unit_name: str | None = None) -> list[DraftLine]:
        """
        Remove the product's line(s).  With ``unit_name``, only that unit.

        Raises:
            DraftLineNotFoundError: If nothing matched.
        """
        removed = [
            line for line in self.lines
            if line.product_id == product_id
            and (unit_name is None or line.unit_name == unit_name)
        ]
        if not removed:
            raise DraftLineNotFoundError(str(product_id), unit_name)
        self.lines = [line for line in self.lines if line not in removed]
        return removed

    def aggregate_duplicate(self, product_id: UUID) -> list[DraftLine]:
        """
        Collapse lines of ``product_id`` that share a unit into one line.

        The first line of each unit keeps its position, unit cost and origin;
        its quantity becomes the sum.  Returns the product's lines after
        aggregation.

        Raises:
            DraftLineNotFoundError: If the product is not in the draft.
        """
        if not self.has_product(product_id):
            raise DraftLineNotFoundError(str(product_id))

        merged: list[DraftLine] = []
        first_by_unit: dict[str, int] = {}
        for line in self.lines:
            if line.product_id != product_id:
                merged.append(line)
                continue
            pos = first_by_unit.get(line.unit_name)
            if pos is None:
                first_by_unit[line.unit_name] = len(merged)
                merged.append(line)
            else:
                kept = merged[pos]
                merged[pos] = replace(kept, quantity=kept.quantity + line.quantity)
        self.lines = merged
        return [line for line in self.lines if line.product_id == product_id]

    def extend(self, new_lines: Iterable[DraftLine]) -> None:
        """Append planner output.  Lines must not duplicate existing products."""
        for line in new_lines:
            if self._index_of(line.product_id, line.unit_name) is not None:
                raise ValueError(
                    f"Draft already has a line for product {line.product_id} "
                    f"in unit '{line.unit_name}'"
                )
            self.lines.append(line)

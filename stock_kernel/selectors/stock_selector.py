"""
StockSelector -- read-only views over the stock ledger.

Responsibility:
    Stock by branch, stock by product across branches, total stock, low-stock
    alerts and movement history.  These are the views dashboards and the
    replenishment step read from; the ledger is their single source.

Architecture position:
    Kernel > Selectors.  Reads StockEntryModel / StockMovementModel, returns
    DTOs.

Notes:
    Quantity columns are exact decimal text on SQLite, so threshold
    comparisons and sums are done in Python rather than in SQL.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import LowStockAlert, StockLevel, StockMovement
from stock_kernel.models.catalog import ProductModel
from stock_kernel.models.stock import StockEntryModel, StockMovementModel
from stock_kernel.selectors.base import BaseSelector

ZERO = Decimal("0")


class StockSelector(BaseSelector[StockEntryModel]):
    """Read-only stock views."""

    def stock_for_branch(self, branch_id: UUID) -> list[StockLevel]:
        rows = self.session.execute(
            select(StockEntryModel)
            .where(StockEntryModel.branch_id == branch_id)
            .order_by(StockEntryModel.product_id)
        ).scalars()
        return [row.to_dto() for row in rows]

    def stock_for_product(self, product_id: UUID) -> list[StockLevel]:
        """One level per branch that has an entry for the product."""
        rows = self.session.execute(
            select(StockEntryModel)
            .where(StockEntryModel.product_id == product_id)
            .order_by(StockEntryModel.branch_id)
        ).scalars()
        return [row.to_dto() for row in rows]

    def total_stock(self, product_id: UUID) -> Decimal:
        """Sum over all branches, in base units."""
        return sum(
            (level.quantity_on_hand for level in self.stock_for_product(product_id)),
            ZERO,
        )

    def low_stock_alerts(self, branch_id: UUID | None = None) -> list[LowStockAlert]:
        """
        Pairs at or below their product's minimum-stock threshold.

        With ``branch_id``, every active product is considered at that branch,
        so a product with no entry there (stock 0) alerts as well.  Without
        it, only existing entries are considered.  Products with a threshold
        of 0 never alert.
        """
        products = {
            p.id: p
            for p in self.session.execute(
                select(ProductModel).where(ProductModel.is_active.is_(True))
            ).scalars()
        }

        query = select(StockEntryModel)
        if branch_id is not None:
            query = query.where(StockEntryModel.branch_id == branch_id)
        levels: dict[tuple[UUID, UUID], Decimal] = {
            (row.product_id, row.branch_id): row.quantity_on_hand
            for row in self.session.execute(query).scalars()
        }
        if branch_id is not None:
            for product_id in products:
                levels.setdefault((product_id, branch_id), ZERO)

        alerts = []
        for (product_id, entry_branch_id), quantity in levels.items():
            product = products.get(product_id)
            if product is None or product.min_stock_alert <= 0:
                continue
            if quantity <= product.min_stock_alert:
                alerts.append(
                    LowStockAlert(
                        product_id=product_id,
                        branch_id=entry_branch_id,
                        sku=product.sku,
                        product_name=product.name,
                        quantity_on_hand=quantity,
                        min_stock_alert=product.min_stock_alert,
                    )
                )
        alerts.sort(key=lambda a: (str(a.branch_id), a.product_name, a.sku))
        return alerts

    def movements_for_operation(self, operation_id: UUID) -> list[StockMovement]:
        """Every ledger delta one transfer or opname produced."""
        rows = self.session.execute(
            select(StockMovementModel)
            .where(StockMovementModel.operation_id == operation_id)
            .order_by(StockMovementModel.created_at, StockMovementModel.id)
        ).scalars()
        return [row.to_dto() for row in rows]

    def movements_for_key(self, product_id: UUID, branch_id: UUID) -> list[StockMovement]:
        rows = self.session.execute(
            select(StockMovementModel)
            .where(
                StockMovementModel.product_id == product_id,
                StockMovementModel.branch_id == branch_id,
            )
            .order_by(StockMovementModel.created_at, StockMovementModel.id)
        ).scalars()
        return [row.to_dto() for row in rows]

"""
CatalogSelector -- read access to branches and product definitions.

Product rows are converted to ``ProductDefinition`` on the way out, so every
caller sees units that already passed the single-base-unit check.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import BranchInfo
from stock_kernel.domain.units import ProductDefinition
from stock_kernel.exceptions import (
    BranchInactiveError,
    BranchNotFoundError,
    ProductNotFoundError,
)
from stock_kernel.models.catalog import BranchModel, ProductModel
from stock_kernel.selectors.base import BaseSelector


class CatalogSelector(BaseSelector[ProductModel]):
    """Lookups for branches and products."""

    def get_branch(self, branch_id: UUID) -> BranchInfo:
        """
        Raises:
            BranchNotFoundError: If no branch has this id.
        """
        branch = self.session.get(BranchModel, branch_id)
        if branch is None:
            raise BranchNotFoundError(str(branch_id))
        return branch.to_dto()

    def require_active_branch(self, branch_id: UUID) -> BranchInfo:
        """
        Raises:
            BranchNotFoundError: If no branch has this id.
            BranchInactiveError: If the branch is deactivated.
        """
        branch = self.get_branch(branch_id)
        if not branch.is_active:
            raise BranchInactiveError(str(branch_id))
        return branch

    def find_branch_by_code(self, code: str) -> BranchInfo | None:
        branch = self.session.execute(
            select(BranchModel).where(BranchModel.code == code)
        ).scalar_one_or_none()
        return branch.to_dto() if branch is not None else None

    def list_branches(self, active_only: bool = False) -> list[BranchInfo]:
        query = select(BranchModel).order_by(BranchModel.code)
        if active_only:
            query = query.where(BranchModel.is_active.is_(True))
        return [b.to_dto() for b in self.session.execute(query).scalars()]

    def get_product(self, product_id: UUID) -> ProductDefinition:
        """
        Raises:
            ProductNotFoundError: If no product has this id.
        """
        product = self.session.get(ProductModel, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product.to_dto()

    def get_products(self, product_ids: Iterable[UUID]) -> dict[UUID, ProductDefinition]:
        """
        Load several products at once, keyed by id.

        Raises:
            ProductNotFoundError: For the first id that does not exist.
        """
        wanted = list(dict.fromkeys(product_ids))
        if not wanted:
            return {}
        rows = self.session.execute(
            select(ProductModel).where(ProductModel.id.in_(wanted))
        ).scalars()
        found = {row.id: row.to_dto() for row in rows}
        for product_id in wanted:
            if product_id not in found:
                raise ProductNotFoundError(str(product_id))
        return found

    def find_product_by_sku(self, sku: str) -> ProductDefinition | None:
        product = self.session.execute(
            select(ProductModel).where(ProductModel.sku == sku)
        ).scalar_one_or_none()
        return product.to_dto() if product is not None else None

    def list_products(
        self,
        active_only: bool = True,
        supplier: str | None = None,
        category: str | None = None,
    ) -> list[ProductDefinition]:
        """Products ordered by name, optionally filtered."""
        query = select(ProductModel).order_by(ProductModel.name, ProductModel.sku)
        if active_only:
            query = query.where(ProductModel.is_active.is_(True))
        if supplier is not None:
            query = query.where(ProductModel.supplier == supplier)
        if category is not None:
            query = query.where(ProductModel.category == category)
        return [p.to_dto() for p in self.session.execute(query).scalars()]

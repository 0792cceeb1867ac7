"""
CatalogService -- registration of branches and products.

Responsibility:
    Creates branch and product rows after validating the unit set (one base
    unit, positive factors), barcodes and SKU uniqueness.  A product without
    a SKU gets one from the SkuAllocator.

Architecture position:
    Kernel > Services.  Flush-only.

Failure modes:
    - DuplicateBranchError / DuplicateProductError on an existing code/SKU.
    - InvalidUnitSetError / InvalidConversionFactorError from the unit rules.
    - InvalidBarcodeError for a unit barcode outside ``[0-9A-Za-z-]+``.
    - InvalidCategoryError when a SKU must be allocated and no category is
      given.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import BranchInfo
from stock_kernel.domain.sku import validate_barcode
from stock_kernel.domain.units import ProductDefinition, ProductUnit
from stock_kernel.exceptions import (
    BranchNotFoundError,
    ConcurrentModificationRetry,
    DuplicateBranchError,
    DuplicateProductError,
    InvalidBarcodeError,
    InvalidCategoryError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.audit_event import AuditAction
from stock_kernel.models.catalog import BranchModel, ProductModel, ProductUnitModel
from stock_kernel.selectors.catalog_selector import CatalogSelector
from stock_kernel.services.audit_service import AuditService
from stock_kernel.services.base import BaseService
from stock_kernel.services.sku_service import SkuAllocator

logger = get_logger("services.catalog")


class CatalogService(BaseService[ProductModel]):

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditService | None = None,
        sku_allocator: SkuAllocator | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit or AuditService(session, self._clock)
        self._skus = sku_allocator or SkuAllocator(session, self._clock, self._audit)
        self._catalog = CatalogSelector(session)

    def register_branch(
        self,
        code: str,
        name: str,
        actor_id: UUID,
        is_active: bool = True,
    ) -> BranchInfo:
        if self._catalog.find_branch_by_code(code) is not None:
            raise DuplicateBranchError(code)
        branch = BranchModel(
            code=code,
            name=name,
            is_active=is_active,
            created_by_id=actor_id,
            created_at=self._clock.now(),
            updated_at=self._clock.now(),
        )
        self.session.add(branch)
        self.session.flush()
        self._audit.record(
            AuditAction.CREATE_BRANCH,
            entity="branch",
            entity_id=branch.id,
            details={"code": code, "name": name},
            actor_id=actor_id,
        )
        logger.info("branch_registered", extra={"branch_id": str(branch.id), "code": code})
        return branch.to_dto()

    def set_branch_active(self, branch_id: UUID, is_active: bool, actor_id: UUID) -> BranchInfo:
        branch = self.session.get(BranchModel, branch_id)
        if branch is None:
            raise BranchNotFoundError(str(branch_id))
        if branch.is_active != is_active:
            branch.is_active = is_active
            branch.updated_by_id = actor_id
            self.session.flush()
            self._audit.record(
                AuditAction.UPDATE_BRANCH,
                entity="branch",
                entity_id=branch.id,
                details={"is_active": is_active},
                actor_id=actor_id,
            )
        return branch.to_dto()

    def register_product(
        self,
        name: str,
        base_unit: str,
        actor_id: UUID,
        *,
        sku: str | None = None,
        category: str | None = None,
        units: Sequence[ProductUnit] = (),
        min_stock_alert: Decimal = Decimal("0"),
        unit_cost: Decimal = Decimal("0"),
        supplier: str | None = None,
    ) -> ProductDefinition:
        """
        Register a product.  Without ``sku`` one is allocated from
        ``category`` for today's date.

        Raises:
            InvalidCategoryError: If no SKU is given and category is empty.
            DuplicateProductError: If the given SKU is already taken.
            ConcurrentModificationRetry: If an allocated SKU was taken by a
                concurrent registration.
        """
        product_id = uuid4()
        # Validate units before any SKU is consumed.
        definition = ProductDefinition(
            id=product_id,
            sku=sku or "",
            name=name,
            base_unit=base_unit,
            units=tuple(units),
            min_stock_alert=min_stock_alert,
            unit_cost=unit_cost,
            supplier=supplier,
            category=category,
        )
        for unit in definition.units:
            if unit.barcode is not None and not validate_barcode(unit.barcode):
                raise InvalidBarcodeError(str(product_id), unit.name, unit.barcode)

        allocated = sku is None
        if allocated:
            if not category:
                raise InvalidCategoryError(category)
            sku = self._skus.allocate(category, actor_id)
        elif self._catalog.find_product_by_sku(sku) is not None:
            raise DuplicateProductError(sku)

        now = self._clock.now()
        product = ProductModel(
            id=product_id,
            sku=sku,
            name=name,
            base_unit=definition.base_unit,
            category=category,
            supplier=supplier,
            min_stock_alert=min_stock_alert,
            unit_cost=unit_cost,
            is_active=True,
            created_by_id=actor_id,
            created_at=now,
            updated_at=now,
            units=[
                ProductUnitModel(
                    name=unit.name,
                    conversion_factor=unit.conversion_factor,
                    price=unit.price,
                    barcode=unit.barcode,
                )
                for unit in definition.units
            ],
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(product)
            self.session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            logger.warning("product_sku_conflict", extra={"sku": sku, "allocated": allocated})
            if allocated:
                raise ConcurrentModificationRetry("Product", sku) from exc
            raise DuplicateProductError(sku) from exc

        self._audit.record(
            AuditAction.CREATE_PRODUCT,
            entity="product",
            entity_id=product_id,
            details={
                "sku": sku,
                "name": name,
                "base_unit": definition.base_unit,
                "units": [u.name for u in definition.units],
            },
            actor_id=actor_id,
        )
        logger.info(
            "product_registered",
            extra={"product_id": str(product_id), "sku": sku, "unit_count": len(definition.units)},
        )
        return product.to_dto()

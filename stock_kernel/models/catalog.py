"""
Module: stock_kernel.models.catalog
Responsibility: ORM persistence for branches, products and product units --
    the read-mostly reference data every stock operation resolves against.
Architecture position: Kernel > Models.  May import from db/ and domain/
    DTOs only.  MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - Product SKU is unique (uq_product_sku).
    - A unit name appears at most once per product (uq_product_unit_name).
    - The single-base-unit rule is validated by ProductDefinition when a
      row is converted with ``to_dto()`` and by CatalogService at
      registration.

Failure modes:
    - IntegrityError on duplicate SKU or duplicate unit name.
    - InvalidUnitSetError / InvalidConversionFactorError from ``to_dto()``
      if a row was edited outside the service into an invalid state.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_kernel.domain.dtos import BranchInfo
from stock_kernel.domain.units import ProductDefinition, ProductUnit


class BranchModel(TrackedBase):
    """
    A store or warehouse location.

    Contract:
        Branches are peers.  Deactivated branches keep their stock entries
        and history but cannot take part in new transfers.
    """

    __tablename__ = "branches"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dto(self) -> BranchInfo:
        return BranchInfo(
            id=self.id,
            code=self.code,
            name=self.name,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<Branch {self.code}: {self.name}>"


class ProductModel(TrackedBase):
    """
    Product master row.

    Contract:
        ``min_stock_alert`` is in base units.  ``unit_cost`` is the cost of
        one base unit.  Alternate units live in ``units``.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_product_sku"),
        Index("idx_product_supplier", "supplier"),
        Index("idx_product_category", "category"),
    )

    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    base_unit: Mapped[str] = mapped_column(String(50), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    supplier: Mapped[str | None] = mapped_column(String(255), nullable=True)
    min_stock_alert: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    units: Mapped[list[ProductUnitModel]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductUnitModel.name",
    )

    def to_dto(self) -> ProductDefinition:
        return ProductDefinition(
            id=self.id,
            sku=self.sku,
            name=self.name,
            base_unit=self.base_unit,
            units=tuple(u.to_dto() for u in self.units),
            min_stock_alert=self.min_stock_alert,
            unit_cost=self.unit_cost,
            supplier=self.supplier,
            category=self.category,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<Product {self.sku}: {self.name}>"


class ProductUnitModel(Base):
    """One alternate (or explicitly listed base) sale unit of a product."""

    __tablename__ = "product_units"

    __table_args__ = (
        UniqueConstraint("product_id", "name", name="uq_product_unit_name"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    conversion_factor: Mapped[Decimal] = mapped_column(nullable=False)
    price: Mapped[Decimal | None] = mapped_column(nullable=True)
    barcode: Mapped[str | None] = mapped_column(String(100), nullable=True)

    product: Mapped[ProductModel] = relationship(back_populates="units")

    def to_dto(self) -> ProductUnit:
        return ProductUnit(
            name=self.name,
            conversion_factor=self.conversion_factor,
            price=self.price,
            barcode=self.barcode,
        )

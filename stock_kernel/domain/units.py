"""
Unit Conversion Table -- per-product sale units and their base-unit factors.

Responsibility:
    Describes a product's sale units and converts quantities between any of
    them and the canonical base unit in which all stock is stored.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Leaf module: depends
    on nothing but exceptions and logging.

Invariants enforced:
    - Exactly one unit per product has conversion_factor == 1: the base unit,
      which may be implicit (not listed in ``units``).
    - Every other unit has conversion_factor > 0.
    - Conversion is multiplication by the unit's factor.  No rounding is done
      here; callers round to the configured fixed-point precision.

Failure modes:
    - UnknownUnitError: unit name is neither base nor a listed alternate.
    - InvalidConversionFactorError: factor <= 0 at construction.
    - InvalidUnitSetError: a second factor-1 unit, or the base unit listed
      with a factor other than 1.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from uuid import UUID

from stock_kernel.exceptions import (
    InvalidConversionFactorError,
    InvalidUnitSetError,
    UnknownUnitError,
)
from stock_kernel.logging_config import get_logger

logger = get_logger("domain.units")

BASE_CONVERSION_FACTOR = Decimal("1")


@dataclass(frozen=True)
class ProductUnit:
    """
    One sale unit of a product (e.g. "Box" = 12 "Pcs").

    Contract: Immutable.  ``conversion_factor`` is relative to the base unit.
    ``price`` and ``barcode`` are optional unit-specific overrides.
    """

    name: str
    conversion_factor: Decimal
    price: Decimal | None = None
    barcode: str | None = None

    def __post_init__(self):
        if not isinstance(self.conversion_factor, Decimal):
            try:
                object.__setattr__(
                    self, "conversion_factor", Decimal(str(self.conversion_factor))
                )
            except InvalidOperation as exc:
                raise ValueError(
                    f"Invalid conversion factor for unit {self.name!r}: "
                    f"{self.conversion_factor!r}"
                ) from exc
        if not self.name or not self.name.strip():
            raise ValueError("Unit name is required")
        object.__setattr__(self, "name", self.name.strip())

    @property
    def is_base(self) -> bool:
        return self.conversion_factor == BASE_CONVERSION_FACTOR


@dataclass(frozen=True)
class ProductDefinition:
    """
    A product as the stock kernel sees it.

    Contract: Immutable.  ``min_stock_alert`` is expressed in base units.
    ``unit_cost`` is the cost of one base unit (used to price purchase
    order lines).  ``units`` lists alternate units and may also list the
    base unit itself with factor 1.

    Raises:
        InvalidConversionFactorError: if any unit has factor <= 0.
        InvalidUnitSetError: if the single-base-unit rule is broken.
    """

    id: UUID
    sku: str
    name: str
    base_unit: str
    units: tuple[ProductUnit, ...] = ()
    min_stock_alert: Decimal = Decimal("0")
    unit_cost: Decimal = Decimal("0")
    supplier: str | None = None
    category: str | None = None
    is_active: bool = True

    def __post_init__(self):
        object.__setattr__(self, "units", tuple(self.units))
        if not self.base_unit or not self.base_unit.strip():
            raise InvalidUnitSetError(str(self.id), "base unit name is required")
        object.__setattr__(self, "base_unit", self.base_unit.strip())

        if self.min_stock_alert < 0:
            raise ValueError(
                f"min_stock_alert cannot be negative (got {self.min_stock_alert})"
            )

        seen: set[str] = set()
        for unit in self.units:
            if unit.conversion_factor <= 0:
                logger.warning(
                    "product_unit_factor_invalid",
                    extra={
                        "product_id": str(self.id),
                        "unit_name": unit.name,
                        "conversion_factor": str(unit.conversion_factor),
                    },
                )
                raise InvalidConversionFactorError(
                    str(self.id), unit.name, unit.conversion_factor,
                )
            if unit.name in seen:
                raise InvalidUnitSetError(
                    str(self.id), f"unit '{unit.name}' is listed twice",
                )
            seen.add(unit.name)

            if unit.name == self.base_unit and not unit.is_base:
                raise InvalidUnitSetError(
                    str(self.id),
                    f"base unit '{unit.name}' must have conversion factor 1, "
                    f"got {unit.conversion_factor}",
                )
            if unit.name != self.base_unit and unit.is_base:
                raise InvalidUnitSetError(
                    str(self.id),
                    f"unit '{unit.name}' has conversion factor 1 but the base "
                    f"unit is '{self.base_unit}'",
                )

    @property
    def base(self) -> ProductUnit:
        """The base unit, whether listed or implicit."""
        for unit in self.units:
            if unit.name == self.base_unit:
                return unit
        return ProductUnit(name=self.base_unit, conversion_factor=BASE_CONVERSION_FACTOR)

    @property
    def unit_names(self) -> tuple[str, ...]:
        names = [self.base_unit]
        names.extend(u.name for u in self.units if u.name != self.base_unit)
        return tuple(names)

    def resolve_unit(self, unit_name: str | None) -> ProductUnit:
        """
        Look up a unit by name.  ``None`` means the base unit.

        Raises:
            UnknownUnitError: If the unit is not defined for this product.
        """
        if unit_name is None:
            return self.base
        name = unit_name.strip()
        if name == self.base_unit:
            return self.base
        for unit in self.units:
            if unit.name == name:
                return unit
        raise UnknownUnitError(str(self.id), unit_name)


def to_base_units(
    product: ProductDefinition,
    quantity: Decimal,
    unit_name: str | None,
) -> Decimal:
    """
    Convert ``quantity`` expressed in ``unit_name`` to base units.

    Pure function: multiplies by the unit's conversion factor (1 for base).

    Raises:
        UnknownUnitError: If ``unit_name`` is not defined for the product.
    """
    unit = product.resolve_unit(unit_name)
    return quantity * unit.conversion_factor


def from_base_units(
    product: ProductDefinition,
    base_quantity: Decimal,
    unit_name: str | None,
) -> Decimal:
    """
    Express a base-unit quantity in ``unit_name``.

    Inverse of :func:`to_base_units` through the same factor.

    Raises:
        UnknownUnitError: If ``unit_name`` is not defined for the product.
    """
    unit = product.resolve_unit(unit_name)
    return base_quantity / unit.conversion_factor

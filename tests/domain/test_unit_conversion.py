"""
Unit conversion table: base-unit resolution, conversion both ways, and the
single-base-unit rule.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.units import (
    ProductDefinition,
    ProductUnit,
    from_base_units,
    to_base_units,
)
from stock_kernel.exceptions import (
    InvalidConversionFactorError,
    InvalidUnitSetError,
    UnknownUnitError,
)


def _product(units=(), base_unit="Pcs", **kwargs):
    return ProductDefinition(
        id=uuid4(),
        sku="TST-001",
        name="Instant Noodles",
        base_unit=base_unit,
        units=units,
        **kwargs,
    )


class TestResolveUnit:

    def test_none_means_base_unit(self):
        product = _product()
        unit = product.resolve_unit(None)
        assert unit.name == "Pcs"
        assert unit.conversion_factor == Decimal("1")

    def test_base_unit_is_implicit(self):
        product = _product(units=(ProductUnit("Box", Decimal("12")),))
        assert product.resolve_unit("Pcs").is_base
        assert product.unit_names == ("Pcs", "Box")

    def test_base_unit_may_be_listed(self):
        product = _product(
            units=(ProductUnit("Pcs", Decimal("1"), price=Decimal("3500")),
                   ProductUnit("Box", Decimal("12"))),
        )
        assert product.resolve_unit(None).price == Decimal("3500")
        assert product.unit_names == ("Pcs", "Box")

    def test_names_are_trimmed(self):
        product = _product(units=(ProductUnit(" Box ", Decimal("12")),))
        assert product.resolve_unit("Box ").name == "Box"

    def test_unknown_unit_rejected(self):
        product = _product(units=(ProductUnit("Box", Decimal("12")),))
        with pytest.raises(UnknownUnitError) as exc_info:
            product.resolve_unit("Crate")
        assert exc_info.value.unit_name == "Crate"
        assert exc_info.value.code == "UNKNOWN_UNIT"


class TestConversion:

    def test_box_to_base(self):
        product = _product(units=(ProductUnit("Box", Decimal("12")),))
        assert to_base_units(product, Decimal("3"), "Box") == Decimal("36")

    def test_base_is_identity(self):
        product = _product()
        assert to_base_units(product, Decimal("7"), None) == Decimal("7")
        assert to_base_units(product, Decimal("7"), "Pcs") == Decimal("7")

    def test_fractional_factor(self):
        product = _product(
            base_unit="Kg", units=(ProductUnit("Gram", Decimal("0.001")),),
        )
        assert to_base_units(product, Decimal("250"), "Gram") == Decimal("0.250")

    def test_from_base_inverts(self):
        product = _product(units=(ProductUnit("Box", Decimal("12")),))
        assert from_base_units(product, Decimal("36"), "Box") == Decimal("3")

    def test_unknown_unit_in_conversion(self):
        with pytest.raises(UnknownUnitError):
            to_base_units(_product(), Decimal("1"), "Box")

    def test_factor_coerced_from_string(self):
        unit = ProductUnit("Pack", "6")
        assert unit.conversion_factor == Decimal("6")


class TestSingleBaseUnitRule:

    @pytest.mark.parametrize("factor", [Decimal("0"), Decimal("-12")])
    def test_non_positive_factor_rejected(self, factor):
        with pytest.raises(InvalidConversionFactorError) as exc_info:
            _product(units=(ProductUnit("Box", factor),))
        assert exc_info.value.factor == factor

    def test_second_factor_one_unit_rejected(self):
        with pytest.raises(InvalidUnitSetError):
            _product(units=(ProductUnit("Each", Decimal("1")),))

    def test_base_unit_listed_with_other_factor_rejected(self):
        with pytest.raises(InvalidUnitSetError):
            _product(units=(ProductUnit("Pcs", Decimal("2")),))

    def test_duplicate_unit_rejected(self):
        with pytest.raises(InvalidUnitSetError):
            _product(units=(ProductUnit("Box", Decimal("12")),
                            ProductUnit("Box", Decimal("24"))))

    def test_base_unit_required(self):
        with pytest.raises(InvalidUnitSetError):
            _product(base_unit="  ")

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValueError):
            _product(min_stock_alert=Decimal("-1"))

    def test_unit_name_required(self):
        with pytest.raises(ValueError):
            ProductUnit("", Decimal("12"))

    def test_non_numeric_factor_rejected(self):
        with pytest.raises(ValueError):
            ProductUnit("Box", "twelve")

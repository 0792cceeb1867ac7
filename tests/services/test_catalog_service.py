"""CatalogService: branch and product registration rules."""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.units import ProductUnit
from stock_kernel.exceptions import (
    BranchNotFoundError,
    ConcurrentModificationRetry,
    DuplicateBranchError,
    DuplicateProductError,
    InvalidBarcodeError,
    InvalidCategoryError,
    InvalidConversionFactorError,
    InvalidUnitSetError,
)
from stock_kernel.selectors.catalog_selector import CatalogSelector
from stock_kernel.selectors.history_selector import HistorySelector


class TestBranches:

    def test_register(self, catalog_service, session, actor_id):
        branch = catalog_service.register_branch("WH", "Central Warehouse", actor_id)
        assert CatalogSelector(session).get_branch(branch.id) == branch
        assert branch.is_active

    def test_duplicate_code(self, catalog_service, actor_id):
        catalog_service.register_branch("WH", "Central", actor_id)
        with pytest.raises(DuplicateBranchError):
            catalog_service.register_branch("WH", "Another", actor_id)

    def test_deactivate(self, catalog_service, session, branch_factory, actor_id):
        branch = branch_factory()
        updated = catalog_service.set_branch_active(branch.id, False, actor_id)

        assert not updated.is_active
        assert CatalogSelector(session).list_branches(active_only=True) == []
        actions = [e.action for e in HistorySelector(session).audit_entries(entity="branch")]
        assert actions == ["create_branch", "update_branch"]

    def test_set_same_state_not_audited(self, catalog_service, session, branch_factory, actor_id):
        branch = branch_factory()
        catalog_service.set_branch_active(branch.id, True, actor_id)
        assert len(HistorySelector(session).audit_entries(entity="branch")) == 1

    def test_unknown_branch(self, catalog_service, actor_id):
        with pytest.raises(BranchNotFoundError):
            catalog_service.set_branch_active(uuid4(), False, actor_id)


class TestProducts:

    def test_register_with_units(self, catalog_service, session, actor_id):
        product = catalog_service.register_product(
            "Instant Noodles",
            "Pcs",
            actor_id,
            sku="NDL-1",
            units=(ProductUnit("Box", Decimal("12"), barcode="8991234567890"),),
            min_stock_alert=Decimal("24"),
            unit_cost=Decimal("3000"),
            supplier="PT Sumber",
            category="Food",
        )

        stored = CatalogSelector(session).get_product(product.id)
        assert stored.sku == "NDL-1"
        assert stored.resolve_unit("Box").conversion_factor == Decimal("12")
        assert stored.min_stock_alert == Decimal("24")
        assert CatalogSelector(session).find_product_by_sku("NDL-1").id == product.id

    def test_sku_allocated_from_category(self, catalog_service, actor_id):
        product = catalog_service.register_product(
            "LED TV", "Unit", actor_id, category="Electronics",
        )
        assert product.sku == "ELE-20240101-001"

    def test_no_sku_no_category(self, catalog_service, actor_id):
        with pytest.raises(InvalidCategoryError):
            catalog_service.register_product("Mystery", "Pcs", actor_id)

    def test_duplicate_sku(self, catalog_service, actor_id):
        catalog_service.register_product("A", "Pcs", actor_id, sku="DUP-1")
        with pytest.raises(DuplicateProductError):
            catalog_service.register_product("B", "Pcs", actor_id, sku="DUP-1")

    def test_allocated_sku_skips_manual_code(self, catalog_service, actor_id):
        catalog_service.register_product(
            "Manual TV", "Unit", actor_id, sku="ELE-20240101-001", category="Electronics",
        )
        auto = catalog_service.register_product("Auto TV", "Unit", actor_id, category="Electronics")
        following = catalog_service.register_product("Radio", "Unit", actor_id, category="Electronics")

        assert auto.sku == "ELE-20240101-002"
        assert following.sku == "ELE-20240101-003"

    def test_allocated_sku_jumps_past_highest_manual_code(self, catalog_service, actor_id):
        catalog_service.register_product("Fan", "Unit", actor_id, category="Electronics")
        catalog_service.register_product(
            "Manual TV", "Unit", actor_id, sku="ELE-20240101-005", category="Electronics",
        )
        auto = catalog_service.register_product("Auto TV", "Unit", actor_id, category="Electronics")
        assert auto.sku == "ELE-20240101-006"

    def test_taken_allocated_sku_is_a_retry_signal(
        self, catalog_service, session, actor_id, monkeypatch,
    ):
        catalog_service.register_product("A", "Pcs", actor_id, sku="TAKEN-1")
        monkeypatch.setattr(
            catalog_service._skus, "allocate", lambda category, actor_id: "TAKEN-1",
        )

        with pytest.raises(ConcurrentModificationRetry):
            catalog_service.register_product("B", "Pcs", actor_id, category="Food")
        assert CatalogSelector(session).find_product_by_sku("TAKEN-1").name == "A"

    def test_bad_barcode(self, catalog_service, actor_id):
        with pytest.raises(InvalidBarcodeError):
            catalog_service.register_product(
                "A", "Pcs", actor_id, sku="A-1",
                units=(ProductUnit("Box", Decimal("12"), barcode="12 34"),),
            )

    def test_bad_units_consume_no_sku(self, catalog_service, session, actor_id):
        with pytest.raises(InvalidConversionFactorError):
            catalog_service.register_product(
                "A", "Pcs", actor_id, category="Electronics",
                units=(ProductUnit("Box", Decimal("0")),),
            )
        product = catalog_service.register_product(
            "B", "Pcs", actor_id, category="Electronics",
        )
        assert product.sku == "ELE-20240101-001"

    def test_second_base_unit_rejected(self, catalog_service, actor_id):
        with pytest.raises(InvalidUnitSetError):
            catalog_service.register_product(
                "A", "Pcs", actor_id, sku="A-1", units=(ProductUnit("Each", Decimal("1")),),
            )

    def test_list_filters(self, product_factory, session):
        product_factory("Oil", supplier="PT Sumber", category="Food")
        product_factory("Soap", supplier="CV Lain", category="Home")
        selector = CatalogSelector(session)

        assert [p.name for p in selector.list_products(supplier="PT Sumber")] == ["Oil"]
        assert [p.name for p in selector.list_products(category="Home")] == ["Soap"]
        assert [p.name for p in selector.list_products()] == ["Oil", "Soap"]

    def test_product_audited(self, catalog_service, session, actor_id):
        product = catalog_service.register_product("A", "Pcs", actor_id, sku="A-1")
        (entry,) = HistorySelector(session).audit_entries(
            entity="product", entity_id=str(product.id),
        )
        assert entry.details["sku"] == "A-1"

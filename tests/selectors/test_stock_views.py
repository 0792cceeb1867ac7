"""Stock views: per-branch, per-product, totals and low-stock alerts."""

from decimal import Decimal

import pytest

from stock_kernel.selectors.stock_selector import StockSelector


@pytest.fixture
def selector(session):
    return StockSelector(session)


class TestStockViews:

    def test_stock_for_branch(self, selector, branch_factory, product_factory, seed_stock):
        store, other = branch_factory(), branch_factory()
        rice, sugar = product_factory("Rice"), product_factory("Sugar")
        seed_stock(rice.id, store.id, 4)
        seed_stock(sugar.id, store.id, 6)
        seed_stock(rice.id, other.id, 1)

        levels = {lvl.product_id: lvl.quantity_on_hand for lvl in selector.stock_for_branch(store.id)}
        assert levels == {rice.id: Decimal("4"), sugar.id: Decimal("6")}

    def test_total_stock(self, selector, branch_factory, product_factory, seed_stock):
        rice = product_factory("Rice")
        for quantity in (3, "4.5", 10):
            seed_stock(rice.id, branch_factory().id, quantity)
        assert selector.total_stock(rice.id) == Decimal("17.5")

    def test_total_for_unstocked_product(self, selector, product_factory):
        assert selector.total_stock(product_factory().id) == 0


class TestLowStockAlerts:

    def test_at_or_below_threshold(self, selector, branch_factory, product_factory, seed_stock):
        store = branch_factory()
        low = product_factory("Low", min_stock_alert="20")
        edge = product_factory("Edge", min_stock_alert="20")
        fine = product_factory("Fine", min_stock_alert="20")
        seed_stock(low.id, store.id, 5)
        seed_stock(edge.id, store.id, 20)
        seed_stock(fine.id, store.id, 25)

        alerts = selector.low_stock_alerts(store.id)
        assert [a.product_name for a in alerts] == ["Edge", "Low"]
        low_alert = alerts[1]
        assert low_alert.deficit == Decimal("15")

    def test_missing_entry_alerts_for_branch(self, selector, branch_factory, product_factory):
        store = branch_factory()
        product = product_factory("Oil", min_stock_alert="5")
        (alert,) = selector.low_stock_alerts(store.id)
        assert alert.product_id == product.id
        assert alert.quantity_on_hand == 0

    def test_zero_threshold_never_alerts(self, selector, branch_factory, product_factory):
        store = branch_factory()
        product_factory("Salt", min_stock_alert="0")
        assert selector.low_stock_alerts(store.id) == []

    def test_without_branch_uses_existing_entries(
        self, selector, branch_factory, product_factory, seed_stock,
    ):
        a, b = branch_factory(), branch_factory()
        oil = product_factory("Oil", min_stock_alert="10")
        seed_stock(oil.id, a.id, 2)
        seed_stock(oil.id, b.id, 50)

        alerts = selector.low_stock_alerts()
        assert [(x.branch_id, x.quantity_on_hand) for x in alerts] == [(a.id, Decimal("2"))]

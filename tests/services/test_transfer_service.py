"""
TransferService: all-or-nothing movement between branches, conservation of
total stock, unit conversion on transfer lines and the rejection record.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.dtos import MovementType, TransferLineRequest, TransferStatus
from stock_kernel.domain.units import ProductUnit
from stock_kernel.exceptions import (
    BranchInactiveError,
    BranchNotFoundError,
    InsufficientStockError,
    InvalidQuantityError,
    InvalidTransferError,
    ProductNotFoundError,
    UnknownUnitError,
)
from stock_kernel.selectors.history_selector import HistorySelector
from stock_kernel.selectors.stock_selector import StockSelector
from stock_kernel.services.transfer_service import TransferService


@pytest.fixture
def service(session, clock, ledger):
    return TransferService(session, clock, ledger=ledger)


@pytest.fixture
def warehouse(branch_factory):
    return branch_factory("WH", "Central Warehouse")


@pytest.fixture
def store(branch_factory):
    return branch_factory("ST1", "Store One")


@pytest.fixture
def noodles(product_factory, box_of_twelve):
    return product_factory("Instant Noodles", units=box_of_twelve)


def _line(product, quantity, unit=None):
    return TransferLineRequest(product.id, Decimal(str(quantity)), unit)


class TestTransferScenario:

    def test_full_stock_then_one_more_fails(
        self, service, ledger, warehouse, store, noodles, seed_stock, actor_id,
    ):
        seed_stock(noodles.id, warehouse.id, 10)

        record = service.transfer(warehouse.id, store.id, [_line(noodles, 10)], actor_id)

        assert record.status == TransferStatus.APPLIED
        assert ledger.get(noodles.id, warehouse.id) == Decimal("0")
        assert ledger.get(noodles.id, store.id) == Decimal("10")

        with pytest.raises(InsufficientStockError) as exc_info:
            service.transfer(warehouse.id, store.id, [_line(noodles, 1)], actor_id)

        assert exc_info.value.product_id == str(noodles.id)
        assert exc_info.value.branch_id == str(warehouse.id)
        assert exc_info.value.requested == Decimal("1")
        assert exc_info.value.available == Decimal("0")
        assert ledger.get(noodles.id, store.id) == Decimal("10")


class TestAllOrNothing:

    def test_one_short_line_blocks_all(
        self, service, ledger, warehouse, store, product_factory, seed_stock, actor_id,
    ):
        rice, sugar = product_factory("Rice"), product_factory("Sugar")
        seed_stock(rice.id, warehouse.id, 50)
        seed_stock(sugar.id, warehouse.id, 2)

        with pytest.raises(InsufficientStockError) as exc_info:
            service.transfer(
                warehouse.id, store.id, [_line(rice, 20), _line(sugar, 5)], actor_id,
            )

        assert exc_info.value.product_id == str(sugar.id)
        assert ledger.get(rice.id, warehouse.id) == Decimal("50")
        assert ledger.get(rice.id, store.id) == Decimal("0")
        assert ledger.get(sugar.id, warehouse.id) == Decimal("2")

    def test_split_lines_checked_together(
        self, service, ledger, warehouse, store, noodles, seed_stock, actor_id,
    ):
        seed_stock(noodles.id, warehouse.id, 10)

        with pytest.raises(InsufficientStockError) as exc_info:
            service.transfer(
                warehouse.id, store.id, [_line(noodles, 6), _line(noodles, 6)], actor_id,
            )
        assert exc_info.value.requested == Decimal("12")
        assert ledger.get(noodles.id, warehouse.id) == Decimal("10")

    def test_invalid_line_blocks_all(
        self, service, ledger, warehouse, store, product_factory, seed_stock, actor_id,
    ):
        rice = product_factory("Rice")
        seed_stock(rice.id, warehouse.id, 10)

        with pytest.raises(UnknownUnitError):
            service.transfer(
                warehouse.id, store.id, [_line(rice, 1), _line(rice, 1, "Crate")], actor_id,
            )
        assert ledger.get(rice.id, warehouse.id) == Decimal("10")


class TestConservation:

    def test_total_across_branches_unchanged(
        self, service, session, warehouse, store, branch_factory, noodles, seed_stock, actor_id,
    ):
        other = branch_factory()
        seed_stock(noodles.id, warehouse.id, 100)
        seed_stock(noodles.id, store.id, 7)
        selector = StockSelector(session)
        before = selector.total_stock(noodles.id)

        service.transfer(warehouse.id, store.id, [_line(noodles, 30)], actor_id)
        service.transfer(store.id, other.id, [_line(noodles, 12)], actor_id)

        assert selector.total_stock(noodles.id) == before
        levels = {
            level.branch_id: level.quantity_on_hand
            for level in selector.stock_for_product(noodles.id)
        }
        assert levels == {
            warehouse.id: Decimal("70"),
            store.id: Decimal("25"),
            other.id: Decimal("12"),
        }

    def test_movements_mirror_each_other(
        self, service, session, warehouse, store, noodles, seed_stock, actor_id,
    ):
        seed_stock(noodles.id, warehouse.id, 10)
        record = service.transfer(warehouse.id, store.id, [_line(noodles, 4)], actor_id)

        movements = StockSelector(session).movements_for_operation(record.id)
        by_type = {m.movement_type: m for m in movements}
        assert by_type[MovementType.TRANSFER_OUT].delta == Decimal("-4")
        assert by_type[MovementType.TRANSFER_IN].delta == Decimal("4")
        assert sum(m.delta for m in movements) == 0


class TestUnits:

    def test_box_converted_to_base(
        self, service, ledger, warehouse, store, noodles, seed_stock, actor_id,
    ):
        seed_stock(noodles.id, warehouse.id, 30)
        record = service.transfer(warehouse.id, store.id, [_line(noodles, 2, "Box")], actor_id)

        line = record.lines[0]
        assert line.unit_name == "Box"
        assert line.conversion_factor == Decimal("12")
        assert line.base_quantity == Decimal("24")
        assert ledger.get(noodles.id, warehouse.id) == Decimal("6")
        assert ledger.get(noodles.id, store.id) == Decimal("24")

    def test_box_short_in_base_units(
        self, service, warehouse, store, noodles, seed_stock, actor_id,
    ):
        seed_stock(noodles.id, warehouse.id, 23)
        with pytest.raises(InsufficientStockError) as exc_info:
            service.transfer(warehouse.id, store.id, [_line(noodles, 2, "Box")], actor_id)
        assert exc_info.value.requested == Decimal("24")

    def test_rounds_to_zero_rejected(
        self, service, warehouse, store, product_factory, seed_stock, actor_id,
    ):
        flour = product_factory(
            "Flour", base_unit="Kg", units=(ProductUnit("Gram", Decimal("0.001")),),
        )
        seed_stock(flour.id, warehouse.id, 5)
        with pytest.raises(InvalidQuantityError):
            service.transfer(
                warehouse.id, store.id, [_line(flour, "0.1", "Gram")], actor_id,
            )


class TestValidation:

    def test_same_branch(self, service, warehouse, noodles, actor_id):
        with pytest.raises(InvalidTransferError):
            service.transfer(warehouse.id, warehouse.id, [_line(noodles, 1)], actor_id)

    def test_no_lines(self, service, warehouse, store, actor_id):
        with pytest.raises(InvalidTransferError):
            service.transfer(warehouse.id, store.id, [], actor_id)

    @pytest.mark.parametrize("quantity", ["0", "-3"])
    def test_non_positive_quantity(self, service, warehouse, store, noodles, quantity, actor_id):
        with pytest.raises(InvalidQuantityError):
            service.transfer(warehouse.id, store.id, [_line(noodles, quantity)], actor_id)

    def test_unknown_product(self, service, warehouse, store, actor_id):
        with pytest.raises(ProductNotFoundError):
            service.transfer(
                warehouse.id, store.id, [TransferLineRequest(uuid4(), Decimal("1"))], actor_id,
            )

    def test_unknown_branch(self, service, warehouse, noodles, actor_id):
        with pytest.raises(BranchNotFoundError):
            service.transfer(warehouse.id, uuid4(), [_line(noodles, 1)], actor_id)

    def test_inactive_destination(
        self, service, warehouse, branch_factory, noodles, seed_stock, actor_id,
    ):
        closed = branch_factory("CLOSED", is_active=False)
        seed_stock(noodles.id, warehouse.id, 5)
        with pytest.raises(BranchInactiveError):
            service.transfer(warehouse.id, closed.id, [_line(noodles, 1)], actor_id)


class TestRecord:

    def test_reference_and_history(
        self, service, session, warehouse, store, noodles, seed_stock, actor_id,
    ):
        seed_stock(noodles.id, warehouse.id, 10)
        first = service.transfer(warehouse.id, store.id, [_line(noodles, 1)], actor_id, "urgent")
        second = service.transfer(warehouse.id, store.id, [_line(noodles, 1)], actor_id)

        assert first.reference_number == "TRF-20240101-000001"
        assert second.reference_number == "TRF-20240101-000002"
        assert first.notes == "urgent"
        assert first.created_by_id == actor_id

        history = HistorySelector(session)
        assert history.get_transfer(first.id).lines == first.lines
        assert history.get_transfer_by_reference("TRF-20240101-000002").id == second.id
        assert {t.id for t in history.list_transfers(branch_id=store.id)} == {first.id, second.id}

    def test_audit_entry_written(
        self, service, session, warehouse, store, noodles, seed_stock, actor_id,
    ):
        seed_stock(noodles.id, warehouse.id, 10)
        record = service.transfer(warehouse.id, store.id, [_line(noodles, 3)], actor_id)

        entries = HistorySelector(session).audit_entries(
            entity="stock_transfer", entity_id=str(record.id),
        )
        assert [e.action for e in entries] == ["create_transfer"]
        assert entries[0].details["reference_number"] == record.reference_number

    def test_record_rejection_has_no_ledger_effect(
        self, service, session, ledger, warehouse, store, noodles, seed_stock, actor_id,
    ):
        seed_stock(noodles.id, warehouse.id, 1)
        record = service.record_rejection(
            warehouse.id, store.id, [_line(noodles, 5)], actor_id, "insufficient stock",
        )

        assert record.status == TransferStatus.REJECTED
        assert record.rejection_reason == "insufficient stock"
        assert ledger.get(noodles.id, warehouse.id) == Decimal("1")
        assert StockSelector(session).movements_for_operation(record.id) == []
        rejected = HistorySelector(session).list_transfers(status=TransferStatus.REJECTED)
        assert [t.id for t in rejected] == [record.id]

    def test_transfer_logged(
        self, service, warehouse, store, noodles, seed_stock, actor_id, captured_logs,
    ):
        seed_stock(noodles.id, warehouse.id, 1)
        service.transfer(warehouse.id, store.id, [_line(noodles, 1)], actor_id)
        assert "transfer_applied" in captured_logs.messages()

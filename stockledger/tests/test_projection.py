"""
Tests for stock reads and reservations.
"""

from decimal import Decimal

import pytest

from stockledger.exceptions import InsufficientStock, ValidationFault
from stockledger.models import Stock
from stockledger.services import StockProjection


pytestmark = pytest.mark.django_db


class TestAvailable:

    def test_available_empty_stock(self, bulk, warehouse):
        """Available returns 0 when no stock exists."""
        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('0')

    def test_sums_every_location(self, bulk, warehouse, shelf_a, shelf_b, receive):
        receive(bulk, warehouse, 10)
        receive(bulk, warehouse, 2.5, location=shelf_a)
        receive(bulk, warehouse, 1, location=shelf_b)

        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('13.5')

    def test_other_warehouse_not_counted(self, bulk, warehouse, other_warehouse, receive):
        receive(bulk, warehouse, 10)

        assert StockProjection.available(bulk.pk, other_warehouse.pk) == Decimal('0')

    def test_available_minus_reserved(self, bulk, warehouse, receive):
        """Available = quantity - reserved."""
        receive(bulk, warehouse, 100)
        StockProjection.reserve(bulk.pk, warehouse.pk, Decimal('30'))

        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('70')


class TestGet:

    def test_creates_zero_line_once(self, bulk, warehouse):
        first = StockProjection.get(bulk.pk, warehouse.pk)
        second = StockProjection.get(bulk.pk, warehouse.pk)

        assert first.pk == second.pk
        assert first.quantity == Decimal('0')
        assert Stock.objects.count() == 1


class TestLines:

    def test_hides_empty_lines_by_default(self, bulk, pack, warehouse, receive):
        receive(bulk, warehouse, 1)
        StockProjection.get(pack.pk, warehouse.pk)

        assert [s.product_id for s in StockProjection.lines(warehouse_id=warehouse.pk)] == [bulk.pk]
        assert StockProjection.lines(warehouse_id=warehouse.pk, include_empty=True).count() == 2

    def test_available_quantity_property(self, bulk, warehouse, receive):
        receive(bulk, warehouse, 5)
        StockProjection.reserve(bulk.pk, warehouse.pk, Decimal('2'))

        line = StockProjection.lines(product_id=bulk.pk).get()
        assert line.available_quantity == Decimal('3')


class TestReserve:

    def test_reserve_more_than_available(self, bulk, warehouse, receive):
        receive(bulk, warehouse, 5)

        with pytest.raises(InsufficientStock) as exc:
            StockProjection.reserve(bulk.pk, warehouse.pk, Decimal('6'))

        assert exc.value.available == Decimal('5')
        assert StockProjection.get(bulk.pk, warehouse.pk).reserved_quantity == Decimal('0')

    def test_reserve_rejects_zero(self, bulk, warehouse):
        with pytest.raises(ValidationFault) as exc:
            StockProjection.reserve(bulk.pk, warehouse.pk, Decimal('0'))

        assert exc.value.code == 'invalid_quantity'

    def test_release(self, bulk, warehouse, receive):
        receive(bulk, warehouse, 5)
        StockProjection.reserve(bulk.pk, warehouse.pk, Decimal('4'))

        stock = StockProjection.release(bulk.pk, warehouse.pk, Decimal('1.5'))

        assert stock.reserved_quantity == Decimal('2.5')
        assert stock.available_quantity == Decimal('2.5')

    def test_release_beyond_reserved(self, bulk, warehouse, receive):
        receive(bulk, warehouse, 5)
        StockProjection.reserve(bulk.pk, warehouse.pk, Decimal('1'))

        with pytest.raises(ValidationFault) as exc:
            StockProjection.release(bulk.pk, warehouse.pk, Decimal('2'))

        assert exc.value.code == 'invalid_release'


class TestAllocationOrder:

    def test_unlocated_first_then_location_code(self, bulk, warehouse, shelf_a, shelf_b):
        line_b = StockProjection.get(bulk.pk, warehouse.pk, shelf_b.pk)
        line_a = StockProjection.get(bulk.pk, warehouse.pk, shelf_a.pk)
        unlocated = StockProjection.get(bulk.pk, warehouse.pk)

        ordered = StockProjection.allocation_order([line_b, line_a, unlocated])

        assert ordered == [unlocated, line_a, line_b]


class TestThresholds:

    def test_set_thresholds(self, bulk, warehouse, receive):
        receive(bulk, warehouse, 10)
        stock = StockProjection.get(bulk.pk, warehouse.pk)

        updated = StockProjection.set_thresholds(
            stock.pk, minimum_stock=Decimal('5'), maximum_stock=Decimal('50'), reorder_point=Decimal('8'),
        )

        stock.refresh_from_db()
        assert updated.pk == stock.pk
        assert stock.minimum_stock == Decimal('5')
        assert stock.maximum_stock == Decimal('50')
        assert stock.reorder_point == Decimal('8')
        assert stock.quantity == Decimal('10')

    def test_none_clears(self, bulk, warehouse):
        stock = StockProjection.get(bulk.pk, warehouse.pk)
        StockProjection.set_thresholds(stock.pk, minimum_stock=Decimal('5'))

        StockProjection.set_thresholds(stock.pk)

        stock.refresh_from_db()
        assert stock.minimum_stock is None

    def test_rejects_negative(self, bulk, warehouse):
        stock = StockProjection.get(bulk.pk, warehouse.pk)

        with pytest.raises(ValidationFault) as exc:
            StockProjection.set_thresholds(stock.pk, reorder_point=Decimal('-1'))

        assert exc.value.code == 'invalid_threshold'
        assert exc.value.data['field'] == 'reorder_point'

    def test_rejects_minimum_above_maximum(self, bulk, warehouse):
        stock = StockProjection.get(bulk.pk, warehouse.pk)

        with pytest.raises(ValidationFault) as exc:
            StockProjection.set_thresholds(stock.pk, minimum_stock=Decimal('20'), maximum_stock=Decimal('10'))

        assert exc.value.data['field'] == 'minimum_stock'
        stock.refresh_from_db()
        assert stock.minimum_stock is None

    def test_unknown_stock_line(self, db):
        with pytest.raises(ValidationFault) as exc:
            StockProjection.set_thresholds(999, minimum_stock=Decimal('1'))

        assert exc.value.code == 'stock_not_found'


class TestStockLevel:

    @pytest.mark.parametrize('received,reserved,level', [
        (0, 0, 'out'),
        (10, 10, 'out'),
        (10, 6, 'low'),
        (5, 0, 'low'),
        (10, 0, 'normal'),
    ])
    def test_levels(self, bulk, warehouse, receive, received, reserved, level):
        if received:
            receive(bulk, warehouse, received)
        if reserved:
            StockProjection.reserve(bulk.pk, warehouse.pk, Decimal(reserved))
        stock = StockProjection.get(bulk.pk, warehouse.pk)
        StockProjection.set_thresholds(stock.pk, minimum_stock=Decimal('5'))
        stock.refresh_from_db()

        assert stock.stock_level == level

    def test_without_minimum_never_low(self, bulk, warehouse, receive):
        receive(bulk, warehouse, 1)

        assert StockProjection.get(bulk.pk, warehouse.pk).stock_level == 'normal'

    def test_needs_reorder(self, bulk, warehouse, receive):
        receive(bulk, warehouse, 8)
        stock = StockProjection.get(bulk.pk, warehouse.pk)
        assert stock.needs_reorder is False

        StockProjection.set_thresholds(stock.pk, reorder_point=Decimal('8'))
        stock.refresh_from_db()

        assert stock.needs_reorder is True

    def test_low_stock_filter(self, bulk, pack, small_pack, warehouse, receive):
        receive(bulk, warehouse, 3)
        receive(pack, warehouse, 30)
        for product in (bulk, pack, small_pack):
            line = StockProjection.get(product.pk, warehouse.pk)
            StockProjection.set_thresholds(line.pk, minimum_stock=Decimal('5'))

        low = StockProjection.lines(warehouse_id=warehouse.pk, low_stock=True)

        assert [s.product_id for s in low] == [bulk.pk, small_pack.pk]


class TestSummaries:

    def test_warehouse_summary(self, bulk, pack, warehouse, other_warehouse, shelf_a, receive):
        receive(bulk, warehouse, 10, unit_cost=Decimal('2'))
        receive(bulk, warehouse, 5, location=shelf_a, unit_cost=Decimal('4'))
        receive(pack, warehouse, 1)
        receive(pack, other_warehouse, 100)
        StockProjection.reserve(bulk.pk, warehouse.pk, Decimal('3'))
        line = StockProjection.get(pack.pk, warehouse.pk)
        StockProjection.set_thresholds(line.pk, minimum_stock=Decimal('2'), reorder_point=Decimal('2'))

        summary = StockProjection.warehouse_summary(warehouse.pk)

        assert summary.product_count == 2
        assert summary.total_quantity == Decimal('16')
        assert summary.reserved_quantity == Decimal('3')
        assert summary.available_quantity == Decimal('13')
        assert summary.total_value == Decimal('40')
        assert summary.low_stock_lines == 1
        assert summary.out_of_stock_lines == 0
        assert summary.reorder_lines == 1

    def test_location_summary(self, bulk, pack, warehouse, shelf_a, shelf_b, receive):
        receive(bulk, warehouse, 5, location=shelf_a, unit_cost=Decimal('4'))
        receive(pack, warehouse, 7, location=shelf_b)
        StockProjection.get(pack.pk, warehouse.pk, shelf_a.pk)

        summary = StockProjection.location_summary(shelf_a.pk)

        assert summary.product_count == 1
        assert summary.total_quantity == Decimal('5')
        assert summary.total_value == Decimal('20')
        assert summary.out_of_stock_lines == 1

    def test_empty_warehouse(self, warehouse):
        summary = StockProjection.warehouse_summary(warehouse.pk)

        assert summary.product_count == 0
        assert summary.total_value == Decimal('0')

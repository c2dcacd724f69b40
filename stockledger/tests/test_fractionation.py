"""
Tests for fractionation calculate/execute.
"""

import logging
from decimal import Decimal
from unittest import mock

import pytest
from django.db import OperationalError

from stockledger.exceptions import (
    ConversionNotConfigured,
    InfrastructureFault,
    InsufficientStock,
    StockError,
    ValidationFault,
)
from stockledger.models import (
    Fractionation,
    InventoryMovement,
    MovementLine,
    Product,
    ProductConversion,
)
from stockledger.services import (
    FractionationRequest,
    FractionationService,
    MovementLedger,
    StockProjection,
)
from stockledger.services.fractionation import format_folio


pytestmark = pytest.mark.django_db


def request_for(source, destination, warehouse, quantity, notes=''):
    return FractionationRequest(
        source_product_id=source.pk,
        destination_product_id=destination.pk,
        source_quantity=Decimal(str(quantity)),
        warehouse_id=warehouse.pk,
        notes=notes,
    )


class TestCalculate:

    def test_reference_example(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 100)

        preview = FractionationService.calculate(request_for(bulk, pack, warehouse, 100))

        assert preview.produced_quantity == Decimal('81')
        assert preview.waste_quantity == Decimal('9')
        assert preview.conversion_factor == Decimal('0.9')
        assert preview.waste_percentage == Decimal('10')
        assert preview.available_stock == Decimal('100')
        assert preview.has_enough_stock is True

    def test_not_enough_stock_is_reported_not_raised(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 50)

        preview = FractionationService.calculate(request_for(bulk, pack, warehouse, 60))

        assert preview.available_stock == Decimal('50')
        assert preview.has_enough_stock is False

    def test_is_idempotent_and_writes_nothing(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 100)
        req = request_for(bulk, pack, warehouse, 10)

        first = FractionationService.calculate(req)
        second = FractionationService.calculate(req)

        assert first == second
        assert Fractionation.objects.count() == 0
        assert InventoryMovement.objects.count() == 1

    def test_missing_conversion(self, warehouse):
        """Products 5 and 9 exist, but no conversion links them."""
        source = Product.objects.create(pk=5, sku='P-5', name='Product 5')
        destination = Product.objects.create(pk=9, sku='P-9', name='Product 9')

        req = request_for(source, destination, warehouse, 1)

        with pytest.raises(ConversionNotConfigured) as exc:
            FractionationService.calculate(req)
        assert exc.value.data == {'source_product_id': 5, 'destination_product_id': 9}

        with pytest.raises(ConversionNotConfigured):
            FractionationService.execute(req)
        assert Fractionation.objects.count() == 0

    def test_rejects_non_positive_quantity(self, bulk, pack, warehouse, conversion):
        with pytest.raises(ValidationFault) as exc:
            FractionationService.calculate(request_for(bulk, pack, warehouse, 0))

        assert exc.value.code == 'invalid_quantity'

    def test_rejects_same_product(self, bulk, warehouse):
        with pytest.raises(ValidationFault):
            FractionationService.calculate(request_for(bulk, bulk, warehouse, 1))

    def test_rejects_inactive_warehouse(self, bulk, pack, warehouse, conversion):
        warehouse.is_active = False
        warehouse.save()

        with pytest.raises(ValidationFault) as exc:
            FractionationService.calculate(request_for(bulk, pack, warehouse, 1))

        assert exc.value.data['field'] == 'warehouse'

    @pytest.mark.parametrize('role', ['source_product', 'destination_product'])
    def test_rejects_inactive_product(self, bulk, pack, warehouse, conversion, receive, role):
        receive(bulk, warehouse, 10)
        inactive = bulk if role == 'source_product' else pack
        Product.objects.filter(pk=inactive.pk).update(is_active=False)

        with pytest.raises(ValidationFault) as exc:
            FractionationService.calculate(request_for(bulk, pack, warehouse, 1))

        assert exc.value.code == 'invalid_reference'
        assert exc.value.data['field'] == role

    def test_execute_with_inactive_product_writes_nothing(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 10)
        Product.objects.filter(pk=pack.pk).update(is_active=False)

        with pytest.raises(ValidationFault):
            FractionationService.execute(request_for(bulk, pack, warehouse, 5))

        assert Fractionation.objects.count() == 0
        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('10')


class TestExecute:

    def test_reference_example(self, bulk, pack, warehouse, conversion, receive, user):
        receive(bulk, warehouse, 100)

        fractionation = FractionationService.execute(
            request_for(bulk, pack, warehouse, 100, notes='Morning batch'), user=user,
        )

        assert fractionation.status == 'completed'
        assert fractionation.source_quantity == Decimal('100')
        assert fractionation.produced_quantity == Decimal('81')
        assert fractionation.waste_quantity == Decimal('9')
        assert fractionation.conversion_factor_used == Decimal('0.9')
        assert fractionation.waste_percentage == Decimal('10')
        assert fractionation.product_conversion == conversion
        assert fractionation.executed_at is not None
        assert fractionation.user == user
        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('0')
        assert StockProjection.available(pack.pk, warehouse.pk) == Decimal('81')

    def test_full_waste_rejected(self, bulk, small_pack, warehouse, receive):
        ProductConversion.objects.create(
            source_product=bulk, destination_product=small_pack,
            conversion_factor=Decimal('2'), waste_percentage=Decimal('100'),
        )
        receive(bulk, warehouse, 10)

        with pytest.raises(ValidationFault) as exc:
            FractionationService.execute(request_for(bulk, small_pack, warehouse, 5))

        assert exc.value.code == 'invalid_quantity'
        assert exc.value.data['field'] == 'produced'
        assert Fractionation.objects.count() == 0
        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('10')

    def test_produced_beyond_column_limit_rejected(self, bulk, small_pack, warehouse, receive):
        ProductConversion.objects.create(
            source_product=bulk, destination_product=small_pack,
            conversion_factor=Decimal('1000'), waste_percentage=Decimal('0'),
        )
        receive(bulk, warehouse, '99999999999999')

        with pytest.raises(ValidationFault) as exc:
            FractionationService.execute(request_for(bulk, small_pack, warehouse, '99999999999999'))

        assert exc.value.code == 'invalid_quantity'
        assert Fractionation.objects.count() == 0
        assert InventoryMovement.objects.count() == 1
        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('99999999999999')

    def test_destination_beyond_column_limit_rolls_back(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 100)
        receive(pack, warehouse, '99999999999990')

        with pytest.raises(ValidationFault) as exc:
            FractionationService.execute(request_for(bulk, pack, warehouse, 100))

        assert exc.value.code == 'invalid_quantity'
        assert Fractionation.objects.count() == 0
        assert MovementLine.objects.count() == 2
        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('100')
        assert StockProjection.available(pack.pk, warehouse.pk) == Decimal('99999999999990')

    def test_entry_cost_spreads_source_cost_over_produced(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 100, unit_cost=Decimal('2'))

        fractionation = FractionationService.execute(request_for(bulk, pack, warehouse, 100))

        assert fractionation.exit_movement.unit_cost == Decimal('2')
        # 2 x 100 / 81
        assert fractionation.entry_movement.unit_cost == Decimal('2.4691')
        assert StockProjection.get(pack.pk, warehouse.pk).unit_cost == Decimal('2.4691')

    def test_unpriced_source_leaves_entry_unpriced(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 10)

        fractionation = FractionationService.execute(request_for(bulk, pack, warehouse, 10))

        assert fractionation.entry_movement.unit_cost is None

    def test_movements_reference_the_fractionation(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 20)

        fractionation = FractionationService.execute(request_for(bulk, pack, warehouse, 10))

        exit_movement = fractionation.exit_movement
        entry_movement = fractionation.entry_movement
        assert exit_movement.movement_type == 'exit'
        assert exit_movement.product == bulk
        assert exit_movement.quantity == Decimal('10')
        assert entry_movement.movement_type == 'entry'
        assert entry_movement.product == pack
        assert entry_movement.quantity == Decimal('8.1')
        assert entry_movement.metadata == {'waste_quantity': '0.9000'}
        linked = InventoryMovement.objects.for_reference('fractionation', fractionation.pk)
        assert set(linked) == {exit_movement, entry_movement}
        assert exit_movement.notes == fractionation.folio_number

    def test_conserves_source_quantity(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 37.5)

        FractionationService.execute(request_for(bulk, pack, warehouse, 12.3456))

        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('25.1544')

    def test_draws_from_several_locations(self, bulk, pack, warehouse, shelf_a, conversion, receive):
        receive(bulk, warehouse, 4)
        receive(bulk, warehouse, 6, location=shelf_a)

        fractionation = FractionationService.execute(request_for(bulk, pack, warehouse, 10))

        assert fractionation.exit_movement.lines.count() == 2
        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('0')

    def test_insufficient_stock(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 50)

        with pytest.raises(InsufficientStock) as exc:
            FractionationService.execute(request_for(bulk, pack, warehouse, 60))

        assert exc.value.available == Decimal('50')
        assert exc.value.required == Decimal('60')
        assert Fractionation.objects.count() == 0
        assert InventoryMovement.objects.count() == 1
        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('50')

    def test_reserved_stock_is_not_available(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 10)
        StockProjection.reserve(bulk.pk, warehouse.pk, Decimal('5'))

        with pytest.raises(InsufficientStock) as exc:
            FractionationService.execute(request_for(bulk, pack, warehouse, 6))

        assert exc.value.available == Decimal('5')

    def test_missing_conversion_writes_nothing(self, bulk, pack, warehouse, receive):
        receive(bulk, warehouse, 10)

        with pytest.raises(ConversionNotConfigured):
            FractionationService.execute(request_for(bulk, pack, warehouse, 1))

        assert Fractionation.objects.count() == 0

    def test_business_fault_logged_at_info(self, bulk, pack, warehouse, conversion, caplog):
        with caplog.at_level(logging.INFO, logger='stockledger'):
            with pytest.raises(InsufficientStock):
                FractionationService.execute(request_for(bulk, pack, warehouse, 1))

        rejected = [r for r in caplog.records if r.getMessage() == 'fractionation.rejected']
        assert len(rejected) == 1
        assert rejected[0].levelno == logging.INFO

    def test_snapshot_survives_catalog_change(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 10)
        fractionation = FractionationService.execute(request_for(bulk, pack, warehouse, 10))

        ProductConversion.objects.filter(pk=conversion.pk).update(conversion_factor=Decimal('2'))
        fractionation.refresh_from_db()

        assert fractionation.conversion_factor_used == Decimal('0.9')


class TestAtomicity:

    def test_entry_failure_rolls_back_everything(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 100)
        real_record = MovementLedger.record.__func__

        def failing_record(cls, draft, user=None):
            if draft.movement_type == 'entry':
                raise OperationalError('connection lost')
            return real_record(cls, draft, user=user)

        with mock.patch.object(MovementLedger, 'record', classmethod(failing_record)):
            with pytest.raises(InfrastructureFault) as exc:
                FractionationService.execute(request_for(bulk, pack, warehouse, 10))

        assert exc.value.retryable is True
        assert exc.value.kind == 'infrastructure'
        assert Fractionation.objects.count() == 0
        assert InventoryMovement.objects.count() == 1
        assert MovementLine.objects.count() == 1
        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('100')
        assert StockProjection.available(pack.pk, warehouse.pk) == Decimal('0')

    def test_failed_attempt_does_not_consume_a_folio(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 100)

        with mock.patch.object(
            MovementLedger, 'record', side_effect=OperationalError('connection lost'),
        ):
            with pytest.raises(InfrastructureFault):
                FractionationService.execute(request_for(bulk, pack, warehouse, 10))

        fractionation = FractionationService.execute(request_for(bulk, pack, warehouse, 10))

        assert fractionation.folio_number == format_folio(1)


class TestFolio:

    def test_format(self):
        assert format_folio(1) == 'FRAC-000001'
        assert format_folio(1234567) == 'FRAC-1234567'

    def test_format_follows_settings(self, settings):
        settings.STOCKLEDGER = {'FOLIO_PREFIX': 'FR', 'FOLIO_PADDING': 3}

        assert format_folio(7) == 'FR007'

    def test_sequential_and_unique(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 100)

        folios = [
            FractionationService.execute(request_for(bulk, pack, warehouse, 1)).folio_number
            for _ in range(3)
        ]

        assert folios == ['FRAC-000001', 'FRAC-000002', 'FRAC-000003']


class TestIdempotency:

    def test_same_key_returns_same_fractionation(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 100)
        req = request_for(bulk, pack, warehouse, 10)

        first = FractionationService.execute(req, idempotency_key='abc-123')
        second = FractionationService.execute(req, idempotency_key='abc-123')

        assert first.pk == second.pk
        assert Fractionation.objects.count() == 1
        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('90')

    def test_different_keys_execute_twice(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 100)
        req = request_for(bulk, pack, warehouse, 10)

        FractionationService.execute(req, idempotency_key='a')
        FractionationService.execute(req, idempotency_key='b')

        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('80')

    def test_same_key_with_other_quantity_rejected(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 100)
        first = FractionationService.execute(request_for(bulk, pack, warehouse, 10), idempotency_key='abc-123')

        with pytest.raises(ValidationFault) as exc:
            FractionationService.execute(request_for(bulk, pack, warehouse, 5), idempotency_key='abc-123')

        assert exc.value.code == 'idempotency_key_reused'
        assert exc.value.data['fractionation_id'] == first.pk
        assert Fractionation.objects.count() == 1
        assert StockProjection.available(bulk.pk, warehouse.pk) == Decimal('90')

    def test_same_key_with_other_destination_rejected(
        self, bulk, pack, small_pack, warehouse, conversion, receive,
    ):
        ProductConversion.objects.create(
            source_product=bulk, destination_product=small_pack,
            conversion_factor=Decimal('2'), waste_percentage=Decimal('0'),
        )
        receive(bulk, warehouse, 100)
        FractionationService.execute(request_for(bulk, pack, warehouse, 10), idempotency_key='abc-123')

        with pytest.raises(ValidationFault) as exc:
            FractionationService.execute(request_for(bulk, small_pack, warehouse, 10), idempotency_key='abc-123')

        assert exc.value.code == 'idempotency_key_reused'
        assert StockProjection.available(small_pack.pk, warehouse.pk) == Decimal('0')

    def test_replay_ignores_quantity_formatting(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 100)
        first = FractionationService.execute(request_for(bulk, pack, warehouse, 10), idempotency_key='k')

        again = FractionationService.execute(request_for(bulk, pack, warehouse, '10.0000'), idempotency_key='k')

        assert again.pk == first.pk


class TestImmutability:

    def test_completed_cannot_be_edited(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 10)
        fractionation = FractionationService.execute(request_for(bulk, pack, warehouse, 10))
        fractionation.notes = 'changed'

        with pytest.raises(StockError) as exc:
            fractionation.save()

        assert exc.value.code == 'immutable_fractionation'

    def test_cannot_be_deleted(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 10)
        fractionation = FractionationService.execute(request_for(bulk, pack, warehouse, 10))

        with pytest.raises(StockError):
            fractionation.delete()

    def test_cancel_requires_pending_without_movements(self, bulk, pack, warehouse, conversion, receive):
        receive(bulk, warehouse, 10)
        fractionation = FractionationService.execute(request_for(bulk, pack, warehouse, 10))

        with pytest.raises(StockError):
            fractionation.cancel()


class TestHistory:

    def test_newest_first_with_filters(self, bulk, pack, small_pack, warehouse, conversion, receive):
        ProductConversion.objects.create(
            source_product=bulk, destination_product=small_pack,
            conversion_factor=Decimal('2'), waste_percentage=Decimal('0'),
        )
        receive(bulk, warehouse, 100)
        first = FractionationService.execute(request_for(bulk, pack, warehouse, 1))
        second = FractionationService.execute(request_for(bulk, small_pack, warehouse, 1))

        assert list(FractionationService.history()) == [second, first]
        assert list(FractionationService.history(product_id=pack.pk)) == [first]
        assert list(FractionationService.history(status='pending')) == []

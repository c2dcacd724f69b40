"""
Pytest fixtures for Stockledger tests.
"""

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from stockledger.models import Location, Product, ProductConversion, Warehouse
from stockledger.services import MovementDraft, MovementLedger


User = get_user_model()


@pytest.fixture
def user(db):
    """Create a test user."""
    return User.objects.create_user(
        username='testuser',
        password='testpass123'
    )


@pytest.fixture
def warehouse(db):
    """Main warehouse."""
    return Warehouse.objects.create(code='main', name='Main Warehouse')


@pytest.fixture
def other_warehouse(db):
    """Secondary warehouse for transfers."""
    return Warehouse.objects.create(code='north', name='North Warehouse')


@pytest.fixture
def shelf_a(db, warehouse):
    return Location.objects.create(warehouse=warehouse, code='a-01', name='Aisle A, shelf 1')


@pytest.fixture
def shelf_b(db, warehouse):
    return Location.objects.create(warehouse=warehouse, code='b-01', name='Aisle B, shelf 1')


@pytest.fixture
def bulk(db):
    """Source product sold by weight."""
    return Product.objects.create(sku='RICE-BULK', name='Rice (bulk)', unit='kg')


@pytest.fixture
def pack(db):
    """Destination product: 1 kg bag."""
    return Product.objects.create(sku='RICE-1KG', name='Rice 1 kg bag', unit='un')


@pytest.fixture
def small_pack(db):
    """Second destination product: 500 g bag."""
    return Product.objects.create(sku='RICE-500G', name='Rice 500 g bag', unit='un')


@pytest.fixture
def conversion(db, bulk, pack):
    """bulk → pack, factor 0.9, 10% waste."""
    return ProductConversion.objects.create(
        source_product=bulk,
        destination_product=pack,
        conversion_factor=Decimal('0.9'),
        waste_percentage=Decimal('10'),
    )


@pytest.fixture
def receive(db):
    """Record a completed entry and return the movement."""

    def _receive(product, warehouse, quantity, location=None, **kwargs):
        return MovementLedger.record(
            MovementDraft(
                movement_type='entry',
                product_id=product.pk,
                warehouse_id=warehouse.pk,
                location_id=location.pk if location else None,
                quantity=Decimal(str(quantity)),
                reference_type=kwargs.pop('reference_type', 'purchase'),
                **kwargs,
            )
        )

    return _receive

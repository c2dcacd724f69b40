"""
Smoke tests for the admin views.
"""

import pytest
from django.urls import reverse

from stockledger.services import FractionationRequest, FractionationService


pytestmark = pytest.mark.django_db


@pytest.mark.parametrize('model', [
    'product', 'warehouse', 'productconversion', 'stock', 'inventorymovement', 'fractionation',
])
def test_changelist_renders(admin_client, bulk, pack, warehouse, conversion, receive, model):
    receive(bulk, warehouse, 10)
    FractionationService.execute(FractionationRequest(bulk.pk, pack.pk, 1, warehouse.pk))

    response = admin_client.get(reverse(f'admin:stockledger_{model}_changelist'))

    assert response.status_code == 200


def test_ledger_tables_are_read_only(admin_client, bulk, warehouse, receive):
    movement = receive(bulk, warehouse, 10)

    assert admin_client.get(reverse('admin:stockledger_inventorymovement_add')).status_code == 403
    response = admin_client.post(
        reverse('admin:stockledger_inventorymovement_delete', args=[movement.pk]), {'post': 'yes'},
    )
    assert response.status_code == 403

"""
Tests — Logistics API endpoints.

@file logistics/tests/test_views.py
"""

import pytest
from django.urls import reverse

from inventory.models import InventoryRecord
from logistics.models import DispatchOrder, ReturnOrder
from tests.factories import (
    DispatchOrderFactory,
    GoodsReceivingFactory,
    InventoryRecordFactory,
    ReturnOrderFactory,
    UserFactory,
    WarehouseFactory,
)


pytestmark = pytest.mark.django_db


class TestGoodsReceivingAPI:
    def _payload(self, warehouse, **qc):
        checks = {'packaging': True, 'expiry': True, 'label': True}
        checks.update(qc)
        return {
            'warehouse': str(warehouse.pk),
            'po_number': 'PO-7',
            'vendor': 'Snackco',
            'sku': 'A1',
            'product_name': 'Crisps 50g',
            'quantity': 12,
            'batch_id': 'A1-B7',
            'qc_verification': checks,
            'storage': {'zone': 'B', 'rack': '3'},
        }

    def test_create_passing_receipt(self, admin_client):
        warehouse = WarehouseFactory()
        resp = admin_client.post(reverse('api-v1:logistics:receiving-list'), self._payload(warehouse), format='json')
        assert resp.status_code == 201
        assert resp.data['status'] == 'qc_passed'
        assert resp.data['qc_verification']['label'] is True
        assert InventoryRecord.objects.get(sku='A1', batch_id='A1-B7').quantity == 12

    def test_qc_patch_after_failure(self, admin_client):
        warehouse = WarehouseFactory()
        resp = admin_client.post(
            reverse('api-v1:logistics:receiving-list'), self._payload(warehouse, label=False), format='json',
        )
        assert resp.data['status'] == 'qc_failed'
        url = reverse('api-v1:logistics:receiving-qc', kwargs={'pk': resp.data['id']})
        resp = admin_client.patch(url, {'label': True}, format='json')
        assert resp.status_code == 200
        assert resp.data['status'] == 'qc_passed'
        resp = admin_client.patch(url, {'label': False}, format='json')
        assert resp.status_code == 400
        assert resp.data['code'] == 'INVALID_STATE_TRANSITION'

    def test_qc_patch_needs_a_field(self, admin_client):
        receiving = GoodsReceivingFactory()
        url = reverse('api-v1:logistics:receiving-qc', kwargs={'pk': receiving.pk})
        assert admin_client.patch(url, {}, format='json').status_code == 400

    def test_create_requires_permission(self, authenticated_client):
        warehouse = WarehouseFactory()
        resp = authenticated_client.post(
            reverse('api-v1:logistics:receiving-list'), self._payload(warehouse), format='json',
        )
        assert resp.status_code == 403

    def test_list_filter_by_vendor(self, authenticated_client):
        GoodsReceivingFactory(vendor='Snackco')
        GoodsReceivingFactory(vendor='Drinkly')
        resp = authenticated_client.get(reverse('api-v1:logistics:receiving-list'), {'vendor': 'Snackco'})
        assert resp.status_code == 200
        assert resp.data['count'] == 1


class TestDispatchAPI:
    def test_create_and_walk_lifecycle(self, admin_client):
        warehouse = WarehouseFactory()
        InventoryRecordFactory(warehouse=warehouse, sku='A1', quantity=50)
        agent = UserFactory()
        resp = admin_client.post(
            reverse('api-v1:logistics:dispatch-list'),
            {'warehouse': str(warehouse.pk), 'destination': 'Machine #4', 'items': [{'sku': 'A1', 'quantity': 5}]},
            format='json',
        )
        assert resp.status_code == 201
        assert resp.data['status'] == 'pending'
        assert len(resp.data['items']) == 1
        pk = resp.data['id']

        resp = admin_client.post(
            reverse('api-v1:logistics:dispatch-assign', kwargs={'pk': pk}), {'assigned_agent': agent.pk}, format='json',
        )
        assert resp.data['status'] == 'assigned'
        assert resp.data['assigned_agent_name'] == agent.username
        resp = admin_client.post(reverse('api-v1:logistics:dispatch-start', kwargs={'pk': pk}))
        assert resp.data['status'] == 'in_transit'
        resp = admin_client.post(reverse('api-v1:logistics:dispatch-deliver', kwargs={'pk': pk}))
        assert resp.data['status'] == 'delivered'
        assert resp.data['delivered_at'] is not None

    def test_insufficient_stock_is_conflict(self, admin_client):
        warehouse = WarehouseFactory()
        InventoryRecordFactory(warehouse=warehouse, sku='B2', quantity=3)
        resp = admin_client.post(
            reverse('api-v1:logistics:dispatch-list'),
            {'warehouse': str(warehouse.pk), 'destination': 'Machine #4', 'items': [{'sku': 'B2', 'quantity': 1000}]},
            format='json',
        )
        assert resp.status_code == 409
        assert resp.data['code'] == 'INSUFFICIENT_STOCK'
        assert resp.data['errors']['sku'] == 'B2'
        assert not DispatchOrder.objects.exists()

    def test_cancel_restores(self, admin_client):
        warehouse = WarehouseFactory()
        InventoryRecordFactory(warehouse=warehouse, sku='A1', quantity=50)
        resp = admin_client.post(
            reverse('api-v1:logistics:dispatch-list'),
            {'warehouse': str(warehouse.pk), 'destination': 'Machine #4', 'items': [{'sku': 'A1', 'quantity': 20}]},
            format='json',
        )
        resp = admin_client.post(reverse('api-v1:logistics:dispatch-cancel', kwargs={'pk': resp.data['id']}))
        assert resp.data['status'] == 'cancelled'
        assert InventoryRecord.objects.get(sku='A1').quantity == 50

    def test_status_patch_rejects_illegal_move(self, admin_client):
        order = DispatchOrderFactory(status=DispatchOrder.StatusChoices.PENDING)
        resp = admin_client.patch(
            reverse('api-v1:logistics:dispatch-set-status', kwargs={'pk': order.pk}),
            {'status': 'delivered'},
            format='json',
        )
        assert resp.status_code == 400
        assert resp.data['code'] == 'INVALID_STATE_TRANSITION'

    def test_workflow_requires_permission(self, authenticated_client):
        order = DispatchOrderFactory(status=DispatchOrder.StatusChoices.ASSIGNED)
        resp = authenticated_client.post(reverse('api-v1:logistics:dispatch-start', kwargs={'pk': order.pk}))
        assert resp.status_code == 403

    def test_unknown_dispatch(self, admin_client):
        resp = admin_client.post(
            reverse('api-v1:logistics:dispatch-start', kwargs={'pk': '7f3c8a52-2a64-4b0e-9c43-5d1f0e6b9a10'}),
        )
        assert resp.status_code == 404


class TestReturnAPI:
    def test_create_then_approve(self, admin_client):
        record = InventoryRecordFactory(sku='A1', batch_id='A1-B1', quantity=10)
        resp = admin_client.post(
            reverse('api-v1:logistics:return-list'),
            {'batch_id': 'A1-B1', 'reason': 'Seal broken', 'quantity': 3},
            format='json',
        )
        assert resp.status_code == 201
        assert resp.data['return_type'] == 'damaged'
        resp = admin_client.post(reverse('api-v1:logistics:return-approve', kwargs={'pk': resp.data['id']}))
        assert resp.status_code == 200
        assert resp.data['status'] == 'approved'
        record.refresh_from_db()
        assert record.quantity == 7

    def test_unknown_batch_is_404(self, admin_client):
        resp = admin_client.post(
            reverse('api-v1:logistics:return-list'), {'batch_id': 'nope', 'reason': 'damaged'}, format='json',
        )
        assert resp.status_code == 404
        assert resp.data['code'] == 'RESOURCE_NOT_FOUND'

    def test_reject_and_reason_edit(self, admin_client):
        order = ReturnOrderFactory()
        url = reverse('api-v1:logistics:return-reason', kwargs={'pk': order.pk})
        resp = admin_client.patch(url, {'reason': 'Excess delivered'}, format='json')
        assert resp.data['return_type'] == 'overstock'
        resp = admin_client.post(reverse('api-v1:logistics:return-reject', kwargs={'pk': order.pk}))
        assert resp.data['status'] == ReturnOrder.StatusChoices.REJECTED
        assert admin_client.patch(url, {'reason': 'x'}, format='json').status_code == 400

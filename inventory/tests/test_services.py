"""
Tests — InventoryService: receipts, reductions, returns, edits, archival,
quarantine and status refresh.

@file inventory/tests/test_services.py
"""

import uuid
from datetime import timedelta

import pytest
from django.utils import timezone

from core.exceptions import (
    BusinessRuleViolation,
    DuplicateResourceError,
    InsufficientStockError,
    InvalidIdentifier,
    InvariantViolation,
    ResourceNotFoundError,
)
from inventory.models import InventoryRecord, StockMovement
from inventory.services import InventoryService
from tests.factories import InventoryRecordFactory, SuperuserFactory, WarehouseFactory


pytestmark = pytest.mark.django_db


def _a1(warehouse, quantity=50, **kwargs):
    return InventoryRecordFactory(
        warehouse=warehouse, sku='A1', batch_id='A1-B1', quantity=quantity,
        min_stock_level=10, max_stock_level=100, **kwargs,
    )


class TestReceive:
    def test_receive_twice_is_additive(self):
        warehouse = WarehouseFactory()
        kwargs = dict(sku='A1', batch_id='A1-B1', warehouse_id=warehouse.pk, quantity=20)
        record = InventoryService.receive(**kwargs)
        assert record.quantity == 20
        record = InventoryService.receive(**kwargs)
        assert record.quantity == 40
        assert InventoryRecord.objects.filter(sku='A1').count() == 1
        balances = StockMovement.objects.filter(record=record).values_list('balance_after', flat=True)
        assert sorted(balances) == [20, 40]

    def test_new_record_defaults(self, settings):
        settings.INVENTORY_DEFAULT_MIN_STOCK = 0
        settings.INVENTORY_DEFAULT_MAX_STOCK = 1000
        warehouse = WarehouseFactory()
        record = InventoryService.receive(
            sku='C3', batch_id='C3-B1', warehouse_id=warehouse.pk, quantity=5,
            location={'zone': 'A', 'bin': '04'},
        )
        assert (record.min_stock_level, record.max_stock_level, record.age) == (0, 1000, 0)
        assert record.product_name == 'C3'
        assert record.status == 'active'
        assert record.location == {'zone': 'A', 'aisle': '', 'rack': '', 'bin': '04'}

    def test_receive_updates_location_and_status(self):
        warehouse = WarehouseFactory()
        record = _a1(warehouse, quantity=5, status='low_stock')
        record = InventoryService.receive(
            sku='A1', batch_id='A1-B1', warehouse_id=warehouse.pk, quantity=90,
            location={'zone': 'Z9'},
        )
        assert record.quantity == 95
        assert record.status == 'overstock'
        assert record.zone == 'Z9'

    def test_receive_into_archived_stays_archived(self):
        warehouse = WarehouseFactory()
        record = _a1(warehouse, quantity=5)
        InventoryService.archive(inventory_id=record.pk)
        record = InventoryService.receive(sku='A1', batch_id='A1-B1', warehouse_id=warehouse.pk, quantity=10)
        assert record.quantity == 15
        assert record.is_archived
        assert record.status == 'archived'

    @pytest.mark.parametrize('quantity', [0, -3])
    def test_rejects_non_positive(self, quantity):
        warehouse = WarehouseFactory()
        with pytest.raises(InvariantViolation):
            InventoryService.receive(sku='A1', batch_id='B', warehouse_id=warehouse.pk, quantity=quantity)

    def test_rejects_bad_thresholds(self):
        warehouse = WarehouseFactory()
        with pytest.raises(InvariantViolation):
            InventoryService.receive(
                sku='A1', batch_id='B', warehouse_id=warehouse.pk, quantity=1,
                min_stock_level=20, max_stock_level=20,
            )

    def test_existing_record_keeps_its_thresholds(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        record = InventoryService.receive(
            sku='A1', batch_id='A1-B1', warehouse_id=warehouse.pk, quantity=5,
            min_stock_level=1, max_stock_level=2000, expiry_date=timezone.now() - timedelta(days=1),
        )
        assert record.pk == a1.pk
        assert (record.min_stock_level, record.max_stock_level, record.expiry_date) == (10, 100, None)
        assert record.quantity == 55

    def test_unknown_warehouse(self):
        with pytest.raises(ResourceNotFoundError):
            InventoryService.receive(sku='A1', batch_id='B', warehouse_id=uuid.uuid4(), quantity=1)


class TestReduceBySku:
    def test_all_or_nothing(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        InventoryRecordFactory(warehouse=warehouse, sku='B2', batch_id='B2-B1', quantity=3)
        with pytest.raises(InsufficientStockError) as exc:
            InventoryService.reduce_by_sku(
                items=[{'sku': 'A1', 'quantity': 5}, {'sku': 'B2', 'quantity': 1000}],
                warehouse_id=warehouse.pk,
            )
        assert (exc.value.sku, exc.value.available, exc.value.requested) == ('B2', 3, 1000)
        a1.refresh_from_db()
        assert a1.quantity == 50
        assert not StockMovement.objects.filter(movement_type='DISPATCH').exists()

    def test_reduces_and_recomputes_status(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        movements = InventoryService.reduce_by_sku(
            items=[{'sku': 'A1', 'quantity': 45}], warehouse_id=warehouse.pk,
        )
        a1.refresh_from_db()
        assert a1.quantity == 5
        assert a1.status == 'low_stock'
        assert [(m.quantity_delta, m.balance_after) for m in movements] == [(-45, 5)]

    def test_spans_batches(self):
        warehouse = WarehouseFactory()
        first = InventoryRecordFactory(warehouse=warehouse, sku='A1', quantity=4)
        second = InventoryRecordFactory(warehouse=warehouse, sku='A1', quantity=10)
        InventoryService.reduce_by_sku(items=[{'sku': 'A1', 'quantity': 6}], warehouse_id=warehouse.pk)
        first.refresh_from_db()
        second.refresh_from_db()
        assert first.quantity + second.quantity == 8
        assert min(first.quantity, second.quantity) == 0

    def test_malformed_warehouse_fails_before_locking(self, monkeypatch):
        locked = []
        monkeypatch.setattr('inventory.services._lock_skus', lambda warehouse_id, skus: locked.append(warehouse_id))
        with pytest.raises(InvalidIdentifier):
            InventoryService.reduce_by_sku(items=[{'sku': 'A1', 'quantity': 1}], warehouse_id='not-a-uuid')
        assert locked == []

    def test_lock_uses_parsed_warehouse_id(self, monkeypatch):
        warehouse = WarehouseFactory()
        _a1(warehouse)
        locked = []
        monkeypatch.setattr('inventory.services._lock_skus', lambda warehouse_id, skus: locked.append(warehouse_id))
        InventoryService.reduce_by_sku(
            items=[{'sku': 'A1', 'quantity': 1}], warehouse_id=str(warehouse.pk).upper(),
        )
        assert locked == [warehouse.pk]

    def test_never_negative(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse, quantity=3)
        with pytest.raises(InsufficientStockError):
            InventoryService.reduce_by_sku(items=[{'sku': 'A1', 'quantity': 4}], warehouse_id=warehouse.pk)
        a1.refresh_from_db()
        assert a1.quantity == 3


class TestRestoreDispatch:
    def test_restores_each_batch(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        ref = uuid.uuid4()
        InventoryService.reduce_by_sku(
            items=[{'sku': 'A1', 'quantity': 20}], warehouse_id=warehouse.pk,
            reference_id=ref, reference_type='DispatchOrder',
        )
        InventoryService.restore_dispatch(reference_id=ref)
        a1.refresh_from_db()
        assert a1.quantity == 50
        assert StockMovement.objects.filter(reference_id=ref, movement_type='DISPATCH_REVERSAL').count() == 1

    def test_restore_twice_rejected(self):
        warehouse = WarehouseFactory()
        _a1(warehouse)
        ref = uuid.uuid4()
        InventoryService.reduce_by_sku(
            items=[{'sku': 'A1', 'quantity': 1}], warehouse_id=warehouse.pk,
            reference_id=ref, reference_type='DispatchOrder',
        )
        InventoryService.restore_dispatch(reference_id=ref)
        with pytest.raises(BusinessRuleViolation):
            InventoryService.restore_dispatch(reference_id=ref)


class TestConsumeReturn:
    def test_takes_declared_quantity(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        outcome = InventoryService.consume_return(sku='A1', batch_id='A1-B1', quantity=4)
        assert (outcome.taken, outcome.shortfall) == (4, 0)
        a1.refresh_from_db()
        assert a1.quantity == 46

    def test_shortfall_reported_not_clamped_silently(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse, quantity=2)
        outcome = InventoryService.consume_return(sku='A1', batch_id='A1-B1', quantity=5)
        assert (outcome.taken, outcome.shortfall) == (2, 3)
        a1.refresh_from_db()
        assert a1.quantity == 0

    def test_missing_batch(self):
        with pytest.raises(ResourceNotFoundError):
            InventoryService.consume_return(sku='A1', batch_id='nope', quantity=1)


class TestManualEdit:
    def test_edit_recomputes_status_and_logs_adjustment(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        actor = SuperuserFactory()
        record = InventoryService.manual_edit(inventory_id=a1.pk, actor=actor, quantity=95, unknown='x')
        assert record.status == 'overstock'
        assert record.updated_by == actor
        movement = StockMovement.objects.get(record=a1, movement_type='ADJUSTMENT')
        assert (movement.quantity_delta, movement.balance_after) == (45, 95)

    def test_threshold_change_reclassifies(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        record = InventoryService.manual_edit(inventory_id=a1.pk, min_stock_level=60, max_stock_level=200)
        assert record.status == 'low_stock'

    def test_expiry_in_past_marks_expired(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        record = InventoryService.manual_edit(
            inventory_id=a1.pk, expiry_date=timezone.now() - timedelta(days=1),
        )
        assert record.status == 'expired'

    def test_flat_and_nested_location(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        record = InventoryService.manual_edit(inventory_id=a1.pk, location={'zone': 'B', 'rack': 'R1'})
        assert (record.zone, record.rack) == ('B', 'R1')
        record = InventoryService.manual_edit(inventory_id=a1.pk, bin='09')
        assert record.bin == '09'

    def test_negative_quantity_rejected(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        with pytest.raises(InvariantViolation):
            InventoryService.manual_edit(inventory_id=a1.pk, quantity=-1)

    def test_max_not_above_min_rejected(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        with pytest.raises(InvariantViolation):
            InventoryService.manual_edit(inventory_id=a1.pk, max_stock_level=10)

    def test_rename_onto_existing_triple(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        InventoryRecordFactory(warehouse=warehouse, sku='A1', batch_id='A1-B2')
        with pytest.raises(DuplicateResourceError):
            InventoryService.manual_edit(inventory_id=a1.pk, batch_id='A1-B2')

    def test_quarantine_survives_edit(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        InventoryService.quarantine(inventory_id=a1.pk)
        record = InventoryService.manual_edit(inventory_id=a1.pk, quantity=5)
        assert record.status == 'quarantine'


class TestArchive:
    def test_archive_then_unarchive_recomputes(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse, quantity=5, status='low_stock')
        outcome = InventoryService.archive(inventory_id=a1.pk)
        assert outcome.changed and not outcome.was_archived
        assert outcome.record.status == 'archived'
        assert outcome.record.archived_at is not None

        outcome = InventoryService.unarchive(inventory_id=a1.pk)
        assert outcome.changed and outcome.was_archived
        assert outcome.record.status == 'low_stock'
        assert outcome.record.archived_at is None

    def test_archive_is_idempotent_and_says_so(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        InventoryService.archive(inventory_id=a1.pk)
        outcome = InventoryService.archive(inventory_id=a1.pk)
        assert outcome.was_archived is True
        assert outcome.changed is False
        assert outcome.record.is_archived

    def test_archive_overrides_classification(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse, quantity=95)
        record = InventoryService.archive(inventory_id=a1.pk).record
        assert record.resolve_status(timezone.now()) == 'archived'

    def test_unarchive_recomputes_from_current_values(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse, expiry_date=timezone.now() + timedelta(days=5))
        InventoryService.archive(inventory_id=a1.pk)
        outcome = InventoryService.unarchive(inventory_id=a1.pk, now=timezone.now() + timedelta(days=6))
        assert outcome.record.status == 'expired'

    def test_invalid_id(self):
        with pytest.raises(InvalidIdentifier):
            InventoryService.archive(inventory_id='bogus')

    def test_bulk_archive_isolates_failures(self):
        warehouse = WarehouseFactory()
        first = _a1(warehouse)
        second = InventoryRecordFactory(warehouse=warehouse)
        result = InventoryService.bulk_archive(ids=[str(first.pk), 'bogus', str(second.pk)])
        assert result.succeeded_count == 2
        assert result.failed_count == 1
        assert result.failed_ids == ['bogus']
        assert result.errors == {'bogus': 'INVALID_IDENTIFIER'}
        assert InventoryRecord.objects.filter(is_archived=True).count() == 2

    def test_bulk_archive_reports_already_archived_and_missing(self):
        warehouse = WarehouseFactory()
        archived = _a1(warehouse)
        InventoryService.archive(inventory_id=archived.pk)
        live = InventoryRecordFactory(warehouse=warehouse)
        missing = str(uuid.uuid4())
        result = InventoryService.bulk_archive(ids=[str(archived.pk), missing, str(live.pk)])
        assert result.succeeded_ids == [str(live.pk)]
        assert result.errors == {str(archived.pk): 'ALREADY_ARCHIVED', missing: 'RESOURCE_NOT_FOUND'}

    def test_bulk_unarchive(self):
        warehouse = WarehouseFactory()
        archived = _a1(warehouse)
        InventoryService.archive(inventory_id=archived.pk)
        live = InventoryRecordFactory(warehouse=warehouse)
        result = InventoryService.bulk_unarchive(ids=[str(archived.pk), str(live.pk)])
        assert result.succeeded_ids == [str(archived.pk)]
        assert result.errors == {str(live.pk): 'NOT_ARCHIVED'}
        assert result.as_dict()['failed_count'] == 1


class TestQuarantine:
    def test_quarantine_and_release(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse, quantity=5)
        record = InventoryService.quarantine(inventory_id=a1.pk)
        assert record.status == 'quarantine'
        assert record.status_pinned
        record = InventoryService.release_quarantine(inventory_id=a1.pk)
        assert record.status == 'low_stock'
        assert not record.status_pinned

    def test_quarantine_archived_rejected(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        InventoryService.archive(inventory_id=a1.pk)
        with pytest.raises(BusinessRuleViolation):
            InventoryService.quarantine(inventory_id=a1.pk)

    def test_release_when_not_quarantined(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        with pytest.raises(BusinessRuleViolation):
            InventoryService.release_quarantine(inventory_id=a1.pk)


class TestRefreshStatuses:
    def test_marks_passed_expiry(self):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse, expiry_date=timezone.now() + timedelta(days=1))
        untouched = InventoryRecordFactory(warehouse=warehouse, quantity=50)
        count = InventoryService.refresh_statuses(now=timezone.now() + timedelta(days=2))
        a1.refresh_from_db()
        untouched.refresh_from_db()
        assert a1.status == 'expired'
        assert a1.age == 2
        assert untouched.status == 'active'
        assert count == 2

    def test_reduction_during_refresh_is_not_overwritten(self, monkeypatch):
        warehouse = WarehouseFactory()
        a1 = _a1(warehouse)
        original_age_on = InventoryRecord.age_on
        calls = []

        def age_on_with_dispatch(record, now):
            # A dispatch commits after the refresh has read the row.
            if not calls:
                calls.append(record.pk)
                InventoryService.reduce_by_sku(items=[{'sku': 'A1', 'quantity': 45}], warehouse_id=warehouse.pk)
            return original_age_on(record, now)

        monkeypatch.setattr(InventoryRecord, 'age_on', age_on_with_dispatch)
        count = InventoryService.refresh_statuses(now=timezone.now() + timedelta(days=10))
        a1.refresh_from_db()
        assert a1.quantity == 5
        assert a1.status == 'low_stock'
        assert a1.age == 10
        assert count == 1

"""
VendOps — Test Factories

Factory Boy factories for generating test data. Used across all test
modules.

@file tests/factories.py
"""

import uuid

import factory
from django.contrib.auth import get_user_model

from core.models import AuditLog
from inventory.models import InventoryRecord
from logistics.models import DispatchItem, DispatchOrder, GoodsReceiving, ReturnOrder
from warehouses.models import Warehouse


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = get_user_model()
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f'user{n:04d}')
    email = factory.LazyAttribute(lambda o: f'{o.username}@vendops.test')
    first_name = factory.Faker('first_name')
    last_name = factory.Faker('last_name')
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        password = extracted or 'TestPass2026!'
        self.set_password(password)
        if create:
            self.save(update_fields=['password'])


class SuperuserFactory(UserFactory):
    is_staff = True
    is_superuser = True


# ---------------------------------------------------------------------------
# Warehouses
# ---------------------------------------------------------------------------

class WarehouseFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Warehouse

    name = factory.Sequence(lambda n: f'Warehouse {n}')
    code = factory.Sequence(lambda n: f'WH-{n:03d}')
    partner = 'Acme Vending'
    location = factory.Faker('city')
    capacity = 10000
    is_active = True


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

class InventoryRecordFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = InventoryRecord

    sku = factory.Sequence(lambda n: f'SKU-{n:04d}')
    product_name = factory.Sequence(lambda n: f'Product {n}')
    batch_id = factory.Sequence(lambda n: f'BATCH-{n:04d}')
    warehouse = factory.SubFactory(WarehouseFactory)
    quantity = 50
    min_stock_level = 10
    max_stock_level = 100
    status = InventoryRecord.StatusChoices.ACTIVE


# ---------------------------------------------------------------------------
# Logistics
# ---------------------------------------------------------------------------

class GoodsReceivingFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = GoodsReceiving

    grn_number = factory.Sequence(lambda n: f'GRN-{n:06d}')
    po_number = factory.Sequence(lambda n: f'PO-{n:05d}')
    vendor = 'Snackco'
    warehouse = factory.SubFactory(WarehouseFactory)
    sku = factory.Sequence(lambda n: f'SKU-{n:04d}')
    product_name = 'Crisps 50g'
    quantity = 10
    batch_id = factory.Sequence(lambda n: f'BATCH-{n:04d}')
    qc_packaging = True
    qc_expiry = True
    qc_label = True
    status = GoodsReceiving.StatusChoices.QC_PASSED


class DispatchOrderFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = DispatchOrder

    dispatch_number = factory.Sequence(lambda n: f'DO-{n:06d}')
    warehouse = factory.SubFactory(WarehouseFactory)
    destination = factory.Faker('street_address')
    status = DispatchOrder.StatusChoices.PENDING


class DispatchItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = DispatchItem

    dispatch = factory.SubFactory(DispatchOrderFactory)
    sku = factory.Sequence(lambda n: f'SKU-{n:04d}')
    quantity = 1


class ReturnOrderFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ReturnOrder

    return_number = factory.Sequence(lambda n: f'RT-{n:06d}')
    warehouse = factory.SubFactory(WarehouseFactory)
    batch_id = factory.Sequence(lambda n: f'BATCH-{n:04d}')
    sku = factory.Sequence(lambda n: f'SKU-{n:04d}')
    product_name = 'Crisps 50g'
    reason = 'Damaged packaging'
    return_type = ReturnOrder.ReturnTypeChoices.DAMAGED
    quantity = 1
    status = ReturnOrder.StatusChoices.PENDING


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

class AuditLogFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = AuditLog

    actor = factory.SubFactory(UserFactory)
    action = AuditLog.ActionChoices.CREATE
    model_name = 'InventoryRecord'
    object_id = factory.LazyFunction(lambda: str(uuid.uuid4()))

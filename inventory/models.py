"""
Inventory — Models

InventoryRecord holds the on-hand quantity of one batch of one SKU in one
warehouse, together with its thresholds, expiry, storage location and
derived status. StockMovement is the insert-only ledger of every quantity
change the engine applies to a record.

@file inventory/models.py
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel

from . import status as inventory_status


class InventoryRecord(BaseModel):
    """
    One row per (sku, batch_id, warehouse).

    quantity never goes below zero. status is derived by
    inventory.status.resolve_status: forced to `archived` while archived,
    held at `quarantine` while status_pinned, otherwise classified from
    quantity, thresholds and expiry.
    """

    class StatusChoices(models.TextChoices):
        ACTIVE = inventory_status.ACTIVE, _('Active')
        LOW_STOCK = inventory_status.LOW_STOCK, _('Low stock')
        OVERSTOCK = inventory_status.OVERSTOCK, _('Overstock')
        EXPIRED = inventory_status.EXPIRED, _('Expired')
        QUARANTINE = inventory_status.QUARANTINE, _('Quarantine')
        ARCHIVED = inventory_status.ARCHIVED, _('Archived')

    sku = models.CharField(_('SKU'), max_length=64, db_index=True)
    product_name = models.CharField(_('product name'), max_length=255)
    batch_id = models.CharField(_('batch ID'), max_length=64, db_index=True)
    warehouse = models.ForeignKey(
        'warehouses.Warehouse',
        on_delete=models.PROTECT,
        related_name='inventory_records',
        verbose_name=_('warehouse'),
    )
    quantity = models.PositiveIntegerField(_('quantity'), default=0)
    min_stock_level = models.PositiveIntegerField(_('minimum stock level'), default=0)
    max_stock_level = models.PositiveIntegerField(_('maximum stock level'), default=1000)
    age = models.PositiveIntegerField(
        _('age (days)'), default=0,
        help_text=_('Whole days since the record was created; refreshed on edit and daily.'),
    )
    expiry_date = models.DateTimeField(_('expiry date'), null=True, blank=True, db_index=True)

    zone = models.CharField(_('zone'), max_length=50, blank=True, default='')
    aisle = models.CharField(_('aisle'), max_length=50, blank=True, default='')
    rack = models.CharField(_('rack'), max_length=50, blank=True, default='')
    bin = models.CharField(_('bin'), max_length=50, blank=True, default='')

    status = models.CharField(
        _('status'), max_length=12,
        choices=StatusChoices.choices,
        default=StatusChoices.ACTIVE,
        db_index=True,
    )
    status_pinned = models.BooleanField(
        _('status pinned'), default=False,
        help_text=_('Quarantine set by an explicit action; recomputation keeps it.'),
    )
    is_archived = models.BooleanField(_('archived'), default=False, db_index=True)
    archived_at = models.DateTimeField(_('archived at'), null=True, blank=True)

    class Meta:
        verbose_name = _('inventory record')
        verbose_name_plural = _('inventory records')
        ordering = ['-created_at']
        permissions = [
            ('manage_inventory', 'Can archive, quarantine and adjust inventory records'),
        ]
        indexes = [
            models.Index(fields=['warehouse', 'is_archived', 'status'], name='inv_wh_archived_status_idx'),
            models.Index(fields=['sku', 'is_archived'], name='inv_sku_archived_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['sku', 'batch_id', 'warehouse'],
                name='inv_unique_sku_batch_warehouse',
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0),
                name='inv_quantity_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(max_stock_level__gt=models.F('min_stock_level')),
                name='inv_max_above_min',
            ),
        ]

    def __str__(self):
        return f'{self.sku} / {self.batch_id} @ {self.warehouse_id} × {self.quantity}'

    @property
    def location(self) -> dict:
        return {'zone': self.zone, 'aisle': self.aisle, 'rack': self.rack, 'bin': self.bin}

    def age_on(self, now) -> int:
        if self.created_at is None:
            return 0
        return max((now - self.created_at).days, 0)

    def resolve_status(self, now) -> str:
        return inventory_status.resolve_status(self, now)


class StockMovement(models.Model):
    """
    A single immutable quantity change on an InventoryRecord (insert only).

    quantity_delta is signed: receipts and dispatch reversals are positive,
    dispatches and return approvals negative, adjustments either.
    balance_after is the record quantity once the change was applied, so
    the quantity of any record at any past instant can be read back from
    the ledger.
    """

    class MovementType(models.TextChoices):
        RECEIPT = 'RECEIPT', _('Receipt')
        DISPATCH = 'DISPATCH', _('Dispatch')
        DISPATCH_REVERSAL = 'DISPATCH_REVERSAL', _('Dispatch reversal')
        RETURN = 'RETURN', _('Return')
        ADJUSTMENT = 'ADJUSTMENT', _('Adjustment')

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False,
    )
    record = models.ForeignKey(
        InventoryRecord,
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('inventory record'),
    )
    sku = models.CharField(_('SKU'), max_length=64, db_index=True)
    batch_id = models.CharField(_('batch ID'), max_length=64)
    warehouse = models.ForeignKey(
        'warehouses.Warehouse',
        on_delete=models.PROTECT,
        related_name='stock_movements',
        verbose_name=_('warehouse'),
    )
    movement_type = models.CharField(
        _('movement type'), max_length=20,
        choices=MovementType.choices, db_index=True,
    )
    quantity_delta = models.IntegerField(_('quantity change'))
    balance_after = models.PositiveIntegerField(_('balance after'))
    reference_id = models.UUIDField(
        _('reference ID'), null=True, blank=True, db_index=True,
        help_text=_('Source document: DispatchOrder, ReturnOrder, GoodsReceiving.'),
    )
    reference_type = models.CharField(
        _('reference type'), max_length=100, blank=True,
        help_text=_('Model name of the source document'),
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('created by'),
    )
    created_at = models.DateTimeField(
        _('created at'), auto_now_add=True, db_index=True,
    )

    class Meta:
        verbose_name = _('stock movement')
        verbose_name_plural = _('stock movements')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['warehouse', 'sku', 'created_at'], name='mov_wh_sku_created_idx'),
            models.Index(fields=['record', 'created_at'], name='mov_record_created_idx'),
            models.Index(fields=['reference_type', 'reference_id'], name='mov_reference_idx'),
        ]

    def __str__(self):
        return f'{self.movement_type} {self.quantity_delta:+d} {self.sku}/{self.batch_id}'

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise NotImplementedError('StockMovement is insert-only; updates are not allowed.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise NotImplementedError('StockMovement records cannot be deleted.')

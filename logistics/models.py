"""
Logistics — Models

Documents that move stock in and out of a warehouse: goods receipts
(GRN) with their QC checks, dispatch orders with their lines, and return
orders raised against a batch. Quantity changes themselves are applied
by inventory.services.InventoryService.

@file logistics/models.py
"""

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel


class GoodsReceiving(BaseModel):
    """
    Inbound receipt of one SKU batch against a purchase order.

    QC passes only when packaging, expiry and label checks all pass; the
    units are added to inventory once, the first time QC passes
    (stocked_at records when).
    """

    class StatusChoices(models.TextChoices):
        RECEIVED = 'received', _('Received')
        QC_PENDING = 'qc_pending', _('QC pending')
        QC_PASSED = 'qc_passed', _('QC passed')
        QC_FAILED = 'qc_failed', _('QC failed')

    grn_number = models.CharField(_('GRN number'), max_length=20, unique=True)
    po_number = models.CharField(_('PO number'), max_length=50, db_index=True)
    vendor = models.CharField(_('vendor'), max_length=200, db_index=True)
    warehouse = models.ForeignKey(
        'warehouses.Warehouse',
        on_delete=models.PROTECT,
        related_name='receivings',
        verbose_name=_('warehouse'),
    )
    sku = models.CharField(_('SKU'), max_length=64, db_index=True)
    product_name = models.CharField(_('product name'), max_length=255)
    quantity = models.PositiveIntegerField(_('quantity'))
    batch_id = models.CharField(_('batch ID'), max_length=64)
    expiry_date = models.DateTimeField(_('expiry date'), null=True, blank=True)

    qc_packaging = models.BooleanField(_('packaging OK'), default=False)
    qc_expiry = models.BooleanField(_('expiry OK'), default=False)
    qc_label = models.BooleanField(_('label OK'), default=False)
    qc_documents = models.JSONField(_('QC documents'), default=list, blank=True)

    zone = models.CharField(_('zone'), max_length=50, blank=True, default='')
    aisle = models.CharField(_('aisle'), max_length=50, blank=True, default='')
    rack = models.CharField(_('rack'), max_length=50, blank=True, default='')
    bin = models.CharField(_('bin'), max_length=50, blank=True, default='')

    status = models.CharField(
        _('status'), max_length=12,
        choices=StatusChoices.choices,
        default=StatusChoices.RECEIVED,
        db_index=True,
    )
    stocked_at = models.DateTimeField(_('stocked at'), null=True, blank=True)

    class Meta:
        verbose_name = _('goods receiving')
        verbose_name_plural = _('goods receivings')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['warehouse', 'status']),
            models.Index(fields=['warehouse', 'created_at']),
        ]

    def __str__(self):
        return f'{self.grn_number} — {self.sku} × {self.quantity} ({self.status})'

    @property
    def qc_passed(self) -> bool:
        return self.qc_packaging and self.qc_expiry and self.qc_label

    @property
    def storage(self) -> dict:
        return {'zone': self.zone, 'aisle': self.aisle, 'rack': self.rack, 'bin': self.bin}


class DispatchOrder(BaseModel):
    """
    Outbound movement of stock to a destination, carried by a field agent.

    State machine: pending → assigned → in_transit → delivered, or
    pending/assigned/in_transit → cancelled. Stock is taken when the order
    is created and put back when it is cancelled.
    """

    class StatusChoices(models.TextChoices):
        PENDING = 'pending', _('Pending')
        ASSIGNED = 'assigned', _('Assigned')
        IN_TRANSIT = 'in_transit', _('In transit')
        DELIVERED = 'delivered', _('Delivered')
        CANCELLED = 'cancelled', _('Cancelled')

    dispatch_number = models.CharField(_('dispatch number'), max_length=20, unique=True)
    warehouse = models.ForeignKey(
        'warehouses.Warehouse',
        on_delete=models.PROTECT,
        related_name='dispatches',
        verbose_name=_('warehouse'),
    )
    destination = models.CharField(_('destination'), max_length=255)
    route = models.CharField(_('route'), max_length=100, blank=True, default='')
    assigned_agent = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='assigned_dispatches',
        verbose_name=_('assigned agent'),
    )
    notes = models.CharField(_('notes'), max_length=500, blank=True, default='')
    status = models.CharField(
        _('status'), max_length=12,
        choices=StatusChoices.choices,
        default=StatusChoices.PENDING,
        db_index=True,
    )
    delivered_at = models.DateTimeField(_('delivered at'), null=True, blank=True)
    cancelled_at = models.DateTimeField(_('cancelled at'), null=True, blank=True)

    class Meta:
        verbose_name = _('dispatch order')
        verbose_name_plural = _('dispatch orders')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['warehouse', 'status']),
            models.Index(fields=['assigned_agent', 'status']),
        ]

    def __str__(self):
        return f'{self.dispatch_number} → {self.destination} ({self.status})'


class DispatchItem(models.Model):
    dispatch = models.ForeignKey(
        DispatchOrder,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_('dispatch order'),
    )
    sku = models.CharField(_('SKU'), max_length=64)
    product_name = models.CharField(_('product name'), max_length=255, blank=True, default='')
    batch_id = models.CharField(
        _('batch ID'), max_length=64, blank=True, default='',
        help_text=_('Blank: drawn from any live batch, earliest expiry first.'),
    )
    quantity = models.PositiveIntegerField(_('quantity'))

    class Meta:
        verbose_name = _('dispatch item')
        verbose_name_plural = _('dispatch items')
        ordering = ['dispatch', 'id']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name='dispatch_item_quantity_positive',
            ),
        ]

    def __str__(self):
        return f'{self.dispatch_id} — {self.sku} × {self.quantity}'


class ReturnOrder(BaseModel):
    """
    Goods coming back against a batch: pending → approved | rejected.

    Approval takes the declared quantity out of the batch's good stock;
    stock_shortfall records units the batch no longer held at that point.
    """

    class StatusChoices(models.TextChoices):
        PENDING = 'pending', _('Pending')
        APPROVED = 'approved', _('Approved')
        REJECTED = 'rejected', _('Rejected')

    class ReturnTypeChoices(models.TextChoices):
        DAMAGED = 'damaged', _('Damaged')
        EXPIRED = 'expired', _('Expired')
        WRONG_ITEM = 'wrong_item', _('Wrong item')
        OVERSTOCK = 'overstock', _('Overstock')
        OTHER = 'other', _('Other')

    return_number = models.CharField(_('return number'), max_length=20, unique=True)
    warehouse = models.ForeignKey(
        'warehouses.Warehouse',
        on_delete=models.PROTECT,
        related_name='returns',
        verbose_name=_('warehouse'),
    )
    batch_id = models.CharField(_('batch ID'), max_length=64, db_index=True)
    sku = models.CharField(_('SKU'), max_length=64)
    product_name = models.CharField(_('product name'), max_length=255)
    vendor = models.CharField(_('vendor'), max_length=200, blank=True, default='')
    reason = models.TextField(_('reason'))
    return_type = models.CharField(
        _('return type'), max_length=12,
        choices=ReturnTypeChoices.choices,
        default=ReturnTypeChoices.OTHER,
    )
    quantity = models.PositiveIntegerField(_('quantity'))
    status = models.CharField(
        _('status'), max_length=10,
        choices=StatusChoices.choices,
        default=StatusChoices.PENDING,
        db_index=True,
    )
    stock_shortfall = models.PositiveIntegerField(_('stock shortfall'), default=0)
    decided_at = models.DateTimeField(_('decided at'), null=True, blank=True)
    decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('decided by'),
    )

    class Meta:
        verbose_name = _('return order')
        verbose_name_plural = _('return orders')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['warehouse', 'status']),
        ]

    def __str__(self):
        return f'{self.return_number} — {self.sku}/{self.batch_id} × {self.quantity} ({self.status})'

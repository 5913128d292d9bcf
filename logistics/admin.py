"""
Logistics — Django Admin Configuration

Receipts, dispatches (with their lines) and returns, read-mostly: stock
effects only happen through the API workflow, so statuses are read-only here.

@file logistics/admin.py
"""

from django.contrib import admin
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .models import DispatchItem, DispatchOrder, GoodsReceiving, ReturnOrder

STATUS_COLORS = {
    'received': '#6b7280', 'qc_pending': '#f59e0b', 'qc_passed': '#22c55e', 'qc_failed': '#dc2626',
    'pending': '#f59e0b', 'assigned': '#06b6d4', 'in_transit': '#3b82f6',
    'delivered': '#22c55e', 'cancelled': '#dc2626',
    'approved': '#22c55e', 'rejected': '#dc2626',
}


class StatusBadgeMixin:

    @admin.display(description=_('Status'))
    def status_badge(self, obj):
        color = STATUS_COLORS.get(obj.status, '#6b7280')
        return format_html(
            '<span style="background:{};color:#fff;padding:2px 8px;'
            'border-radius:4px;font-size:11px;font-weight:600;">{}</span>',
            color, obj.get_status_display(),
        )


@admin.register(GoodsReceiving)
class GoodsReceivingAdmin(StatusBadgeMixin, admin.ModelAdmin):
    list_display = ('grn_number', 'po_number', 'vendor', 'warehouse', 'sku', 'quantity', 'status_badge', 'stocked_at')
    list_filter = ('status', 'warehouse')
    search_fields = ('grn_number', 'po_number', 'sku', 'batch_id', 'vendor')
    readonly_fields = ('id', 'grn_number', 'status', 'stocked_at', 'created_at', 'updated_at', 'created_by', 'updated_by')
    list_select_related = ('warehouse',)
    date_hierarchy = 'created_at'
    raw_id_fields = ('warehouse',)


class DispatchItemInline(admin.TabularInline):
    model = DispatchItem
    extra = 0
    can_delete = False
    fields = ('sku', 'product_name', 'batch_id', 'quantity')
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(DispatchOrder)
class DispatchOrderAdmin(StatusBadgeMixin, admin.ModelAdmin):
    list_display = ('dispatch_number', 'warehouse', 'destination', 'assigned_agent', 'status_badge', 'delivered_at', 'created_at')
    list_filter = ('status', 'warehouse')
    search_fields = ('dispatch_number', 'destination', 'route')
    readonly_fields = (
        'id', 'dispatch_number', 'status', 'delivered_at', 'cancelled_at',
        'created_at', 'updated_at', 'created_by', 'updated_by',
    )
    list_select_related = ('warehouse', 'assigned_agent')
    date_hierarchy = 'created_at'
    raw_id_fields = ('warehouse', 'assigned_agent')
    inlines = [DispatchItemInline]


@admin.register(ReturnOrder)
class ReturnOrderAdmin(StatusBadgeMixin, admin.ModelAdmin):
    list_display = ('return_number', 'batch_id', 'sku', 'quantity', 'return_type', 'status_badge', 'stock_shortfall', 'created_at')
    list_filter = ('status', 'return_type', 'warehouse')
    search_fields = ('return_number', 'batch_id', 'sku', 'reason')
    readonly_fields = (
        'id', 'return_number', 'status', 'stock_shortfall', 'decided_at', 'decided_by',
        'created_at', 'updated_at', 'created_by', 'updated_by',
    )
    list_select_related = ('warehouse',)
    date_hierarchy = 'created_at'
    raw_id_fields = ('warehouse',)

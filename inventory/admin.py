"""
Inventory — Django Admin Configuration

Inventory records with status badges; the stock ledger is read-only.

@file inventory/admin.py
"""

from django.contrib import admin
from django.utils import timezone
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .models import InventoryRecord, StockMovement

STATUS_COLORS = {
    'active': '#22c55e',
    'low_stock': '#f59e0b',
    'overstock': '#3b82f6',
    'expired': '#dc2626',
    'quarantine': '#8b5cf6',
    'archived': '#6b7280',
}


class StockMovementInline(admin.TabularInline):
    model = StockMovement
    extra = 0
    can_delete = False
    fields = ('created_at', 'movement_type', 'quantity_delta', 'balance_after', 'reference_type', 'reference_id')
    readonly_fields = fields
    ordering = ('-created_at',)

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(InventoryRecord)
class InventoryRecordAdmin(admin.ModelAdmin):
    list_display = (
        'sku', 'product_name', 'batch_id', 'warehouse', 'quantity',
        'min_stock_level', 'max_stock_level', 'expiry_date', 'status_badge', 'is_archived',
    )
    list_filter = ('status', 'is_archived', 'status_pinned', 'warehouse')
    search_fields = ('sku', 'product_name', 'batch_id')
    readonly_fields = (
        'id', 'quantity', 'status', 'status_pinned', 'age', 'is_archived', 'archived_at',
        'created_at', 'updated_at', 'created_by', 'updated_by',
    )
    list_select_related = ('warehouse',)
    show_full_result_count = False
    list_per_page = 50
    date_hierarchy = 'created_at'
    raw_id_fields = ('warehouse',)
    inlines = [StockMovementInline]

    fieldsets = (
        (_('Product'), {'fields': ('id', 'sku', 'product_name', 'batch_id', 'warehouse')}),
        (_('Stock'), {'fields': ('quantity', 'min_stock_level', 'max_stock_level', 'expiry_date', 'age')}),
        (_('Location'), {'fields': ('zone', 'aisle', 'rack', 'bin')}),
        (_('Status'), {'fields': ('status', 'status_pinned', 'is_archived', 'archived_at')}),
        (_('Audit'), {'fields': ('created_at', 'updated_at', 'created_by', 'updated_by'), 'classes': ('collapse',)}),
    )

    def save_model(self, request, obj, form, change):
        now = timezone.now()
        obj.age = obj.age_on(now)
        obj.status = obj.resolve_status(now)
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)

    @admin.display(description=_('Status'))
    def status_badge(self, obj):
        color = STATUS_COLORS.get(obj.status, '#6b7280')
        return format_html(
            '<span style="background:{};color:#fff;padding:2px 8px;'
            'border-radius:4px;font-size:11px;font-weight:600;">{}</span>',
            color, obj.get_status_display(),
        )


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'movement_type', 'sku', 'batch_id', 'warehouse', 'quantity_delta', 'balance_after', 'reference_type')
    list_filter = ('movement_type', 'warehouse')
    search_fields = ('sku', 'batch_id', 'reference_id')
    list_select_related = ('warehouse',)
    date_hierarchy = 'created_at'
    show_full_result_count = False

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

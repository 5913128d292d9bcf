"""
Warehouses — Django Admin Configuration

@file warehouses/admin.py
"""

from django.contrib import admin

from .models import Warehouse


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'partner', 'location', 'capacity', 'manager', 'is_active')
    list_filter = ('is_active', 'partner')
    search_fields = ('code', 'name', 'partner', 'location')
    readonly_fields = ('id', 'created_at', 'updated_at', 'created_by', 'updated_by')
    list_select_related = ('manager',)
    raw_id_fields = ('manager',)
    ordering = ('name',)

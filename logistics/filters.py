"""
Logistics — Filters

django-filter sets for the document lists: warehouse, status and a
created-at window (start_date / end_date).

@file logistics/filters.py
"""

import django_filters

from .models import DispatchOrder, GoodsReceiving, ReturnOrder


class CreatedWindowFilterSet(django_filters.FilterSet):
    start_date = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='gte')
    end_date = django_filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='lte')


class GoodsReceivingFilter(CreatedWindowFilterSet):
    po_number = django_filters.CharFilter(lookup_expr='icontains')

    class Meta:
        model = GoodsReceiving
        fields = ['warehouse', 'status', 'vendor', 'sku', 'po_number']


class DispatchOrderFilter(CreatedWindowFilterSet):
    class Meta:
        model = DispatchOrder
        fields = ['warehouse', 'status', 'assigned_agent']


class ReturnOrderFilter(CreatedWindowFilterSet):
    class Meta:
        model = ReturnOrder
        fields = ['warehouse', 'status', 'return_type', 'batch_id', 'sku']

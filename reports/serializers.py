"""
Reports — Serializers

Query-string validation for report requests, and rendering of the model
rows some reports embed next to their numbers.

@file reports/serializers.py
"""

from rest_framework import serializers

from inventory.serializers import InventoryRecordReadSerializer
from logistics.serializers import GoodsReceivingReadSerializer

from .services import DATE_RANGE_PRESETS

# Report keys that carry model instances, and how to render them.
EMBEDDED_ROWS = {
    'inventory_details': InventoryRecordReadSerializer,
    'purchase_orders': GoodsReceivingReadSerializer,
    'receivings': GoodsReceivingReadSerializer,
}


class ReportQuerySerializer(serializers.Serializer):
    warehouse = serializers.UUIDField()
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False)
    date_range = serializers.CharField(
        max_length=20, required=False, allow_blank=True, default='',
        help_text=f'{", ".join(DATE_RANGE_PRESETS)} or a day as DD-MM-YYYY.',
    )
    category = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    vendor = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    status = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    stock_accuracy = serializers.FloatField(min_value=0, max_value=100, required=False)

    def validate(self, attrs):
        start, end = attrs.get('start_date'), attrs.get('end_date')
        if start and end and start > end:
            raise serializers.ValidationError({'end_date': 'end_date must not be before start_date.'})
        return attrs


def render_report(payload: dict, *, context=None) -> dict:
    data = dict(payload)
    for key, serializer_class in EMBEDDED_ROWS.items():
        if key in data:
            data[key] = serializer_class(data[key], many=True, context=context or {}).data
    return data

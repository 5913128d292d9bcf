"""
Inventory — Serializers

Read serializer for inventory records and ledger rows; request
serializers for receiving, manual edits, bulk archival and sufficiency
checks. Writes are routed through InventoryService, never ModelSerializer.save().

@file inventory/serializers.py
"""

from rest_framework import serializers

from .models import InventoryRecord, StockMovement


class LocationSerializer(serializers.Serializer):
    zone = serializers.CharField(max_length=50, allow_blank=True, required=False)
    aisle = serializers.CharField(max_length=50, allow_blank=True, required=False)
    rack = serializers.CharField(max_length=50, allow_blank=True, required=False)
    bin = serializers.CharField(max_length=50, allow_blank=True, required=False)


class InventoryRecordReadSerializer(serializers.ModelSerializer):
    warehouse_code = serializers.CharField(source='warehouse.code', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    location = serializers.DictField(read_only=True)

    class Meta:
        model = InventoryRecord
        fields = [
            'id', 'sku', 'product_name', 'batch_id', 'warehouse', 'warehouse_code',
            'quantity', 'min_stock_level', 'max_stock_level', 'age', 'expiry_date',
            'location', 'status', 'status_display', 'status_pinned',
            'is_archived', 'archived_at', 'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class InventoryReceiveSerializer(serializers.Serializer):
    sku = serializers.CharField(max_length=64)
    batch_id = serializers.CharField(max_length=64)
    warehouse = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    product_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    min_stock_level = serializers.IntegerField(min_value=0, required=False)
    max_stock_level = serializers.IntegerField(min_value=1, required=False)
    expiry_date = serializers.DateTimeField(required=False, allow_null=True)
    location = LocationSerializer(required=False)


class InventoryUpdateSerializer(serializers.Serializer):
    """Manual edit: every field optional, only sent keys are applied."""

    sku = serializers.CharField(max_length=64, required=False)
    product_name = serializers.CharField(max_length=255, required=False)
    batch_id = serializers.CharField(max_length=64, required=False)
    quantity = serializers.IntegerField(min_value=0, required=False)
    min_stock_level = serializers.IntegerField(min_value=0, required=False)
    max_stock_level = serializers.IntegerField(min_value=1, required=False)
    expiry_date = serializers.DateTimeField(required=False, allow_null=True)
    location = LocationSerializer(required=False)


class BulkIdsSerializer(serializers.Serializer):
    # Plain strings: malformed ids are reported per id by the service, not rejected here.
    ids = serializers.ListField(child=serializers.CharField(), allow_empty=False, max_length=500)


class StockLineSerializer(serializers.Serializer):
    sku = serializers.CharField(max_length=64)
    quantity = serializers.IntegerField(min_value=1)
    batch_id = serializers.CharField(max_length=64, required=False, allow_blank=True)


class SufficiencyCheckSerializer(serializers.Serializer):
    warehouse = serializers.UUIDField(required=False, allow_null=True)
    items = StockLineSerializer(many=True, allow_empty=False)


class StockMovementSerializer(serializers.ModelSerializer):
    movement_type_display = serializers.CharField(source='get_movement_type_display', read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            'id', 'record', 'sku', 'batch_id', 'warehouse', 'movement_type',
            'movement_type_display', 'quantity_delta', 'balance_after',
            'reference_type', 'reference_id', 'created_by', 'created_at',
        ]
        read_only_fields = fields

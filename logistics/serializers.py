"""
Logistics — Serializers

Read serializers for receipts, dispatches and returns; request serializers
for their creation and workflow actions.

@file logistics/serializers.py
"""

from django.contrib.auth import get_user_model
from rest_framework import serializers

from inventory.serializers import LocationSerializer, StockLineSerializer

from .models import DispatchItem, DispatchOrder, GoodsReceiving, ReturnOrder


# ---------------------------------------------------------------------------
# Receiving
# ---------------------------------------------------------------------------

class QCVerificationSerializer(serializers.Serializer):
    packaging = serializers.BooleanField()
    expiry = serializers.BooleanField()
    label = serializers.BooleanField()
    documents = serializers.ListField(child=serializers.CharField(max_length=500), required=False)


class QCUpdateSerializer(serializers.Serializer):
    packaging = serializers.BooleanField(required=False)
    expiry = serializers.BooleanField(required=False)
    label = serializers.BooleanField(required=False)
    documents = serializers.ListField(child=serializers.CharField(max_length=500), required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('At least one QC field is required.')
        return attrs


class GoodsReceivingReadSerializer(serializers.ModelSerializer):
    warehouse_code = serializers.CharField(source='warehouse.code', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    qc_verification = serializers.SerializerMethodField()
    storage = serializers.DictField(read_only=True)

    class Meta:
        model = GoodsReceiving
        fields = [
            'id', 'grn_number', 'po_number', 'vendor', 'warehouse', 'warehouse_code',
            'sku', 'product_name', 'quantity', 'batch_id', 'expiry_date',
            'qc_verification', 'storage', 'status', 'status_display', 'stocked_at',
            'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_qc_verification(self, obj):
        return {
            'packaging': obj.qc_packaging,
            'expiry': obj.qc_expiry,
            'label': obj.qc_label,
            'documents': obj.qc_documents,
        }


class GoodsReceivingWriteSerializer(serializers.Serializer):
    warehouse = serializers.UUIDField()
    po_number = serializers.CharField(max_length=50)
    vendor = serializers.CharField(max_length=200)
    sku = serializers.CharField(max_length=64)
    product_name = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1)
    batch_id = serializers.CharField(max_length=64, required=False, allow_blank=True, default='')
    expiry_date = serializers.DateTimeField(required=False, allow_null=True)
    qc_verification = QCVerificationSerializer()
    storage = LocationSerializer(required=False)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class DispatchItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = DispatchItem
        fields = ['id', 'sku', 'product_name', 'batch_id', 'quantity']
        read_only_fields = fields


class DispatchLineSerializer(StockLineSerializer):
    product_name = serializers.CharField(max_length=255, required=False, allow_blank=True)


class DispatchOrderReadSerializer(serializers.ModelSerializer):
    warehouse_code = serializers.CharField(source='warehouse.code', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    assigned_agent_name = serializers.CharField(
        source='assigned_agent.get_username', read_only=True, default=None,
    )
    items = DispatchItemSerializer(many=True, read_only=True)

    class Meta:
        model = DispatchOrder
        fields = [
            'id', 'dispatch_number', 'warehouse', 'warehouse_code', 'destination', 'route',
            'assigned_agent', 'assigned_agent_name', 'notes', 'status', 'status_display',
            'items', 'delivered_at', 'cancelled_at', 'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class DispatchOrderWriteSerializer(serializers.Serializer):
    warehouse = serializers.UUIDField()
    destination = serializers.CharField(max_length=255)
    route = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    assigned_agent = serializers.PrimaryKeyRelatedField(
        queryset=get_user_model().objects.filter(is_active=True),
        required=False, allow_null=True,
    )
    items = DispatchLineSerializer(many=True, allow_empty=False)


class DispatchAssignSerializer(serializers.Serializer):
    assigned_agent = serializers.PrimaryKeyRelatedField(
        queryset=get_user_model().objects.filter(is_active=True),
    )


class DispatchStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=DispatchOrder.StatusChoices.choices)
    assigned_agent = serializers.PrimaryKeyRelatedField(
        queryset=get_user_model().objects.filter(is_active=True),
        required=False, allow_null=True,
    )


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------

class ReturnOrderReadSerializer(serializers.ModelSerializer):
    warehouse_code = serializers.CharField(source='warehouse.code', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    return_type_display = serializers.CharField(source='get_return_type_display', read_only=True)

    class Meta:
        model = ReturnOrder
        fields = [
            'id', 'return_number', 'warehouse', 'warehouse_code', 'batch_id', 'sku',
            'product_name', 'vendor', 'reason', 'return_type', 'return_type_display',
            'quantity', 'status', 'status_display', 'stock_shortfall',
            'decided_at', 'decided_by', 'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ReturnOrderWriteSerializer(serializers.Serializer):
    batch_id = serializers.CharField(max_length=64)
    reason = serializers.CharField()
    quantity = serializers.IntegerField(min_value=1, required=False)
    vendor = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    warehouse = serializers.UUIDField(required=False, allow_null=True)


class ReturnReasonSerializer(serializers.Serializer):
    reason = serializers.CharField()

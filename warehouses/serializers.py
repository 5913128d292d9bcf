"""
Warehouses — Serializers

@file warehouses/serializers.py
"""

from rest_framework import serializers

from .models import Warehouse


class WarehouseSerializer(serializers.ModelSerializer):
    manager_name = serializers.CharField(source='manager.get_username', read_only=True, default=None)

    class Meta:
        model = Warehouse
        fields = [
            'id', 'name', 'code', 'partner', 'location', 'capacity',
            'manager', 'manager_name', 'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

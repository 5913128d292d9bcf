"""
Warehouses — Views

@file warehouses/views.py
"""

from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated

from core.permissions import HasModelPermission

from .models import Warehouse
from .serializers import WarehouseSerializer


class WarehouseViewSet(viewsets.ModelViewSet):
    """Warehouse directory. Writes need the matching warehouses.* model permission."""

    permission_classes = [IsAuthenticated, HasModelPermission]
    required_permissions = {
        'create': ['warehouses.add_warehouse'],
        'update': ['warehouses.change_warehouse'],
        'partial_update': ['warehouses.change_warehouse'],
    }
    serializer_class = WarehouseSerializer
    filterset_fields = ['is_active', 'partner']
    search_fields = ['name', 'code', 'location']
    ordering_fields = ['name', 'code', 'capacity', 'created_at']
    ordering = ['name']
    http_method_names = ['get', 'post', 'put', 'patch', 'head', 'options']

    def get_queryset(self):
        return Warehouse.objects.select_related('manager')

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    def perform_update(self, serializer):
        serializer.save(updated_by=self.request.user)

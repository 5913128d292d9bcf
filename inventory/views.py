"""
Inventory — Views

DRF ViewSet over inventory records. List endpoints show live
(non-archived) stock; archived records have their own listing. Receiving,
manual edits, archival and quarantine go through InventoryService and are
audited here.

@file inventory/views.py
"""

import logging

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.constants import (
    AUDIT_ACTION_ARCHIVE,
    AUDIT_ACTION_CREATE,
    AUDIT_ACTION_STATUS_CHANGE,
    AUDIT_ACTION_UNARCHIVE,
    AUDIT_ACTION_UPDATE,
)
from core.permissions import HasModelPermission
from core.services import AuditService, client_ip

from .models import InventoryRecord, StockMovement
from .serializers import (
    BulkIdsSerializer,
    InventoryReceiveSerializer,
    InventoryRecordReadSerializer,
    InventoryUpdateSerializer,
    StockMovementSerializer,
    SufficiencyCheckSerializer,
)
from .services import InventoryService
from .validators import check_sufficiency

logger = logging.getLogger('vendops')

MANAGE = ['inventory.manage_inventory']


class InventoryRecordViewSet(viewsets.ModelViewSet):
    """
    list / retrieve / create (receive) / update (manual edit).
    Workflow: archive, unarchive, bulk-archive, bulk-unarchive,
    quarantine, release. Read helpers: archived, movements, check-sufficiency.
    """

    permission_classes = [IsAuthenticated, HasModelPermission]
    required_permissions = {
        'create': ['inventory.add_inventoryrecord'],
        'update': ['inventory.change_inventoryrecord'],
        'partial_update': ['inventory.change_inventoryrecord'],
        'archive': MANAGE,
        'unarchive': MANAGE,
        'bulk_archive': MANAGE,
        'bulk_unarchive': MANAGE,
        'quarantine': MANAGE,
        'release': MANAGE,
        'check_sufficiency': [],
    }
    filterset_fields = ['warehouse', 'status', 'sku', 'batch_id']
    search_fields = ['sku', 'product_name', 'batch_id']
    ordering_fields = ['created_at', 'quantity', 'expiry_date', 'sku', 'age']
    ordering = ['-created_at']
    http_method_names = ['get', 'post', 'put', 'patch', 'head', 'options']

    def get_queryset(self):
        qs = InventoryRecord.objects.select_related('warehouse')
        if self.action == 'list':
            return qs.filter(is_archived=False)
        if self.action == 'archived':
            return qs.filter(is_archived=True)
        return qs

    def get_serializer_class(self):
        if self.action == 'create':
            return InventoryReceiveSerializer
        if self.action in ('update', 'partial_update'):
            return InventoryUpdateSerializer
        return InventoryRecordReadSerializer

    def _read(self, record):
        return InventoryRecordReadSerializer(record, context={'request': self.request}).data

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        record = InventoryService.receive(
            warehouse_id=data.pop('warehouse'),
            actor=request.user,
            **data,
        )
        AuditService.log_request(request, action=AUDIT_ACTION_CREATE, instance=record)
        logger.info(
            'Received %s x %s batch=%s into warehouse %s.',
            data['quantity'], record.sku, record.batch_id, record.warehouse_id,
        )
        return Response(self._read(record), status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        record = self.get_object()
        before = AuditService.snapshot(record)
        serializer = self.get_serializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        updated = InventoryService.manual_edit(
            inventory_id=record.pk, actor=request.user, **serializer.validated_data,
        )
        AuditService.log_request(request, action=AUDIT_ACTION_UPDATE, instance=updated, old_values=before)
        return Response(self._read(updated))

    # --- Archival ---

    @action(detail=True, methods=['post'], url_path='archive')
    def archive(self, request, pk=None):
        outcome = InventoryService.archive(inventory_id=pk, actor=request.user)
        if outcome.changed:
            AuditService.log_request(
                request, action=AUDIT_ACTION_ARCHIVE, instance=outcome.record,
                old_values={'is_archived': False},
            )
        else:
            logger.warning('Archive requested for already archived inventory record %s.', pk)
        return Response({
            'success': True,
            'data': self._read(outcome.record),
            'meta': {'was_archived': outcome.was_archived, 'changed': outcome.changed},
        })

    @action(detail=True, methods=['post'], url_path='unarchive')
    def unarchive(self, request, pk=None):
        outcome = InventoryService.unarchive(inventory_id=pk, actor=request.user)
        if outcome.changed:
            AuditService.log_request(
                request, action=AUDIT_ACTION_UNARCHIVE, instance=outcome.record,
                old_values={'is_archived': True},
            )
        else:
            logger.warning('Unarchive requested for live inventory record %s.', pk)
        return Response({
            'success': True,
            'data': self._read(outcome.record),
            'meta': {'was_archived': outcome.was_archived, 'changed': outcome.changed},
        })

    def _bulk_response(self, result, audit_action):
        for record_id in result.succeeded_ids:
            AuditService.log(
                actor=self.request.user,
                action=audit_action,
                model_name='InventoryRecord',
                object_id=record_id,
                ip_address=client_ip(self.request),
            )
        if result.has_failures:
            logger.warning(
                '%s: %d succeeded, %d failed (%s).',
                self.action, result.succeeded_count, result.failed_count, ', '.join(result.failed_ids),
            )
        code = status.HTTP_207_MULTI_STATUS if result.has_failures else status.HTTP_200_OK
        return Response(result.as_dict(), status=code)

    @action(detail=False, methods=['post'], url_path='bulk-archive')
    def bulk_archive(self, request):
        ser = BulkIdsSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        result = InventoryService.bulk_archive(ids=ser.validated_data['ids'], actor=request.user)
        return self._bulk_response(result, AUDIT_ACTION_ARCHIVE)

    @action(detail=False, methods=['post'], url_path='bulk-unarchive')
    def bulk_unarchive(self, request):
        ser = BulkIdsSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        result = InventoryService.bulk_unarchive(ids=ser.validated_data['ids'], actor=request.user)
        return self._bulk_response(result, AUDIT_ACTION_UNARCHIVE)

    @action(detail=False, methods=['get'], url_path='archived')
    def archived(self, request):
        qs = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(qs)
        ser = InventoryRecordReadSerializer(page, many=True, context={'request': request})
        return self.get_paginated_response(ser.data)

    # --- Quarantine ---

    @action(detail=True, methods=['post'], url_path='quarantine')
    def quarantine(self, request, pk=None):
        before = AuditService.snapshot(self.get_object())
        record = InventoryService.quarantine(inventory_id=pk, actor=request.user)
        AuditService.log_request(request, action=AUDIT_ACTION_STATUS_CHANGE, instance=record, old_values=before)
        return Response(self._read(record))

    @action(detail=True, methods=['post'], url_path='release')
    def release(self, request, pk=None):
        before = AuditService.snapshot(self.get_object())
        record = InventoryService.release_quarantine(inventory_id=pk, actor=request.user)
        AuditService.log_request(request, action=AUDIT_ACTION_STATUS_CHANGE, instance=record, old_values=before)
        return Response(self._read(record))

    # --- Read helpers ---

    @action(detail=True, methods=['get'], url_path='movements')
    def movements(self, request, pk=None):
        record = self.get_object()
        qs = StockMovement.objects.filter(record=record).order_by('-created_at')
        page = self.paginate_queryset(qs)
        ser = StockMovementSerializer(page, many=True)
        return self.get_paginated_response(ser.data)

    @action(detail=False, methods=['post'], url_path='check-sufficiency')
    def check_sufficiency(self, request):
        ser = SufficiencyCheckSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        plan = check_sufficiency(
            ser.validated_data['items'],
            warehouse_id=ser.validated_data.get('warehouse'),
        )
        return Response({
            'sufficient': True,
            'allocations': [
                {
                    'record': str(allocation.record.pk),
                    'sku': allocation.record.sku,
                    'batch_id': allocation.record.batch_id,
                    'quantity': allocation.quantity,
                }
                for allocation in plan
            ],
        })

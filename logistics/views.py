"""
Logistics — Views

DRF ViewSets for goods receipts, dispatch orders and return orders.
Creation and every workflow step go through the logistics services.

@file logistics/views.py
"""

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.permissions import HasModelPermission

from .filters import DispatchOrderFilter, GoodsReceivingFilter, ReturnOrderFilter
from .models import DispatchOrder, GoodsReceiving, ReturnOrder
from .serializers import (
    DispatchAssignSerializer,
    DispatchOrderReadSerializer,
    DispatchOrderWriteSerializer,
    DispatchStatusSerializer,
    GoodsReceivingReadSerializer,
    GoodsReceivingWriteSerializer,
    QCUpdateSerializer,
    ReturnOrderReadSerializer,
    ReturnOrderWriteSerializer,
    ReturnReasonSerializer,
)
from .services import DispatchService, ReceivingService, ReturnService


class DocumentViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """list / retrieve / create; subclasses add workflow actions."""

    permission_classes = [IsAuthenticated, HasModelPermission]
    read_serializer_class = None
    write_serializer_class = None

    def get_serializer_class(self):
        if self.action == 'create':
            return self.write_serializer_class
        return self.read_serializer_class

    def _read(self, instance, code=status.HTTP_200_OK):
        ser = self.read_serializer_class(instance, context={'request': self.request})
        return Response(ser.data, status=code)


class GoodsReceivingViewSet(DocumentViewSet):
    """Inbound receipts. Create runs QC; passing receipts are stocked."""

    required_permissions = {
        'create': ['logistics.add_goodsreceiving'],
        'qc': ['logistics.change_goodsreceiving'],
    }
    read_serializer_class = GoodsReceivingReadSerializer
    write_serializer_class = GoodsReceivingWriteSerializer
    filterset_class = GoodsReceivingFilter
    search_fields = ['grn_number', 'po_number', 'sku', 'product_name', 'batch_id']
    ordering_fields = ['created_at', 'quantity', 'status']
    ordering = ['-created_at']

    def get_queryset(self):
        return GoodsReceiving.objects.select_related('warehouse')

    def create(self, request, *args, **kwargs):
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        receiving = ReceivingService.receive_goods(
            warehouse_id=data['warehouse'],
            po_number=data['po_number'],
            vendor=data['vendor'],
            sku=data['sku'],
            product_name=data['product_name'],
            quantity=data['quantity'],
            qc=data['qc_verification'],
            batch_id=data.get('batch_id', ''),
            storage=data.get('storage'),
            expiry_date=data.get('expiry_date'),
            actor=request.user,
        )
        return self._read(receiving, status.HTTP_201_CREATED)

    @action(detail=True, methods=['patch'], url_path='qc')
    def qc(self, request, pk=None):
        ser = QCUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        receiving = ReceivingService.update_qc(receiving_id=pk, qc=ser.validated_data, actor=request.user)
        return self._read(receiving)


class DispatchOrderViewSet(DocumentViewSet):
    """
    Dispatch orders. Create takes stock (all lines or none).
    Workflow: assign, start, deliver, cancel, or PATCH status.
    """

    required_permissions = {
        'default': ['logistics.change_dispatchorder'],
        'create': ['logistics.add_dispatchorder'],
    }
    read_serializer_class = DispatchOrderReadSerializer
    write_serializer_class = DispatchOrderWriteSerializer
    filterset_class = DispatchOrderFilter
    search_fields = ['dispatch_number', 'destination', 'route']
    ordering_fields = ['created_at', 'status', 'delivered_at']
    ordering = ['-created_at']

    def get_queryset(self):
        return DispatchOrder.objects.select_related('warehouse', 'assigned_agent').prefetch_related('items')

    def create(self, request, *args, **kwargs):
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        order = DispatchService.create_dispatch(
            warehouse_id=data['warehouse'],
            destination=data['destination'],
            items=[dict(item) for item in data['items']],
            assigned_agent=data.get('assigned_agent'),
            route=data.get('route', ''),
            notes=data.get('notes', ''),
            actor=request.user,
        )
        return self._read(self.get_queryset().get(pk=order.pk), status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='assign')
    def assign(self, request, pk=None):
        ser = DispatchAssignSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        order = DispatchService.assign_agent(
            dispatch_id=pk, agent=ser.validated_data['assigned_agent'], actor=request.user,
        )
        return self._read(order)

    @action(detail=True, methods=['post'], url_path='start')
    def start(self, request, pk=None):
        return self._read(DispatchService.start_transit(dispatch_id=pk, actor=request.user))

    @action(detail=True, methods=['post'], url_path='deliver')
    def deliver(self, request, pk=None):
        return self._read(DispatchService.deliver(dispatch_id=pk, actor=request.user))

    @action(detail=True, methods=['post'], url_path='cancel')
    def cancel(self, request, pk=None):
        return self._read(DispatchService.cancel(dispatch_id=pk, actor=request.user))

    @action(detail=True, methods=['patch'], url_path='status')
    def set_status(self, request, pk=None):
        ser = DispatchStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        order = DispatchService.update_status(
            dispatch_id=pk,
            status=ser.validated_data['status'],
            agent=ser.validated_data.get('assigned_agent'),
            actor=request.user,
        )
        return self._read(order)


class ReturnOrderViewSet(DocumentViewSet):
    """Return queue. Approve takes the goods out of the batch; reject leaves stock alone."""

    required_permissions = {
        'default': ['logistics.change_returnorder'],
        'create': ['logistics.add_returnorder'],
    }
    read_serializer_class = ReturnOrderReadSerializer
    write_serializer_class = ReturnOrderWriteSerializer
    filterset_class = ReturnOrderFilter
    search_fields = ['return_number', 'batch_id', 'sku', 'reason']
    ordering_fields = ['created_at', 'status', 'quantity']
    ordering = ['-created_at']

    def get_queryset(self):
        return ReturnOrder.objects.select_related('warehouse')

    def create(self, request, *args, **kwargs):
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        order = ReturnService.create_return(
            batch_id=data['batch_id'],
            reason=data['reason'],
            quantity=data.get('quantity'),
            vendor=data.get('vendor', ''),
            warehouse_id=data.get('warehouse'),
            actor=request.user,
        )
        return self._read(order, status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='approve')
    def approve(self, request, pk=None):
        return self._read(ReturnService.approve_return(return_id=pk, actor=request.user))

    @action(detail=True, methods=['post'], url_path='reject')
    def reject(self, request, pk=None):
        return self._read(ReturnService.reject_return(return_id=pk, actor=request.user))

    @action(detail=True, methods=['patch'], url_path='reason')
    def reason(self, request, pk=None):
        ser = ReturnReasonSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        order = ReturnService.update_reason(return_id=pk, reason=ser.validated_data['reason'], actor=request.user)
        return self._read(order)

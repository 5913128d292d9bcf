"""
Logistics — Service Layer

Receiving (QC gate before stock is added), dispatch lifecycle (stock taken
on creation, restored on cancellation) and return approval. Quantity
changes are delegated to InventoryService; status changes are audited here.

@file logistics/services.py
"""

import logging

from django.db import transaction
from django.utils import timezone

from core.constants import AUDIT_ACTION_CREATE, AUDIT_ACTION_STATUS_CHANGE, AUDIT_ACTION_UPDATE
from core.exceptions import (
    InsufficientStockError,
    InvalidStateTransition,
    InvariantViolation,
    ResourceNotFoundError,
)
from core.identifiers import ReferenceGenerator, parse_uuid
from core.services import AuditService
from inventory.models import InventoryRecord
from inventory.services import InventoryService
from warehouses.models import Warehouse

from .models import DispatchItem, DispatchOrder, GoodsReceiving, ReturnOrder

logger = logging.getLogger('vendops')

Dispatch = DispatchOrder.StatusChoices
Return = ReturnOrder.StatusChoices

# Valid status transitions: from_status -> set of allowed to_status
DISPATCH_TRANSITIONS = {
    Dispatch.PENDING: {Dispatch.ASSIGNED, Dispatch.CANCELLED},
    Dispatch.ASSIGNED: {Dispatch.IN_TRANSIT, Dispatch.CANCELLED},
    Dispatch.IN_TRANSIT: {Dispatch.DELIVERED, Dispatch.CANCELLED},
    Dispatch.DELIVERED: set(),
    Dispatch.CANCELLED: set(),
}

RETURN_TRANSITIONS = {
    Return.PENDING: {Return.APPROVED, Return.REJECTED},
    Return.APPROVED: set(),
    Return.REJECTED: set(),
}

# Checked in order; first keyword found in the reason decides the type.
RETURN_TYPE_KEYWORDS = (
    (ReturnOrder.ReturnTypeChoices.DAMAGED, ('damage', 'broken', 'defective')),
    (ReturnOrder.ReturnTypeChoices.EXPIRED, ('expir', 'date', 'spoiled')),
    (ReturnOrder.ReturnTypeChoices.WRONG_ITEM, ('wrong', 'incorrect', 'mistake')),
    (ReturnOrder.ReturnTypeChoices.OVERSTOCK, ('overstock', 'excess', 'surplus')),
)


def _assert_transition(order, new_status: str, transitions: dict) -> None:
    allowed = transitions.get(order.status, set())
    if new_status not in allowed:
        raise InvalidStateTransition(
            detail=f'Cannot transition {order._meta.verbose_name} from {order.status} to {new_status}.',
        )


def _get_warehouse(warehouse_id) -> Warehouse:
    pk = parse_uuid(warehouse_id)
    try:
        return Warehouse.objects.get(pk=pk)
    except Warehouse.DoesNotExist:
        raise ResourceNotFoundError(detail=f'Warehouse {pk} not found.')


def _locked(model, object_id):
    pk = parse_uuid(object_id)
    try:
        return model.objects.select_for_update().get(pk=pk)
    except model.DoesNotExist:
        raise ResourceNotFoundError(detail=f'{model._meta.verbose_name.capitalize()} {pk} not found.')


def _log_status_change(order, old_status: str, actor, **extra) -> None:
    AuditService.log(
        actor=actor,
        action=AUDIT_ACTION_STATUS_CHANGE,
        model_name=order.__class__.__name__,
        object_id=str(order.pk),
        old_values={'status': old_status},
        new_values={'status': order.status, **extra},
    )


def determine_return_type(reason: str) -> str:
    lowered = (reason or '').lower()
    for return_type, keywords in RETURN_TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return return_type
    return ReturnOrder.ReturnTypeChoices.OTHER


# ---------------------------------------------------------------------------
# Receiving
# ---------------------------------------------------------------------------

class ReceivingService:
    """Goods receipts and their QC gate."""

    @staticmethod
    def _stock(receiving: GoodsReceiving, actor) -> None:
        InventoryService.receive(
            sku=receiving.sku,
            batch_id=receiving.batch_id,
            warehouse_id=receiving.warehouse_id,
            quantity=receiving.quantity,
            location=receiving.storage,
            product_name=receiving.product_name,
            expiry_date=receiving.expiry_date,
            actor=actor,
            reference_id=receiving.pk,
            reference_type='GoodsReceiving',
        )
        receiving.stocked_at = timezone.now()
        receiving.save(update_fields=['stocked_at', 'updated_at'])
        logger.info(
            'GRN %s stocked: %s x %s batch=%s.',
            receiving.grn_number, receiving.quantity, receiving.sku, receiving.batch_id,
        )

    @staticmethod
    @transaction.atomic
    def receive_goods(
        *,
        warehouse_id,
        po_number: str,
        vendor: str,
        sku: str,
        product_name: str,
        quantity: int,
        qc: dict,
        batch_id: str = '',
        storage: dict | None = None,
        expiry_date=None,
        actor=None,
        number_generator=None,
    ) -> GoodsReceiving:
        """
        Record a receipt. QC status is decided from the three checks; only
        a passing receipt adds its units to inventory. Missing batch ids
        default to BATCH-<epoch ms>.
        """
        if quantity <= 0:
            raise InvariantViolation(detail='Quantity must be positive.')
        warehouse = _get_warehouse(warehouse_id)
        generate = number_generator or ReferenceGenerator('GRN', GoodsReceiving, 'grn_number')
        receiving = GoodsReceiving(
            grn_number=generate(),
            po_number=po_number,
            vendor=vendor,
            warehouse=warehouse,
            sku=sku,
            product_name=product_name,
            quantity=quantity,
            batch_id=batch_id or f'BATCH-{int(timezone.now().timestamp() * 1000)}',
            expiry_date=expiry_date,
            qc_packaging=qc.get('packaging', False),
            qc_expiry=qc.get('expiry', False),
            qc_label=qc.get('label', False),
            qc_documents=qc.get('documents', []),
            created_by=actor,
            **(storage or {}),
        )
        receiving.status = (
            GoodsReceiving.StatusChoices.QC_PASSED if receiving.qc_passed
            else GoodsReceiving.StatusChoices.QC_FAILED
        )
        receiving.save()
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='GoodsReceiving',
            object_id=str(receiving.pk),
            new_values=AuditService.snapshot(receiving),
        )
        if receiving.qc_passed:
            ReceivingService._stock(receiving, actor)
        else:
            logger.warning('GRN %s failed QC; nothing stocked.', receiving.grn_number)
        return receiving

    @staticmethod
    @transaction.atomic
    def update_qc(*, receiving_id, qc: dict, actor=None) -> GoodsReceiving:
        """
        Merge new QC results into a receipt. A receipt that turns to
        passing is stocked; once stocked its QC can no longer change.
        """
        receiving = _locked(GoodsReceiving, receiving_id)
        if receiving.stocked_at is not None:
            raise InvalidStateTransition(detail='QC of a stocked receipt cannot be changed.')

        old_status = receiving.status
        for check in ('packaging', 'expiry', 'label'):
            if check in qc:
                setattr(receiving, f'qc_{check}', qc[check])
        if 'documents' in qc:
            receiving.qc_documents = qc['documents']
        receiving.status = (
            GoodsReceiving.StatusChoices.QC_PASSED if receiving.qc_passed
            else GoodsReceiving.StatusChoices.QC_FAILED
        )
        receiving.updated_by = actor
        receiving.save()
        if receiving.status != old_status:
            _log_status_change(receiving, old_status, actor)
        if receiving.qc_passed:
            ReceivingService._stock(receiving, actor)
        return receiving


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class DispatchService:
    """Dispatch order lifecycle and the stock it holds."""

    @staticmethod
    @transaction.atomic
    def create_dispatch(
        *,
        warehouse_id,
        destination: str,
        items: list[dict],
        assigned_agent=None,
        route: str = '',
        notes: str = '',
        actor=None,
        number_generator=None,
    ) -> DispatchOrder:
        """
        Create a dispatch and take its stock. Every line is checked before
        any record is decremented; an InsufficientStockError leaves both
        inventory and the order table untouched. The order starts
        `assigned` when an agent is given, otherwise `pending`.
        """
        warehouse = _get_warehouse(warehouse_id)
        generate = number_generator or ReferenceGenerator('DO', DispatchOrder, 'dispatch_number')
        order = DispatchOrder(
            dispatch_number=generate(),
            warehouse=warehouse,
            destination=destination,
            route=route,
            notes=notes,
            assigned_agent=assigned_agent,
            status=Dispatch.ASSIGNED if assigned_agent else Dispatch.PENDING,
            created_by=actor,
        )
        try:
            InventoryService.reduce_by_sku(
                items=items,
                warehouse_id=warehouse.pk,
                actor=actor,
                reference_id=order.pk,
                reference_type='DispatchOrder',
            )
        except InsufficientStockError as exc:
            logger.warning(
                'Dispatch to %s refused: SKU %s available=%s requested=%s.',
                destination, exc.sku, exc.available, exc.requested,
            )
            raise

        order.save()
        DispatchItem.objects.bulk_create([
            DispatchItem(
                dispatch=order,
                sku=item['sku'],
                product_name=item.get('product_name', ''),
                batch_id=item.get('batch_id') or '',
                quantity=item['quantity'],
            )
            for item in items
        ])
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='DispatchOrder',
            object_id=str(order.pk),
            new_values={
                'dispatch_number': order.dispatch_number,
                'status': order.status,
                'items': [{'sku': item['sku'], 'quantity': item['quantity']} for item in items],
            },
        )
        logger.info('Dispatch %s created with %d line(s).', order.dispatch_number, len(items))
        return order

    @staticmethod
    @transaction.atomic
    def assign_agent(*, dispatch_id, agent, actor=None) -> DispatchOrder:
        """Assign (or reassign, while still `assigned`) the carrying agent."""
        order = _locked(DispatchOrder, dispatch_id)
        old_status = order.status
        if order.status != Dispatch.ASSIGNED:
            _assert_transition(order, Dispatch.ASSIGNED, DISPATCH_TRANSITIONS)
        order.assigned_agent = agent
        order.status = Dispatch.ASSIGNED
        order.updated_by = actor
        order.save(update_fields=['assigned_agent', 'status', 'updated_by', 'updated_at'])
        _log_status_change(order, old_status, actor, assigned_agent=str(agent.pk))
        return order

    @staticmethod
    @transaction.atomic
    def start_transit(*, dispatch_id, actor=None) -> DispatchOrder:
        order = _locked(DispatchOrder, dispatch_id)
        _assert_transition(order, Dispatch.IN_TRANSIT, DISPATCH_TRANSITIONS)
        old_status = order.status
        order.status = Dispatch.IN_TRANSIT
        order.updated_by = actor
        order.save(update_fields=['status', 'updated_by', 'updated_at'])
        _log_status_change(order, old_status, actor)
        return order

    @staticmethod
    @transaction.atomic
    def deliver(*, dispatch_id, actor=None) -> DispatchOrder:
        order = _locked(DispatchOrder, dispatch_id)
        _assert_transition(order, Dispatch.DELIVERED, DISPATCH_TRANSITIONS)
        old_status = order.status
        order.status = Dispatch.DELIVERED
        order.delivered_at = timezone.now()
        order.updated_by = actor
        order.save(update_fields=['status', 'delivered_at', 'updated_by', 'updated_at'])
        _log_status_change(order, old_status, actor)
        logger.info('Dispatch %s delivered.', order.dispatch_number)
        return order

    @staticmethod
    @transaction.atomic
    def cancel(*, dispatch_id, actor=None) -> DispatchOrder:
        """Cancel a non-terminal dispatch and put its stock back."""
        order = _locked(DispatchOrder, dispatch_id)
        _assert_transition(order, Dispatch.CANCELLED, DISPATCH_TRANSITIONS)
        restored = InventoryService.restore_dispatch(reference_id=order.pk, actor=actor)
        old_status = order.status
        order.status = Dispatch.CANCELLED
        order.cancelled_at = timezone.now()
        order.updated_by = actor
        order.save(update_fields=['status', 'cancelled_at', 'updated_by', 'updated_at'])
        _log_status_change(order, old_status, actor)
        logger.info(
            'Dispatch %s cancelled; %d units restored.',
            order.dispatch_number, sum(movement.quantity_delta for movement in restored),
        )
        return order

    @staticmethod
    def update_status(*, dispatch_id, status: str, agent=None, actor=None) -> DispatchOrder:
        """Route a raw status change to the matching lifecycle step."""
        if status == Dispatch.ASSIGNED:
            if agent is None:
                order = _get_dispatch(dispatch_id)
                agent = order.assigned_agent
            if agent is None:
                raise InvariantViolation(detail='An agent is required to assign a dispatch.')
            return DispatchService.assign_agent(dispatch_id=dispatch_id, agent=agent, actor=actor)
        steps = {
            Dispatch.IN_TRANSIT: DispatchService.start_transit,
            Dispatch.DELIVERED: DispatchService.deliver,
            Dispatch.CANCELLED: DispatchService.cancel,
        }
        if status not in steps:
            raise InvalidStateTransition(
                detail=f'Invalid status {status!r}. Must be one of: {", ".join(Dispatch.values)}.',
            )
        return steps[status](dispatch_id=dispatch_id, actor=actor)


def _get_dispatch(dispatch_id) -> DispatchOrder:
    pk = parse_uuid(dispatch_id)
    try:
        return DispatchOrder.objects.get(pk=pk)
    except DispatchOrder.DoesNotExist:
        raise ResourceNotFoundError(detail=f'Dispatch order {pk} not found.')


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------

class ReturnService:
    """Return orders raised against a batch."""

    @staticmethod
    @transaction.atomic
    def create_return(
        *,
        batch_id: str,
        reason: str,
        quantity: int | None = None,
        vendor: str = '',
        warehouse_id=None,
        actor=None,
        number_generator=None,
    ) -> ReturnOrder:
        """
        Raise a return against a live batch. SKU, product and warehouse are
        taken from the inventory record; the type is inferred from the
        reason. The batch must hold at least the declared quantity (default 1).
        """
        quantity = 1 if quantity is None else quantity
        if quantity <= 0:
            raise InvariantViolation(detail='Quantity must be positive.')
        qs = InventoryRecord.objects.filter(batch_id=batch_id, is_archived=False)
        if warehouse_id is not None:
            qs = qs.filter(warehouse_id=parse_uuid(warehouse_id))
        record = qs.order_by('created_at').first()
        if record is None:
            raise ResourceNotFoundError(detail=f'Batch {batch_id} not found in inventory.')
        if record.quantity < quantity:
            raise InsufficientStockError(sku=record.sku, available=record.quantity, requested=quantity)

        generate = number_generator or ReferenceGenerator('RT', ReturnOrder, 'return_number')
        order = ReturnOrder.objects.create(
            return_number=generate(),
            warehouse_id=record.warehouse_id,
            batch_id=batch_id,
            sku=record.sku,
            product_name=record.product_name,
            vendor=vendor,
            reason=reason,
            return_type=determine_return_type(reason),
            quantity=quantity,
            created_by=actor,
        )
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='ReturnOrder',
            object_id=str(order.pk),
            new_values=AuditService.snapshot(order),
        )
        return order

    @staticmethod
    @transaction.atomic
    def approve_return(*, return_id, actor=None) -> ReturnOrder:
        """
        Approve and take the goods out of the batch. A batch that no longer
        holds enough (or is gone) does not block approval: what is on hand
        is taken and the rest is recorded as stock_shortfall.
        """
        order = _locked(ReturnOrder, return_id)
        _assert_transition(order, Return.APPROVED, RETURN_TRANSITIONS)
        try:
            consumption = InventoryService.consume_return(
                sku=order.sku,
                batch_id=order.batch_id,
                quantity=order.quantity,
                warehouse_id=order.warehouse_id,
                actor=actor,
                reference_id=order.pk,
            )
            shortfall = consumption.shortfall
        except ResourceNotFoundError:
            shortfall = order.quantity
        if shortfall:
            logger.warning(
                'Return %s approved with shortfall: batch %s of %s lacked %d of %d units.',
                order.return_number, order.batch_id, order.sku, shortfall, order.quantity,
            )

        old_status = order.status
        order.status = Return.APPROVED
        order.stock_shortfall = shortfall
        order.decided_at = timezone.now()
        order.decided_by = actor
        order.updated_by = actor
        order.save(update_fields=[
            'status', 'stock_shortfall', 'decided_at', 'decided_by', 'updated_by', 'updated_at',
        ])
        _log_status_change(order, old_status, actor, stock_shortfall=shortfall)
        return order

    @staticmethod
    @transaction.atomic
    def reject_return(*, return_id, actor=None) -> ReturnOrder:
        order = _locked(ReturnOrder, return_id)
        _assert_transition(order, Return.REJECTED, RETURN_TRANSITIONS)
        old_status = order.status
        order.status = Return.REJECTED
        order.decided_at = timezone.now()
        order.decided_by = actor
        order.updated_by = actor
        order.save(update_fields=['status', 'decided_at', 'decided_by', 'updated_by', 'updated_at'])
        _log_status_change(order, old_status, actor)
        return order

    @staticmethod
    @transaction.atomic
    def update_reason(*, return_id, reason: str, actor=None) -> ReturnOrder:
        """Edit the reason of a pending return; the type is re-inferred."""
        order = _locked(ReturnOrder, return_id)
        if order.status != Return.PENDING:
            raise InvalidStateTransition(detail='Only pending returns can be edited.')
        before = {'reason': order.reason, 'return_type': order.return_type}
        order.reason = reason
        order.return_type = determine_return_type(reason)
        order.updated_by = actor
        order.save(update_fields=['reason', 'return_type', 'updated_by', 'updated_at'])
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='ReturnOrder',
            object_id=str(order.pk),
            old_values=before,
            new_values={'reason': order.reason, 'return_type': order.return_type},
        )
        return order

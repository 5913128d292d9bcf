"""
Inventory — Stock Mutation Engine

The only code that changes InventoryRecord.quantity. Every change goes
through a conditional F() update, writes a StockMovement and re-derives
status through inventory.status. Callers (views, logistics, tasks) own
audit writes and logging; this module does neither.

@file inventory/services.py
"""

import hashlib
from dataclasses import dataclass, field

from django.conf import settings
from django.db import IntegrityError, connection, transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import (
    BusinessRuleViolation,
    DuplicateResourceError,
    InsufficientStockError,
    InvalidIdentifier,
    InvariantViolation,
    ResourceNotFoundError,
)
from core.identifiers import parse_uuid
from warehouses.models import Warehouse

from . import status as inventory_status
from .models import InventoryRecord, StockMovement
from .validators import check_sufficiency

LOCATION_FIELDS = ('zone', 'aisle', 'rack', 'bin')
EDITABLE_FIELDS = (
    'sku', 'product_name', 'batch_id', 'quantity',
    'min_stock_level', 'max_stock_level', 'expiry_date', 'location',
) + LOCATION_FIELDS


@dataclass(frozen=True)
class ArchiveOutcome:
    """Result of a single archive/unarchive; `changed` is False when the record was already in the target state."""

    record: InventoryRecord
    was_archived: bool
    changed: bool


@dataclass
class BulkResult:
    """Per-id outcome of a best-effort bulk operation."""

    succeeded_ids: list[str] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded_ids)

    @property
    def failed_count(self) -> int:
        return len(self.failed_ids)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed_ids)

    def fail(self, raw_id, code: str) -> None:
        self.failed_ids.append(str(raw_id))
        self.errors[str(raw_id)] = code

    def as_dict(self) -> dict:
        return {
            'succeeded_count': self.succeeded_count,
            'failed_count': self.failed_count,
            'succeeded_ids': self.succeeded_ids,
            'failed_ids': self.failed_ids,
            'errors': self.errors,
        }


@dataclass(frozen=True)
class ReturnConsumption:
    """Stock taken for an approved return; shortfall is what the record could not cover."""

    record: InventoryRecord
    taken: int
    shortfall: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _advisory_lock_key(warehouse_id, sku: str) -> int:
    """Stable bigint key for PostgreSQL advisory lock (same warehouse+sku = same key)."""
    raw = f'{warehouse_id}:{sku}'.encode()
    h = hashlib.sha256(raw).digest()[:8]
    return int.from_bytes(h, 'big') % (2**63)


def _lock_skus(warehouse_id, skus) -> None:
    """Serialise concurrent reductions of the same SKUs until the transaction ends."""
    if connection.vendor != 'postgresql':
        return
    keys = sorted({_advisory_lock_key(warehouse_id, sku) for sku in skus})
    with connection.cursor() as cursor:
        for key in keys:
            cursor.execute('SELECT pg_advisory_xact_lock(%s)', [key])


def _require_positive(quantity, label: str = 'Quantity') -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvariantViolation(detail=f'{label} must be a positive integer, got {quantity!r}.')


def _check_thresholds(min_stock_level: int, max_stock_level: int) -> None:
    if min_stock_level < 0 or max_stock_level < 0:
        raise InvariantViolation(detail='Stock levels cannot be negative.')
    if max_stock_level <= min_stock_level:
        raise InvariantViolation(
            detail=f'max_stock_level ({max_stock_level}) must exceed min_stock_level ({min_stock_level}).',
        )


def _location_values(location) -> dict:
    if not location:
        return {}
    return {key: location[key] or '' for key in LOCATION_FIELDS if key in location}


def _get_record(inventory_id, *, for_update: bool = False) -> InventoryRecord:
    pk = parse_uuid(inventory_id)
    qs = InventoryRecord.objects.all()
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=pk)
    except InventoryRecord.DoesNotExist:
        raise ResourceNotFoundError(detail=f'Inventory record {pk} not found.')


def _sync_status(record: InventoryRecord, now) -> InventoryRecord:
    new_status = record.resolve_status(now)
    if record.status != new_status:
        record.status = new_status
        record.save(update_fields=['status', 'updated_at'])
    return record


def _apply_delta(
    record: InventoryRecord,
    delta: int,
    *,
    movement_type: str,
    now,
    actor=None,
    reference_id=None,
    reference_type: str = '',
) -> StockMovement:
    """
    Add `delta` (signed) to record.quantity in one conditional UPDATE. A
    decrement that would go below zero matches no row and raises
    InsufficientStockError, leaving the record untouched.
    """
    qs = InventoryRecord.objects.filter(pk=record.pk)
    if delta < 0:
        qs = qs.filter(quantity__gte=-delta)
    values = {'quantity': F('quantity') + delta, 'updated_at': now}
    if actor is not None:
        values['updated_by'] = actor
    if not qs.update(**values):
        record.refresh_from_db(fields=['quantity'])
        raise InsufficientStockError(sku=record.sku, available=record.quantity, requested=-delta)

    record.refresh_from_db()
    _sync_status(record, now)
    return StockMovement.objects.create(
        record=record,
        sku=record.sku,
        batch_id=record.batch_id,
        warehouse_id=record.warehouse_id,
        movement_type=movement_type,
        quantity_delta=delta,
        balance_after=record.quantity,
        reference_id=reference_id,
        reference_type=reference_type or '',
        created_by=actor,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class InventoryService:
    """Receipts, reductions, edits, archival and quarantine of inventory records."""

    @staticmethod
    @transaction.atomic
    def receive(
        *,
        sku: str,
        batch_id: str,
        warehouse_id,
        quantity: int,
        location: dict | None = None,
        product_name: str = '',
        min_stock_level: int | None = None,
        max_stock_level: int | None = None,
        expiry_date=None,
        actor=None,
        reference_id=None,
        reference_type: str = '',
        now=None,
    ) -> InventoryRecord:
        """
        Add `quantity` units of (sku, batch_id) to a warehouse.

        An existing record for the triple is incremented and its location
        updated; otherwise a record is created with the given thresholds
        (defaults from settings) and age 0. Additive: repeating a call
        adds again. Archived records take the units and stay archived.

        product_name, min_stock_level, max_stock_level and expiry_date only
        apply when the record is created. An existing record keeps its own;
        change them through manual_edit.
        """
        _require_positive(quantity)
        warehouse_pk = parse_uuid(warehouse_id)
        if not Warehouse.objects.filter(pk=warehouse_pk).exists():
            raise ResourceNotFoundError(detail=f'Warehouse {warehouse_pk} not found.')
        now = now or timezone.now()
        location_values = _location_values(location)
        lookup = {'sku': sku, 'batch_id': batch_id, 'warehouse_id': warehouse_pk}

        record = InventoryRecord.objects.select_for_update().filter(**lookup).first()
        if record is None:
            if min_stock_level is None:
                min_stock_level = settings.INVENTORY_DEFAULT_MIN_STOCK
            if max_stock_level is None:
                max_stock_level = settings.INVENTORY_DEFAULT_MAX_STOCK
            _check_thresholds(min_stock_level, max_stock_level)
            try:
                with transaction.atomic():
                    record = InventoryRecord.objects.create(
                        **lookup,
                        product_name=product_name or sku,
                        quantity=quantity,
                        min_stock_level=min_stock_level,
                        max_stock_level=max_stock_level,
                        age=0,
                        expiry_date=expiry_date,
                        status=inventory_status.classify(
                            quantity, min_stock_level, max_stock_level, expiry_date, now,
                        ),
                        created_by=actor,
                        **location_values,
                    )
            except IntegrityError:
                # Another request created the triple first; fall through to increment it.
                record = InventoryRecord.objects.select_for_update().get(**lookup)
            else:
                StockMovement.objects.create(
                    record=record,
                    sku=sku,
                    batch_id=batch_id,
                    warehouse_id=warehouse_pk,
                    movement_type=StockMovement.MovementType.RECEIPT,
                    quantity_delta=quantity,
                    balance_after=quantity,
                    reference_id=reference_id,
                    reference_type=reference_type or '',
                    created_by=actor,
                )
                return record

        if location_values:
            for key, value in location_values.items():
                setattr(record, key, value)
            record.save(update_fields=[*location_values, 'updated_at'])
        _apply_delta(
            record, quantity,
            movement_type=StockMovement.MovementType.RECEIPT,
            now=now, actor=actor,
            reference_id=reference_id, reference_type=reference_type,
        )
        return record

    @staticmethod
    @transaction.atomic
    def reduce_by_sku(
        *,
        items: list[dict],
        warehouse_id=None,
        actor=None,
        reference_id=None,
        reference_type: str = '',
        now=None,
    ) -> list[StockMovement]:
        """
        Take every line of `items` ({sku, quantity[, batch_id]}) out of
        non-archived stock, or nothing at all.

        Sufficiency for the whole request is checked under row locks (and a
        per-SKU advisory lock on PostgreSQL) before the first decrement.
        """
        if warehouse_id is not None:
            warehouse_id = parse_uuid(warehouse_id)
        now = now or timezone.now()
        _lock_skus(warehouse_id, [item.get('sku') for item in items])
        plan = check_sufficiency(items, warehouse_id=warehouse_id, for_update=True)
        return [
            _apply_delta(
                allocation.record, -allocation.quantity,
                movement_type=StockMovement.MovementType.DISPATCH,
                now=now, actor=actor,
                reference_id=reference_id, reference_type=reference_type,
            )
            for allocation in plan
        ]

    @staticmethod
    @transaction.atomic
    def restore_dispatch(*, reference_id, reference_type: str = 'DispatchOrder', actor=None, now=None) -> list[StockMovement]:
        """Put back every unit a dispatch took, batch by batch."""
        now = now or timezone.now()
        movements = StockMovement.objects.filter(reference_id=reference_id, reference_type=reference_type)
        if movements.filter(movement_type=StockMovement.MovementType.DISPATCH_REVERSAL).exists():
            raise BusinessRuleViolation(detail=f'Stock for {reference_type} {reference_id} was already restored.')

        restored = []
        dispatched = movements.filter(movement_type=StockMovement.MovementType.DISPATCH).order_by('record_id')
        for movement in dispatched.select_related('record'):
            record = InventoryRecord.objects.select_for_update().get(pk=movement.record_id)
            restored.append(_apply_delta(
                record, -movement.quantity_delta,
                movement_type=StockMovement.MovementType.DISPATCH_REVERSAL,
                now=now, actor=actor,
                reference_id=reference_id, reference_type=reference_type,
            ))
        return restored

    @staticmethod
    @transaction.atomic
    def consume_return(
        *,
        sku: str,
        batch_id: str,
        quantity: int,
        warehouse_id=None,
        actor=None,
        reference_id=None,
        reference_type: str = 'ReturnOrder',
        now=None,
    ) -> ReturnConsumption:
        """
        Take returned goods out of good stock. The goods leave regardless,
        so when the batch holds fewer units than declared the whole
        on-hand amount is taken and the gap reported as `shortfall`.
        """
        _require_positive(quantity)
        now = now or timezone.now()
        qs = InventoryRecord.objects.select_for_update().filter(sku=sku, batch_id=batch_id, is_archived=False)
        if warehouse_id is not None:
            qs = qs.filter(warehouse_id=parse_uuid(warehouse_id))
        record = qs.order_by('created_at').first()
        if record is None:
            raise ResourceNotFoundError(detail=f'No active inventory for SKU {sku} batch {batch_id}.')

        taken = min(record.quantity, quantity)
        if taken:
            _apply_delta(
                record, -taken,
                movement_type=StockMovement.MovementType.RETURN,
                now=now, actor=actor,
                reference_id=reference_id, reference_type=reference_type,
            )
        return ReturnConsumption(record=record, taken=taken, shortfall=quantity - taken)

    @staticmethod
    @transaction.atomic
    def manual_edit(*, inventory_id, actor=None, now=None, **changes) -> InventoryRecord:
        """
        Apply whitelisted field changes; unknown keys are ignored.

        `location` may be a {zone, aisle, rack, bin} dict or the keys may be
        passed flat. Age and status are recomputed from the resulting values.
        """
        now = now or timezone.now()
        record = _get_record(inventory_id, for_update=True)
        before_quantity = record.quantity

        location = changes.pop('location', None)
        changes = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS}
        changes.update(_location_values(location))

        if 'quantity' in changes:
            quantity = changes['quantity']
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
                raise InvariantViolation(detail=f'Quantity must be a non-negative integer, got {quantity!r}.')
        _check_thresholds(
            changes.get('min_stock_level', record.min_stock_level),
            changes.get('max_stock_level', record.max_stock_level),
        )

        sku = changes.get('sku', record.sku)
        batch_id = changes.get('batch_id', record.batch_id)
        if (sku, batch_id) != (record.sku, record.batch_id):
            clash = InventoryRecord.objects.filter(
                sku=sku, batch_id=batch_id, warehouse_id=record.warehouse_id,
            ).exclude(pk=record.pk)
            if clash.exists():
                raise DuplicateResourceError(
                    detail=f'SKU {sku} batch {batch_id} already exists in this warehouse.',
                )

        for key, value in changes.items():
            setattr(record, key, value)
        record.age = record.age_on(now)
        record.status = record.resolve_status(now)
        if actor is not None:
            record.updated_by = actor
        record.save()

        delta = record.quantity - before_quantity
        if delta:
            StockMovement.objects.create(
                record=record,
                sku=record.sku,
                batch_id=record.batch_id,
                warehouse_id=record.warehouse_id,
                movement_type=StockMovement.MovementType.ADJUSTMENT,
                quantity_delta=delta,
                balance_after=record.quantity,
                reference_type='ManualEdit',
                created_by=actor,
            )
        return record

    @staticmethod
    @transaction.atomic
    def archive(*, inventory_id, actor=None, now=None) -> ArchiveOutcome:
        """Soft-delete a record. Archiving an archived record changes nothing and says so."""
        now = now or timezone.now()
        record = _get_record(inventory_id, for_update=True)
        if record.is_archived:
            return ArchiveOutcome(record=record, was_archived=True, changed=False)

        record.is_archived = True
        record.archived_at = now
        record.status = inventory_status.ARCHIVED
        if actor is not None:
            record.updated_by = actor
        record.save(update_fields=['is_archived', 'archived_at', 'status', 'updated_by', 'updated_at'])
        return ArchiveOutcome(record=record, was_archived=False, changed=True)

    @staticmethod
    @transaction.atomic
    def unarchive(*, inventory_id, actor=None, now=None) -> ArchiveOutcome:
        """Bring a record back; status is classified afresh at `now`, not restored."""
        now = now or timezone.now()
        record = _get_record(inventory_id, for_update=True)
        if not record.is_archived:
            return ArchiveOutcome(record=record, was_archived=False, changed=False)

        record.is_archived = False
        record.archived_at = None
        record.age = record.age_on(now)
        record.status = record.resolve_status(now)
        if actor is not None:
            record.updated_by = actor
        record.save(update_fields=['is_archived', 'archived_at', 'age', 'status', 'updated_by', 'updated_at'])
        return ArchiveOutcome(record=record, was_archived=True, changed=True)

    @staticmethod
    def bulk_archive(*, ids, actor=None, now=None) -> BulkResult:
        return _bulk(InventoryService.archive, ids, actor=actor, now=now, noop_code='ALREADY_ARCHIVED')

    @staticmethod
    def bulk_unarchive(*, ids, actor=None, now=None) -> BulkResult:
        return _bulk(InventoryService.unarchive, ids, actor=actor, now=now, noop_code='NOT_ARCHIVED')

    @staticmethod
    @transaction.atomic
    def quarantine(*, inventory_id, actor=None) -> InventoryRecord:
        """Pin the record at `quarantine`; recomputation keeps it there until released."""
        record = _get_record(inventory_id, for_update=True)
        if record.is_archived:
            raise BusinessRuleViolation(detail='Archived records cannot be quarantined.')
        if record.status_pinned:
            raise BusinessRuleViolation(detail='Record is already quarantined.')
        record.status_pinned = True
        record.status = inventory_status.QUARANTINE
        if actor is not None:
            record.updated_by = actor
        record.save(update_fields=['status_pinned', 'status', 'updated_by', 'updated_at'])
        return record

    @staticmethod
    @transaction.atomic
    def release_quarantine(*, inventory_id, actor=None, now=None) -> InventoryRecord:
        now = now or timezone.now()
        record = _get_record(inventory_id, for_update=True)
        if not record.status_pinned:
            raise BusinessRuleViolation(detail='Record is not quarantined.')
        record.status_pinned = False
        record.status = record.resolve_status(now)
        if actor is not None:
            record.updated_by = actor
        record.save(update_fields=['status_pinned', 'status', 'updated_by', 'updated_at'])
        return record

    @staticmethod
    @transaction.atomic
    def refresh_statuses(*, now=None) -> int:
        """
        Recompute age and status of every record at `now`; statuses drift as
        expiry dates pass. Returns the number of rows rewritten.

        Each write is conditional on the values the status was derived from.
        A row changed by a concurrent mutation after it was read is locked,
        re-read and classified again instead of being overwritten.
        """
        now = now or timezone.now()
        stale = []
        for record in InventoryRecord.objects.iterator(chunk_size=500):
            age = record.age_on(now)
            status = record.resolve_status(now)
            if (record.age, record.status) != (age, status):
                stale.append((record, age, status))

        updated = 0
        for record, age, status in stale:
            unchanged = InventoryRecord.objects.filter(
                pk=record.pk,
                quantity=record.quantity,
                min_stock_level=record.min_stock_level,
                max_stock_level=record.max_stock_level,
                expiry_date=record.expiry_date,
                is_archived=record.is_archived,
                status_pinned=record.status_pinned,
            )
            if unchanged.update(age=age, status=status):
                updated += 1
                continue
            current = InventoryRecord.objects.select_for_update().filter(pk=record.pk).first()
            if current is None:
                continue
            age, status = current.age_on(now), current.resolve_status(now)
            if (current.age, current.status) != (age, status):
                current.age = age
                current.status = status
                current.save(update_fields=['age', 'status'])
                updated += 1
        return updated


def _bulk(operation, ids, *, actor, now, noop_code: str) -> BulkResult:
    """Run `operation` per id in its own transaction; one id failing never blocks another."""
    result = BulkResult()
    for raw_id in ids:
        try:
            outcome = operation(inventory_id=raw_id, actor=actor, now=now)
        except InvalidIdentifier:
            result.fail(raw_id, InvalidIdentifier.default_code)
            continue
        except ResourceNotFoundError:
            result.fail(raw_id, ResourceNotFoundError.default_code)
            continue
        if outcome.changed:
            result.succeeded_ids.append(str(raw_id))
        else:
            result.fail(raw_id, noop_code)
    return result

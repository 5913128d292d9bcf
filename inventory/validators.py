"""
Inventory — Sufficiency Validation

Checks a multi-line stock request against non-archived inventory before
anything is decremented, and plans which batches each line draws from.

Availability for a SKU is the sum over all of its non-archived batches
(narrowed to one warehouse and, when a line names a batch_id, to that
batch). Batches are drawn first-expiry-first-out, undated batches last,
oldest record first among equals.

@file inventory/validators.py
"""

from dataclasses import dataclass
from typing import Any, Iterable

from django.db.models import F

from core.exceptions import InsufficientStockError, InvariantViolation
from core.identifiers import parse_uuid

from .models import InventoryRecord


@dataclass(frozen=True)
class Allocation:
    """`quantity` units to take from `record`."""

    record: InventoryRecord
    quantity: int


def normalise_items(items: Iterable[dict]) -> list[dict]:
    """
    Validate request lines and merge repeats of the same (sku, batch_id),
    keeping first-seen order.
    """
    merged: dict[tuple[str, str | None], int] = {}
    for item in items:
        sku = item.get('sku')
        if not sku:
            raise InvariantViolation(detail='Every item needs a sku.')
        quantity = item.get('quantity')
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvariantViolation(
                detail=f'Quantity for SKU {sku} must be a positive integer, got {quantity!r}.',
            )
        key = (sku, item.get('batch_id') or None)
        merged[key] = merged.get(key, 0) + quantity
    if not merged:
        raise InvariantViolation(detail='At least one item is required.')
    return [
        {'sku': sku, 'batch_id': batch_id, 'quantity': quantity}
        for (sku, batch_id), quantity in merged.items()
    ]


def allocate(requested: int, pool: list[tuple[Any, int]]) -> list[tuple[Any, int]]:
    """
    Take `requested` units from `pool` (ordered (key, available) pairs),
    draining each entry before moving to the next. The result falls short
    of `requested` when the pool does.
    """
    plan = []
    outstanding = requested
    for key, available in pool:
        if outstanding <= 0:
            break
        take = min(available, outstanding)
        if take > 0:
            plan.append((key, take))
            outstanding -= take
    return plan


def candidate_records(sku: str, *, batch_id: str | None = None, warehouse_id=None, for_update: bool = False):
    qs = InventoryRecord.objects.filter(sku=sku, is_archived=False, quantity__gt=0)
    if warehouse_id is not None:
        qs = qs.filter(warehouse_id=warehouse_id)
    if batch_id:
        qs = qs.filter(batch_id=batch_id)
    if for_update:
        qs = qs.select_for_update()
    return qs.order_by(F('expiry_date').asc(nulls_last=True), 'created_at', 'id')


def check_sufficiency(items: Iterable[dict], *, warehouse_id=None, for_update: bool = False) -> list[Allocation]:
    """
    Validate every line of `items` ({sku, quantity[, batch_id]}) and return
    the allocation plan, or raise InsufficientStockError for the first line,
    in request order, that cannot be covered. Nothing is written.

    With for_update=True the candidate rows are locked for the rest of the
    surrounding transaction.
    """
    lines = normalise_items(items)
    if warehouse_id is not None:
        warehouse_id = parse_uuid(warehouse_id)

    remaining: dict[Any, int] = {}
    plan: list[Allocation] = []
    for line in lines:
        pool = []
        for record in candidate_records(
            line['sku'], batch_id=line['batch_id'],
            warehouse_id=warehouse_id, for_update=for_update,
        ):
            remaining.setdefault(record.pk, record.quantity)
            pool.append((record, remaining[record.pk]))

        available = sum(units for _, units in pool)
        if available < line['quantity']:
            raise InsufficientStockError(
                sku=line['sku'], available=available, requested=line['quantity'],
            )
        for record, take in allocate(line['quantity'], pool):
            remaining[record.pk] -= take
            plan.append(Allocation(record=record, quantity=take))
    return plan

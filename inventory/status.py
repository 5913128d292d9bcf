"""
Inventory — Status Classification

The one place that turns stock levels and expiry into a status. Every
mutation path and every report goes through `classify` / `resolve_status`;
nothing else compares quantities against thresholds.

@file inventory/status.py
"""

from datetime import datetime

ACTIVE = 'active'
LOW_STOCK = 'low_stock'
OVERSTOCK = 'overstock'
EXPIRED = 'expired'
QUARANTINE = 'quarantine'
ARCHIVED = 'archived'

# Share of max_stock_level at which a record counts as overstocked, as a
# ratio of integers so the comparison stays exact.
OVERSTOCK_NUMERATOR = 9
OVERSTOCK_DENOMINATOR = 10


def is_expired(expiry_date: datetime | None, now: datetime) -> bool:
    return expiry_date is not None and expiry_date < now


def is_overstocked(quantity: int, max_stock_level: int) -> bool:
    return quantity * OVERSTOCK_DENOMINATOR >= max_stock_level * OVERSTOCK_NUMERATOR


def classify(
    quantity: int,
    min_stock_level: int,
    max_stock_level: int,
    expiry_date: datetime | None,
    now: datetime,
) -> str:
    """
    Derive the status of a live (non-archived, non-quarantined) record.

    First match wins:
      1. expiry_date before now        -> expired
      2. quantity <= min_stock_level   -> low_stock
      3. quantity >= 90% of max level  -> overstock
      4. otherwise                     -> active
    """
    if is_expired(expiry_date, now):
        return EXPIRED
    if quantity <= min_stock_level:
        return LOW_STOCK
    if is_overstocked(quantity, max_stock_level):
        return OVERSTOCK
    return ACTIVE


def resolve_status(record, now: datetime) -> str:
    """Status a stored record should carry at `now`, honouring archive and the quarantine pin."""
    if record.is_archived:
        return ARCHIVED
    if record.status_pinned:
        return QUARANTINE
    return classify(
        record.quantity,
        record.min_stock_level,
        record.max_stock_level,
        record.expiry_date,
        now,
    )

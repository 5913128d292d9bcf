"""
Reports — Aggregators

Pure rollups over snapshots of inventory records, stock movements and
logistics documents. Nothing here queries or writes the database; the
report service loads the rows and passes them in, so every number can be
recomputed from the same inputs.

Record-like inputs need: sku, product_name, quantity, min_stock_level,
max_stock_level, expiry_date, status, is_archived, age.

@file reports/aggregators.py
"""

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import timedelta

from inventory import status as inventory_status

AGEING_BUCKETS = ('0-30', '31-60', '61-90', '90+')

HIGH_TURNOVER = 2
LOW_TURNOVER = 0.5

# Hours after which a delivered dispatch scores zero for processing time.
PROCESSING_TARGET_HOURS = 48
PROCESSING_WEIGHT = 0.4
UTILISATION_WEIGHT = 0.4
LOW_STOCK_WEIGHT = 0.2


# ---------------------------------------------------------------------------
# Inventory summary
# ---------------------------------------------------------------------------

def count_distinct_skus(records) -> int:
    return len({r.sku for r in records if not r.is_archived})


def count_low_stock(records) -> int:
    return sum(1 for r in records if not r.is_archived and r.status == inventory_status.LOW_STOCK)


def count_near_expiry(records, *, now, days: int = 30) -> int:
    """Live records expiring in [now, now + days], both ends inclusive."""
    horizon = now + timedelta(days=days)
    return sum(
        1 for r in records
        if not r.is_archived and r.expiry_date is not None and now <= r.expiry_date <= horizon
    )


def count_expired(records, *, now) -> int:
    return sum(1 for r in records if not r.is_archived and inventory_status.is_expired(r.expiry_date, now))


def total_value(items, valuation):
    return sum((valuation(item) for item in items), 0)


def inventory_summary(
    records,
    *,
    now,
    valuation,
    receivings=(),
    stock_accuracy=None,
    near_expiry_days: int = 30,
) -> dict:
    """
    Headline numbers for one warehouse.

    stock_out_skus and low_stock_items are the same count under two names;
    it is computed once so the two can never disagree.
    """
    live = [r for r in records if not r.is_archived]
    low_stock = count_low_stock(live)
    receivings = list(receivings)
    return {
        'total_skus': count_distinct_skus(live),
        'stock_out_skus': low_stock,
        'low_stock_items': low_stock,
        'near_expiry_skus': count_near_expiry(live, now=now, days=near_expiry_days),
        'total_stock_value': total_value(live, valuation),
        'total_pos': len(receivings),
        'pending_pos': sum(1 for g in receivings if g.status == 'qc_pending'),
        'stock_accuracy': stock_accuracy,
    }


def inventory_stats(records, *, now, valuation, near_expiry_days: int = 30) -> dict:
    """Counts over every record of a warehouse, archived included."""
    records = list(records)
    live = [r for r in records if not r.is_archived]
    return {
        'total_items': len(records),
        'active_items': len(live),
        'archived_items': len(records) - len(live),
        'low_stock_items': count_low_stock(live),
        'expired_items': count_expired(live, now=now),
        'near_expiry_items': count_near_expiry(live, now=now, days=near_expiry_days),
        'total_stock_value': total_value(live, valuation),
        'status_breakdown': dict(Counter(r.status for r in live)),
    }


# ---------------------------------------------------------------------------
# Purchase orders / QC
# ---------------------------------------------------------------------------

def purchase_order_summary(receivings, valuation) -> dict:
    receivings = list(receivings)
    by_status = Counter(g.status for g in receivings)
    total = total_value(receivings, valuation)
    return {
        'total_pos': len(receivings),
        'pending_pos': by_status['qc_pending'],
        'approved_pos': by_status['qc_passed'],
        'rejected_pos': by_status['qc_failed'],
        'total_po_value': total,
        'average_po_value': total / len(receivings) if receivings else 0,
    }


def qc_summary(receivings, valuation) -> dict:
    groups = {}
    for g in receivings:
        group = groups.setdefault(g.status, {'status': g.status, 'count': 0, 'total_quantity': 0, 'total_value': 0})
        group['count'] += 1
        group['total_quantity'] += g.quantity
        group['total_value'] += valuation(g)

    total = sum(group['count'] for group in groups.values())
    passed = groups.get('qc_passed', {}).get('count', 0)
    pass_rate = round(passed / total * 100, 2) if total else 0
    return {
        'data': list(groups.values()),
        'summary': {
            'total_receivings': total,
            'pass_rate': pass_rate,
            'failed_count': groups.get('qc_failed', {}).get('count', 0),
            'pending_count': groups.get('qc_pending', {}).get('count', 0),
            'total_value': sum(group['total_value'] for group in groups.values()),
        },
    }


# ---------------------------------------------------------------------------
# Turnover
# ---------------------------------------------------------------------------

@dataclass
class StockPosition:
    """Stock of one SKU over a window, read back from the movement ledger."""

    sku: str
    opening: int = 0
    closing: int = 0
    total_received: int = 0

    @property
    def average_stock(self) -> float:
        return (self.opening + self.closing) / 2


def turnover_rate(total_received, average_stock) -> float:
    if not average_stock:
        return 0
    return total_received / average_stock


def stock_positions(movements, *, start=None, end=None) -> dict[str, StockPosition]:
    """
    Opening and closing stock per SKU, plus units received in [start, end].

    Each record's balance is the balance_after of its latest movement at
    the instant in question; a record with no movement yet holds zero.
    Without `start` the window opens before the first movement.
    """
    opening: dict = {}
    closing: dict = {}
    sku_of: dict = {}
    received: dict[str, int] = defaultdict(int)

    for movement in sorted(movements, key=lambda m: m.created_at):
        if end is not None and movement.created_at > end:
            continue
        sku_of[movement.record_id] = movement.sku
        closing[movement.record_id] = movement.balance_after
        if start is not None and movement.created_at < start:
            opening[movement.record_id] = movement.balance_after
            continue
        if movement.movement_type == 'RECEIPT':
            received[movement.sku] += movement.quantity_delta

    positions: dict[str, StockPosition] = {}
    for record_id, sku in sku_of.items():
        position = positions.setdefault(sku, StockPosition(sku=sku))
        position.opening += opening.get(record_id, 0)
        position.closing += closing[record_id]
    for position in positions.values():
        position.total_received = received.get(position.sku, 0)
    return positions


def inventory_turnover(positions, *, product_names=None, stock_outs=None) -> dict:
    """Per-SKU turnover rows, highest rate first, with a summary."""
    product_names = product_names or {}
    stock_outs = stock_outs or {}
    rows = []
    for position in positions.values():
        average = position.average_stock
        rows.append({
            'sku': position.sku,
            'product_name': product_names.get(position.sku, ''),
            'opening_stock': position.opening,
            'closing_stock': position.closing,
            'average_stock': average,
            'total_received': position.total_received,
            'stock_out_count': stock_outs.get(position.sku, 0),
            'turnover_rate': turnover_rate(position.total_received, average),
        })
    rows.sort(key=lambda row: (-row['turnover_rate'], row['sku']))

    rates = [row['turnover_rate'] for row in rows]
    return {
        'data': rows,
        'summary': {
            'total_skus': len(rows),
            'average_turnover': sum(rates) / len(rates) if rates else 0,
            'high_turnover_items': sum(1 for rate in rates if rate > HIGH_TURNOVER),
            'low_turnover_items': sum(1 for rate in rates if rate < LOW_TURNOVER),
        },
    }


# ---------------------------------------------------------------------------
# Ageing
# ---------------------------------------------------------------------------

def ageing_bucket(age: int) -> str:
    if age <= 30:
        return '0-30'
    if age <= 60:
        return '31-60'
    if age <= 90:
        return '61-90'
    return '90+'


def stock_ageing(records) -> dict:
    buckets = dict.fromkeys(AGEING_BUCKETS, 0)
    details = []
    for r in records:
        if r.is_archived:
            continue
        buckets[ageing_bucket(r.age)] += 1
        details.append({
            'sku': r.sku,
            'product_name': r.product_name,
            'batch_id': r.batch_id,
            'quantity': r.quantity,
            'age': r.age,
            'bucket': ageing_bucket(r.age),
            'location': r.location,
        })
    details.sort(key=lambda row: -row['age'])
    return {'ageing_buckets': buckets, 'details': details}


# ---------------------------------------------------------------------------
# Efficiency
# ---------------------------------------------------------------------------

def utilisation(quantity: int, max_stock_level: int) -> float:
    return quantity / max_stock_level if max_stock_level > 0 else 0


def efficiency_score(
    *,
    avg_processing_hours=None,
    avg_utilisation=None,
    low_stock_count: int = 0,
    total_items: int = 0,
) -> int:
    """
    0-100 score: 40% dispatch speed, 40% stock utilisation, 20% low-stock rate.

    A component with no data (no delivered dispatch, no live record)
    contributes nothing.
    """
    score = 0.0
    if avg_processing_hours is not None:
        processing = max(0.0, 100 - avg_processing_hours / PROCESSING_TARGET_HOURS * 100)
        score += processing * PROCESSING_WEIGHT
    if avg_utilisation is not None:
        score += min(100.0, avg_utilisation * 100 * 1.25) * UTILISATION_WEIGHT
    if total_items:
        rate = low_stock_count / total_items
        score += max(0.0, 100 - rate * 500) * LOW_STOCK_WEIGHT
    return round(score)


def efficiency(dispatch_hours, records) -> dict:
    """
    dispatch_hours: processing time in hours of each delivered dispatch.
    records: the warehouse's live inventory records.
    """
    dispatch_hours = list(dispatch_hours)
    live = [r for r in records if not r.is_archived]

    avg_hours = sum(dispatch_hours) / len(dispatch_hours) if dispatch_hours else None
    avg_util = (
        sum(utilisation(r.quantity, r.max_stock_level) for r in live) / len(live)
        if live else None
    )
    low_stock = count_low_stock(live)
    return {
        'dispatch_efficiency': {
            'avg_processing_hours': avg_hours,
            'total_dispatches': len(dispatch_hours),
        },
        'inventory_efficiency': {
            'avg_utilisation': avg_util,
            'low_stock_count': low_stock,
            'total_items': len(live),
        },
        'overall_score': efficiency_score(
            avg_processing_hours=avg_hours,
            avg_utilisation=avg_util,
            low_stock_count=low_stock,
            total_items=len(live),
        ),
    }

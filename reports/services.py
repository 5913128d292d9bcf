"""
Reports — Service Layer

Loads inventory records, stock movements and logistics documents for one
warehouse, applies the request filters and hands the rows to
reports.aggregators. Read-only: no report writes anything.

@file reports/services.py
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, time, timedelta

from django.conf import settings
from django.utils import timezone

from core.exceptions import BusinessRuleViolation, ResourceNotFoundError
from core.identifiers import parse_uuid
from inventory import status as inventory_status
from inventory.models import InventoryRecord, StockMovement
from logistics.models import DispatchOrder, GoodsReceiving
from warehouses.models import Warehouse

from . import aggregators
from .valuation import get_valuation

logger = logging.getLogger('vendops')

REPORT_INVENTORY_SUMMARY = 'inventory_summary'
REPORT_PURCHASE_ORDERS = 'purchase_orders'
REPORT_INVENTORY_TURNOVER = 'inventory_turnover'
REPORT_QC_SUMMARY = 'qc_summary'
REPORT_EFFICIENCY = 'efficiency'
REPORT_STOCK_AGEING = 'stock_ageing'
REPORT_INVENTORY_STATS = 'inventory_stats'

REPORT_TYPES = (
    REPORT_INVENTORY_SUMMARY,
    REPORT_PURCHASE_ORDERS,
    REPORT_INVENTORY_TURNOVER,
    REPORT_QC_SUMMARY,
    REPORT_EFFICIENCY,
    REPORT_STOCK_AGEING,
    REPORT_INVENTORY_STATS,
)

DATE_RANGE_PRESETS = ('today', 'this_week', 'this_month')
CUSTOM_DAY_FORMAT = '%d-%m-%Y'


@dataclass(frozen=True)
class ReportFilters:
    warehouse: Warehouse
    start: datetime | None = None
    end: datetime | None = None
    category: str = ''
    vendor: str = ''
    status: str = ''

    def describe(self) -> dict:
        data = asdict(self)
        data['warehouse'] = str(self.warehouse.pk)
        return data


def resolve_window(*, start_date=None, end_date=None, date_range: str = '', now=None):
    """
    (start, end) for a report window.

    An explicit start_date/end_date wins over date_range. date_range is a
    preset (today, this_week, this_month) or a single day as DD-MM-YYYY.
    """
    if start_date or end_date:
        if start_date and end_date and start_date > end_date:
            raise BusinessRuleViolation(detail='start_date must not be after end_date.')
        return start_date, end_date
    if not date_range:
        return None, None

    now = timezone.localtime(now or timezone.now())
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if date_range == 'today':
        return midnight, midnight + timedelta(days=1) - timedelta(microseconds=1)
    if date_range == 'this_week':
        return midnight - timedelta(days=midnight.weekday()), now
    if date_range == 'this_month':
        return midnight.replace(day=1), now

    try:
        day = datetime.strptime(date_range, CUSTOM_DAY_FORMAT).date()
    except ValueError:
        raise BusinessRuleViolation(
            detail=f'Invalid date_range {date_range!r}: use {", ".join(DATE_RANGE_PRESETS)} or DD-MM-YYYY.',
            code='INVALID_DATE_RANGE',
        )
    tz = timezone.get_current_timezone()
    return (
        timezone.make_aware(datetime.combine(day, time.min), tz),
        timezone.make_aware(datetime.combine(day, time.max), tz),
    )


def _in_window(qs, filters: ReportFilters, field: str = 'created_at'):
    if filters.start is not None:
        qs = qs.filter(**{f'{field}__gte': filters.start})
    if filters.end is not None:
        qs = qs.filter(**{f'{field}__lte': filters.end})
    return qs


class ReportService:
    """Builds report payloads; `generate` is the single entry point for the API."""

    @staticmethod
    def build_filters(
        *,
        warehouse_id,
        start_date=None,
        end_date=None,
        date_range: str = '',
        category: str = '',
        vendor: str = '',
        status: str = '',
        now=None,
    ) -> ReportFilters:
        if not warehouse_id:
            raise BusinessRuleViolation(detail='A warehouse is required for reports.', code='WAREHOUSE_REQUIRED')
        pk = parse_uuid(warehouse_id)
        try:
            warehouse = Warehouse.objects.get(pk=pk)
        except Warehouse.DoesNotExist:
            raise ResourceNotFoundError(detail=f'Warehouse {pk} not found.')
        start, end = resolve_window(start_date=start_date, end_date=end_date, date_range=date_range, now=now)
        return ReportFilters(
            warehouse=warehouse, start=start, end=end,
            category=category or '', vendor=vendor or '', status=status or '',
        )

    @staticmethod
    def generate(report_type: str, filters: ReportFilters, *, now=None, stock_accuracy=None) -> dict:
        builders = {
            REPORT_INVENTORY_SUMMARY: ReportService.inventory_summary,
            REPORT_PURCHASE_ORDERS: ReportService.purchase_orders,
            REPORT_INVENTORY_TURNOVER: ReportService.inventory_turnover,
            REPORT_QC_SUMMARY: ReportService.qc_summary,
            REPORT_EFFICIENCY: ReportService.efficiency,
            REPORT_STOCK_AGEING: ReportService.stock_ageing,
            REPORT_INVENTORY_STATS: ReportService.inventory_stats,
        }
        if report_type not in builders:
            raise BusinessRuleViolation(
                detail=f'Invalid report type {report_type!r}.', code='INVALID_REPORT_TYPE',
            )
        now = now or timezone.now()
        kwargs = {'now': now}
        if report_type == REPORT_INVENTORY_SUMMARY:
            kwargs['stock_accuracy'] = stock_accuracy
        payload = builders[report_type](filters, **kwargs)
        logger.info('Generated %s report for warehouse %s.', report_type, filters.warehouse.code)
        return {
            'report': report_type,
            **payload,
            'generated_on': now,
            'filters': filters.describe(),
        }

    # --- Loaders ---

    @staticmethod
    def _records(filters: ReportFilters, *, include_archived: bool = False):
        qs = InventoryRecord.objects.filter(warehouse=filters.warehouse)
        if not include_archived:
            qs = qs.filter(is_archived=False)
        if filters.category:
            qs = qs.filter(product_name__icontains=filters.category)
        if filters.status:
            qs = qs.filter(status=filters.status)
        return qs.order_by('sku', 'batch_id')

    @staticmethod
    def _receivings(filters: ReportFilters, *, with_status: bool = False):
        qs = _in_window(GoodsReceiving.objects.filter(warehouse=filters.warehouse), filters)
        if filters.vendor:
            qs = qs.filter(vendor__iexact=filters.vendor)
        if with_status and filters.status:
            qs = qs.filter(status=filters.status)
        return qs.order_by('-created_at')

    # --- Reports ---

    @staticmethod
    def inventory_summary(filters: ReportFilters, *, now, stock_accuracy=None) -> dict:
        records = list(ReportService._records(filters))
        if stock_accuracy is None:
            stock_accuracy = getattr(settings, 'INVENTORY_STOCK_ACCURACY', None)
        summary = aggregators.inventory_summary(
            records,
            now=now,
            valuation=get_valuation(),
            receivings=ReportService._receivings(filters),
            stock_accuracy=stock_accuracy,
            near_expiry_days=getattr(settings, 'INVENTORY_NEAR_EXPIRY_DAYS', 30),
        )
        # Distinct SKUs count the whole live warehouse, not the category/status slice.
        summary['total_skus'] = (
            InventoryRecord.objects
            .filter(warehouse=filters.warehouse, is_archived=False)
            .values('sku').distinct().count()
        )
        return {'summary': summary, 'inventory_details': records}

    @staticmethod
    def purchase_orders(filters: ReportFilters, *, now) -> dict:
        receivings = list(ReportService._receivings(filters, with_status=True))
        return {
            'summary': aggregators.purchase_order_summary(receivings, get_valuation()),
            'purchase_orders': receivings,
        }

    @staticmethod
    def inventory_turnover(filters: ReportFilters, *, now) -> dict:
        records = list(ReportService._records(filters))
        # Only live records of the slice; archived batches stay out of turnover.
        movements = StockMovement.objects.filter(
            warehouse=filters.warehouse, record_id__in=[r.pk for r in records],
        )
        if filters.end is not None:
            movements = movements.filter(created_at__lte=filters.end)
        positions = aggregators.stock_positions(
            movements.only('record', 'sku', 'movement_type', 'quantity_delta', 'balance_after', 'created_at')
            .order_by('created_at'),
            start=filters.start,
            end=filters.end,
        )
        product_names = {}
        stock_outs = {}
        for r in records:
            product_names.setdefault(r.sku, r.product_name)
            if r.status == inventory_status.LOW_STOCK:
                stock_outs[r.sku] = stock_outs.get(r.sku, 0) + 1
        return aggregators.inventory_turnover(positions, product_names=product_names, stock_outs=stock_outs)

    @staticmethod
    def qc_summary(filters: ReportFilters, *, now) -> dict:
        receivings = list(ReportService._receivings(filters))
        result = aggregators.qc_summary(receivings, get_valuation())
        result['receivings'] = receivings
        return result

    @staticmethod
    def efficiency(filters: ReportFilters, *, now) -> dict:
        dispatches = _in_window(
            DispatchOrder.objects.filter(
                warehouse=filters.warehouse,
                status=DispatchOrder.StatusChoices.DELIVERED,
                delivered_at__isnull=False,
            ),
            filters,
        ).values_list('created_at', 'delivered_at')
        hours = [(delivered - created).total_seconds() / 3600 for created, delivered in dispatches]
        records = _in_window(InventoryRecord.objects.filter(warehouse=filters.warehouse, is_archived=False), filters)
        return aggregators.efficiency(hours, records)

    @staticmethod
    def stock_ageing(filters: ReportFilters, *, now) -> dict:
        records = list(ReportService._records(filters))
        for r in records:
            r.age = r.age_on(now)
        return aggregators.stock_ageing(records)

    @staticmethod
    def inventory_stats(filters: ReportFilters, *, now) -> dict:
        return aggregators.inventory_stats(
            ReportService._records(filters, include_archived=True),
            now=now,
            valuation=get_valuation(),
            near_expiry_days=getattr(settings, 'INVENTORY_NEAR_EXPIRY_DAYS', 30),
        )

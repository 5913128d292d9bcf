"""
Reports — Stock Valuation

Pricing of on-hand units for value metrics. There is no pricing model in
the inventory records, so the default is a flat per-unit rate; deployments
plug their own through settings.INVENTORY_VALUATION (dotted path to a
callable taking a record-like object and returning its value).

@file reports/valuation.py
"""

from django.conf import settings
from django.utils.module_loading import import_string

DEFAULT_VALUATION = 'reports.valuation.FlatRateValuation'


class FlatRateValuation:
    """Every unit of every SKU is worth `unit_value`."""

    def __init__(self, unit_value=None):
        if unit_value is None:
            unit_value = getattr(settings, 'INVENTORY_UNIT_VALUE', 100)
        self.unit_value = unit_value

    def __call__(self, item) -> int:
        return item.quantity * self.unit_value

    def __repr__(self):
        return f'FlatRateValuation(unit_value={self.unit_value!r})'


def get_valuation():
    """Instantiate the configured valuation (class or factory at INVENTORY_VALUATION)."""
    path = getattr(settings, 'INVENTORY_VALUATION', None) or DEFAULT_VALUATION
    return import_string(path)()

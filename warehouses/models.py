"""
Warehouses — Models

Physical stocking points operated by a partner. Every inventory record,
receipt, dispatch and return belongs to exactly one warehouse.

@file warehouses/models.py
"""

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel


class Warehouse(BaseModel):

    name = models.CharField(_('name'), max_length=200)
    code = models.CharField(_('code'), max_length=30, unique=True)
    partner = models.CharField(_('partner'), max_length=200)
    location = models.CharField(_('location'), max_length=255)
    capacity = models.PositiveIntegerField(_('capacity'))
    manager = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='managed_warehouses',
        verbose_name=_('manager'),
    )
    is_active = models.BooleanField(_('active'), default=True, db_index=True)

    class Meta:
        verbose_name = _('warehouse')
        verbose_name_plural = _('warehouses')
        ordering = ['name']

    def __str__(self):
        return f'{self.name} ({self.code})'

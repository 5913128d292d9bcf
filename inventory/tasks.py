"""
Inventory — Celery Tasks

@file inventory/tasks.py
"""

import logging

from celery import shared_task

logger = logging.getLogger('vendops')


@shared_task(name='inventory.refresh_inventory_statuses')
def refresh_inventory_statuses_task():
    """
    Daily task: recompute age and status of every inventory record so that
    batches whose expiry date has passed show as expired without waiting
    for the next stock movement. Registered with Celery Beat.
    """
    from .services import InventoryService

    count = InventoryService.refresh_statuses()
    logger.info('refresh_inventory_statuses_task completed: %d records updated.', count)
    return {'updated_count': count}

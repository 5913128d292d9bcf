"""
VendOps — Celery Application

Workers and beat load Django settings, then discover tasks.py in every
installed app. Periodic schedules live in django-celery-beat's database
tables, seeded from CELERY_BEAT_SCHEDULE.

@file config/celery.py
"""

import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

app = Celery('vendops')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

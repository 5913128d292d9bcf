"""
Inventory — URL Configuration

@file inventory/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import InventoryRecordViewSet

app_name = 'inventory'

router = DefaultRouter()
router.register('records', InventoryRecordViewSet, basename='record')

urlpatterns = [
    path('', include(router.urls)),
]

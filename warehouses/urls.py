"""
Warehouses — URL Configuration

@file warehouses/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import WarehouseViewSet

app_name = 'warehouses'

router = DefaultRouter()
router.register('', WarehouseViewSet, basename='warehouse')

urlpatterns = [
    path('', include(router.urls)),
]

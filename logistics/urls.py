"""
Logistics — URL Configuration

@file logistics/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import DispatchOrderViewSet, GoodsReceivingViewSet, ReturnOrderViewSet

app_name = 'logistics'

router = DefaultRouter()
router.register('receivings', GoodsReceivingViewSet, basename='receiving')
router.register('dispatches', DispatchOrderViewSet, basename='dispatch')
router.register('returns', ReturnOrderViewSet, basename='return')

urlpatterns = [
    path('', include(router.urls)),
]

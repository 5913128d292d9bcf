"""
Reports — URL Configuration

@file reports/urls.py
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ReportViewSet

app_name = 'reports'

router = DefaultRouter()
router.register('', ReportViewSet, basename='report')

urlpatterns = [
    path('', include(router.urls)),
]

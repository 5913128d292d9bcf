"""
Reports — Views

GET /api/v1/reports/ lists the report types; GET /api/v1/reports/<type>/
builds one report for the warehouse named in the query string.

@file reports/views.py
"""

from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.reverse import reverse

from .serializers import ReportQuerySerializer, render_report
from .services import REPORT_TYPES, ReportService


class ReportViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]
    lookup_field = 'report_type'
    lookup_value_regex = '[a-z_]+'

    def list(self, request):
        return Response({
            report_type: reverse(
                'api-v1:reports:report-detail', kwargs={'report_type': report_type}, request=request,
            )
            for report_type in REPORT_TYPES
        })

    def retrieve(self, request, report_type=None):
        ser = ReportQuerySerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)
        params = ser.validated_data
        filters = ReportService.build_filters(
            warehouse_id=params['warehouse'],
            start_date=params.get('start_date'),
            end_date=params.get('end_date'),
            date_range=params['date_range'],
            category=params['category'],
            vendor=params['vendor'],
            status=params['status'],
        )
        payload = ReportService.generate(report_type, filters, stock_accuracy=params.get('stock_accuracy'))
        return Response(render_report(payload, context={'request': request}))

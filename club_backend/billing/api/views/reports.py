# billing/api/views/reports.py

"""
FINANCE REPORTS (READ ONLY)

    GET /api/billing/admin/reports/finance-summary/?period=YEAR_TO_DATE
    GET /api/billing/admin/reports/finance-summary/?from=2026-01-01&to=2026-03-31
    GET /api/billing/admin/reports/dues-summary/

Figures use the computed invoice status, never the cached column.
"""

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, OpenApiTypes, extend_schema
from rest_framework.response import Response

from billing.api.views.base import BillingAPIView
from billing.services.period_resolver import PRESETS, resolve_period
from billing.services.reporting import dues_summary, finance_summary
from permissions.roles import CAP_REPORTS_VIEW_FINANCE


class FinanceSummaryView(BillingAPIView):
    required_capability = CAP_REPORTS_VIEW_FINANCE

    @extend_schema(
        tags=["Billing Reports"],
        parameters=[
            OpenApiParameter("period", OpenApiTypes.STR, description=" | ".join(PRESETS)),
            OpenApiParameter("from", OpenApiTypes.STR, description="YYYY-MM-DD (custom range)"),
            OpenApiParameter("to", OpenApiTypes.STR, description="YYYY-MM-DD (custom range)"),
        ],
        responses={
            200: OpenApiResponse(description="Totals, by_source, by_status, range"),
            400: OpenApiResponse(description="Invalid period"),
        },
    )
    def get(self, request):
        period = resolve_period(
            preset=request.query_params.get("period") or None,
            date_from=request.query_params.get("from") or None,
            date_to=request.query_params.get("to") or None,
        )
        return Response(finance_summary(self.get_principal().tenant_id, period))


class DuesSummaryView(BillingAPIView):
    required_capability = CAP_REPORTS_VIEW_FINANCE

    @extend_schema(
        tags=["Billing Reports"],
        responses={200: OpenApiResponse(description="One row per dues period")},
    )
    def get(self, request):
        return Response({"periods": dues_summary(self.get_principal().tenant_id)})

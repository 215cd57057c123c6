# billing/api/views/invoices.py

"""
MEMBER INVOICE ENDPOINTS

    GET  /api/billing/invoices/                 (own invoices; admins: tenant-wide)
    GET  /api/billing/invoices/<uuid>/
    POST /api/billing/invoices/<uuid>/pay/      (Idempotency-Key header)
    GET  /api/billing/invoices/<uuid>/pdf/

Status and balance are always COMPUTED from allocations.
"""

from __future__ import annotations

from django.http import HttpResponse
from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, OpenApiTypes, extend_schema
from rest_framework import status
from rest_framework.response import Response

from billing.api.pagination import BillingPagination
from billing.api.serializers import (
    ChargeCommandSerializer,
    ChargeResultSerializer,
    InvoiceListQuerySerializer,
    InvoiceSerializer,
    PaymentSerializer,
    charge_result_payload,
)
from billing.api.views.base import BillingAPIView, PaymentsThrottle
from billing.models import Invoice
from billing.services.balance import settlement_for
from billing.services.charge_processor import charge_invoice
from billing.services.exceptions import Forbidden, NotFound
from billing.services.invoice_service import record_pdf_download, render_placeholder_pdf
from permissions.roles import (
    CAP_BILLING_CHARGE_ON_BEHALF,
    CAP_BILLING_MANAGE_INVOICES,
    CAP_INVOICES_PAY_OWN,
    CAP_INVOICES_VIEW_OWN,
)

IDEMPOTENCY_HEADER = "Idempotency-Key"


def _visible_invoices(principal, *, member_id=None):
    """
    Admins see the whole tenant (optionally one member); everyone else
    sees only their own member's invoices.
    """
    if principal.can(CAP_BILLING_MANAGE_INVOICES):
        if member_id:
            invoices = Invoice.objects.for_member(principal.tenant_id, member_id)
        else:
            invoices = Invoice.objects.for_tenant(principal.tenant_id)
        return invoices.with_settlement()

    if not principal.member_id:
        return Invoice.objects.none()
    return Invoice.objects.for_member(principal.tenant_id, principal.member_id).with_settlement()


class InvoiceListView(BillingAPIView):
    required_any_capabilities = {CAP_INVOICES_VIEW_OWN, CAP_BILLING_MANAGE_INVOICES}

    @extend_schema(
        tags=["Billing"],
        parameters=[
            OpenApiParameter("status", OpenApiTypes.STR, description="OUTSTANDING | PAID | CANCELLED"),
            OpenApiParameter("source", OpenApiTypes.STR),
            OpenApiParameter("member_id", OpenApiTypes.UUID, description="Admins only"),
            OpenApiParameter("page", OpenApiTypes.INT),
            OpenApiParameter("page_size", OpenApiTypes.INT),
        ],
        responses={200: InvoiceSerializer(many=True)},
    )
    def get(self, request):
        query = InvoiceListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        filters = query.validated_data

        principal = self.get_principal()
        now = timezone.now()

        invoices = _visible_invoices(principal, member_id=filters.get("member_id"))
        if filters.get("source"):
            invoices = invoices.filter(source=filters["source"])
        invoices = invoices.order_by("-issued_at", "-id")

        wanted = filters.get("status")
        if wanted:
            # Cached status can be stale; filter on the computed bucket.
            invoices = [
                inv for inv in invoices if settlement_for(inv, now).reporting_status == wanted
            ]

        paginator = BillingPagination()
        page = paginator.paginate_queryset(invoices, request, view=self)
        data = InvoiceSerializer(page, many=True, context={"now": now}).data
        return paginator.get_paginated_response(data)


class InvoiceDetailView(BillingAPIView):
    required_any_capabilities = {CAP_INVOICES_VIEW_OWN, CAP_BILLING_MANAGE_INVOICES}

    @extend_schema(tags=["Billing"], responses={200: InvoiceSerializer})
    def get(self, request, invoice_id):
        principal = self.get_principal()

        invoice = (
            Invoice.objects.for_tenant(principal.tenant_id)
            .with_settlement()
            .filter(pk=invoice_id)
            .first()
        )
        if invoice is None:
            raise NotFound("Invoice not found")
        if invoice.member_id != principal.member_id and not principal.can(
            CAP_BILLING_MANAGE_INVOICES
        ):
            raise Forbidden("Invoice does not belong to member")

        data = InvoiceSerializer(invoice, context={"now": timezone.now()}).data
        data["payments"] = PaymentSerializer(
            invoice.payments.order_by("processed_at"), many=True
        ).data
        return Response(data)


class InvoicePayView(BillingAPIView):
    """
    Charge an invoice (member's own, or on behalf with the admin capability).

    201: new payment.
    200: replay of an earlier request with the same Idempotency-Key.
    """

    required_any_capabilities = {CAP_INVOICES_PAY_OWN, CAP_BILLING_CHARGE_ON_BEHALF}
    throttle_classes = [PaymentsThrottle]

    @extend_schema(
        tags=["Billing"],
        request=ChargeCommandSerializer,
        parameters=[
            OpenApiParameter(
                IDEMPOTENCY_HEADER,
                OpenApiTypes.STR,
                location=OpenApiParameter.HEADER,
                required=False,
            )
        ],
        responses={
            201: ChargeResultSerializer,
            200: ChargeResultSerializer,
            400: OpenApiResponse(description="Validation failed"),
            403: OpenApiResponse(description="Invoice does not belong to member"),
            404: OpenApiResponse(description="Invoice or payment method not found"),
            409: OpenApiResponse(description="Invoice not payable"),
            422: OpenApiResponse(description="Partial donation"),
        },
    )
    def post(self, request, invoice_id):
        command = ChargeCommandSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        data = command.validated_data

        result = charge_invoice(
            self.get_principal(),
            invoice_id,
            amount_cents=data.get("amount"),
            payment_method_id=data.get("payment_method_id"),
            one_time_card=data.get("card"),
            idempotency_key=request.headers.get(IDEMPOTENCY_HEADER),
        )

        return Response(
            charge_result_payload(result),
            status=status.HTTP_200_OK if result.replayed else status.HTTP_201_CREATED,
        )


class InvoicePdfView(BillingAPIView):
    required_any_capabilities = {CAP_INVOICES_VIEW_OWN, CAP_BILLING_MANAGE_INVOICES}

    @extend_schema(
        tags=["Billing"],
        responses={(200, "application/pdf"): OpenApiTypes.BINARY},
    )
    def get(self, request, invoice_id):
        invoice = record_pdf_download(self.get_principal(), invoice_id)

        response = HttpResponse(render_placeholder_pdf(invoice), content_type="application/pdf")
        response["Content-Disposition"] = f'attachment; filename="{invoice.id}.pdf"'
        return response

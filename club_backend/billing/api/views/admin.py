# billing/api/views/admin.py

"""
ADMIN BILLING OPERATIONS

    POST /api/billing/admin/invoices/                         manual invoice
    POST /api/billing/admin/invoices/<uuid>/send/
    POST /api/billing/admin/invoices/<uuid>/void/
    POST /api/billing/admin/invoices/<uuid>/record-payment/   cash / bank
    GET  /api/billing/admin/invoices/<uuid>/audit/
    POST /api/billing/admin/dues-runs/
    POST /api/billing/admin/events/<uuid>/invoices/
    POST /api/billing/admin/registrations/<uuid>/invoice/
    POST /api/billing/admin/reminders/run/
"""

from __future__ import annotations

from django.utils import timezone
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.response import Response

from billing.api.serializers import (
    AuditLogSerializer,
    ChargeResultSerializer,
    DuesRunCommandSerializer,
    InvoiceSerializer,
    ManualInvoiceCommandSerializer,
    OfflinePaymentCommandSerializer,
    VoidInvoiceCommandSerializer,
    charge_result_payload,
)
from billing.api.views.base import BillingAPIView, PaymentsThrottle
from billing.models import Invoice
from billing.services import audit
from billing.services.dues_run import run_dues
from billing.services.event_invoices import (
    generate_event_invoices,
    generate_registration_invoice,
)
from billing.services.exceptions import NotFound
from billing.services.invoice_service import (
    create_manual_invoice,
    record_offline_payment,
    send_invoice,
    void_invoice,
)
from billing.services.reminders import run_reminders
from permissions.roles import (
    CAP_AUDIT_VIEW,
    CAP_BILLING_MANAGE_INVOICES,
    CAP_BILLING_RUN_JOBS,
)


def _invoice_payload(invoice: Invoice) -> dict:
    fresh = Invoice.objects.with_settlement().get(pk=invoice.pk)
    return InvoiceSerializer(fresh, context={"now": timezone.now()}).data


# ======================================================
# SINGLE INVOICE
# ======================================================


class AdminInvoiceCreateView(BillingAPIView):
    required_capability = CAP_BILLING_MANAGE_INVOICES

    @extend_schema(
        tags=["Billing Admin"],
        request=ManualInvoiceCommandSerializer,
        responses={
            201: InvoiceSerializer,
            400: OpenApiResponse(description="Validation failed"),
            404: OpenApiResponse(description="Member not found"),
        },
    )
    def post(self, request):
        command = ManualInvoiceCommandSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        data = command.validated_data

        invoice = create_manual_invoice(
            self.get_principal(),
            member_id=data["member_id"],
            amount_cents=data["amount"],
            currency=data.get("currency") or None,
            description=data.get("description", ""),
            due_at=data.get("due_date"),
            source=data["source"],
        )
        return Response(_invoice_payload(invoice), status=status.HTTP_201_CREATED)


class AdminInvoiceSendView(BillingAPIView):
    required_capability = CAP_BILLING_MANAGE_INVOICES

    @extend_schema(
        tags=["Billing Admin"],
        request=None,
        responses={
            200: OpenApiResponse(description='{"status": "queued"}'),
            409: OpenApiResponse(description="Invoice not sendable or member inactive"),
        },
    )
    def post(self, request, invoice_id):
        invoice = send_invoice(self.get_principal(), invoice_id)
        return Response({"status": "queued", "invoice_id": invoice.id})


class AdminInvoiceVoidView(BillingAPIView):
    required_capability = CAP_BILLING_MANAGE_INVOICES

    @extend_schema(
        tags=["Billing Admin"],
        request=VoidInvoiceCommandSerializer,
        responses={
            200: InvoiceSerializer,
            409: OpenApiResponse(description="Invoice has payments or is already void"),
        },
    )
    def post(self, request, invoice_id):
        command = VoidInvoiceCommandSerializer(data=request.data)
        command.is_valid(raise_exception=True)

        invoice = void_invoice(
            self.get_principal(),
            invoice_id,
            reason=command.validated_data.get("reason", ""),
        )
        return Response(_invoice_payload(invoice))


class AdminRecordPaymentView(BillingAPIView):
    required_capability = CAP_BILLING_MANAGE_INVOICES
    throttle_classes = [PaymentsThrottle]

    @extend_schema(
        tags=["Billing Admin"],
        request=OfflinePaymentCommandSerializer,
        responses={
            201: ChargeResultSerializer,
            409: OpenApiResponse(description="Invoice not payable or duplicate reference"),
        },
    )
    def post(self, request, invoice_id):
        command = OfflinePaymentCommandSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        data = command.validated_data

        result = record_offline_payment(
            self.get_principal(),
            invoice_id,
            amount_cents=data.get("amount"),
            reference=data.get("reference", ""),
        )
        return Response(charge_result_payload(result), status=status.HTTP_201_CREATED)


class AdminInvoiceAuditView(BillingAPIView):
    required_any_capabilities = {CAP_AUDIT_VIEW, CAP_BILLING_MANAGE_INVOICES}

    @extend_schema(tags=["Billing Admin"], responses={200: AuditLogSerializer(many=True)})
    def get(self, request, invoice_id):
        principal = self.get_principal()
        if not Invoice.objects.for_tenant(principal.tenant_id).filter(pk=invoice_id).exists():
            raise NotFound("Invoice not found")

        entries = audit.trail_for(principal.tenant_id, invoice_id)
        return Response(AuditLogSerializer(entries, many=True).data)


# ======================================================
# BATCH JOBS
# ======================================================


class DuesRunView(BillingAPIView):
    required_capability = CAP_BILLING_RUN_JOBS

    @extend_schema(
        tags=["Billing Admin"],
        request=DuesRunCommandSerializer,
        responses={200: OpenApiResponse(description="Dues run counts")},
    )
    def post(self, request):
        command = DuesRunCommandSerializer(data=request.data)
        command.is_valid(raise_exception=True)

        principal = self.get_principal()
        result = run_dues(
            principal.tenant_id,
            command.validated_data.get("period") or None,
            actor_id=principal.user_id,
        )
        return Response(
            {
                "period_key": result.period_key,
                "created": result.created,
                "skipped_existing": result.skipped_existing,
                "skipped_no_membership_type": result.skipped_no_membership_type,
                "invoice_ids": result.invoice_ids,
            }
        )


class EventInvoicesView(BillingAPIView):
    required_capability = CAP_BILLING_RUN_JOBS

    @extend_schema(
        tags=["Billing Admin"],
        request=None,
        responses={
            200: OpenApiResponse(description="Event invoicing counts"),
            404: OpenApiResponse(description="Event not found"),
            422: OpenApiResponse(description="Free event"),
        },
    )
    def post(self, request, event_id):
        principal = self.get_principal()
        result = generate_event_invoices(
            principal.tenant_id,
            event_id,
            actor_id=principal.user_id,
        )
        return Response(
            {
                "created": result.created,
                "skipped": result.skipped,
                "errors": result.errors,
                "invoice_ids": result.invoice_ids,
            }
        )


class RegistrationInvoiceView(BillingAPIView):
    """201 when a new invoice was issued, 200 when the registration already had one."""

    required_capability = CAP_BILLING_RUN_JOBS

    @extend_schema(
        tags=["Billing Admin"],
        request=None,
        responses={
            201: InvoiceSerializer,
            200: InvoiceSerializer,
            404: OpenApiResponse(description="Registration not found"),
            409: OpenApiResponse(description="Registration cancelled"),
            422: OpenApiResponse(description="Free event"),
        },
    )
    def post(self, request, registration_id):
        principal = self.get_principal()
        result = generate_registration_invoice(
            principal.tenant_id,
            registration_id,
            actor_id=principal.user_id,
        )
        return Response(
            _invoice_payload(result.invoice),
            status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        )


class RemindersRunView(BillingAPIView):
    required_capability = CAP_BILLING_RUN_JOBS

    @extend_schema(
        tags=["Billing Admin"],
        request=None,
        responses={200: OpenApiResponse(description="Reminder counts")},
    )
    def post(self, request):
        principal = self.get_principal()
        result = run_reminders(principal.tenant_id, actor_id=principal.user_id)
        return Response({"sent": result.sent, "invoice_ids": result.invoice_ids})

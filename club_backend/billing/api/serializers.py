# billing/api/serializers.py

"""
BILLING API SERIALIZERS

Read serializers never trust the cached invoice status: status, balance
and paid amount come from the settlement computed over allocations.

Command serializers do NOT touch the database. They only shape input;
business validation stays in billing.services.
"""

from __future__ import annotations

from django.utils import timezone
from rest_framework import serializers

from billing.models import Invoice, InvoiceAuditLog, Payment, PaymentMethod
from billing.services.balance import settlement_for


# ======================================================
# READ
# ======================================================


class InvoiceSerializer(serializers.ModelSerializer):
    invoice_id = serializers.UUIDField(source="id", read_only=True)
    amount = serializers.IntegerField(source="amount_cents", read_only=True)
    due_date = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = [
            "invoice_id",
            "invoice_number",
            "member_id",
            "amount",
            "currency",
            "description",
            "source",
            "status",
            "issued_at",
            "due_date",
            "paid_at",
            "event_id",
            "dues_period_key",
            "dues_label",
        ]
        read_only_fields = fields

    def get_due_date(self, obj):
        if obj.due_at is None:
            return None
        return timezone.localtime(obj.due_at).date().isoformat()

    def to_representation(self, instance):
        data = super().to_representation(instance)
        settlement = settlement_for(instance, self.context.get("now"))
        data["status"] = settlement.status
        data["reporting_status"] = settlement.reporting_status
        data["amount_paid"] = settlement.allocated_cents
        data["balance"] = settlement.balance_cents
        return data


class PaymentSerializer(serializers.ModelSerializer):
    payment_id = serializers.UUIDField(source="id", read_only=True)
    amount = serializers.IntegerField(source="amount_cents", read_only=True)

    class Meta:
        model = Payment
        fields = [
            "payment_id",
            "invoice_id",
            "member_id",
            "amount",
            "currency",
            "status",
            "kind",
            "reference",
            "method_brand",
            "method_last4",
            "processed_at",
        ]
        read_only_fields = fields


class PaymentMethodSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentMethod
        fields = [
            "id",
            "brand",
            "last4",
            "exp_month",
            "exp_year",
            "is_default",
            "status",
            "created_at",
        ]
        read_only_fields = fields


class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceAuditLog
        fields = [
            "id",
            "invoice_id",
            "member_id",
            "action",
            "actor_id",
            "amount_cents",
            "meta",
            "created_at",
        ]
        read_only_fields = fields


class ChargeResultSerializer(serializers.Serializer):
    payment_id = serializers.UUIDField()
    invoice_id = serializers.UUIDField()
    amount = serializers.IntegerField()
    currency = serializers.CharField()
    reference = serializers.CharField()
    invoice_status = serializers.CharField()
    balance = serializers.IntegerField()
    replayed = serializers.BooleanField()


def charge_result_payload(result) -> dict:
    payment = result.payment
    return {
        "payment_id": payment.id,
        "invoice_id": payment.invoice_id,
        "amount": payment.amount_cents,
        "currency": payment.currency,
        "reference": payment.reference,
        "invoice_status": result.invoice_status,
        "balance": result.balance_cents,
        "replayed": result.replayed,
    }


# ======================================================
# COMMANDS (MEMBER)
# ======================================================


class CardSerializer(serializers.Serializer):
    """Shape only; structural card rules live in payment_methods.validate_card."""

    number = serializers.CharField(required=False, allow_blank=True)
    exp_month = serializers.CharField(required=False, allow_blank=True)
    exp_year = serializers.CharField(required=False, allow_blank=True)
    cvc = serializers.CharField(required=False, allow_blank=True)
    brand = serializers.CharField(required=False, allow_blank=True)


class ChargeCommandSerializer(serializers.Serializer):
    amount = serializers.IntegerField(
        required=False,
        allow_null=True,
        help_text="Cents. Defaults to the remaining balance.",
    )
    payment_method_id = serializers.UUIDField(required=False, allow_null=True)
    card = CardSerializer(required=False, allow_null=True)


class InvoiceListQuerySerializer(serializers.Serializer):
    STATUS_FILTERS = ("OUTSTANDING", "PAID", "CANCELLED")

    status = serializers.ChoiceField(choices=STATUS_FILTERS, required=False)
    source = serializers.ChoiceField(choices=Invoice.SOURCE_CHOICES, required=False)
    member_id = serializers.UUIDField(required=False, help_text="Admins only.")


# ======================================================
# COMMANDS (ADMIN)
# ======================================================


class ManualInvoiceCommandSerializer(serializers.Serializer):
    member_id = serializers.UUIDField()
    amount = serializers.IntegerField(help_text="Cents; must be > 0.")
    currency = serializers.CharField(required=False, allow_blank=True, max_length=3)
    description = serializers.CharField(required=False, allow_blank=True, max_length=255)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    source = serializers.ChoiceField(
        choices=[Invoice.SOURCE_MANUAL, Invoice.SOURCE_DONATION, Invoice.SOURCE_OTHER],
        required=False,
        default=Invoice.SOURCE_MANUAL,
    )


class VoidInvoiceCommandSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class OfflinePaymentCommandSerializer(serializers.Serializer):
    amount = serializers.IntegerField(required=False, allow_null=True)
    reference = serializers.CharField(required=False, allow_blank=True, max_length=64)


class DuesRunCommandSerializer(serializers.Serializer):
    period = serializers.CharField(
        required=False,
        allow_blank=True,
        help_text="YYYY-MM. Defaults to the current month.",
    )


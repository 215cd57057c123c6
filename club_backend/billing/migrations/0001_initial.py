"""
======================================================
PATH: billing/migrations/0001_initial.py
======================================================
MIGRATION: BILLING LEDGER

Creates the tenant-scoped ledger:
- Invoice (+ dues/period bookkeeping, reminder markers)
- PaymentMethod (tokenized cards, one default per member)
- Payment (immutable, idempotency-key unique per tenant+member)
- Allocation (payment -> invoice, append-only)
- InvoiceAuditLog (immutable)
- InvoiceSequence (invoice number counters)
- NotificationEvent (outbox)
"""

from __future__ import annotations

import uuid

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


def _uuid_pk():
    return models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        serialize=False,
    )


def _tenant_fk(related_name, on_delete=django.db.models.deletion.PROTECT):
    return models.ForeignKey(
        to="clubs.tenant",
        on_delete=on_delete,
        related_name=related_name,
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("clubs", "0001_initial"),
    ]

    operations = [
        # ------------------------------------------------
        # Invoice
        # ------------------------------------------------
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", _uuid_pk()),
                ("member_id", models.UUIDField(db_index=True)),
                ("invoice_number", models.CharField(max_length=64)),
                ("amount_cents", models.PositiveIntegerField()),
                ("currency", models.CharField(max_length=3, default="PHP")),
                (
                    "source",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("DUES", "Dues"),
                            ("EVENT", "Event"),
                            ("DONATION", "Donation"),
                            ("MANUAL", "Manual"),
                            ("OTHER", "Other"),
                        ],
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("DRAFT", "Draft"),
                            ("ISSUED", "Issued"),
                            ("PARTIALLY_PAID", "Partially paid"),
                            ("PAID", "Paid"),
                            ("OVERDUE", "Overdue"),
                            ("VOID", "Void"),
                            ("FAILED", "Failed"),
                        ],
                        default="ISSUED",
                    ),
                ),
                ("issued_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("due_at", models.DateTimeField(null=True, blank=True)),
                ("paid_at", models.DateTimeField(null=True, blank=True)),
                ("description", models.CharField(max_length=255, blank=True)),
                ("event_id", models.UUIDField(null=True, blank=True)),
                (
                    "dues_period_key",
                    models.CharField(
                        max_length=7,
                        null=True,
                        blank=True,
                        help_text="YYYY-MM of the dues period (DUES only).",
                    ),
                ),
                ("dues_label", models.CharField(max_length=64, blank=True)),
                ("period_start", models.DateField(null=True, blank=True)),
                ("period_end", models.DateField(null=True, blank=True)),
                ("reminder_sent_at", models.DateTimeField(null=True, blank=True)),
                ("reminder_count", models.PositiveIntegerField(default=0)),
                (
                    "created_by",
                    models.UUIDField(
                        null=True,
                        blank=True,
                        help_text="Actor (user id) that created the invoice; null for system jobs.",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("tenant", _tenant_fk("invoices")),
            ],
            options={
                "ordering": ["-issued_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("tenant", "invoice_number"),
                        name="uniq_invoice_number_per_tenant",
                    ),
                    models.UniqueConstraint(
                        fields=("tenant", "member_id", "dues_period_key"),
                        condition=models.Q(source="DUES", dues_period_key__isnull=False)
                        & ~models.Q(status="VOID"),
                        name="uniq_open_dues_invoice_per_period",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(amount_cents__gt=0),
                        name="invoice_amount_positive",
                    ),
                ],
                "indexes": [
                    models.Index(
                        fields=["tenant", "member_id", "status"],
                        name="billing_inv_member_status_idx",
                    ),
                    models.Index(
                        fields=["tenant", "status", "due_at"],
                        name="billing_inv_status_due_idx",
                    ),
                    models.Index(
                        fields=["tenant", "issued_at"],
                        name="billing_inv_issued_idx",
                    ),
                ],
            },
        ),
        # ------------------------------------------------
        # PaymentMethod
        # ------------------------------------------------
        migrations.CreateModel(
            name="PaymentMethod",
            fields=[
                ("id", _uuid_pk()),
                ("member_id", models.UUIDField(db_index=True)),
                ("token", models.CharField(max_length=64, unique=True)),
                ("brand", models.CharField(max_length=32)),
                ("last4", models.CharField(max_length=4)),
                ("exp_month", models.PositiveSmallIntegerField()),
                ("exp_year", models.PositiveSmallIntegerField()),
                ("is_default", models.BooleanField(default=False)),
                (
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[("ACTIVE", "Active"), ("INACTIVE", "Inactive")],
                        default="ACTIVE",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("tenant", _tenant_fk("payment_methods")),
            ],
            options={
                "ordering": ["-is_default", "-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("tenant", "member_id"),
                        condition=models.Q(is_default=True),
                        name="uniq_default_payment_method",
                    ),
                ],
            },
        ),
        # ------------------------------------------------
        # Payment
        # ------------------------------------------------
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", _uuid_pk()),
                ("member_id", models.UUIDField(db_index=True)),
                ("amount_cents", models.PositiveIntegerField()),
                ("currency", models.CharField(max_length=3)),
                (
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("PENDING", "Pending"),
                            ("SUCCEEDED", "Succeeded"),
                            ("FAILED", "Failed"),
                        ],
                        default="SUCCEEDED",
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("CARD", "Card"),
                            ("OFFLINE", "Offline (cash / bank)"),
                        ],
                        default="CARD",
                    ),
                ),
                ("reference", models.CharField(max_length=64)),
                ("method_brand", models.CharField(max_length=32, blank=True)),
                ("method_last4", models.CharField(max_length=4, blank=True)),
                (
                    "idempotency_key",
                    models.CharField(max_length=128, null=True, blank=True),
                ),
                ("invoice_status_after", models.CharField(max_length=16, blank=True)),
                (
                    "balance_after_cents",
                    models.PositiveIntegerField(null=True, blank=True),
                ),
                (
                    "processed_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("created_by", models.UUIDField(null=True, blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("tenant", _tenant_fk("payments")),
                (
                    "invoice",
                    models.ForeignKey(
                        to="billing.invoice",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                    ),
                ),
                (
                    "payment_method",
                    models.ForeignKey(
                        to="billing.paymentmethod",
                        on_delete=django.db.models.deletion.SET_NULL,
                        null=True,
                        blank=True,
                        related_name="payments",
                    ),
                ),
            ],
            options={
                "ordering": ["-processed_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("tenant", "member_id", "idempotency_key"),
                        condition=models.Q(idempotency_key__isnull=False),
                        name="uniq_payment_idempotency_key",
                    ),
                    models.UniqueConstraint(
                        fields=("tenant", "reference"),
                        name="uniq_payment_reference_per_tenant",
                    ),
                ],
                "indexes": [
                    models.Index(
                        fields=["tenant", "invoice", "status"],
                        name="billing_pay_invoice_idx",
                    ),
                ],
            },
        ),
        # ------------------------------------------------
        # Allocation
        # ------------------------------------------------
        migrations.CreateModel(
            name="Allocation",
            fields=[
                ("id", _uuid_pk()),
                ("amount_cents", models.PositiveIntegerField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("tenant", _tenant_fk("allocations")),
                (
                    "invoice",
                    models.ForeignKey(
                        to="billing.invoice",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        to="billing.payment",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                    ),
                ),
            ],
            options={"ordering": ["created_at"]},
        ),
        # ------------------------------------------------
        # InvoiceAuditLog
        # ------------------------------------------------
        migrations.CreateModel(
            name="InvoiceAuditLog",
            fields=[
                ("id", _uuid_pk()),
                ("member_id", models.UUIDField()),
                (
                    "action",
                    models.CharField(
                        max_length=32,
                        choices=[
                            ("created", "Created"),
                            ("paid", "Paid"),
                            ("dues_generated", "Dues generated"),
                            ("send_requested", "Send requested"),
                            ("pdf_downloaded", "PDF downloaded"),
                            ("voided", "Voided"),
                        ],
                    ),
                ),
                (
                    "actor_id",
                    models.UUIDField(
                        null=True,
                        blank=True,
                        help_text="User that performed the action; null for scheduled jobs.",
                    ),
                ),
                ("amount_cents", models.IntegerField(null=True, blank=True)),
                ("meta", models.JSONField(default=dict, blank=True)),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("tenant", _tenant_fk("invoice_audit_logs")),
                (
                    "invoice",
                    models.ForeignKey(
                        to="billing.invoice",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="audit_logs",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["tenant", "invoice", "created_at"],
                        name="billing_audit_invoice_idx",
                    ),
                ],
            },
        ),
        # ------------------------------------------------
        # InvoiceSequence
        # ------------------------------------------------
        migrations.CreateModel(
            name="InvoiceSequence",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("year", models.PositiveIntegerField()),
                ("type_code", models.CharField(max_length=8)),
                ("last_value", models.PositiveIntegerField(default=0)),
                (
                    "tenant",
                    _tenant_fk(
                        "invoice_sequences",
                        on_delete=django.db.models.deletion.CASCADE,
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("tenant", "year", "type_code"),
                        name="uniq_invoice_sequence",
                    ),
                ],
            },
        ),
        # ------------------------------------------------
        # NotificationEvent (outbox)
        # ------------------------------------------------
        migrations.CreateModel(
            name="NotificationEvent",
            fields=[
                ("id", _uuid_pk()),
                (
                    "kind",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("RECEIPT", "Receipt"),
                            ("REMINDER", "Reminder"),
                            ("INVOICE_SEND", "Invoice send"),
                        ],
                    ),
                ),
                ("member_id", models.UUIDField(null=True, blank=True)),
                ("invoice_id", models.UUIDField(null=True, blank=True)),
                ("amount_cents", models.IntegerField(null=True, blank=True)),
                ("currency", models.CharField(max_length=3, blank=True)),
                ("meta", models.JSONField(default=dict, blank=True)),
                (
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[("PENDING", "Pending"), ("DELIVERED", "Delivered")],
                        default="PENDING",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "tenant",
                    _tenant_fk(
                        "notification_events",
                        on_delete=django.db.models.deletion.CASCADE,
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="billing_notif_outbox_idx",
                    ),
                ],
            },
        ),
    ]

# billing/models/invoice.py

import uuid

from django.db import models
from django.db.models import Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from .base import TenantScopedQuerySet


class InvoiceQuerySet(TenantScopedQuerySet):
    def for_member(self, tenant_id, member_id):
        return self.filter(tenant_id=tenant_id, member_id=member_id)

    def with_settlement(self):
        """
        Annotate `allocated_cents`: total of allocations whose payment SUCCEEDED.

        This is the only number the read side trusts; the `status` column
        is recomputed from it (billing.services.balance).
        """
        return self.annotate(
            allocated_cents=Coalesce(
                Sum(
                    "allocations__amount_cents",
                    filter=Q(allocations__payment__status="SUCCEEDED"),
                ),
                0,
            )
        )


class Invoice(models.Model):
    """
    A bill owed by one member to one tenant.

    GUARANTEES:
    - invoice_number unique per tenant ({TENANT_SLUG}-{YEAR}-{TYPE}-{SEQ})
    - amount/currency/source/member are immutable once issued
    - status is a CACHE of the allocation set; PAID / VOID / FAILED are terminal
    - never deleted once payments exist (PROTECT from Payment/Allocation)
    - at most one non-VOID dues invoice per (tenant, member, period)
    """

    # ----------------------------
    # Source
    # ----------------------------
    SOURCE_DUES = "DUES"
    SOURCE_EVENT = "EVENT"
    SOURCE_DONATION = "DONATION"
    SOURCE_MANUAL = "MANUAL"
    SOURCE_OTHER = "OTHER"

    SOURCE_CHOICES = [
        (SOURCE_DUES, "Dues"),
        (SOURCE_EVENT, "Event"),
        (SOURCE_DONATION, "Donation"),
        (SOURCE_MANUAL, "Manual"),
        (SOURCE_OTHER, "Other"),
    ]

    # ----------------------------
    # Status
    # ----------------------------
    STATUS_DRAFT = "DRAFT"
    STATUS_ISSUED = "ISSUED"
    STATUS_PARTIALLY_PAID = "PARTIALLY_PAID"
    STATUS_PAID = "PAID"
    STATUS_OVERDUE = "OVERDUE"
    STATUS_VOID = "VOID"
    STATUS_FAILED = "FAILED"

    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_ISSUED, "Issued"),
        (STATUS_PARTIALLY_PAID, "Partially paid"),
        (STATUS_PAID, "Paid"),
        (STATUS_OVERDUE, "Overdue"),
        (STATUS_VOID, "Void"),
        (STATUS_FAILED, "Failed"),
    ]

    TERMINAL_STATUSES = frozenset({STATUS_PAID, STATUS_VOID, STATUS_FAILED})

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "clubs.Tenant",
        on_delete=models.PROTECT,
        related_name="invoices",
    )

    # Weak reference: deleting a member never touches financial records.
    member_id = models.UUIDField(db_index=True)

    invoice_number = models.CharField(max_length=64)

    amount_cents = models.PositiveIntegerField()
    currency = models.CharField(max_length=3, default="PHP")

    source = models.CharField(max_length=16, choices=SOURCE_CHOICES)
    status = models.CharField(
        max_length=16,
        choices=STATUS_CHOICES,
        default=STATUS_ISSUED,
    )

    issued_at = models.DateTimeField(default=timezone.now)
    due_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    description = models.CharField(max_length=255, blank=True)

    event_id = models.UUIDField(null=True, blank=True)

    # ----------------------------
    # Dues run bookkeeping
    # ----------------------------
    dues_period_key = models.CharField(
        max_length=7,
        null=True,
        blank=True,
        help_text="YYYY-MM of the dues period (DUES only).",
    )
    dues_label = models.CharField(max_length=64, blank=True)
    period_start = models.DateField(null=True, blank=True)
    period_end = models.DateField(null=True, blank=True)

    # ----------------------------
    # Reminders
    # ----------------------------
    reminder_sent_at = models.DateTimeField(null=True, blank=True)
    reminder_count = models.PositiveIntegerField(default=0)

    created_by = models.UUIDField(
        null=True,
        blank=True,
        help_text="Actor (user id) that created the invoice; null for system jobs.",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = InvoiceQuerySet.as_manager()

    class Meta:
        ordering = ["-issued_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "invoice_number"],
                name="uniq_invoice_number_per_tenant",
            ),
            models.UniqueConstraint(
                fields=["tenant", "member_id", "dues_period_key"],
                condition=Q(source="DUES", dues_period_key__isnull=False)
                & ~Q(status="VOID"),
                name="uniq_open_dues_invoice_per_period",
            ),
            models.CheckConstraint(
                condition=Q(amount_cents__gt=0),
                name="invoice_amount_positive",
            ),
        ]
        indexes = [
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
        ]

    _IMMUTABLE_FIELDS_AFTER_ISSUE = (
        "tenant_id",
        "member_id",
        "invoice_number",
        "amount_cents",
        "currency",
        "source",
        "event_id",
        "dues_period_key",
    )

    def _validate_immutable(self, previous: "Invoice"):
        for field in self._IMMUTABLE_FIELDS_AFTER_ISSUE:
            if getattr(self, field) != getattr(previous, field):
                raise ValueError(
                    f"Invoice {previous.invoice_number}: field '{field}' cannot be changed."
                )

        if previous.status in self.TERMINAL_STATUSES and self.status != previous.status:
            raise ValueError(
                f"Invoice is final once {previous.status}. "
                f"Status change {previous.status} -> {self.status} is not allowed."
            )

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            previous = Invoice.objects.filter(pk=self.pk).first()
            if previous is not None:
                self._validate_immutable(previous)

        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.payments.exists():
            raise RuntimeError("Invoices with payments cannot be deleted")
        return super().delete(*args, **kwargs)

    def __str__(self):
        return f"{self.invoice_number} | {self.amount_cents} {self.currency}"

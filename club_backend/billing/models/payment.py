# billing/models/payment.py

import uuid

from django.db import models
from django.db.models import Q
from django.utils import timezone

from .base import TenantScopedQuerySet


class Payment(models.Model):
    """
    One attempt to pay some amount against an invoice.

    GUARANTEES:
    - Immutable once created (no status changes, refunds are not modelled)
    - (tenant, member_id, idempotency_key) unique when a key is supplied;
      this constraint is what makes concurrent retries collapse into one charge
    - Instrument is snapshotted (brand/last4) so history survives method removal
    - Records the invoice status and balance it produced
    """

    STATUS_PENDING = "PENDING"
    STATUS_SUCCEEDED = "SUCCEEDED"
    STATUS_FAILED = "FAILED"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_SUCCEEDED, "Succeeded"),
        (STATUS_FAILED, "Failed"),
    ]

    KIND_CARD = "CARD"
    KIND_OFFLINE = "OFFLINE"

    KIND_CHOICES = [
        (KIND_CARD, "Card"),
        (KIND_OFFLINE, "Offline (cash / bank)"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "clubs.Tenant",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    member_id = models.UUIDField(db_index=True)

    invoice = models.ForeignKey(
        "billing.Invoice",
        on_delete=models.PROTECT,
        related_name="payments",
    )

    amount_cents = models.PositiveIntegerField()
    currency = models.CharField(max_length=3)

    status = models.CharField(
        max_length=16,
        choices=STATUS_CHOICES,
        default=STATUS_SUCCEEDED,
    )
    kind = models.CharField(max_length=16, choices=KIND_CHOICES, default=KIND_CARD)

    reference = models.CharField(max_length=64)

    payment_method = models.ForeignKey(
        "billing.PaymentMethod",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
    )
    method_brand = models.CharField(max_length=32, blank=True)
    method_last4 = models.CharField(max_length=4, blank=True)

    idempotency_key = models.CharField(max_length=128, null=True, blank=True)

    # Invoice position right after this payment settled; replays return these.
    invoice_status_after = models.CharField(max_length=16, blank=True)
    balance_after_cents = models.PositiveIntegerField(null=True, blank=True)

    processed_at = models.DateTimeField(default=timezone.now)
    created_by = models.UUIDField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantScopedQuerySet.as_manager()

    class Meta:
        ordering = ["-processed_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "member_id", "idempotency_key"],
                condition=Q(idempotency_key__isnull=False),
                name="uniq_payment_idempotency_key",
            ),
            models.UniqueConstraint(
                fields=["tenant", "reference"],
                name="uniq_payment_reference_per_tenant",
            ),
        ]
        indexes = [
            models.Index(
                fields=["tenant", "invoice", "status"],
                name="billing_pay_invoice_idx",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise RuntimeError("Payment records are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise RuntimeError("Payment records cannot be deleted")

    def __str__(self):
        return f"{self.reference} | {self.amount_cents} {self.currency} | {self.status}"

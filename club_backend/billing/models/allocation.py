# billing/models/allocation.py

import uuid

from django.db import models
from django.db.models import Sum

from .base import TenantScopedQuerySet


class Allocation(models.Model):
    """
    The authoritative link between a Payment and the Invoice it pays down.

    RULES:
    - Append-only
    - Sum of allocations for a payment never exceeds payment.amount_cents
    - Only allocations whose payment SUCCEEDED count toward balance
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "clubs.Tenant",
        on_delete=models.PROTECT,
        related_name="allocations",
    )
    invoice = models.ForeignKey(
        "billing.Invoice",
        on_delete=models.PROTECT,
        related_name="allocations",
    )
    payment = models.ForeignKey(
        "billing.Payment",
        on_delete=models.PROTECT,
        related_name="allocations",
    )

    amount_cents = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantScopedQuerySet.as_manager()

    class Meta:
        ordering = ["created_at"]

    def _validate_against_payment(self):
        if self.tenant_id != self.payment.tenant_id or self.tenant_id != self.invoice.tenant_id:
            raise ValueError("Allocation, payment and invoice must share a tenant")

        already = (
            Allocation.objects.filter(payment_id=self.payment_id).aggregate(
                total=Sum("amount_cents")
            )["total"]
            or 0
        )
        if already + self.amount_cents > self.payment.amount_cents:
            raise ValueError(
                f"Allocations for payment {self.payment_id} would exceed its amount"
            )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise RuntimeError("Allocation records are immutable")
        self._validate_against_payment()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise RuntimeError("Allocation records cannot be deleted")

    def __str__(self):
        return f"{self.payment_id} -> {self.invoice_id}: {self.amount_cents}"

# billing/models/audit_log.py

"""
INVOICE AUDIT LOG (IMMUTABLE)

Purpose:
- Append-only trail of every state-changing action on an invoice.
- Created once; never updated, never deleted.
"""

import uuid

from django.db import models
from django.utils import timezone

from .base import TenantScopedQuerySet


class InvoiceAuditLog(models.Model):
    ACTION_CREATED = "created"
    ACTION_PAID = "paid"
    ACTION_DUES_GENERATED = "dues_generated"
    ACTION_SEND_REQUESTED = "send_requested"
    ACTION_PDF_DOWNLOADED = "pdf_downloaded"
    ACTION_VOIDED = "voided"

    ACTION_CHOICES = [
        (ACTION_CREATED, "Created"),
        (ACTION_PAID, "Paid"),
        (ACTION_DUES_GENERATED, "Dues generated"),
        (ACTION_SEND_REQUESTED, "Send requested"),
        (ACTION_PDF_DOWNLOADED, "PDF downloaded"),
        (ACTION_VOIDED, "Voided"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "clubs.Tenant",
        on_delete=models.PROTECT,
        related_name="invoice_audit_logs",
    )
    invoice = models.ForeignKey(
        "billing.Invoice",
        on_delete=models.PROTECT,
        related_name="audit_logs",
    )
    member_id = models.UUIDField()

    action = models.CharField(max_length=32, choices=ACTION_CHOICES)
    actor_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="User that performed the action; null for scheduled jobs.",
    )
    amount_cents = models.IntegerField(null=True, blank=True)
    meta = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(default=timezone.now)

    objects = TenantScopedQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["tenant", "invoice", "created_at"],
                name="billing_audit_invoice_idx",
            ),
        ]

    # ======================================================
    # IMMUTABILITY
    # ======================================================

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise RuntimeError("InvoiceAuditLog records are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise RuntimeError("InvoiceAuditLog records cannot be deleted")

    def __str__(self):
        return f"{self.action} | {self.invoice_id}"

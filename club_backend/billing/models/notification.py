# billing/models/notification.py

import uuid

from django.db import models


class NotificationEvent(models.Model):
    """
    Outbox row: "send this notification".

    Written by the default dispatcher; delivery (e-mail, push) is owned by
    whatever process drains the outbox.
    """

    KIND_RECEIPT = "RECEIPT"
    KIND_REMINDER = "REMINDER"
    KIND_INVOICE_SEND = "INVOICE_SEND"

    KIND_CHOICES = [
        (KIND_RECEIPT, "Receipt"),
        (KIND_REMINDER, "Reminder"),
        (KIND_INVOICE_SEND, "Invoice send"),
    ]

    STATUS_PENDING = "PENDING"
    STATUS_DELIVERED = "DELIVERED"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_DELIVERED, "Delivered"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "clubs.Tenant",
        on_delete=models.CASCADE,
        related_name="notification_events",
    )
    kind = models.CharField(max_length=16, choices=KIND_CHOICES)
    member_id = models.UUIDField(null=True, blank=True)
    invoice_id = models.UUIDField(null=True, blank=True)
    amount_cents = models.IntegerField(null=True, blank=True)
    currency = models.CharField(max_length=3, blank=True)
    meta = models.JSONField(default=dict, blank=True)

    status = models.CharField(
        max_length=16,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="billing_notif_outbox_idx"),
        ]

    def __str__(self):
        return f"{self.kind} | {self.invoice_id}"

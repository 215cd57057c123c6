# billing/models/payment_method.py

import uuid

from django.db import models
from django.db.models import Q

from .base import TenantScopedQuerySet


class PaymentMethodQuerySet(TenantScopedQuerySet):
    def active_for_member(self, tenant_id, member_id):
        return self.filter(
            tenant_id=tenant_id,
            member_id=member_id,
            status=PaymentMethod.STATUS_ACTIVE,
        )


class PaymentMethod(models.Model):
    """
    Tokenized, non-sensitive reference to a stored card.

    Only token/brand/last4/expiry are kept; card number and CVC never
    reach the database.

    At most one default per (tenant, member): partial unique constraint.
    """

    STATUS_ACTIVE = "ACTIVE"
    STATUS_INACTIVE = "INACTIVE"

    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_INACTIVE, "Inactive"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "clubs.Tenant",
        on_delete=models.PROTECT,
        related_name="payment_methods",
    )
    member_id = models.UUIDField(db_index=True)

    token = models.CharField(max_length=64, unique=True)
    brand = models.CharField(max_length=32)
    last4 = models.CharField(max_length=4)
    exp_month = models.PositiveSmallIntegerField()
    exp_year = models.PositiveSmallIntegerField()

    is_default = models.BooleanField(default=False)
    status = models.CharField(
        max_length=16,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PaymentMethodQuerySet.as_manager()

    class Meta:
        ordering = ["-is_default", "-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "member_id"],
                condition=Q(is_default=True),
                name="uniq_default_payment_method",
            ),
        ]

    def __str__(self):
        return f"{self.brand} •••• {self.last4}"

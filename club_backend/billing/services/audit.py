# billing/services/audit.py

"""
INVOICE AUDIT TRAIL

The single append path for InvoiceAuditLog. Rows are never updated or
deleted (the model enforces it).
"""

from __future__ import annotations

from datetime import datetime

from django.utils import timezone

from billing.models import Invoice, InvoiceAuditLog


def _build(
    invoice: Invoice,
    action: str,
    *,
    actor_id=None,
    amount_cents: int | None = None,
    meta: dict | None = None,
    at: datetime | None = None,
) -> InvoiceAuditLog:
    return InvoiceAuditLog(
        tenant_id=invoice.tenant_id,
        invoice=invoice,
        member_id=invoice.member_id,
        action=action,
        actor_id=actor_id,
        amount_cents=amount_cents,
        meta=meta or {},
        created_at=at or timezone.now(),
    )


def record(
    invoice: Invoice,
    action: str,
    *,
    actor_id=None,
    amount_cents: int | None = None,
    meta: dict | None = None,
    at: datetime | None = None,
) -> InvoiceAuditLog:
    entry = _build(
        invoice,
        action,
        actor_id=actor_id,
        amount_cents=amount_cents,
        meta=meta,
        at=at,
    )
    entry.save()
    return entry


def trail_for(tenant_id, invoice_id):
    return (
        InvoiceAuditLog.objects.for_tenant(tenant_id)
        .filter(invoice_id=invoice_id)
        .order_by("created_at")
    )

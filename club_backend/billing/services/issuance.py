# billing/services/issuance.py

"""
INVOICE ISSUANCE

The one place an Invoice row is inserted. Dues runs, event invoicing and
manual invoices all come through here so numbering and defaults stay
identical.

Must run inside the caller's transaction (the numbering counter is
locked until commit).
"""

from __future__ import annotations

from datetime import datetime

from django.conf import settings
from django.utils import timezone

from billing.models import Invoice
from billing.services.invoice_numbering import next_invoice_number
from clubs.models import Tenant


def default_currency() -> str:
    return settings.BILLING.get("DEFAULT_CURRENCY", "PHP")


def issue_invoice(
    *,
    tenant: Tenant,
    member_id,
    amount_cents: int,
    source: str,
    currency: str | None = None,
    description: str = "",
    due_at: datetime | None = None,
    status: str = Invoice.STATUS_ISSUED,
    actor_id=None,
    now: datetime | None = None,
    **extra,
) -> Invoice:
    now = now or timezone.now()
    number = next_invoice_number(
        tenant=tenant,
        source=source,
        year=timezone.localtime(now).year,
    )
    return Invoice.objects.create(
        tenant=tenant,
        member_id=member_id,
        invoice_number=number,
        amount_cents=amount_cents,
        currency=(currency or default_currency()).upper(),
        source=source,
        status=status,
        issued_at=now,
        due_at=due_at,
        description=description[:255],
        created_by=actor_id,
        **extra,
    )

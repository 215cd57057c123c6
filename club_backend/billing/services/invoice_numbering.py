# billing/services/invoice_numbering.py

"""
INVOICE NUMBERING

Format: {TENANT_SLUG}-{YEAR}-{TYPE}-{SEQ}
- SEQ strictly increasing per (tenant, year, type), zero-padded to 3
- gaps permitted (a rolled-back invoice burns its number only if the
  counter row committed), regressions never

Must be called inside the caller's transaction: the counter row stays
locked until the invoice that uses the number commits.
"""

from __future__ import annotations

from django.conf import settings
from django.db import IntegrityError, transaction

from billing.models import Invoice, InvoiceSequence
from clubs.models import Tenant

SOURCE_TO_TYPE = {
    Invoice.SOURCE_DUES: "DUES",
    Invoice.SOURCE_EVENT: "EVT",
    Invoice.SOURCE_DONATION: "DON",
    Invoice.SOURCE_MANUAL: "OTH",
    Invoice.SOURCE_OTHER: "OTH",
}

SEQ_WIDTH = 3


def type_code_for(source: str) -> str:
    return SOURCE_TO_TYPE.get((source or "").upper(), "OTH")


def tenant_prefix(tenant: Tenant | None) -> str:
    fallback = settings.BILLING.get("TENANT_SLUG_FALLBACK", "TENANT")
    slug = (getattr(tenant, "slug", "") or fallback).strip()
    return slug.upper()


def _lock_sequence(tenant: Tenant, year: int, type_code: str) -> InvoiceSequence:
    qs = InvoiceSequence.objects.select_for_update()
    seq = qs.filter(tenant=tenant, year=year, type_code=type_code).first()
    if seq is not None:
        return seq

    try:
        with transaction.atomic():
            InvoiceSequence.objects.create(tenant=tenant, year=year, type_code=type_code)
    except IntegrityError:
        # Another worker created the row first; lock theirs.
        pass
    return qs.get(tenant=tenant, year=year, type_code=type_code)


def next_invoice_number(*, tenant: Tenant, source: str, year: int) -> str:
    type_code = type_code_for(source)

    with transaction.atomic():
        seq = _lock_sequence(tenant, year, type_code)
        seq.last_value += 1
        seq.save(update_fields=["last_value"])

    return f"{tenant_prefix(tenant)}-{year}-{type_code}-{seq.last_value:0{SEQ_WIDTH}d}"

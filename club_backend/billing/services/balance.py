# billing/services/balance.py

"""
BALANCE CALCULATOR

Pure functions deriving balance and status from an invoice and its
allocations. No writes here except reconcile_status(), which only
refreshes the cached status column.

RULES:
- Only allocations whose payment SUCCEEDED count.
- Balance is clamped at zero, even if allocations exceed the amount.
- VOID / FAILED are administrative and sticky.
- DRAFT with nothing allocated stays DRAFT.
- Any status outside the known set reports as CANCELLED.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from django.utils import timezone

from billing.models import Invoice, Payment

REPORTING_OUTSTANDING = "OUTSTANDING"
REPORTING_PAID = "PAID"
REPORTING_CANCELLED = "CANCELLED"

_REPORTING_BUCKETS = {
    Invoice.STATUS_ISSUED: REPORTING_OUTSTANDING,
    Invoice.STATUS_PARTIALLY_PAID: REPORTING_OUTSTANDING,
    Invoice.STATUS_OVERDUE: REPORTING_OUTSTANDING,
    Invoice.STATUS_PAID: REPORTING_PAID,
    Invoice.STATUS_VOID: REPORTING_CANCELLED,
    Invoice.STATUS_FAILED: REPORTING_CANCELLED,
    Invoice.STATUS_DRAFT: REPORTING_CANCELLED,
}

_STICKY_STATUSES = frozenset({Invoice.STATUS_VOID, Invoice.STATUS_FAILED})

NON_PAYABLE_STATUSES = frozenset(
    {Invoice.STATUS_PAID, Invoice.STATUS_VOID, Invoice.STATUS_FAILED}
)


@dataclass(frozen=True)
class Settlement:
    allocated_cents: int
    balance_cents: int
    status: str
    reporting_status: str


# ============================================================
# PURE CALCULATIONS
# ============================================================


def _payment_status(allocation) -> str | None:
    payment = getattr(allocation, "payment", None)
    return getattr(payment, "status", None)


def allocated_total(allocations: Iterable) -> int:
    """Sum of allocations backed by a SUCCEEDED payment (never negative)."""
    total = sum(
        int(a.amount_cents or 0)
        for a in allocations
        if _payment_status(a) == Payment.STATUS_SUCCEEDED
    )
    return max(total, 0)


def balance_from_total(amount_cents: int, allocated_cents: int) -> int:
    return max(int(amount_cents or 0) - max(int(allocated_cents or 0), 0), 0)


def balance(invoice: Invoice, allocations: Iterable) -> int:
    return balance_from_total(invoice.amount_cents, allocated_total(allocations))


def reporting_status(status: str) -> str:
    return _REPORTING_BUCKETS.get(status, REPORTING_CANCELLED)


def compute_status(invoice: Invoice, allocated_cents: int, now: datetime | None = None) -> str:
    if invoice.status in _STICKY_STATUSES:
        return invoice.status

    now = now or timezone.now()
    allocated = max(int(allocated_cents or 0), 0)
    amount = int(invoice.amount_cents or 0)

    if allocated >= amount:
        return Invoice.STATUS_PAID
    if allocated > 0:
        return Invoice.STATUS_PARTIALLY_PAID
    if invoice.status == Invoice.STATUS_DRAFT:
        return Invoice.STATUS_DRAFT
    if invoice.due_at is not None and invoice.due_at < now:
        return Invoice.STATUS_OVERDUE
    return Invoice.STATUS_ISSUED


def is_payable(status: str) -> bool:
    return status not in NON_PAYABLE_STATUSES


# ============================================================
# LEDGER-BACKED READS
# ============================================================


def allocated_cents_for(invoice: Invoice) -> int:
    """
    Prefer the `with_settlement()` annotation; fall back to reading allocations.
    """
    annotated = getattr(invoice, "allocated_cents", None)
    if annotated is not None:
        return max(int(annotated), 0)

    allocations = invoice.allocations.select_related("payment").all()
    return allocated_total(allocations)


def settlement_for(invoice: Invoice, now: datetime | None = None) -> Settlement:
    allocated = allocated_cents_for(invoice)
    status = compute_status(invoice, allocated, now)
    return Settlement(
        allocated_cents=allocated,
        balance_cents=balance_from_total(invoice.amount_cents, allocated),
        status=status,
        reporting_status=reporting_status(status),
    )


def reconcile_status(invoice: Invoice, now: datetime | None = None) -> Settlement:
    """
    Recompute and, if the cache is stale, rewrite it.

    Conditional on the stored value so a concurrent writer is never
    overwritten with an older view.
    """
    now = now or timezone.now()
    settlement = settlement_for(invoice, now)

    if settlement.status != invoice.status and invoice.status not in Invoice.TERMINAL_STATUSES:
        fields = {"status": settlement.status, "updated_at": now}
        if settlement.status == Invoice.STATUS_PAID and invoice.paid_at is None:
            fields["paid_at"] = now

        updated = Invoice.objects.filter(pk=invoice.pk, status=invoice.status).update(**fields)
        if updated:
            invoice.status = settlement.status
            invoice.paid_at = fields.get("paid_at", invoice.paid_at)

    return settlement

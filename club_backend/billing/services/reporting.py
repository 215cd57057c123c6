# billing/services/reporting.py

"""
FINANCE REPORTING (READ ONLY)

Every figure here is derived from the COMPUTED status (allocations),
never from the cached status column.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime

from django.utils import timezone

from billing.models import Invoice
from billing.services.balance import (
    REPORTING_CANCELLED,
    REPORTING_OUTSTANDING,
    REPORTING_PAID,
    settlement_for,
)
from billing.services.issuance import default_currency
from billing.services.period_resolver import FinancePeriod

REPORT_SOURCES = (
    Invoice.SOURCE_DUES,
    Invoice.SOURCE_EVENT,
    Invoice.SOURCE_DONATION,
    Invoice.SOURCE_OTHER,
)

_SOURCE_BUCKETS = {
    Invoice.SOURCE_MANUAL: Invoice.SOURCE_OTHER,
}


def _bucket(count=0, total_cents=0) -> dict:
    return {"count": count, "total_cents": total_cents}


def report_source(source: str) -> str:
    source = _SOURCE_BUCKETS.get(source, source)
    return source if source in REPORT_SOURCES else Invoice.SOURCE_OTHER


def finance_summary(tenant_id, period: FinancePeriod, *, now: datetime | None = None) -> dict:
    now = now or timezone.now()

    invoices = (
        Invoice.objects.for_tenant(tenant_id)
        .with_settlement()
        .filter(
            issued_at__gte=period.date_from,
            issued_at__lte=period.date_to,
            amount_cents__gt=0,
        )
        .order_by()
    )

    totals = {
        "outstanding": _bucket(),
        "collected": _bucket(),
        "cancelled": _bucket(),
    }
    by_source = OrderedDict((source, _bucket()) for source in REPORT_SOURCES)
    by_status = {
        REPORTING_OUTSTANDING: 0,
        REPORTING_PAID: 0,
        REPORTING_CANCELLED: 0,
    }

    for invoice in invoices:
        settlement = settlement_for(invoice, now)
        bucket = settlement.reporting_status
        by_status[bucket] += 1

        if bucket == REPORTING_OUTSTANDING:
            totals["outstanding"]["count"] += 1
            totals["outstanding"]["total_cents"] += settlement.balance_cents
        elif bucket == REPORTING_PAID:
            totals["collected"]["count"] += 1
            totals["collected"]["total_cents"] += invoice.amount_cents
        else:
            totals["cancelled"]["count"] += 1
            totals["cancelled"]["total_cents"] += invoice.amount_cents

        source_totals = by_source[report_source(invoice.source)]
        source_totals["count"] += 1
        source_totals["total_cents"] += invoice.amount_cents

    return {
        "range": period.as_dict(),
        "currency": default_currency(),
        "totals": totals,
        "by_source": dict(by_source),
        "by_status": by_status,
    }


def dues_summary(tenant_id, *, now: datetime | None = None) -> list[dict]:
    """
    One row per dues period (newest first). VOID / FAILED invoices are
    left out of every figure.
    """
    now = now or timezone.now()

    invoices = (
        Invoice.objects.for_tenant(tenant_id)
        .with_settlement()
        .filter(source=Invoice.SOURCE_DUES, dues_period_key__isnull=False)
        .order_by("-dues_period_key", "issued_at")
    )

    periods: "OrderedDict[str, dict]" = OrderedDict()
    for invoice in invoices:
        settlement = settlement_for(invoice, now)
        if settlement.reporting_status == REPORTING_CANCELLED:
            continue

        row = periods.get(invoice.dues_period_key)
        if row is None:
            row = periods[invoice.dues_period_key] = {
                "period_key": invoice.dues_period_key,
                "label": invoice.dues_label or invoice.dues_period_key,
                "currency": invoice.currency,
                "total_count": 0,
                "paid_count": 0,
                "unpaid_count": 0,
                "amount_cents_total": 0,
                "amount_cents_paid": 0,
                "amount_cents_unpaid": 0,
            }

        row["total_count"] += 1
        row["amount_cents_total"] += invoice.amount_cents
        row["amount_cents_paid"] += settlement.allocated_cents
        row["amount_cents_unpaid"] += settlement.balance_cents
        if settlement.reporting_status == REPORTING_PAID:
            row["paid_count"] += 1
        else:
            row["unpaid_count"] += 1

    return list(periods.values())

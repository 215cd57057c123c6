# billing/services/reminders.py

"""
PAYMENT REMINDERS

At most one reminder per invoice: the marker is claimed with a
conditional UPDATE ... WHERE reminder_sent_at IS NULL, and only the
worker whose update hit a row emits the notification and the audit entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from billing.models import Invoice, InvoiceAuditLog
from billing.services import audit
from billing.services.balance import REPORTING_OUTSTANDING, reconcile_status
from billing.services.notifications import KIND_REMINDER, Notification, dispatch_on_commit
from clubs.models import Member

logger = logging.getLogger(__name__)

# Stored statuses that may hide an outstanding invoice; the computed
# status decides.
_CANDIDATE_STATUSES = (
    Invoice.STATUS_ISSUED,
    Invoice.STATUS_PARTIALLY_PAID,
    Invoice.STATUS_OVERDUE,
)


@dataclass
class ReminderRunResult:
    sent: int = 0
    invoice_ids: list = field(default_factory=list)


def reminder_candidates(tenant_id, now: datetime):
    return (
        Invoice.objects.for_tenant(tenant_id)
        .with_settlement()
        .filter(
            status__in=_CANDIDATE_STATUSES,
            due_at__isnull=False,
            due_at__lte=now,
            reminder_sent_at__isnull=True,
        )
        .order_by("due_at", "id")
    )


def _claim(invoice: Invoice, now: datetime) -> bool:
    return bool(
        Invoice.objects.filter(pk=invoice.pk, reminder_sent_at__isnull=True).update(
            reminder_sent_at=now,
            reminder_count=F("reminder_count") + 1,
            updated_at=now,
        )
    )


def run_reminders(
    tenant_id,
    *,
    actor_id=None,
    now: datetime | None = None,
) -> ReminderRunResult:
    now = now or timezone.now()
    result = ReminderRunResult()

    candidates = list(reminder_candidates(tenant_id, now))
    members = Member.objects.filter(
        tenant_id=tenant_id,
        id__in={inv.member_id for inv in candidates},
    ).in_bulk()

    for invoice in candidates:
        # Also persists OVERDUE / PAID when the stored status lags the ledger.
        settlement = reconcile_status(invoice, now)
        if settlement.reporting_status != REPORTING_OUTSTANDING:
            continue

        member = members.get(invoice.member_id)
        if member is None:
            logger.warning(
                "Reminder skipped: member not found",
                extra={"invoice_id": str(invoice.id), "member_id": str(invoice.member_id)},
            )
            continue

        with transaction.atomic():
            if not _claim(invoice, now):
                continue

            audit.record(
                invoice,
                InvoiceAuditLog.ACTION_SEND_REQUESTED,
                actor_id=actor_id,
                amount_cents=settlement.balance_cents,
                meta={"kind": "reminder"},
                at=now,
            )

            dispatch_on_commit(
                Notification(
                    kind=KIND_REMINDER,
                    tenant_id=invoice.tenant_id,
                    member_id=invoice.member_id,
                    invoice_id=invoice.id,
                    amount_cents=settlement.balance_cents,
                    currency=invoice.currency,
                    meta={
                        "invoice_number": invoice.invoice_number,
                        "due_date": invoice.due_at.date().isoformat(),
                        "member_email": member.email or None,
                        "type": "event" if invoice.source == Invoice.SOURCE_EVENT else "dues",
                        "status": settlement.status,
                    },
                )
            )

        result.sent += 1
        result.invoice_ids.append(invoice.id)

    logger.info(
        "Payment reminders run",
        extra={"tenant_id": str(tenant_id), "sent": result.sent},
    )
    return result

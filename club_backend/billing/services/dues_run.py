# billing/services/dues_run.py

"""
DUES RUN (BATCH INVOICE GENERATOR)

For every ACTIVE member with a priced membership type, issue exactly one
dues invoice per (tenant, member, period).

GUARANTEES:
- Safe to re-run for the same period: second run creates nothing
- Concurrent runs: the partial unique constraint on
  (tenant, member_id, dues_period_key) excluding VOID picks one winner;
  the loser's per-member savepoint rolls back and counts as a skip
- A VOID dues invoice does not block re-issuing the period
"""

from __future__ import annotations

import calendar
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from billing.models import Invoice, InvoiceAuditLog
from billing.services import audit
from billing.services.exceptions import NotFound, ValidationFailed, field_issue
from billing.services.issuance import issue_invoice
from billing.services.notifications import KIND_INVOICE_SEND, Notification, dispatch_on_commit
from clubs.models import Member, Tenant

logger = logging.getLogger(__name__)

PERIOD_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")

DUES_TEMPLATE = "dues_invoice_created"


@dataclass(frozen=True)
class DuesPeriod:
    key: str
    start: date
    end: date
    label: str


@dataclass
class DuesRunResult:
    period_key: str
    created: int = 0
    skipped_existing: int = 0
    skipped_no_membership_type: int = 0
    invoice_ids: list = field(default_factory=list)


def dues_period(period: str | None = None, now: datetime | None = None) -> DuesPeriod:
    """Monthly period from 'YYYY-MM' (default: the month containing now)."""
    if period:
        match = PERIOD_KEY_RE.match(str(period).strip())
        if not match or not 1 <= int(match.group(2)) <= 12:
            raise ValidationFailed(
                "period must be YYYY-MM", details=[field_issue("period", "invalid")]
            )
        year, month = int(match.group(1)), int(match.group(2))
    else:
        local = timezone.localtime(now or timezone.now())
        year, month = local.year, local.month

    start = date(year, month, 1)
    end = date(year, month, calendar.monthrange(year, month)[1])
    return DuesPeriod(
        key=f"{year:04d}-{month:02d}",
        start=start,
        end=end,
        label=start.strftime("%B %Y"),
    )


def _due_at(period: DuesPeriod) -> datetime:
    days = int(settings.BILLING.get("DUES_DUE_DAYS", 30))
    return timezone.make_aware(datetime.combine(period.start + timedelta(days=days), time.min))


def _issue_for_member(
    tenant: Tenant,
    member: Member,
    period: DuesPeriod,
    *,
    actor_id,
    now: datetime,
) -> Invoice:
    membership_type = member.membership_type
    due_at = _due_at(period)

    invoice = issue_invoice(
        tenant=tenant,
        member_id=member.id,
        amount_cents=membership_type.price_cents,
        currency=membership_type.currency,
        source=Invoice.SOURCE_DUES,
        description=f"{membership_type.name} dues for {period.label}",
        due_at=due_at,
        actor_id=actor_id,
        now=now,
        dues_period_key=period.key,
        dues_label=period.label,
        period_start=period.start,
        period_end=period.end,
    )

    audit.record(
        invoice,
        InvoiceAuditLog.ACTION_DUES_GENERATED,
        actor_id=actor_id,
        amount_cents=invoice.amount_cents,
        meta={"period_key": period.key},
        at=now,
    )

    dispatch_on_commit(
        Notification(
            kind=KIND_INVOICE_SEND,
            tenant_id=tenant.id,
            member_id=member.id,
            invoice_id=invoice.id,
            amount_cents=invoice.amount_cents,
            currency=invoice.currency,
            meta={
                "template": DUES_TEMPLATE,
                "invoice_number": invoice.invoice_number,
                "member_email": member.email or None,
                "member_name": member.full_name or None,
                "dues_label": period.label,
                "due_date": due_at.date().isoformat(),
            },
        )
    )
    return invoice


def _billed_member_ids(tenant_id, period_key: str) -> set:
    return set(
        Invoice.objects.for_tenant(tenant_id)
        .filter(source=Invoice.SOURCE_DUES, dues_period_key=period_key)
        .exclude(status=Invoice.STATUS_VOID)
        .values_list("member_id", flat=True)
    )


def run_dues(
    tenant_id,
    period: str | None = None,
    *,
    actor_id=None,
    now: datetime | None = None,
) -> DuesRunResult:
    now = now or timezone.now()
    billing_period = dues_period(period, now)

    tenant = Tenant.objects.filter(pk=tenant_id).first()
    if tenant is None:
        raise NotFound("Tenant not found")

    result = DuesRunResult(period_key=billing_period.key)

    already_billed = _billed_member_ids(tenant.id, billing_period.key)

    members = (
        Member.objects.filter(tenant_id=tenant.id, status=Member.STATUS_ACTIVE)
        .select_related("membership_type")
        .order_by("created_at", "id")
    )

    for member in members:
        membership_type = member.membership_type
        if (
            membership_type is None
            or not membership_type.is_active
            or membership_type.price_cents <= 0
        ):
            result.skipped_no_membership_type += 1
            continue

        if member.id in already_billed:
            result.skipped_existing += 1
            continue

        try:
            with transaction.atomic():
                invoice = _issue_for_member(
                    tenant,
                    member,
                    billing_period,
                    actor_id=actor_id,
                    now=now,
                )
        except IntegrityError:
            # Another run issued this member's invoice after our pre-check.
            logger.info(
                "Dues invoice already exists; skipping",
                extra={"member_id": str(member.id), "period_key": billing_period.key},
            )
            result.skipped_existing += 1
            continue

        result.created += 1
        result.invoice_ids.append(invoice.id)

    logger.info(
        "Dues run finished",
        extra={
            "tenant_id": str(tenant.id),
            "period_key": billing_period.key,
            "created": result.created,
            "skipped_existing": result.skipped_existing,
            "skipped_no_membership_type": result.skipped_no_membership_type,
        },
    )
    return result

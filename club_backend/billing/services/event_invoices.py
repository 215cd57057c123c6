# billing/services/event_invoices.py

"""
EVENT INVOICES (BATCH INVOICE GENERATOR)

One invoice per registration of a paid event.

GUARANTEES:
- Free events (price_cents <= 0) never produce invoices
- Per registration: row lock, re-check, create, then link with a
  conditional UPDATE ... WHERE invoice IS NULL inside one savepoint;
  losing that race rolls the new invoice back and counts as a skip
- Re-running for the same event creates nothing new
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from billing.models import Invoice, InvoiceAuditLog
from billing.services import audit
from billing.services.exceptions import BusinessRuleViolation, Conflict, NotFound
from billing.services.issuance import issue_invoice
from clubs.models import Event, EventRegistration, Tenant

logger = logging.getLogger(__name__)


class _RegistrationAlreadyInvoiced(Exception):
    """Internal: the conditional link lost to a concurrent writer."""


@dataclass
class EventInvoiceRunResult:
    created: int = 0
    skipped: int = 0
    errors: list = field(default_factory=list)
    invoice_ids: list = field(default_factory=list)


@dataclass(frozen=True)
class RegistrationInvoiceResult:
    invoice: Invoice
    created: bool


def _ensure_priced(event: Event) -> None:
    if not event.price_cents or event.price_cents <= 0:
        raise BusinessRuleViolation("Cannot generate invoices for free events")


def _invoice_registration(
    tenant: Tenant,
    event: Event,
    registration_id,
    *,
    actor_id,
    now: datetime,
) -> tuple[Invoice, bool]:
    """
    Must run inside a savepoint. Returns (invoice, created).
    """
    registration = (
        EventRegistration.objects.select_for_update()
        .filter(pk=registration_id, tenant_id=tenant.id)
        .get()
    )
    if registration.invoice_id:
        return registration.invoice, False

    invoice = issue_invoice(
        tenant=tenant,
        member_id=registration.member_id,
        amount_cents=event.price_cents,
        currency=event.currency,
        source=Invoice.SOURCE_EVENT,
        description=f"Event: {event.title}",
        due_at=event.starts_at,
        actor_id=actor_id,
        now=now,
        event_id=event.id,
    )

    linked = EventRegistration.objects.filter(
        pk=registration.pk,
        invoice__isnull=True,
    ).update(invoice=invoice)
    if not linked:
        raise _RegistrationAlreadyInvoiced(registration.pk)

    audit.record(
        invoice,
        InvoiceAuditLog.ACTION_CREATED,
        actor_id=actor_id,
        amount_cents=invoice.amount_cents,
        meta={
            "source": Invoice.SOURCE_EVENT,
            "event_id": str(event.id),
            "registration_id": str(registration.pk),
        },
        at=now,
    )
    return invoice, True


def generate_event_invoices(
    tenant_id,
    event_id,
    *,
    actor_id=None,
    now: datetime | None = None,
) -> EventInvoiceRunResult:
    now = now or timezone.now()

    event = Event.objects.select_related("tenant").filter(pk=event_id, tenant_id=tenant_id).first()
    if event is None:
        raise NotFound("Event not found")
    _ensure_priced(event)

    result = EventInvoiceRunResult()
    registrations = (
        EventRegistration.objects.filter(tenant_id=tenant_id, event_id=event.id)
        .order_by("created_at", "id")
        .values_list("id", "status", "invoice_id")
    )

    for registration_id, status, invoice_id in registrations:
        if status == EventRegistration.STATUS_CANCELLED or invoice_id:
            result.skipped += 1
            continue

        try:
            with transaction.atomic():
                invoice, created = _invoice_registration(
                    event.tenant,
                    event,
                    registration_id,
                    actor_id=actor_id,
                    now=now,
                )
        except (_RegistrationAlreadyInvoiced, IntegrityError):
            result.skipped += 1
            continue
        except DatabaseError as exc:
            logger.exception(
                "Failed to create event invoice",
                extra={"registration_id": str(registration_id), "event_id": str(event.id)},
            )
            result.errors.append({"registration_id": str(registration_id), "error": str(exc)})
            continue

        if created:
            result.created += 1
            result.invoice_ids.append(invoice.id)
        else:
            result.skipped += 1

    logger.info(
        "Event invoices generated",
        extra={
            "event_id": str(event.id),
            "created": result.created,
            "skipped": result.skipped,
            "errors": len(result.errors),
        },
    )
    return result


def generate_registration_invoice(
    tenant_id,
    registration_id,
    *,
    actor_id=None,
    now: datetime | None = None,
) -> RegistrationInvoiceResult:
    """
    Single registration. Already invoiced -> the existing invoice, created=False.
    """
    now = now or timezone.now()

    registration = (
        EventRegistration.objects.select_related("event", "event__tenant", "invoice")
        .filter(pk=registration_id, tenant_id=tenant_id)
        .first()
    )
    if registration is None:
        raise NotFound("Registration not found")

    event = registration.event
    _ensure_priced(event)

    if registration.invoice is not None:
        return RegistrationInvoiceResult(invoice=registration.invoice, created=False)

    if registration.status == EventRegistration.STATUS_CANCELLED:
        raise Conflict("Registration is cancelled")

    try:
        with transaction.atomic():
            invoice, created = _invoice_registration(
                event.tenant,
                event,
                registration.pk,
                actor_id=actor_id,
                now=now,
            )
    except (_RegistrationAlreadyInvoiced, IntegrityError):
        registration.refresh_from_db(fields=["invoice"])
        if registration.invoice_id is None:
            raise
        return RegistrationInvoiceResult(invoice=registration.invoice, created=False)

    return RegistrationInvoiceResult(invoice=invoice, created=created)

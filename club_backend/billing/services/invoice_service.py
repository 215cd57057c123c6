# billing/services/invoice_service.py

"""
INVOICE ADMINISTRATION

Admin-side operations on single invoices:
- manual invoices
- send (INVOICE_SEND notification)
- void
- offline (cash / bank) payments, sharing the charge settlement path
- PDF download audit

Every mutation appends one audit row.
"""

from __future__ import annotations

import logging
from datetime import datetime

from django.db import IntegrityError, transaction
from django.utils import timezone

from billing.models import Invoice, InvoiceAuditLog, Payment
from billing.services import audit
from billing.services.balance import REPORTING_OUTSTANDING, settlement_for
from billing.services.charge_processor import (
    ChargeResult,
    lock_invoice,
    payable_position,
    resolve_amount,
    settle_payment,
)
from billing.services.exceptions import (
    BusinessRuleViolation,
    Conflict,
    Forbidden,
    NotFound,
    ValidationFailed,
    field_issue,
)
from billing.services.issuance import issue_invoice
from billing.services.notifications import KIND_INVOICE_SEND, Notification, dispatch_on_commit
from billing.services.principal import Principal
from clubs.models import Member, Tenant
from permissions.roles import CAP_BILLING_MANAGE_INVOICES

logger = logging.getLogger(__name__)

MANUAL_SOURCES = (
    Invoice.SOURCE_MANUAL,
    Invoice.SOURCE_DONATION,
    Invoice.SOURCE_OTHER,
)


def _require_admin(principal: Principal) -> None:
    if not principal.can(CAP_BILLING_MANAGE_INVOICES):
        raise Forbidden("Admin role required")


def _tenant_invoice(principal: Principal, invoice_id) -> Invoice:
    invoice = (
        Invoice.objects.for_tenant(principal.tenant_id)
        .with_settlement()
        .filter(pk=invoice_id)
        .first()
    )
    if invoice is None:
        raise NotFound("Invoice not found")
    return invoice


def _reference_taken(tenant_id, reference: str) -> bool:
    return Payment.objects.for_tenant(tenant_id).filter(reference=reference).exists()


def _duplicate_reference() -> Conflict:
    return Conflict(
        "A payment with this reference already exists",
        details=[field_issue("reference", "duplicate")],
    )


# ============================================================
# CREATE
# ============================================================


@transaction.atomic
def create_manual_invoice(
    principal: Principal,
    *,
    member_id,
    amount_cents: int,
    currency: str | None = None,
    description: str = "",
    due_at: datetime | None = None,
    source: str = Invoice.SOURCE_MANUAL,
    now: datetime | None = None,
) -> Invoice:
    _require_admin(principal)
    now = now or timezone.now()

    details = []
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        details.append(field_issue("amount", "invalid"))
    if source not in MANUAL_SOURCES:
        details.append(field_issue("source", "invalid"))
    if details:
        raise ValidationFailed("Validation failed", details=details)

    member = Member.objects.filter(pk=member_id, tenant_id=principal.tenant_id).first()
    if member is None:
        raise NotFound("Member not found", details=[field_issue("member_id", "not_found")])

    tenant = Tenant.objects.get(pk=principal.tenant_id)
    invoice = issue_invoice(
        tenant=tenant,
        member_id=member.id,
        amount_cents=amount_cents,
        currency=currency,
        source=source,
        description=description or "",
        due_at=due_at,
        actor_id=principal.user_id,
        now=now,
    )

    audit.record(
        invoice,
        InvoiceAuditLog.ACTION_CREATED,
        actor_id=principal.user_id,
        amount_cents=invoice.amount_cents,
        meta={"source": source},
        at=now,
    )
    return invoice


# ============================================================
# SEND
# ============================================================


@transaction.atomic
def send_invoice(principal: Principal, invoice_id, *, now: datetime | None = None) -> Invoice:
    _require_admin(principal)
    now = now or timezone.now()
    invoice = _tenant_invoice(principal, invoice_id)

    settlement = settlement_for(invoice, now)
    if settlement.reporting_status != REPORTING_OUTSTANDING:
        raise Conflict(f"Invoice not sendable (status {settlement.status})")

    member = Member.objects.filter(pk=invoice.member_id, tenant_id=principal.tenant_id).first()
    if member is None:
        raise NotFound("Member not found")
    if member.status != Member.STATUS_ACTIVE:
        raise Conflict("Member inactive")

    audit.record(
        invoice,
        InvoiceAuditLog.ACTION_SEND_REQUESTED,
        actor_id=principal.user_id,
        amount_cents=settlement.balance_cents,
        meta={"kind": "manual"},
        at=now,
    )

    dispatch_on_commit(
        Notification(
            kind=KIND_INVOICE_SEND,
            tenant_id=invoice.tenant_id,
            member_id=invoice.member_id,
            invoice_id=invoice.id,
            amount_cents=settlement.balance_cents,
            currency=invoice.currency,
            meta={
                "invoice_number": invoice.invoice_number,
                "description": invoice.description or None,
                "due_date": invoice.due_at.date().isoformat() if invoice.due_at else None,
                "member_email": member.email or None,
            },
        )
    )
    return invoice


# ============================================================
# VOID
# ============================================================


@transaction.atomic
def void_invoice(
    principal: Principal,
    invoice_id,
    *,
    reason: str = "",
    now: datetime | None = None,
) -> Invoice:
    _require_admin(principal)
    now = now or timezone.now()
    _tenant_invoice(principal, invoice_id)

    invoice = Invoice.objects.select_for_update().get(pk=invoice_id)
    if invoice.status == Invoice.STATUS_VOID:
        raise Conflict("Invoice is already void")

    has_settled = invoice.allocations.filter(payment__status=Payment.STATUS_SUCCEEDED).exists()
    if has_settled:
        raise Conflict("Invoices with payments cannot be voided")
    if invoice.status in Invoice.TERMINAL_STATUSES:
        raise Conflict(f"Invoice is final ({invoice.status})")

    invoice.status = Invoice.STATUS_VOID
    invoice.save(update_fields=["status", "updated_at"])

    audit.record(
        invoice,
        InvoiceAuditLog.ACTION_VOIDED,
        actor_id=principal.user_id,
        amount_cents=invoice.amount_cents,
        meta={"reason": reason or None},
        at=now,
    )
    return invoice


# ============================================================
# OFFLINE PAYMENT
# ============================================================


def record_offline_payment(
    principal: Principal,
    invoice_id,
    *,
    amount_cents=None,
    reference: str = "",
    now: datetime | None = None,
) -> ChargeResult:
    """
    Cash / bank transfer received outside the card flow.
    Same settlement path as a card charge (lock, recompute, allocate, audit, receipt).
    """
    _require_admin(principal)
    now = now or timezone.now()
    _tenant_invoice(principal, invoice_id)

    reference = (reference or "").strip()
    if reference and _reference_taken(principal.tenant_id, reference):
        raise _duplicate_reference()

    try:
        with transaction.atomic():
            locked = lock_invoice(invoice_id)
            allocated, remaining = payable_position(locked, now)
            amount = resolve_amount(amount_cents, remaining)

            if locked.source == Invoice.SOURCE_DONATION and amount < remaining:
                raise BusinessRuleViolation(
                    "Donations must be paid in full in a single payment",
                    details=[field_issue("amount", "partial_donation")],
                )

            result = settle_payment(
                locked,
                amount_cents=amount,
                allocated_before=allocated,
                kind=Payment.KIND_OFFLINE,
                reference=reference or None,
                actor_id=principal.user_id,
                now=now,
            )
    except IntegrityError:
        # Only a reference inserted after our pre-check is a CONFLICT.
        if reference and _reference_taken(principal.tenant_id, reference):
            raise _duplicate_reference() from None
        raise

    logger.info(
        "Offline payment recorded",
        extra={
            "invoice_id": str(invoice_id),
            "payment_id": str(result.payment.id),
            "amount_cents": result.payment.amount_cents,
        },
    )
    return result


# ============================================================
# PDF DOWNLOAD
# ============================================================


def record_pdf_download(principal: Principal, invoice_id, *, now: datetime | None = None) -> Invoice:
    now = now or timezone.now()
    invoice = _tenant_invoice(principal, invoice_id)

    if invoice.member_id != principal.member_id and not principal.can(CAP_BILLING_MANAGE_INVOICES):
        raise Forbidden("Forbidden")

    audit.record(
        invoice,
        InvoiceAuditLog.ACTION_PDF_DOWNLOADED,
        actor_id=principal.user_id,
        amount_cents=invoice.amount_cents,
        at=now,
    )
    return invoice


def render_placeholder_pdf(invoice: Invoice) -> bytes:
    """Rendering lives elsewhere; a minimal valid PDF keeps clients working."""
    return b"%PDF-1.4\n1 0 obj <<>> endobj\ntrailer <<>>\n%%EOF"

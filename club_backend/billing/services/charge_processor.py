# billing/services/charge_processor.py

"""
CHARGE PROCESSOR

Executes exactly one debit against exactly one invoice, exactly once per
idempotency key.

GUARANTEES:
- Payment + Allocation + invoice status/paid_at + audit row commit together
  (one transaction, invoice row locked) or not at all
- A key seen before for (tenant, member) replays the recorded payment
  and the status/balance it produced at the time
- The key is re-checked under the invoice lock before payability, so a
  request that waited on the winner replays instead of conflicting
- Two concurrent requests with the same key: the unique constraint picks
  one winner, the loser returns the winner's payment
- The receipt is dispatched only after commit; its failure never
  affects the payment

RULES:
- Payable unless the COMPUTED status is PAID, VOID or FAILED
- Amount defaults to the remaining balance; must be > 0 and must not exceed it
- DONATION invoices must be paid in full in one charge
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from django.db import IntegrityError, transaction
from django.utils import timezone

from billing.models import Allocation, Invoice, InvoiceAuditLog, Payment, PaymentMethod
from billing.services import audit
from billing.services.balance import (
    allocated_total,
    balance_from_total,
    compute_status,
    is_payable,
)
from billing.services.exceptions import (
    BusinessRuleViolation,
    Conflict,
    Forbidden,
    NotFound,
    ValidationFailed,
    field_issue,
)
from billing.services.notifications import KIND_RECEIPT, Notification, dispatch_on_commit
from billing.services.payment_methods import ephemeral_method, validate_card
from billing.services.principal import Principal
from permissions.roles import CAP_BILLING_CHARGE_ON_BEHALF, CAP_INVOICES_PAY_OWN

logger = logging.getLogger(__name__)

IDEMPOTENCY_KEY_MAX_LENGTH = 128


@dataclass(frozen=True)
class ChargeResult:
    payment: Payment
    invoice_status: str
    balance_cents: int
    replayed: bool = False


# ============================================================
# LOOKUPS
# ============================================================


def get_invoice_for(principal: Principal, invoice_id) -> Invoice:
    """
    Tenant-scoped lookup + ownership check.

    Another tenant's invoice is NOT_FOUND (never FORBIDDEN), so existence
    does not leak across tenants.
    """
    invoice = Invoice.objects.for_tenant(principal.tenant_id).filter(pk=invoice_id).first()
    if invoice is None:
        raise NotFound("Invoice not found")

    if principal.can(CAP_BILLING_CHARGE_ON_BEHALF):
        return invoice

    if invoice.member_id != principal.member_id or not principal.can(CAP_INVOICES_PAY_OWN):
        raise Forbidden("Invoice does not belong to member")
    return invoice


def normalize_idempotency_key(raw) -> str | None:
    key = (str(raw).strip() if raw is not None else "")
    if not key:
        return None
    if len(key) > IDEMPOTENCY_KEY_MAX_LENGTH:
        raise ValidationFailed(
            "Idempotency key is too long",
            details=[field_issue("idempotency_key", "too_long")],
        )
    return key


def _find_replay(tenant_id, member_id, key: str) -> Payment | None:
    return (
        Payment.objects.for_tenant(tenant_id)
        .filter(member_id=member_id, idempotency_key=key)
        .select_related("invoice")
        .first()
    )


def _replay(payment: Payment) -> ChargeResult:
    """The result recorded when the payment settled, not the invoice's current state."""
    return ChargeResult(
        payment=payment,
        invoice_status=payment.invoice_status_after,
        balance_cents=payment.balance_after_cents,
        replayed=True,
    )


def _resolve_instrument(invoice: Invoice, payment_method_id, one_time_card) -> PaymentMethod:
    if payment_method_id:
        method = (
            PaymentMethod.objects.active_for_member(invoice.tenant_id, invoice.member_id)
            .filter(pk=payment_method_id)
            .first()
        )
        if method is None:
            raise NotFound(
                "Payment method not found",
                details=[field_issue("payment_method_id", "not_found")],
            )
        return method

    if one_time_card:
        card = validate_card(one_time_card, field_prefix="card.")
        return ephemeral_method(
            tenant_id=invoice.tenant_id,
            member_id=invoice.member_id,
            card=card,
        )

    raise ValidationFailed(
        "Payment method required",
        details=[field_issue("payment_method_id", "required")],
    )


def resolve_amount(amount_cents, remaining_cents: int) -> int:
    if amount_cents is None:
        amount = remaining_cents
    else:
        try:
            amount = int(amount_cents)
        except (TypeError, ValueError):
            raise ValidationFailed(
                "Invalid amount", details=[field_issue("amount", "invalid")]
            ) from None
        if isinstance(amount_cents, bool) or amount != amount_cents:
            raise ValidationFailed("Invalid amount", details=[field_issue("amount", "invalid")])

    if amount <= 0:
        raise ValidationFailed("Invalid amount", details=[field_issue("amount", "invalid")])

    if amount > remaining_cents:
        raise ValidationFailed(
            f"Amount exceeds the remaining balance of {remaining_cents}",
            details=[field_issue("amount", "exceeds_balance")],
        )
    return amount


def new_payment_reference() -> str:
    return f"PAY-{uuid.uuid4().hex[:16].upper()}"


# ============================================================
# SETTLEMENT (shared by card charges and offline payments)
# ============================================================


def settle_payment(
    invoice: Invoice,
    *,
    amount_cents: int,
    allocated_before: int,
    kind: str,
    method: PaymentMethod | None = None,
    reference: str | None = None,
    idempotency_key: str | None = None,
    actor_id=None,
    now: datetime,
) -> ChargeResult:
    """
    Caller holds the invoice row lock inside a transaction and has
    already validated payability and amount.
    """
    allocated_after = allocated_before + amount_cents
    new_status = compute_status(invoice, allocated_after, now)
    balance_after = balance_from_total(invoice.amount_cents, allocated_after)

    payment = Payment.objects.create(
        tenant_id=invoice.tenant_id,
        member_id=invoice.member_id,
        invoice=invoice,
        amount_cents=amount_cents,
        currency=invoice.currency,
        status=Payment.STATUS_SUCCEEDED,
        kind=kind,
        reference=reference or new_payment_reference(),
        payment_method=None if method is None or method._state.adding else method,
        method_brand=getattr(method, "brand", "") or "",
        method_last4=getattr(method, "last4", "") or "",
        idempotency_key=idempotency_key,
        invoice_status_after=new_status,
        balance_after_cents=balance_after,
        processed_at=now,
        created_by=actor_id,
    )

    Allocation.objects.create(
        tenant_id=invoice.tenant_id,
        invoice=invoice,
        payment=payment,
        amount_cents=amount_cents,
    )

    invoice.status = new_status
    if new_status == Invoice.STATUS_PAID and invoice.paid_at is None:
        invoice.paid_at = now
    invoice.save(update_fields=["status", "paid_at", "updated_at"])

    audit.record(
        invoice,
        InvoiceAuditLog.ACTION_PAID,
        actor_id=actor_id,
        amount_cents=amount_cents,
        meta={
            "payment_id": str(payment.id),
            "reference": payment.reference,
            "kind": kind,
            "method_last4": payment.method_last4 or None,
        },
        at=now,
    )

    dispatch_on_commit(
        Notification(
            kind=KIND_RECEIPT,
            tenant_id=invoice.tenant_id,
            member_id=invoice.member_id,
            invoice_id=invoice.id,
            amount_cents=amount_cents,
            currency=invoice.currency,
            meta={
                "payment_id": str(payment.id),
                "payment_method_last4": payment.method_last4 or None,
                "payment_type": invoice.source.lower(),
                "invoice_number": invoice.invoice_number,
            },
        )
    )

    return ChargeResult(
        payment=payment,
        invoice_status=new_status,
        balance_cents=balance_after,
    )


def lock_invoice(invoice_id) -> Invoice:
    return Invoice.objects.select_for_update().get(pk=invoice_id)


def payable_position(locked: Invoice, now: datetime) -> tuple[int, int]:
    """
    (allocated_cents, remaining_cents) for a locked invoice.

    Raises CONFLICT when the recomputed status is not payable.
    """
    allocated = allocated_total(locked.allocations.select_related("payment"))
    status = compute_status(locked, allocated, now)

    if not is_payable(status):
        raise Conflict(f"Invoice is not payable (status {status})")

    return allocated, balance_from_total(locked.amount_cents, allocated)


# ============================================================
# CHARGE
# ============================================================


def _execute_charge(
    principal: Principal,
    invoice: Invoice,
    *,
    amount_cents,
    payment_method_id,
    one_time_card,
    key: str | None,
    now: datetime,
) -> ChargeResult:
    with transaction.atomic():
        locked = lock_invoice(invoice.pk)

        if key:
            # A concurrent request may have committed while we waited for the
            # lock; its result wins over the payability check.
            existing = _find_replay(locked.tenant_id, locked.member_id, key)
            if existing is not None:
                return _replay(existing)

        allocated, remaining = payable_position(locked, now)

        method = _resolve_instrument(locked, payment_method_id, one_time_card)
        amount = resolve_amount(amount_cents, remaining)

        if locked.source == Invoice.SOURCE_DONATION and amount < remaining:
            raise BusinessRuleViolation(
                "Donations must be paid in full in a single payment",
                details=[field_issue("amount", "partial_donation")],
            )

        return settle_payment(
            locked,
            amount_cents=amount,
            allocated_before=allocated,
            kind=Payment.KIND_CARD,
            method=method,
            idempotency_key=key,
            actor_id=principal.user_id,
            now=now,
        )


def charge_invoice(
    principal: Principal,
    invoice_id,
    *,
    amount_cents=None,
    payment_method_id=None,
    one_time_card=None,
    idempotency_key=None,
    now: datetime | None = None,
) -> ChargeResult:
    now = now or timezone.now()
    key = normalize_idempotency_key(idempotency_key)
    invoice = get_invoice_for(principal, invoice_id)

    if key:
        existing = _find_replay(invoice.tenant_id, invoice.member_id, key)
        if existing is not None:
            logger.info(
                "Idempotent charge replayed",
                extra={"payment_id": str(existing.id), "invoice_id": str(invoice.id)},
            )
            return _replay(existing)

    try:
        result = _execute_charge(
            principal,
            invoice,
            amount_cents=amount_cents,
            payment_method_id=payment_method_id,
            one_time_card=one_time_card,
            key=key,
            now=now,
        )
    except IntegrityError:
        if not key:
            raise
        existing = _find_replay(invoice.tenant_id, invoice.member_id, key)
        if existing is None:
            raise
        logger.info(
            "Concurrent charge lost the idempotency race; returning winner",
            extra={"payment_id": str(existing.id), "invoice_id": str(invoice.id)},
        )
        return _replay(existing)

    if not result.replayed:
        logger.info(
            "Invoice charged",
            extra={
                "payment_id": str(result.payment.id),
                "invoice_id": str(invoice.id),
                "amount_cents": result.payment.amount_cents,
                "invoice_status": result.invoice_status,
            },
        )
    return result

# billing/services/payment_methods.py

"""
PAYMENT METHODS (TOKENIZED CARDS)

Cards are validated structurally and reduced to token/brand/last4/expiry.
There is no gateway behind the token: the number and CVC are dropped
as soon as validation passes.

DEFAULT METHOD RULES:
- First active method saved for a member becomes the default.
- At most one default per (tenant, member): partial unique constraint.
- Moving the default clears the old one first, inside one transaction.
- Deactivating the default promotes the most recent remaining active method.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import date

from django.db import IntegrityError, transaction
from django.utils import timezone

from billing.models import PaymentMethod
from billing.services.exceptions import Forbidden, NotFound, ValidationFailed, field_issue
from billing.services.principal import Principal

logger = logging.getLogger(__name__)

CARD_NUMBER_RE = re.compile(r"^\d{12,19}$")
CVC_RE = re.compile(r"^\d{3,4}$")


@dataclass(frozen=True)
class CardDetails:
    number: str
    exp_month: int
    exp_year: int
    brand: str

    @property
    def last4(self) -> str:
        return self.number[-4:]


# ============================================================
# VALIDATION + TOKENIZATION
# ============================================================


def infer_brand(number: str) -> str:
    if number.startswith("4"):
        return "visa"
    if number.startswith("5"):
        return "mastercard"
    if number.startswith("3"):
        return "amex"
    return "card"


def _as_int(value) -> int | None:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def validate_card(payload, *, field_prefix: str = "", today: date | None = None) -> CardDetails:
    """
    Collects every offending field before raising, e.g.
    [{"field": "card.number", "issue": "invalid"}, {"field": "card.cvc", "issue": "required"}]
    """
    payload = payload or {}
    today = today or timezone.localdate()
    details = []

    def issue(name, what):
        details.append(field_issue(f"{field_prefix}{name}", what))

    number = str(payload.get("number") or "").strip()
    raw_month = payload.get("exp_month")
    raw_year = payload.get("exp_year")
    cvc = str(payload.get("cvc") or "").strip()

    if not number:
        issue("number", "required")
    elif not CARD_NUMBER_RE.match(number):
        issue("number", "invalid")

    month = _as_int(raw_month)
    year = _as_int(raw_year)

    if raw_month in (None, ""):
        issue("exp_month", "required")
    elif month is None or not 1 <= month <= 12:
        issue("exp_month", "invalid")

    if raw_year in (None, ""):
        issue("exp_year", "required")
    elif year is None or year < today.year:
        issue("exp_year", "invalid")

    if not cvc:
        issue("cvc", "required")
    elif not CVC_RE.match(cvc):
        issue("cvc", "invalid")

    if details:
        raise ValidationFailed("Validation failed", details=details)

    brand = (payload.get("brand") or "").strip().lower() or infer_brand(number)
    return CardDetails(number=number, exp_month=month, exp_year=year, brand=brand)


def new_token(prefix: str = "pm_tok") -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def ephemeral_method(*, tenant_id, member_id, card: CardDetails) -> PaymentMethod:
    """A one-time card as an unsaved PaymentMethod; never persisted."""
    return PaymentMethod(
        tenant_id=tenant_id,
        member_id=member_id,
        token=new_token("pm_tok_onetime"),
        brand=card.brand,
        last4=card.last4,
        exp_month=card.exp_month,
        exp_year=card.exp_year,
        is_default=False,
        status=PaymentMethod.STATUS_ACTIVE,
    )


# ============================================================
# MEMBER SELF-SERVICE
# ============================================================


def _require_member(principal: Principal):
    if not principal.member_id:
        raise Forbidden("No member profile is attached to this account.")
    return principal.member_id


def list_payment_methods(principal: Principal):
    member_id = _require_member(principal)
    return PaymentMethod.objects.active_for_member(principal.tenant_id, member_id).order_by(
        "-is_default", "-created_at"
    )


def save_payment_method(principal: Principal, payload) -> PaymentMethod:
    member_id = _require_member(principal)
    card = validate_card(payload)

    with transaction.atomic():
        has_default = (
            PaymentMethod.objects.active_for_member(principal.tenant_id, member_id)
            .filter(is_default=True)
            .exists()
        )

        method = PaymentMethod(
            tenant_id=principal.tenant_id,
            member_id=member_id,
            token=new_token(),
            brand=card.brand,
            last4=card.last4,
            exp_month=card.exp_month,
            exp_year=card.exp_year,
            is_default=not has_default,
        )

        try:
            with transaction.atomic():
                method.save()
        except IntegrityError:
            if not method.is_default:
                raise
            # A concurrent save won the default slot.
            logger.info(
                "Default payment method already elected; saving as non-default",
                extra={"tenant_id": str(principal.tenant_id), "member_id": str(member_id)},
            )
            method.is_default = False
            method.save()

    return method


def _locked_member_methods(principal: Principal, member_id):
    return (
        PaymentMethod.objects.select_for_update()
        .active_for_member(principal.tenant_id, member_id)
    )


@transaction.atomic
def set_default_payment_method(principal: Principal, payment_method_id) -> PaymentMethod:
    member_id = _require_member(principal)
    methods = _locked_member_methods(principal, member_id)

    target = methods.filter(pk=payment_method_id).first()
    if target is None:
        raise NotFound(
            "Payment method not found",
            details=[field_issue("payment_method_id", "not_found")],
        )

    if not target.is_default:
        PaymentMethod.objects.for_tenant(principal.tenant_id).filter(
            member_id=member_id, is_default=True
        ).update(is_default=False, updated_at=timezone.now())
        target.is_default = True
        target.save(update_fields=["is_default", "updated_at"])

    return target


@transaction.atomic
def deactivate_payment_method(principal: Principal, payment_method_id) -> PaymentMethod:
    member_id = _require_member(principal)
    methods = _locked_member_methods(principal, member_id)

    target = methods.filter(pk=payment_method_id).first()
    if target is None:
        raise NotFound(
            "Payment method not found",
            details=[field_issue("payment_method_id", "not_found")],
        )

    was_default = target.is_default
    target.status = PaymentMethod.STATUS_INACTIVE
    target.is_default = False
    target.save(update_fields=["status", "is_default", "updated_at"])

    if was_default:
        successor = methods.exclude(pk=target.pk).order_by("-created_at").first()
        if successor is not None:
            successor.is_default = True
            successor.save(update_fields=["is_default", "updated_at"])

    return target

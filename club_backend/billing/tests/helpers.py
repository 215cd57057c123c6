# billing/tests/helpers.py

"""
Shared fixtures for billing tests.

Plain functions, no factory library: every test builds exactly the rows
it needs.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone as dt_timezone

from django.contrib.auth import get_user_model

from billing.models import Allocation, Invoice, Payment
from billing.services.issuance import issue_invoice
from billing.services.notifications import NotificationDispatcher
from billing.services.principal import Principal
from clubs.models import Event, EventRegistration, Member, MembershipType, Tenant
from permissions.roles import Role

User = get_user_model()

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=dt_timezone.utc)

VALID_CARD = {
    "number": "4242424242424242",
    "exp_month": 12,
    "exp_year": 2030,
    "cvc": "123",
}


# -----------------------------
# Directory
# -----------------------------


def make_tenant(slug="acme", name=None) -> Tenant:
    return Tenant.objects.create(slug=slug, name=name or slug.title())


def make_membership_type(tenant, *, name="Gold", price_cents=5000, is_active=True):
    return MembershipType.objects.create(
        tenant=tenant,
        name=name,
        price_cents=price_cents,
        currency="PHP",
        is_active=is_active,
    )


def make_member(
    tenant,
    *,
    first_name="Ana",
    last_name="Reyes",
    email=None,
    membership_type=None,
    status=Member.STATUS_ACTIVE,
) -> Member:
    return Member.objects.create(
        tenant=tenant,
        first_name=first_name,
        last_name=last_name,
        email=email or f"{uuid.uuid4().hex[:8]}@example.com",
        membership_type=membership_type,
        status=status,
    )


def make_event(tenant, *, title="Gala Night", price_cents=2500, starts_at=None) -> Event:
    return Event.objects.create(
        tenant=tenant,
        title=title,
        price_cents=price_cents,
        currency="PHP",
        starts_at=starts_at or datetime(2026, 11, 20, 18, 0, tzinfo=dt_timezone.utc),
    )


def register(event, member, *, status=EventRegistration.STATUS_CONFIRMED) -> EventRegistration:
    return EventRegistration.objects.create(
        tenant=event.tenant,
        event=event,
        member=member,
        status=status,
    )


# -----------------------------
# Principals / users
# -----------------------------


def make_user(tenant, *, member=None, role=Role.MEMBER, email=None):
    return User.objects.create_user(
        email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
        password="Pass1234!",
        role=role,
        tenant=tenant,
        member=member,
    )


def member_principal(member) -> Principal:
    return Principal(
        tenant_id=member.tenant_id,
        member_id=member.id,
        user_id=uuid.uuid4(),
        roles=frozenset({Role.MEMBER}),
    )


def admin_principal(tenant) -> Principal:
    return Principal(
        tenant_id=tenant.id,
        user_id=uuid.uuid4(),
        roles=frozenset({Role.ADMIN}),
    )


# -----------------------------
# Ledger
# -----------------------------


def make_invoice(
    tenant,
    member,
    *,
    amount_cents=10000,
    source=Invoice.SOURCE_DUES,
    status=Invoice.STATUS_ISSUED,
    due_at=None,
    now=NOW,
    **extra,
) -> Invoice:
    return issue_invoice(
        tenant=tenant,
        member_id=member.id,
        amount_cents=amount_cents,
        source=source,
        status=status,
        due_at=due_at,
        now=now,
        **extra,
    )


def record_allocation(invoice, amount_cents, *, status=Payment.STATUS_SUCCEEDED) -> Payment:
    """A payment + allocation written straight to the ledger (no charge flow)."""
    payment = Payment.objects.create(
        tenant_id=invoice.tenant_id,
        member_id=invoice.member_id,
        invoice=invoice,
        amount_cents=amount_cents,
        currency=invoice.currency,
        status=status,
        reference=f"TEST-{uuid.uuid4().hex[:12]}",
    )
    Allocation.objects.create(
        tenant_id=invoice.tenant_id,
        invoice=invoice,
        payment=payment,
        amount_cents=amount_cents,
    )
    return payment


def annotated(invoice) -> Invoice:
    return Invoice.objects.with_settlement().get(pk=invoice.pk)


class ExplodingDispatcher(NotificationDispatcher):
    """Dispatcher that always fails; used to prove failures never propagate."""

    def dispatch(self, notification):
        raise ConnectionError("mail relay down")


EXPLODING_DISPATCHER = "billing.tests.helpers.ExplodingDispatcher"

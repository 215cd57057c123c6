# permissions/roles.py

from __future__ import annotations

from typing import Iterable

from django.db import models
from rest_framework.permissions import BasePermission


# =========================================================
# ROLES (CLOSED SET)
# =========================================================
# Stored on the user row; never compared as free-form strings.
class Role(models.TextChoices):
    ADMIN = "ADMIN", "Admin"
    OFFICER = "OFFICER", "Officer"
    MEMBER = "MEMBER", "Member"
    GUEST = "GUEST", "Guest"


def parse_role(value) -> Role | None:
    """
    Resolve a stored/external role value to the closed Role enum.

    Unknown values resolve to None (no capabilities) rather than raising,
    so a bad row can never grant access.
    """
    if isinstance(value, Role):
        return value
    if value is None:
        return None
    try:
        return Role(str(value).strip().upper())
    except ValueError:
        return None


# =========================================================
# CAPABILITIES (THE REAL PERMISSION LANGUAGE)
# =========================================================
# Views and services protect capabilities, not raw roles.
CAP_INVOICES_VIEW_OWN = "invoices.view_own"
CAP_INVOICES_PAY_OWN = "invoices.pay_own"
CAP_PAYMENT_METHODS_MANAGE_OWN = "payment_methods.manage_own"

CAP_BILLING_CHARGE_ON_BEHALF = "billing.charge_on_behalf"
CAP_BILLING_MANAGE_INVOICES = "billing.manage_invoices"
CAP_BILLING_RUN_JOBS = "billing.run_jobs"

CAP_REPORTS_VIEW_FINANCE = "reports.view_finance"
CAP_AUDIT_VIEW = "audit.view"

ALL_CAPABILITIES = frozenset(
    {
        CAP_INVOICES_VIEW_OWN,
        CAP_INVOICES_PAY_OWN,
        CAP_PAYMENT_METHODS_MANAGE_OWN,
        CAP_BILLING_CHARGE_ON_BEHALF,
        CAP_BILLING_MANAGE_INVOICES,
        CAP_BILLING_RUN_JOBS,
        CAP_REPORTS_VIEW_FINANCE,
        CAP_AUDIT_VIEW,
    }
)

_MEMBER_SELF_SERVICE = frozenset(
    {
        CAP_INVOICES_VIEW_OWN,
        CAP_INVOICES_PAY_OWN,
        CAP_PAYMENT_METHODS_MANAGE_OWN,
    }
)


# =========================================================
# ROLE → CAPABILITY MAP
# =========================================================
ROLE_CAPABILITIES: dict[Role, frozenset[str]] = {
    Role.ADMIN: ALL_CAPABILITIES,
    Role.OFFICER: _MEMBER_SELF_SERVICE
    | {
        CAP_REPORTS_VIEW_FINANCE,
        CAP_AUDIT_VIEW,
    },
    Role.MEMBER: _MEMBER_SELF_SERVICE,
    Role.GUEST: frozenset(),
}


# =========================================================
# Helpers
# =========================================================
def capabilities_for_roles(roles: Iterable) -> frozenset[str]:
    caps: set[str] = set()
    for raw in roles or ():
        role = parse_role(raw)
        if role is not None:
            caps |= ROLE_CAPABILITIES.get(role, frozenset())
    return frozenset(caps)


def roles_for_user(user) -> frozenset[Role]:
    if not user or not getattr(user, "is_authenticated", False):
        return frozenset()

    roles = set()
    role = parse_role(getattr(user, "role", None))
    if role is not None:
        roles.add(role)
    if getattr(user, "is_superuser", False):
        roles.add(Role.ADMIN)
    return frozenset(roles)


def effective_capabilities_for(user) -> frozenset[str]:
    return capabilities_for_roles(roles_for_user(user))


# =========================================================
# Capability Permissions
# =========================================================
class HasCapability(BasePermission):
    """
    Require a specific capability.

    Usage:
        permission_classes = [IsAuthenticated, HasCapability]
        required_capability = CAP_BILLING_RUN_JOBS
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_capability", None)
        if not required:
            # If not set, deny-by-default to avoid accidental open endpoints
            return False

        return required in effective_capabilities_for(user)


class HasAnyCapability(BasePermission):
    """
    Require ANY capability from a set.

    Usage:
        required_any_capabilities = {CAP_REPORTS_VIEW_FINANCE, CAP_BILLING_MANAGE_INVOICES}
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_any_capabilities", None)
        if not required:
            return False

        caps = effective_capabilities_for(user)
        return any(cap in caps for cap in set(required))


class IsTenantPrincipal(BasePermission):
    """
    The authenticated user must be attached to a tenant.

    Every billing call is tenant-scoped; a user without a tenant has no
    ledger to look at.
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return bool(getattr(user, "tenant_id", None))

# billing/api/views/base.py

from rest_framework.permissions import IsAuthenticated
from rest_framework.throttling import UserRateThrottle
from rest_framework.views import APIView

from billing.api.errors import BillingExceptionMixin
from billing.services.principal import Principal
from permissions.roles import HasAnyCapability, HasCapability, IsTenantPrincipal


class PaymentsThrottle(UserRateThrottle):
    """
    Money-moving endpoints (charge, offline payment).
    Uses REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']['payments'].
    """

    scope = "payments"


class BillingAPIView(BillingExceptionMixin, APIView):
    """
    Base for every billing endpoint.

    - caller must be authenticated AND attached to a tenant
    - set `required_capability` (single) or `required_any_capabilities` (set)
    - services receive a Principal, never request.user
    """

    required_capability = None
    required_any_capabilities = None

    def get_permissions(self):
        permissions = [IsAuthenticated(), IsTenantPrincipal()]
        if self.required_any_capabilities:
            permissions.append(HasAnyCapability())
        else:
            permissions.append(HasCapability())
        return permissions

    def get_principal(self) -> Principal:
        return Principal.from_user(self.request.user)

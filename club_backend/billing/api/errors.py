# billing/api/errors.py

"""
API ERROR NORMALIZATION

Every billing error leaves the API in one envelope:

    {"error": {"code": "...", "message": "...", "details": [{field, issue}]}}
"""

from __future__ import annotations

from rest_framework import exceptions, status
from rest_framework.response import Response

from billing.services.exceptions import BillingError, ValidationFailed

HTTP_STATUS_BY_CODE = {
    "VALIDATION_FAILED": status.HTTP_400_BAD_REQUEST,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "CONFLICT": status.HTTP_409_CONFLICT,
    "BUSINESS_RULE_VIOLATION": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def error_response(*, code: str, message: str, http_status: int, details=None):
    """
    Canonical API error response.
    """
    return Response(
        {"error": {"code": code, "message": message, "details": list(details or [])}},
        status=http_status,
    )


def billing_error_response(exc: BillingError):
    return error_response(
        code=exc.code,
        message=exc.message,
        http_status=HTTP_STATUS_BY_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST),
        details=exc.details,
    )


def _flatten(errors, prefix=""):
    if isinstance(errors, dict):
        for key, value in errors.items():
            name = "request" if key == "non_field_errors" else f"{prefix}{key}"
            yield from _flatten(value, f"{name}.")
        return

    field = prefix[:-1] if prefix.endswith(".") else prefix
    for item in errors if isinstance(errors, list) else [errors]:
        if isinstance(item, (dict, list)):
            yield from _flatten(item, prefix)
        else:
            yield {"field": field or "request", "issue": getattr(item, "code", None) or "invalid"}


def validation_details(errors) -> list[dict]:
    """
    DRF serializer errors -> [{field, issue}], using the DRF error code
    ("required", "invalid", "max_length", ...) as the issue.
    """
    details = []
    for detail in _flatten(errors):
        if detail not in details:
            details.append(detail)
    return details


class BillingExceptionMixin:
    """
    APIView mixin: BillingError and serializer ValidationError render as
    the canonical envelope; everything else goes through DRF.
    """

    def handle_exception(self, exc):
        if isinstance(exc, BillingError):
            return billing_error_response(exc)

        if isinstance(exc, exceptions.ValidationError):
            return billing_error_response(
                ValidationFailed(
                    "Validation failed",
                    details=validation_details(exc.detail),
                )
            )

        return super().handle_exception(exc)

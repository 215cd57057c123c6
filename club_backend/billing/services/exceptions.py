# billing/services/exceptions.py

"""
BILLING SERVICE ERRORS

Centralized domain errors for the settlement engine.

Every error carries:
- code:    stable machine-readable code (rendered in the API envelope)
- message: human-readable text
- details: offending fields for validation errors [{field, issue}]
"""

from __future__ import annotations


class BillingError(Exception):
    """Base exception for all billing service failures."""

    code = "BILLING_ERROR"

    def __init__(self, message: str = "", *, details: list[dict] | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = list(details or [])


class ValidationFailed(BillingError):
    """Raised on malformed input. `details` enumerates the offending fields."""

    code = "VALIDATION_FAILED"


class NotFound(BillingError):
    """Raised when an entity is missing or belongs to another tenant."""

    code = "NOT_FOUND"


class Forbidden(BillingError):
    """Raised on an ownership mismatch inside the same tenant."""

    code = "FORBIDDEN"


class Conflict(BillingError):
    """Raised on an invalid state transition (e.g. charging a paid invoice)."""

    code = "CONFLICT"


class BusinessRuleViolation(BillingError):
    """Raised when a well-formed request breaks a billing rule."""

    code = "BUSINESS_RULE_VIOLATION"


def field_issue(field: str, issue: str) -> dict:
    return {"field": field, "issue": issue}

"""
BILLING MODELS PACKAGE

Ledger tables, all tenant-scoped.
"""

from .allocation import Allocation
from .audit_log import InvoiceAuditLog
from .invoice import Invoice
from .notification import NotificationEvent
from .payment import Payment
from .payment_method import PaymentMethod
from .sequence import InvoiceSequence

__all__ = [
    "Allocation",
    "Invoice",
    "InvoiceAuditLog",
    "InvoiceSequence",
    "NotificationEvent",
    "Payment",
    "PaymentMethod",
]

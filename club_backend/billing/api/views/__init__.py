from .admin import (
    AdminInvoiceAuditView,
    AdminInvoiceCreateView,
    AdminInvoiceSendView,
    AdminInvoiceVoidView,
    AdminRecordPaymentView,
    DuesRunView,
    EventInvoicesView,
    RegistrationInvoiceView,
    RemindersRunView,
)
from .invoices import InvoiceDetailView, InvoiceListView, InvoicePayView, InvoicePdfView
from .payment_methods import (
    PaymentMethodDefaultView,
    PaymentMethodDetailView,
    PaymentMethodListCreateView,
)
from .reports import DuesSummaryView, FinanceSummaryView

__all__ = [
    "AdminInvoiceAuditView",
    "AdminInvoiceCreateView",
    "AdminInvoiceSendView",
    "AdminInvoiceVoidView",
    "AdminRecordPaymentView",
    "DuesRunView",
    "DuesSummaryView",
    "EventInvoicesView",
    "FinanceSummaryView",
    "InvoiceDetailView",
    "InvoiceListView",
    "InvoicePayView",
    "InvoicePdfView",
    "PaymentMethodDefaultView",
    "PaymentMethodDetailView",
    "PaymentMethodListCreateView",
    "RegistrationInvoiceView",
    "RemindersRunView",
]

# billing/api/urls.py

"""
BILLING API URLS

Mounted at /api/billing/ by backend/urls.py.

Member self-service:
    invoices/, invoices/<uuid>/, invoices/<uuid>/pay/, invoices/<uuid>/pdf/
    payment-methods/, payment-methods/<uuid>/, payment-methods/<uuid>/default/

Admin:
    admin/invoices/..., admin/dues-runs/, admin/events/<uuid>/invoices/,
    admin/registrations/<uuid>/invoice/, admin/reminders/run/, admin/reports/...
"""

from django.urls import path

from billing.api import views

app_name = "billing"

urlpatterns = [
    # ------------------ MEMBER ------------------
    path("invoices/", views.InvoiceListView.as_view(), name="invoice-list"),
    path("invoices/<uuid:invoice_id>/", views.InvoiceDetailView.as_view(), name="invoice-detail"),
    path("invoices/<uuid:invoice_id>/pay/", views.InvoicePayView.as_view(), name="invoice-pay"),
    path("invoices/<uuid:invoice_id>/pdf/", views.InvoicePdfView.as_view(), name="invoice-pdf"),
    path(
        "payment-methods/",
        views.PaymentMethodListCreateView.as_view(),
        name="payment-method-list",
    ),
    path(
        "payment-methods/<uuid:payment_method_id>/",
        views.PaymentMethodDetailView.as_view(),
        name="payment-method-detail",
    ),
    path(
        "payment-methods/<uuid:payment_method_id>/default/",
        views.PaymentMethodDefaultView.as_view(),
        name="payment-method-default",
    ),
    # ------------------ ADMIN ------------------
    path("admin/invoices/", views.AdminInvoiceCreateView.as_view(), name="admin-invoice-create"),
    path(
        "admin/invoices/<uuid:invoice_id>/send/",
        views.AdminInvoiceSendView.as_view(),
        name="admin-invoice-send",
    ),
    path(
        "admin/invoices/<uuid:invoice_id>/void/",
        views.AdminInvoiceVoidView.as_view(),
        name="admin-invoice-void",
    ),
    path(
        "admin/invoices/<uuid:invoice_id>/record-payment/",
        views.AdminRecordPaymentView.as_view(),
        name="admin-invoice-record-payment",
    ),
    path(
        "admin/invoices/<uuid:invoice_id>/audit/",
        views.AdminInvoiceAuditView.as_view(),
        name="admin-invoice-audit",
    ),
    path("admin/dues-runs/", views.DuesRunView.as_view(), name="admin-dues-run"),
    path(
        "admin/events/<uuid:event_id>/invoices/",
        views.EventInvoicesView.as_view(),
        name="admin-event-invoices",
    ),
    path(
        "admin/registrations/<uuid:registration_id>/invoice/",
        views.RegistrationInvoiceView.as_view(),
        name="admin-registration-invoice",
    ),
    path("admin/reminders/run/", views.RemindersRunView.as_view(), name="admin-reminders-run"),
    path(
        "admin/reports/finance-summary/",
        views.FinanceSummaryView.as_view(),
        name="admin-finance-summary",
    ),
    path(
        "admin/reports/dues-summary/",
        views.DuesSummaryView.as_view(),
        name="admin-dues-summary",
    ),
]

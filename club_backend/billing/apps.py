# billing/apps.py

"""
BILLING APP CONFIG

Invoice & payment settlement engine:
- ledger (invoices, payments, allocations, payment methods, audit trail)
- charge processing with idempotency keys
- dues runs + event invoices without duplicates
- reminders + finance reporting
"""

from django.apps import AppConfig


class BillingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "billing"
    verbose_name = "Billing"

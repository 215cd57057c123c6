"""
======================================================
PATH: clubs/migrations/0002_eventregistration_invoice.py
======================================================
MIGRATION: LINK REGISTRATIONS TO THEIR INVOICE

Separate from 0001 because billing.Invoice itself points at clubs.Tenant.
"""

from __future__ import annotations

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    dependencies = [
        ("clubs", "0001_initial"),
        ("billing", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="eventregistration",
            name="invoice",
            field=models.OneToOneField(
                to="billing.invoice",
                on_delete=django.db.models.deletion.SET_NULL,
                null=True,
                blank=True,
                related_name="registration",
            ),
        ),
    ]

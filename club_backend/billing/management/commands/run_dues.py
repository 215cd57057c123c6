# billing/management/commands/run_dues.py

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from billing.services.dues_run import run_dues
from billing.services.exceptions import BillingError
from clubs.models import Tenant


class Command(BaseCommand):
    help = "Issue monthly dues invoices for a tenant (safe to re-run for the same period)."

    def add_arguments(self, parser):
        parser.add_argument("--tenant", required=True, help="Tenant slug")
        parser.add_argument(
            "--period",
            default=None,
            help="Dues period YYYY-MM (default: current month)",
        )

    def handle(self, *args, **options):
        slug = (options.get("tenant") or "").strip()
        tenant = Tenant.objects.filter(slug=slug).first()
        if tenant is None:
            raise CommandError(f"Unknown tenant '{slug}'.")

        try:
            result = run_dues(tenant.id, options.get("period"))
        except BillingError as exc:
            raise CommandError(exc.message) from exc

        self.stdout.write(
            self.style.SUCCESS(
                f"Dues {result.period_key} for '{tenant.slug}': "
                f"created={result.created} "
                f"skipped_existing={result.skipped_existing} "
                f"skipped_no_membership_type={result.skipped_no_membership_type}"
            )
        )

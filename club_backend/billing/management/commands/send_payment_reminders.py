# billing/management/commands/send_payment_reminders.py

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from billing.services.reminders import run_reminders
from clubs.models import Tenant


class Command(BaseCommand):
    help = "Send one payment reminder per due, unpaid invoice (cron entry point)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--tenant",
            default=None,
            help="Tenant slug (default: every tenant)",
        )

    def handle(self, *args, **options):
        slug = (options.get("tenant") or "").strip()

        tenants = Tenant.objects.order_by("slug")
        if slug:
            tenants = tenants.filter(slug=slug)
            if not tenants.exists():
                raise CommandError(f"Unknown tenant '{slug}'.")

        total = 0
        for tenant in tenants:
            result = run_reminders(tenant.id)
            total += result.sent
            self.stdout.write(f"{tenant.slug}: sent={result.sent}")

        self.stdout.write(self.style.SUCCESS(f"Reminders sent: {total}"))

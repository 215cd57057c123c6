# billing/tests/test_dues_run.py

from __future__ import annotations

from datetime import date, datetime, timezone as dt_timezone
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import IntegrityError, transaction
from django.test import TestCase

from billing.models import Invoice, InvoiceAuditLog, NotificationEvent
from billing.services import dues_run
from billing.services.dues_run import DUES_TEMPLATE, dues_period, run_dues
from billing.services.exceptions import NotFound, ValidationFailed
from billing.tests.helpers import (
    NOW,
    make_invoice,
    make_member,
    make_membership_type,
    make_tenant,
)
from clubs.models import Member


class DuesRunTests(TestCase):
    """
    Tests for run_dues().

    GUARANTEES:
    - One dues invoice per (tenant, member, period)
    - Second run for the same period creates nothing
    - Members without a priced, active membership type are skipped
    """

    def setUp(self):
        self.tenant = make_tenant("acme")
        self.gold = make_membership_type(self.tenant, name="Gold", price_cents=5000)
        self.free = make_membership_type(self.tenant, name="Honorary", price_cents=0)

        self.ana = make_member(self.tenant, first_name="Ana", membership_type=self.gold)
        self.ben = make_member(self.tenant, first_name="Ben", membership_type=self.gold)
        self.cora = make_member(self.tenant, first_name="Cora", membership_type=self.free)
        self.dan = make_member(self.tenant, first_name="Dan")
        self.eve = make_member(
            self.tenant,
            first_name="Eve",
            membership_type=self.gold,
            status=Member.STATUS_INACTIVE,
        )

    def _dues(self):
        return Invoice.objects.filter(tenant=self.tenant, source=Invoice.SOURCE_DUES)

    # --------------------------------------------------
    # Period parsing
    # --------------------------------------------------

    def test_period_defaults_to_current_month(self):
        period = dues_period(now=NOW)
        self.assertEqual(period.key, "2026-10")
        self.assertEqual(period.start, date(2026, 10, 1))
        self.assertEqual(period.end, date(2026, 10, 31))
        self.assertEqual(period.label, "October 2026")

    def test_explicit_period(self):
        period = dues_period("2026-02")
        self.assertEqual(period.end, date(2026, 2, 28))

    def test_bad_period_rejected(self):
        for bad in ("2026-13", "26-01", "October"):
            with self.assertRaises(ValidationFailed):
                dues_period(bad)

    # --------------------------------------------------
    # Run
    # --------------------------------------------------

    def test_run_issues_one_invoice_per_priced_active_member(self):
        result = run_dues(self.tenant.id, "2026-10", now=NOW)

        self.assertEqual(result.period_key, "2026-10")
        self.assertEqual(result.created, 2)
        self.assertEqual(result.skipped_existing, 0)
        self.assertEqual(result.skipped_no_membership_type, 2)

        billed = set(self._dues().values_list("member_id", flat=True))
        self.assertEqual(billed, {self.ana.id, self.ben.id})

    def test_invoice_fields(self):
        run_dues(self.tenant.id, "2026-10", now=NOW)

        invoice = self._dues().get(member_id=self.ana.id)
        self.assertEqual(invoice.amount_cents, 5000)
        self.assertEqual(invoice.status, Invoice.STATUS_ISSUED)
        self.assertEqual(invoice.dues_period_key, "2026-10")
        self.assertEqual(invoice.dues_label, "October 2026")
        self.assertEqual(invoice.description, "Gold dues for October 2026")
        self.assertEqual(invoice.period_start, date(2026, 10, 1))
        self.assertEqual(invoice.period_end, date(2026, 10, 31))
        self.assertEqual(invoice.due_at, datetime(2026, 10, 31, tzinfo=dt_timezone.utc))
        self.assertRegex(invoice.invoice_number, r"^ACME-2026-DUES-00[12]$")

        audit = InvoiceAuditLog.objects.get(invoice=invoice)
        self.assertEqual(audit.action, InvoiceAuditLog.ACTION_DUES_GENERATED)

    def test_second_run_creates_nothing(self):
        run_dues(self.tenant.id, "2026-10", now=NOW)
        again = run_dues(self.tenant.id, "2026-10", now=NOW)

        self.assertEqual(again.created, 0)
        self.assertEqual(again.skipped_existing, 2)
        self.assertEqual(self._dues().count(), 2)

    def test_new_period_bills_again(self):
        run_dues(self.tenant.id, "2026-10", now=NOW)
        nxt = run_dues(self.tenant.id, "2026-11", now=NOW)

        self.assertEqual(nxt.created, 2)
        self.assertEqual(self._dues().count(), 4)

    def test_void_invoice_does_not_block_reissue(self):
        make_invoice(
            self.tenant,
            self.ana,
            amount_cents=5000,
            status=Invoice.STATUS_VOID,
            dues_period_key="2026-10",
        )

        result = run_dues(self.tenant.id, "2026-10", now=NOW)

        self.assertEqual(result.created, 2)

    def test_database_rejects_duplicate_open_dues_invoice(self):
        make_invoice(self.tenant, self.ana, amount_cents=5000, dues_period_key="2026-10")

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                make_invoice(self.tenant, self.ana, amount_cents=5000, dues_period_key="2026-10")

    def test_invoice_issued_after_precheck_counts_as_skip(self):
        existing = make_invoice(self.tenant, self.ana, amount_cents=5000, dues_period_key="2026-10")

        with mock.patch.object(dues_run, "_billed_member_ids", return_value=set()):
            result = run_dues(self.tenant.id, "2026-10", now=NOW)

        self.assertEqual(result.created, 1)
        self.assertEqual(result.skipped_existing, 1)
        self.assertEqual(list(self._dues().filter(member_id=self.ana.id)), [existing])
        self.assertTrue(self._dues().filter(member_id=self.ben.id).exists())

    def test_notifications_sent_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            run_dues(self.tenant.id, "2026-10", now=NOW)

        events = NotificationEvent.objects.filter(kind=NotificationEvent.KIND_INVOICE_SEND)
        self.assertEqual(events.count(), 2)
        meta = events.get(member_id=self.ana.id).meta
        self.assertEqual(meta["template"], DUES_TEMPLATE)
        self.assertEqual(meta["dues_label"], "October 2026")
        self.assertEqual(meta["due_date"], "2026-10-31")

    def test_unknown_tenant(self):
        other = make_tenant("ghost")
        other_id = other.id
        other.delete()

        with self.assertRaises(NotFound):
            run_dues(other_id, "2026-10", now=NOW)

    # --------------------------------------------------
    # Management command
    # --------------------------------------------------

    def test_command_runs_for_tenant_slug(self):
        out = StringIO()
        call_command("run_dues", "--tenant", "acme", "--period", "2026-10", stdout=out)

        self.assertIn("created=2", out.getvalue())
        self.assertEqual(self._dues().count(), 2)

    def test_command_unknown_tenant(self):
        with self.assertRaises(CommandError):
            call_command("run_dues", "--tenant", "nope", stdout=StringIO())

    def test_command_bad_period(self):
        with self.assertRaises(CommandError):
            call_command("run_dues", "--tenant", "acme", "--period", "2026-99", stdout=StringIO())

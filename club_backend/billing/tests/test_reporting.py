# billing/tests/test_reporting.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone

from django.test import TestCase

from billing.models import Invoice
from billing.services.period_resolver import resolve_period
from billing.services.reporting import dues_summary, finance_summary, report_source
from billing.tests.helpers import (
    NOW,
    make_invoice,
    make_member,
    make_tenant,
    record_allocation,
)


class FinanceSummaryTests(TestCase):
    """
    GUARANTEES:
    - Buckets come from the computed status, not the stored column
    - Outstanding sums balances; collected and cancelled sum amounts
    - Only invoices issued inside the window are counted
    """

    def setUp(self):
        self.tenant = make_tenant("acme")
        self.ana = make_member(self.tenant, first_name="Ana")
        self.ben = make_member(self.tenant, first_name="Ben")
        due = NOW + timedelta(days=10)

        make_invoice(self.tenant, self.ana, amount_cents=10000, due_at=due)

        partial = make_invoice(self.tenant, self.ben, amount_cents=5000, due_at=due)
        record_allocation(partial, 2000)

        # stored ISSUED, fully allocated: reported as PAID
        event = make_invoice(
            self.tenant, self.ana, amount_cents=2500, source=Invoice.SOURCE_EVENT, due_at=due
        )
        record_allocation(event, 2500)

        donation = make_invoice(
            self.tenant, self.ben, amount_cents=1000, source=Invoice.SOURCE_DONATION
        )
        record_allocation(donation, 1000)

        make_invoice(
            self.tenant,
            self.ana,
            amount_cents=4000,
            source=Invoice.SOURCE_MANUAL,
            status=Invoice.STATUS_VOID,
        )

        # outside the year-to-date window
        make_invoice(
            self.tenant,
            self.ana,
            amount_cents=9900,
            now=datetime(2025, 6, 1, tzinfo=dt_timezone.utc),
        )

        other = make_tenant("other")
        make_invoice(other, make_member(other), amount_cents=7700)

    def _summary(self, **kwargs):
        period = resolve_period(kwargs.pop("preset", None), now=NOW, **kwargs)
        return finance_summary(self.tenant.id, period, now=NOW)

    def test_totals(self):
        summary = self._summary()

        self.assertEqual(
            summary["totals"],
            {
                "outstanding": {"count": 2, "total_cents": 13000},
                "collected": {"count": 2, "total_cents": 3500},
                "cancelled": {"count": 1, "total_cents": 4000},
            },
        )
        self.assertEqual(
            summary["by_status"],
            {"OUTSTANDING": 2, "PAID": 2, "CANCELLED": 1},
        )
        self.assertEqual(summary["currency"], "PHP")

    def test_by_source_folds_manual_into_other(self):
        by_source = self._summary()["by_source"]

        self.assertEqual(list(by_source), ["DUES", "EVENT", "DONATION", "OTHER"])
        self.assertEqual(by_source["DUES"], {"count": 2, "total_cents": 15000})
        self.assertEqual(by_source["EVENT"], {"count": 1, "total_cents": 2500})
        self.assertEqual(by_source["DONATION"], {"count": 1, "total_cents": 1000})
        self.assertEqual(by_source["OTHER"], {"count": 1, "total_cents": 4000})

    def test_range_is_reported(self):
        summary = self._summary()

        self.assertEqual(summary["range"]["type"], "YEAR_TO_DATE")
        self.assertTrue(summary["range"]["from"].startswith("2026-01-01T00:00:00"))

    def test_all_time_includes_older_invoices(self):
        summary = self._summary(preset="ALL_TIME")
        self.assertEqual(summary["totals"]["outstanding"]["count"], 3)

    def test_custom_range(self):
        summary = self._summary(date_from="2025-01-01", date_to="2025-12-31")

        self.assertEqual(summary["by_status"], {"OUTSTANDING": 1, "PAID": 0, "CANCELLED": 0})
        self.assertEqual(summary["totals"]["outstanding"]["total_cents"], 9900)

    def test_report_source_mapping(self):
        self.assertEqual(report_source(Invoice.SOURCE_MANUAL), "OTHER")
        self.assertEqual(report_source(Invoice.SOURCE_EVENT), "EVENT")
        self.assertEqual(report_source("SOMETHING_NEW"), "OTHER")


class DuesSummaryTests(TestCase):
    def setUp(self):
        self.tenant = make_tenant("acme")
        self.ana = make_member(self.tenant, first_name="Ana")
        self.ben = make_member(self.tenant, first_name="Ben")
        self.cora = make_member(self.tenant, first_name="Cora")

        def dues(member, key, label, **kwargs):
            return make_invoice(
                self.tenant,
                member,
                amount_cents=5000,
                dues_period_key=key,
                dues_label=label,
                **kwargs,
            )

        record_allocation(dues(self.ana, "2026-10", "October 2026"), 5000)
        dues(self.ben, "2026-10", "October 2026")
        record_allocation(dues(self.ana, "2026-09", "September 2026"), 1000)
        dues(self.cora, "2026-09", "September 2026", status=Invoice.STATUS_VOID)

    def test_rows_newest_first_without_cancelled(self):
        rows = dues_summary(self.tenant.id, now=NOW)

        self.assertEqual([r["period_key"] for r in rows], ["2026-10", "2026-09"])

        october, september = rows
        self.assertEqual(october["label"], "October 2026")
        self.assertEqual(october["total_count"], 2)
        self.assertEqual(october["paid_count"], 1)
        self.assertEqual(october["unpaid_count"], 1)
        self.assertEqual(october["amount_cents_total"], 10000)
        self.assertEqual(october["amount_cents_paid"], 5000)
        self.assertEqual(october["amount_cents_unpaid"], 5000)

        self.assertEqual(september["total_count"], 1)
        self.assertEqual(september["paid_count"], 0)
        self.assertEqual(september["amount_cents_paid"], 1000)
        self.assertEqual(september["amount_cents_unpaid"], 4000)

    def test_empty_tenant(self):
        self.assertEqual(dues_summary(make_tenant("empty").id, now=NOW), [])

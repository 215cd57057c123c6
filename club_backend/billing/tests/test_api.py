# billing/tests/test_api.py

"""
HTTP surface: routing, permissions, status codes and the error envelope.
Business rules are covered at the service level; these tests only prove
the wiring.
"""

from __future__ import annotations

import uuid
from datetime import timedelta

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from billing.models import Invoice, InvoiceAuditLog, Payment, PaymentMethod
from billing.tests.helpers import (
    VALID_CARD,
    make_event,
    make_invoice,
    make_member,
    make_membership_type,
    make_tenant,
    make_user,
    record_allocation,
    register,
)
from permissions.roles import CAP_BILLING_RUN_JOBS, Role


class BillingAPITestCase(APITestCase):
    def setUp(self):
        self.tenant = make_tenant("acme")
        self.ana = make_member(self.tenant, first_name="Ana", email="ana@example.com")
        self.ben = make_member(self.tenant, first_name="Ben")

        self.ana_user = make_user(self.tenant, member=self.ana, role=Role.MEMBER)
        self.admin_user = make_user(self.tenant, role=Role.ADMIN)
        self.officer_user = make_user(self.tenant, role=Role.OFFICER)

        self.client = APIClient()
        self.client.force_authenticate(user=self.ana_user)

    def login(self, user):
        self.client.force_authenticate(user=user)

    def assertError(self, response, http_status, code):
        self.assertEqual(response.status_code, http_status, response.content)
        body = response.json()
        self.assertEqual(body["error"]["code"], code)
        self.assertIn("message", body["error"])
        return body["error"]["details"]


class MemberInvoiceAPITests(BillingAPITestCase):
    def setUp(self):
        super().setUp()
        self.invoice = make_invoice(self.tenant, self.ana, amount_cents=8000)
        self.paid = make_invoice(self.tenant, self.ana, amount_cents=1000)
        record_allocation(self.paid, 1000)
        self.bens = make_invoice(self.tenant, self.ben, amount_cents=3000)

    # --------------------------------------------------
    # Read
    # --------------------------------------------------

    def test_list_only_own_invoices(self):
        response = self.client.get(reverse("billing:invoice-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual(body["count"], 2)
        ids = {row["invoice_id"] for row in body["results"]}
        self.assertEqual(ids, {str(self.invoice.id), str(self.paid.id)})

    def test_status_filter_uses_computed_status(self):
        response = self.client.get(reverse("billing:invoice-list"), {"status": "PAID"})

        rows = response.json()["results"]
        self.assertEqual([r["invoice_id"] for r in rows], [str(self.paid.id)])
        self.assertEqual(rows[0]["status"], Invoice.STATUS_PAID)
        self.assertEqual(rows[0]["balance"], 0)
        self.assertEqual(rows[0]["amount_paid"], 1000)

    def test_bad_status_filter(self):
        response = self.client.get(reverse("billing:invoice-list"), {"status": "LOST"})

        details = self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_FAILED")
        self.assertEqual(details, [{"field": "status", "issue": "invalid_choice"}])

    def test_detail_includes_payments(self):
        response = self.client.get(reverse("billing:invoice-detail", args=[self.paid.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual(body["amount"], 1000)
        self.assertEqual(len(body["payments"]), 1)

    def test_detail_of_other_member_forbidden(self):
        response = self.client.get(reverse("billing:invoice-detail", args=[self.bens.id]))
        self.assertError(response, status.HTTP_403_FORBIDDEN, "FORBIDDEN")

    def test_detail_of_other_tenant_not_found(self):
        other = make_tenant("other")
        foreign = make_invoice(other, make_member(other))

        response = self.client.get(reverse("billing:invoice-detail", args=[foreign.id]))
        self.assertError(response, status.HTTP_404_NOT_FOUND, "NOT_FOUND")

    def test_anonymous_rejected(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse("billing:invoice-list"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_user_without_tenant_rejected(self):
        self.login(make_user(None, role=Role.MEMBER))
        response = self.client.get(reverse("billing:invoice-list"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    # --------------------------------------------------
    # Pay
    # --------------------------------------------------

    def test_pay_then_replay(self):
        url = reverse("billing:invoice-pay", args=[self.invoice.id])
        payload = {"amount": 3000, "card": VALID_CARD}

        first = self.client.post(url, payload, format="json", HTTP_IDEMPOTENCY_KEY="abc-1")
        second = self.client.post(url, payload, format="json", HTTP_IDEMPOTENCY_KEY="abc-1")

        self.assertEqual(first.status_code, status.HTTP_201_CREATED, first.content)
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(first.json()["payment_id"], second.json()["payment_id"])
        self.assertFalse(first.json()["replayed"])
        self.assertTrue(second.json()["replayed"])
        self.assertEqual(first.json()["invoice_status"], Invoice.STATUS_PARTIALLY_PAID)
        self.assertEqual(first.json()["balance"], 5000)
        self.assertEqual(Payment.objects.filter(invoice=self.invoice).count(), 1)

    def test_pay_paid_invoice_conflicts(self):
        response = self.client.post(
            reverse("billing:invoice-pay", args=[self.paid.id]),
            {"card": VALID_CARD},
            format="json",
        )
        self.assertError(response, status.HTTP_409_CONFLICT, "CONFLICT")

    def test_pay_with_malformed_amount(self):
        response = self.client.post(
            reverse("billing:invoice-pay", args=[self.invoice.id]),
            {"amount": "lots", "card": VALID_CARD},
            format="json",
        )
        details = self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_FAILED")
        self.assertEqual(details, [{"field": "amount", "issue": "invalid"}])

    def test_pay_with_bad_card_lists_fields(self):
        response = self.client.post(
            reverse("billing:invoice-pay", args=[self.invoice.id]),
            {"card": {"number": "1234", "exp_month": "12", "exp_year": "2030", "cvc": "123"}},
            format="json",
        )
        details = self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_FAILED")
        self.assertEqual(details, [{"field": "card.number", "issue": "invalid"}])

    def test_partial_donation_is_unprocessable(self):
        donation = make_invoice(
            self.tenant, self.ana, amount_cents=5000, source=Invoice.SOURCE_DONATION
        )
        response = self.client.post(
            reverse("billing:invoice-pay", args=[donation.id]),
            {"amount": 100, "card": VALID_CARD},
            format="json",
        )
        self.assertError(
            response, status.HTTP_422_UNPROCESSABLE_ENTITY, "BUSINESS_RULE_VIOLATION"
        )

    def test_pay_someone_elses_invoice_forbidden(self):
        response = self.client.post(
            reverse("billing:invoice-pay", args=[self.bens.id]),
            {"card": VALID_CARD},
            format="json",
        )
        self.assertError(response, status.HTTP_403_FORBIDDEN, "FORBIDDEN")

    # --------------------------------------------------
    # PDF
    # --------------------------------------------------

    def test_pdf_download(self):
        response = self.client.get(reverse("billing:invoice-pdf", args=[self.invoice.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response["Content-Type"], "application/pdf")
        self.assertIn(f'filename="{self.invoice.id}.pdf"', response["Content-Disposition"])
        self.assertTrue(response.content.startswith(b"%PDF"))
        self.assertTrue(
            InvoiceAuditLog.objects.filter(
                invoice=self.invoice, action=InvoiceAuditLog.ACTION_PDF_DOWNLOADED
            ).exists()
        )


class PaymentMethodAPITests(BillingAPITestCase):
    def test_lifecycle(self):
        url = reverse("billing:payment-method-list")

        created = self.client.post(url, VALID_CARD, format="json")
        self.assertEqual(created.status_code, status.HTTP_201_CREATED, created.content)
        first_id = created.json()["id"]
        self.assertTrue(created.json()["is_default"])
        self.assertNotIn("number", created.json())

        second = self.client.post(
            url,
            {"number": "5555555555554444", "exp_month": "1", "exp_year": "2031", "cvc": "999"},
            format="json",
        )
        second_id = second.json()["id"]

        made_default = self.client.post(
            reverse("billing:payment-method-default", args=[second_id])
        )
        self.assertEqual(made_default.status_code, status.HTTP_200_OK)
        self.assertTrue(made_default.json()["is_default"])

        removed = self.client.delete(reverse("billing:payment-method-detail", args=[first_id]))
        self.assertEqual(removed.status_code, status.HTTP_200_OK)
        self.assertEqual(removed.json()["status"], PaymentMethod.STATUS_INACTIVE)

        listed = self.client.get(url).json()
        self.assertEqual([m["id"] for m in listed["results"]], [second_id])

    def test_invalid_card(self):
        response = self.client.post(
            reverse("billing:payment-method-list"), {"number": "42"}, format="json"
        )
        details = self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_FAILED")
        self.assertIn({"field": "number", "issue": "invalid"}, details)

    def test_unknown_method_not_found(self):
        response = self.client.delete(
            reverse("billing:payment-method-detail", args=[uuid.uuid4()])
        )
        self.assertError(response, status.HTTP_404_NOT_FOUND, "NOT_FOUND")


class AdminAPITests(BillingAPITestCase):
    def setUp(self):
        super().setUp()
        self.login(self.admin_user)

    def test_member_cannot_reach_admin_endpoints(self):
        self.login(self.ana_user)

        for url in (
            reverse("billing:admin-invoice-create"),
            reverse("billing:admin-dues-run"),
            reverse("billing:admin-reminders-run"),
        ):
            response = self.client.post(url, {}, format="json")
            self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN, url)

    def test_officer_cannot_run_jobs(self):
        self.login(self.officer_user)
        response = self.client.post(reverse("billing:admin-dues-run"), {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    # --------------------------------------------------
    # Single invoice
    # --------------------------------------------------

    def test_manual_invoice_lifecycle(self):
        created = self.client.post(
            reverse("billing:admin-invoice-create"),
            {"member_id": str(self.ana.id), "amount": 2500, "description": "Locker"},
            format="json",
        )
        self.assertEqual(created.status_code, status.HTTP_201_CREATED, created.content)
        invoice_id = created.json()["invoice_id"]
        self.assertEqual(created.json()["source"], Invoice.SOURCE_MANUAL)
        self.assertEqual(created.json()["balance"], 2500)

        listed = self.client.get(reverse("billing:invoice-list"), {"member_id": str(self.ana.id)})
        self.assertEqual(listed.json()["count"], 1)

        sent = self.client.post(reverse("billing:admin-invoice-send", args=[invoice_id]))
        self.assertEqual(sent.status_code, status.HTTP_200_OK)
        self.assertEqual(sent.json()["status"], "queued")

        paid = self.client.post(
            reverse("billing:admin-invoice-record-payment", args=[invoice_id]),
            {"amount": 1000, "reference": "CASH-7"},
            format="json",
        )
        self.assertEqual(paid.status_code, status.HTTP_201_CREATED, paid.content)
        self.assertEqual(paid.json()["reference"], "CASH-7")
        self.assertEqual(paid.json()["balance"], 1500)

        voided = self.client.post(
            reverse("billing:admin-invoice-void", args=[invoice_id]), {}, format="json"
        )
        self.assertError(voided, status.HTTP_409_CONFLICT, "CONFLICT")

        trail = self.client.get(reverse("billing:admin-invoice-audit", args=[invoice_id]))
        self.assertEqual(
            [row["action"] for row in trail.json()],
            ["created", "send_requested", "paid"],
        )

    def test_manual_invoice_validation(self):
        response = self.client.post(
            reverse("billing:admin-invoice-create"), {"amount": 10}, format="json"
        )
        details = self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_FAILED")
        self.assertEqual(details, [{"field": "member_id", "issue": "required"}])

    def test_void_unpaid_invoice(self):
        invoice = make_invoice(self.tenant, self.ben)

        response = self.client.post(
            reverse("billing:admin-invoice-void", args=[invoice.id]),
            {"reason": "Entered twice"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["status"], Invoice.STATUS_VOID)
        self.assertEqual(response.json()["reporting_status"], "CANCELLED")

    def test_audit_of_unknown_invoice(self):
        response = self.client.get(reverse("billing:admin-invoice-audit", args=[uuid.uuid4()]))
        self.assertError(response, status.HTTP_404_NOT_FOUND, "NOT_FOUND")

    def test_officer_reads_audit_trail(self):
        invoice = make_invoice(self.tenant, self.ben)
        self.login(self.officer_user)

        response = self.client.get(reverse("billing:admin-invoice-audit", args=[invoice.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    # --------------------------------------------------
    # Jobs
    # --------------------------------------------------

    def test_dues_run(self):
        gold = make_membership_type(self.tenant, price_cents=5000)
        self.ana.membership_type = gold
        self.ana.save(update_fields=["membership_type"])

        url = reverse("billing:admin-dues-run")
        first = self.client.post(url, {"period": "2026-10"}, format="json")
        second = self.client.post(url, {"period": "2026-10"}, format="json")

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(first.json()["period_key"], "2026-10")
        self.assertEqual(first.json()["created"], 1)
        self.assertEqual(first.json()["skipped_no_membership_type"], 1)
        self.assertEqual(second.json()["created"], 0)
        self.assertEqual(second.json()["skipped_existing"], 1)

    def test_dues_run_bad_period(self):
        response = self.client.post(
            reverse("billing:admin-dues-run"), {"period": "2026-13"}, format="json"
        )
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_FAILED")

    def test_event_invoicing(self):
        event = make_event(self.tenant, price_cents=2500)
        registration = register(event, self.ana)
        register(event, self.ben)

        batch = self.client.post(reverse("billing:admin-event-invoices", args=[event.id]))
        self.assertEqual(batch.status_code, status.HTTP_200_OK)
        self.assertEqual(batch.json()["created"], 2)

        single = self.client.post(
            reverse("billing:admin-registration-invoice", args=[registration.id])
        )
        self.assertEqual(single.status_code, status.HTTP_200_OK)
        self.assertEqual(single.json()["source"], Invoice.SOURCE_EVENT)

    def test_registration_invoice_created(self):
        event = make_event(self.tenant, price_cents=2500)
        registration = register(event, self.ana)

        response = self.client.post(
            reverse("billing:admin-registration-invoice", args=[registration.id])
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_free_event_is_unprocessable(self):
        event = make_event(self.tenant, price_cents=0)

        response = self.client.post(reverse("billing:admin-event-invoices", args=[event.id]))
        self.assertError(
            response, status.HTTP_422_UNPROCESSABLE_ENTITY, "BUSINESS_RULE_VIOLATION"
        )

    def test_reminders_run(self):
        overdue = make_invoice(
            self.tenant,
            self.ana,
            amount_cents=4000,
            due_at=timezone.now() - timedelta(days=1),
        )

        response = self.client.post(reverse("billing:admin-reminders-run"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["sent"], 1)
        self.assertEqual(response.json()["invoice_ids"], [str(overdue.id)])

    # --------------------------------------------------
    # Reports
    # --------------------------------------------------

    def test_finance_summary(self):
        make_invoice(self.tenant, self.ana, amount_cents=4000, now=timezone.now())
        self.login(self.officer_user)

        response = self.client.get(
            reverse("billing:admin-finance-summary"), {"period": "ALL_TIME"}
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual(body["range"]["type"], "ALL_TIME")
        self.assertEqual(body["totals"]["outstanding"], {"count": 1, "total_cents": 4000})

    def test_finance_summary_bad_period(self):
        response = self.client.get(reverse("billing:admin-finance-summary"), {"period": "DECADE"})

        details = self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_FAILED")
        self.assertEqual(details, [{"field": "period", "issue": "invalid"}])

    def test_finance_summary_half_custom_range(self):
        response = self.client.get(reverse("billing:admin-finance-summary"), {"from": "2026-01-01"})

        details = self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_FAILED")
        self.assertEqual(details, [{"field": "to", "issue": "required"}])

    def test_dues_summary(self):
        make_invoice(
            self.tenant, self.ana, amount_cents=5000, dues_period_key="2026-10", dues_label="October 2026"
        )

        response = self.client.get(reverse("billing:admin-dues-summary"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        periods = response.json()["periods"]
        self.assertEqual(len(periods), 1)
        self.assertEqual(periods[0]["unpaid_count"], 1)

    def test_member_cannot_read_reports(self):
        self.login(self.ana_user)
        response = self.client.get(reverse("billing:admin-finance-summary"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class MeAPITests(BillingAPITestCase):
    def test_me_lists_capabilities(self):
        response = self.client.get(reverse("users:me"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual(body["member_id"], str(self.ana.id))
        self.assertEqual(body["tenant_id"], str(self.tenant.id))
        self.assertIn("invoices.pay_own", body["capabilities"])
        self.assertNotIn(CAP_BILLING_RUN_JOBS, body["capabilities"])

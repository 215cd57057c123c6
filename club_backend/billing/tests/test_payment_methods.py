# billing/tests/test_payment_methods.py

from __future__ import annotations

import uuid

from django.db import IntegrityError, transaction
from django.test import TestCase

from billing.models import PaymentMethod
from billing.services.exceptions import Forbidden, NotFound, ValidationFailed
from billing.services.payment_methods import (
    deactivate_payment_method,
    list_payment_methods,
    save_payment_method,
    set_default_payment_method,
    validate_card,
)
from billing.services.principal import Principal
from billing.tests.helpers import VALID_CARD, make_member, make_tenant, member_principal
from permissions.roles import Role

MASTERCARD = {"number": "5555555555554444", "exp_month": "01", "exp_year": "2031", "cvc": "999"}


class PaymentMethodTests(TestCase):
    """
    GUARANTEES:
    - Card number and CVC are never stored
    - Exactly one default among a member's active methods
    - Members only ever touch their own methods
    """

    def setUp(self):
        self.tenant = make_tenant()
        self.member = make_member(self.tenant)
        self.principal = member_principal(self.member)

    def _defaults(self):
        return list(
            PaymentMethod.objects.filter(member_id=self.member.id, is_default=True).values_list(
                "id", flat=True
            )
        )

    # --------------------------------------------------
    # Save
    # --------------------------------------------------

    def test_first_method_becomes_default(self):
        method = save_payment_method(self.principal, VALID_CARD)

        self.assertTrue(method.is_default)
        self.assertEqual(method.last4, "4242")
        self.assertEqual(method.brand, "visa")
        self.assertTrue(method.token.startswith("pm_tok_"))

    def test_second_method_is_not_default(self):
        first = save_payment_method(self.principal, VALID_CARD)
        second = save_payment_method(self.principal, MASTERCARD)

        self.assertFalse(second.is_default)
        self.assertEqual(second.brand, "mastercard")
        self.assertEqual(self._defaults(), [first.id])

    def test_card_secrets_not_persisted(self):
        method = save_payment_method(self.principal, VALID_CARD)
        stored = PaymentMethod.objects.filter(pk=method.pk).values().get()
        self.assertNotIn(VALID_CARD["number"], [str(v) for v in stored.values()])
        self.assertNotIn("cvc", stored)

    def test_invalid_card_rejected(self):
        with self.assertRaises(ValidationFailed) as ctx:
            save_payment_method(self.principal, {"number": "4242", "exp_month": "0"})

        issues = {(d["field"], d["issue"]) for d in ctx.exception.details}
        self.assertEqual(
            issues,
            {
                ("number", "invalid"),
                ("exp_month", "invalid"),
                ("exp_year", "required"),
                ("cvc", "required"),
            },
        )
        self.assertFalse(PaymentMethod.objects.exists())

    def test_principal_without_member_is_forbidden(self):
        staff = Principal(tenant_id=self.tenant.id, roles=frozenset({Role.OFFICER}))
        with self.assertRaises(Forbidden):
            save_payment_method(staff, VALID_CARD)

    def test_default_singleton_enforced_by_database(self):
        save_payment_method(self.principal, VALID_CARD)

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                PaymentMethod.objects.create(
                    tenant=self.tenant,
                    member_id=self.member.id,
                    token="pm_tok_manual",
                    brand="visa",
                    last4="1111",
                    exp_month=1,
                    exp_year=2030,
                    is_default=True,
                )

    # --------------------------------------------------
    # Default / deactivate
    # --------------------------------------------------

    def test_set_default_moves_the_flag(self):
        first = save_payment_method(self.principal, VALID_CARD)
        second = save_payment_method(self.principal, MASTERCARD)

        set_default_payment_method(self.principal, second.id)

        self.assertEqual(self._defaults(), [second.id])
        first.refresh_from_db()
        self.assertFalse(first.is_default)

    def test_deactivating_default_promotes_latest_active(self):
        first = save_payment_method(self.principal, VALID_CARD)
        second = save_payment_method(self.principal, MASTERCARD)

        deactivate_payment_method(self.principal, first.id)

        first.refresh_from_db()
        self.assertEqual(first.status, PaymentMethod.STATUS_INACTIVE)
        self.assertFalse(first.is_default)
        self.assertEqual(self._defaults(), [second.id])
        self.assertEqual(list(list_payment_methods(self.principal)), [second])

    def test_deactivating_last_method_leaves_no_default(self):
        only = save_payment_method(self.principal, VALID_CARD)
        deactivate_payment_method(self.principal, only.id)
        self.assertEqual(self._defaults(), [])

    def test_other_members_method_is_not_found(self):
        other = make_member(self.tenant, first_name="Ben")
        theirs = save_payment_method(member_principal(other), VALID_CARD)

        with self.assertRaises(NotFound):
            set_default_payment_method(self.principal, theirs.id)
        with self.assertRaises(NotFound):
            deactivate_payment_method(self.principal, theirs.id)

    def test_unknown_method_is_not_found(self):
        with self.assertRaises(NotFound):
            set_default_payment_method(self.principal, uuid.uuid4())


class CardValidationTests(TestCase):
    def test_brand_inferred_from_number(self):
        self.assertEqual(validate_card(VALID_CARD).brand, "visa")
        self.assertEqual(validate_card(MASTERCARD).brand, "mastercard")

    def test_prefix_applied_to_fields(self):
        with self.assertRaises(ValidationFailed) as ctx:
            validate_card({}, field_prefix="card.")
        fields = {d["field"] for d in ctx.exception.details}
        self.assertEqual(fields, {"card.number", "card.exp_month", "card.exp_year", "card.cvc"})

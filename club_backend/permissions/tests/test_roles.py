# permissions/tests/test_roles.py

from types import SimpleNamespace

from django.test import SimpleTestCase

from permissions.roles import (
    ALL_CAPABILITIES,
    CAP_AUDIT_VIEW,
    CAP_BILLING_MANAGE_INVOICES,
    CAP_BILLING_RUN_JOBS,
    CAP_INVOICES_PAY_OWN,
    CAP_REPORTS_VIEW_FINANCE,
    HasAnyCapability,
    HasCapability,
    IsTenantPrincipal,
    Role,
    capabilities_for_roles,
    parse_role,
    roles_for_user,
)


def _user(role=None, *, superuser=False, tenant_id="t-1", authenticated=True):
    return SimpleNamespace(
        role=role,
        is_superuser=superuser,
        tenant_id=tenant_id,
        is_authenticated=authenticated,
    )


def _request(user):
    return SimpleNamespace(user=user)


class RoleMappingTests(SimpleTestCase):
    def test_parse_role(self):
        self.assertEqual(parse_role("admin"), Role.ADMIN)
        self.assertEqual(parse_role(" Officer "), Role.OFFICER)
        self.assertIsNone(parse_role("root"))
        self.assertIsNone(parse_role(None))

    def test_admin_has_everything(self):
        self.assertEqual(capabilities_for_roles([Role.ADMIN]), ALL_CAPABILITIES)

    def test_officer_reads_but_does_not_operate(self):
        caps = capabilities_for_roles([Role.OFFICER])

        self.assertIn(CAP_REPORTS_VIEW_FINANCE, caps)
        self.assertIn(CAP_AUDIT_VIEW, caps)
        self.assertNotIn(CAP_BILLING_MANAGE_INVOICES, caps)
        self.assertNotIn(CAP_BILLING_RUN_JOBS, caps)

    def test_member_and_guest(self):
        self.assertIn(CAP_INVOICES_PAY_OWN, capabilities_for_roles([Role.MEMBER]))
        self.assertEqual(capabilities_for_roles([Role.GUEST]), frozenset())

    def test_unknown_role_grants_nothing(self):
        self.assertEqual(capabilities_for_roles(["SUPERHERO"]), frozenset())

    def test_superuser_is_admin(self):
        roles = roles_for_user(_user(Role.MEMBER, superuser=True))
        self.assertEqual(roles, frozenset({Role.MEMBER, Role.ADMIN}))

    def test_anonymous_has_no_roles(self):
        self.assertEqual(roles_for_user(_user(Role.ADMIN, authenticated=False)), frozenset())


class CapabilityPermissionTests(SimpleTestCase):
    def test_has_capability(self):
        view = SimpleNamespace(required_capability=CAP_BILLING_RUN_JOBS)

        self.assertTrue(HasCapability().has_permission(_request(_user(Role.ADMIN)), view))
        self.assertFalse(HasCapability().has_permission(_request(_user(Role.OFFICER)), view))

    def test_missing_requirement_denies(self):
        view = SimpleNamespace()
        self.assertFalse(HasCapability().has_permission(_request(_user(Role.ADMIN)), view))
        self.assertFalse(HasAnyCapability().has_permission(_request(_user(Role.ADMIN)), view))

    def test_has_any_capability(self):
        view = SimpleNamespace(
            required_any_capabilities={CAP_AUDIT_VIEW, CAP_BILLING_MANAGE_INVOICES}
        )

        self.assertTrue(HasAnyCapability().has_permission(_request(_user(Role.OFFICER)), view))
        self.assertFalse(HasAnyCapability().has_permission(_request(_user(Role.MEMBER)), view))

    def test_tenant_required(self):
        view = SimpleNamespace()

        self.assertTrue(IsTenantPrincipal().has_permission(_request(_user(Role.MEMBER)), view))
        self.assertFalse(
            IsTenantPrincipal().has_permission(_request(_user(Role.MEMBER, tenant_id=None)), view)
        )

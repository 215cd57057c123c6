# billing/models/base.py

from django.db import models


class TenantScopedQuerySet(models.QuerySet):
    """
    Every ledger read starts here.

    RULE:
    - Services never query a ledger table without for_tenant(...).
    """

    def for_tenant(self, tenant_id):
        return self.filter(tenant_id=tenant_id)

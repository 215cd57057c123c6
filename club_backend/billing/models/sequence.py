# billing/models/sequence.py

from django.db import models


class InvoiceSequence(models.Model):
    """
    Per (tenant, year, type) invoice counter.

    Incremented only under select_for_update (billing.services.invoice_numbering);
    last_value never goes down.
    """

    tenant = models.ForeignKey(
        "clubs.Tenant",
        on_delete=models.CASCADE,
        related_name="invoice_sequences",
    )
    year = models.PositiveIntegerField()
    type_code = models.CharField(max_length=8)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "year", "type_code"],
                name="uniq_invoice_sequence",
            ),
        ]

    def __str__(self):
        return f"{self.tenant_id} {self.year}-{self.type_code}: {self.last_value}"

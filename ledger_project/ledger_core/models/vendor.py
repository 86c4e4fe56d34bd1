from django.db import models

from ..managers import TenantManager
from .tenant import Entity


class Vendor(models.Model):  # Mirrors Customer but for Accounts Payable (AP)

    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    contact_email = models.EmailField(null=True, blank=True)
    payment_terms_days = models.IntegerField(default=30)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [models.Index(fields=["entity", "name"], name="vend_entity_name_idx")]
        # Vendor names must be unique per entity
        constraints = [
            models.UniqueConstraint(
                fields=["entity", "name"], name="uq_entity_vendor_name"
            ),
        ]

    def __str__(self):
        return self.name

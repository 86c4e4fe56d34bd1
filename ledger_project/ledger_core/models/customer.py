from django.db import models

from ..managers import TenantManager
from .tenant import Entity


# ---------- Customer ----------
# Represents client who receives invoices (AR side)
class Customer(models.Model):
    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    # The customer’s legal or trade name
    name = models.CharField(max_length=200)
    # Optional contact for billing/communication
    contact_email = models.EmailField(null=True, blank=True)
    payment_terms_days = models.IntegerField(default=30)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [models.Index(fields=["entity", "name"], name="cust_entity_name_idx")]

    def __str__(self):
        return self.name

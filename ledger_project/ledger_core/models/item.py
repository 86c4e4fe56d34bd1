from django.core.exceptions import ValidationError
from django.db import models

from ..choices import ITEM_TYPES, PRODUCT
from ..managers import TenantManager
from .tenant import Entity


# ---------- Items (product/service) ----------
class Item(models.Model):  # Something an entity sells

    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    # Stock Keeping Unit (optional unique code per item)
    sku = models.CharField(max_length=80, null=True, blank=True)
    name = models.CharField(max_length=200)

    # Decides which revenue role an invoice line credits
    item_type = models.CharField(
        max_length=10, choices=ITEM_TYPES, default=PRODUCT)

    # When set, invoicing the item posts COGS / Inventory at cost_price
    track_inventory = models.BooleanField(default=False)
    # minor units per unit sold
    cost_price = models.BigIntegerField(default=0)
    sale_price = models.BigIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [models.Index(fields=["entity", "name"], name="item_entity_name_idx")]
        # Ensure each SKU is unique within an entity
        constraints = [
            models.UniqueConstraint(
                fields=["entity", "sku"], name="uq_entity_item_sku"
            ),
            models.CheckConstraint(
                condition=models.Q(cost_price__gte=0) &
                models.Q(sale_price__gte=0),
                name="item_non_negative_prices",
            ),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        if self.track_inventory and self.item_type != PRODUCT:
            raise ValidationError(
                "Only product items can track inventory.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)

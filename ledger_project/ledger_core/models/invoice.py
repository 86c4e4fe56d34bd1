from django.core.exceptions import ValidationError
from django.db import models

from ..choices import ITEM_TYPES, PRODUCT
from ..exceptions import InvalidStatusTransition
from ..managers import TenantManager
from .customer import Customer
from .item import Item
from .postable import PostableDocument
from .tenant import Entity

DRAFT = "draft"
SENT = "sent"
PARTIALLY_PAID = "partially_paid"
PAID = "paid"

INV_STATUS_CHOICES = [
    (DRAFT, "Draft"),
    (SENT, "Sent"),
    (PARTIALLY_PAID, "Partially paid"),
    (PAID, "Paid"),
]


class Invoice(PostableDocument):  # Represents a customer invoice

    JOURNAL_PREFIX = "INV"

    customer = models.ForeignKey(
        Customer,
        null=True,
        blank=True,
        # prevent deleting customer who has an invoice
        on_delete=models.PROTECT,
    )
    # human-readable (e.g. "INV-2025-001")
    invoice_number = models.CharField(max_length=64, null=True, blank=True)
    date = models.DateField()  # issue date
    due_date = models.DateField(null=True, blank=True)

    status = models.CharField(
        max_length=16, choices=INV_STATUS_CHOICES, default=DRAFT
    )
    """ Workflow:
        draft = not yet issued, nothing posted.
        sent = issued, revenue posted.
        partially_paid / paid = payments received. """

    # All amounts in minor units, recomputed from lines
    subtotal = models.BigIntegerField(default=0)
    tax_amount = models.BigIntegerField(default=0)
    total = models.BigIntegerField(default=0)
    amount_paid = models.BigIntegerField(default=0)
    description = models.TextField(blank=True, default="")

    class Meta:
        indexes = [
            models.Index(fields=["entity", "invoice_number"], name="inv_entity_number_idx"),
            models.Index(fields=["entity", "posting_status"], name="inv_entity_status_idx"),
        ]
        constraints = [
            # Within one entity, each invoice number must be unique
            models.UniqueConstraint(
                fields=["entity", "invoice_number"],
                name="uq_invoice_entity_number"
            ),
            models.CheckConstraint(
                condition=models.Q(amount_paid__lte=models.F("total")),
                name="invoice_not_overpaid",
            ),
        ]

    def __str__(self):
        # If no invoice number, fall back to database ID
        return f"Inv {self.invoice_number or self.pk}"

    @property
    def outstanding_amount(self):
        return self.total - self.amount_paid

    @property
    def posting_amount(self):
        return self.total

    def recalc_totals(self):
        """Ensure stored totals are in sync with the lines"""
        if not self.pk:
            self.subtotal = self.tax_amount = self.total = 0
            return
        lines = list(self.lines.all())
        self.subtotal = sum(line.line_total for line in lines)
        self.tax_amount = sum(line.tax_amount for line in lines)
        self.total = self.subtotal + self.tax_amount

    def clean(self):
        if self.customer_id and self.customer.entity_id != self.entity_id:
            raise ValidationError("Customer must belong to the same entity.")
        if self.amount_paid < 0:
            raise ValidationError("Amount paid cannot be negative.")

    def save(self, *args, **kwargs):
        self.full_clean()  # will trigger clean()
        return super().save(*args, **kwargs)

    def transition_to(self, new_status):
        # Current state vs. allowed next states
        allowed = {
            DRAFT: [SENT],
            SENT: [PARTIALLY_PAID, PAID],
            PARTIALLY_PAID: [PAID],
            PAID: [],
        }
        if new_status not in allowed.get(self.status, []):
            raise InvalidStatusTransition(
                f"Cannot go from {self.status} to {new_status}")
        self.status = new_status


class InvoiceLine(models.Model):  # product/service sold on the invoice

    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="lines")

    # Optionally linked to a predefined Item,
    # or just free-text description if it’s a custom line
    item = models.ForeignKey(
        Item,
        null=True,
        blank=True,
        # Prevent deleting item which has been invoiced
        on_delete=models.PROTECT,
    )
    description = models.TextField(blank=True, default="")
    # Decides product vs service revenue; follows the item when one is set
    line_type = models.CharField(
        max_length=10, choices=ITEM_TYPES, default=PRODUCT)

    # quantity × unit_price = line_total (net); tax arrives pre-computed
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.BigIntegerField(default=0)
    tax_amount = models.BigIntegerField(default=0)
    line_total = models.BigIntegerField(default=0)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["entity", "invoice"], name="invl_entity_invoice_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(unit_price__gte=0) &
                models.Q(tax_amount__gte=0),
                name="invl_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"Invoice: {self.invoice_id} - Item: {self.item} - Total: {self.line_total}"

    def clean(self):
        if self.unit_price is not None and self.unit_price < 0:
            raise ValidationError("Unit price must be >= 0")
        if self.tax_amount is not None and self.tax_amount < 0:
            raise ValidationError("Tax amount must be >= 0")
        if self.invoice_id and self.invoice.entity_id != self.entity_id:
            raise ValidationError(
                "InvoiceLine.entity must match Invoice.entity")
        if self.item_id and self.item.entity_id != self.entity_id:
            raise ValidationError("InvoiceLine.entity must match Item.entity")

    def save(self, *args, **kwargs):
        # copy entity from the invoice when not given
        if not self.entity_id and self.invoice_id:
            self.entity_id = self.invoice.entity_id
        if self.item_id:
            self.line_type = self.item.item_type
        # compute line_total always
        self.line_total = (self.quantity or 0) * (self.unit_price or 0)
        self.full_clean()
        return super().save(*args, **kwargs)

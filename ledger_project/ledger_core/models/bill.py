from django.core.exceptions import ValidationError
from django.db import models

from ..exceptions import InvalidStatusTransition
from ..managers import TenantManager
from .account import Account
from .postable import PostableDocument
from .tenant import Entity
from .vendor import Vendor

DRAFT = "draft"
UNPAID = "unpaid"
PARTIALLY_PAID = "partially_paid"
PAID = "paid"

BILL_STATUS_CHOICES = [
    (DRAFT, "Draft"),
    (UNPAID, "Unpaid"),
    (PARTIALLY_PAID, "Partially paid"),
    (PAID, "Paid"),
]


class Bill(PostableDocument):  # Represents a supplier bill (AP side)

    JOURNAL_PREFIX = "BILL"

    vendor = models.ForeignKey(
        Vendor,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
    )
    bill_number = models.CharField(max_length=64, null=True, blank=True)
    date = models.DateField()
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(
        max_length=16, choices=BILL_STATUS_CHOICES, default=DRAFT
    )  # marking a bill unpaid is what posts it

    subtotal = models.BigIntegerField(default=0)
    tax_amount = models.BigIntegerField(default=0)
    total = models.BigIntegerField(default=0)
    amount_paid = models.BigIntegerField(default=0)
    description = models.TextField(blank=True, default="")

    class Meta:
        indexes = [
            models.Index(fields=["entity", "bill_number"], name="bill_entity_number_idx"),
            models.Index(fields=["entity", "posting_status"], name="bill_entity_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["entity", "bill_number"],
                name="uq_bill_entity_number"
            ),
            models.CheckConstraint(
                condition=models.Q(amount_paid__lte=models.F("total")),
                name="bill_not_overpaid",
            ),
        ]

    def __str__(self):
        return f"Bill {self.bill_number or self.pk}"

    @property
    def outstanding_amount(self):
        return self.total - self.amount_paid

    @property
    def posting_amount(self):
        return self.total

    def recalc_totals(self):
        if not self.pk:
            self.subtotal = self.tax_amount = self.total = 0
            return
        lines = list(self.lines.all())
        self.subtotal = sum(line.amount for line in lines)
        self.tax_amount = sum(line.tax_amount for line in lines)
        self.total = self.subtotal + self.tax_amount

    def clean(self):
        if self.vendor_id and self.vendor.entity_id != self.entity_id:
            raise ValidationError("Vendor must belong to the same entity.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)

    def transition_to(self, new_status):
        allowed = {
            DRAFT: [UNPAID],
            UNPAID: [PARTIALLY_PAID, PAID],
            PARTIALLY_PAID: [PAID],
            PAID: [],
        }
        if new_status not in allowed.get(self.status, []):
            raise InvalidStatusTransition(
                f"Cannot go from {self.status} to {new_status}")
        self.status = new_status


class BillLine(models.Model):
    """One expense line; several lines may hit the same expense account"""

    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    bill = models.ForeignKey(
        Bill, on_delete=models.CASCADE, related_name="lines")
    expense_account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="bill_lines",
    )
    description = models.TextField(blank=True, default="")
    # net amount, tax arrives pre-computed
    amount = models.BigIntegerField(default=0)
    tax_amount = models.BigIntegerField(default=0)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["entity", "bill"], name="billl_entity_bill_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0) &
                models.Q(tax_amount__gte=0),
                name="billl_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"Bill: {self.bill_id} - {self.expense_account} - {self.amount}"

    def clean(self):
        if self.bill_id and self.bill.entity_id != self.entity_id:
            raise ValidationError("BillLine.entity must match Bill.entity")
        if (
            self.expense_account_id
            and self.expense_account.entity_id != self.entity_id
        ):
            raise ValidationError(
                "BillLine.entity must match Account.entity")

    def save(self, *args, **kwargs):
        if not self.entity_id and self.bill_id:
            self.entity_id = self.bill.entity_id
        self.full_clean()
        return super().save(*args, **kwargs)

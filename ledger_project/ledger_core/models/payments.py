from django.core.exceptions import ValidationError
from django.db import models

from ..choices import ITEM_TYPES, SERVICE
from .account import Account
from .bill import Bill
from .customer import Customer
from .invoice import Invoice
from .postable import PostableDocument
from .vendor import Vendor


def _same_entity(document, *fields):
    """Every linked row must belong to the document's entity"""
    for field in fields:
        related = getattr(document, field, None)
        if related is not None and related.entity_id != document.entity_id:
            raise ValidationError(
                f"{field} must belong to the same entity.")


# ---------- Money in ----------
class PaymentReceived(PostableDocument):
    """Customer payment against an invoice: Dr cash, Cr AR"""

    JOURNAL_PREFIX = "PAY-RECV"

    invoice = models.ForeignKey(
        Invoice, on_delete=models.PROTECT, related_name="payments")
    # Bank/cash ledger account receiving the money
    cash_account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="+")
    amount = models.BigIntegerField()
    date = models.DateField()
    reference = models.CharField(max_length=200, blank=True, default="")

    class Meta:
        indexes = [
            models.Index(fields=["entity", "posting_status"], name="payrecv_entity_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payrecv_positive_amount",
            ),
        ]

    def __str__(self):
        return f"Payment {self.pk} on Inv {self.invoice_id} ({self.amount})"

    @property
    def posting_amount(self):
        return self.amount

    def clean(self):
        _same_entity(self, "invoice", "cash_account")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class Receipt(PostableDocument):
    """Cash sale with no invoice: Dr cash, Cr revenue + tax"""

    JOURNAL_PREFIX = "RCPT"

    customer = models.ForeignKey(
        Customer, null=True, blank=True, on_delete=models.PROTECT)
    cash_account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="+")
    # product or service revenue
    revenue_type = models.CharField(
        max_length=10, choices=ITEM_TYPES, default=SERVICE)
    date = models.DateField()
    net_amount = models.BigIntegerField()
    tax_amount = models.BigIntegerField(default=0)
    total = models.BigIntegerField()
    description = models.TextField(blank=True, default="")

    class Meta:
        indexes = [
            models.Index(fields=["entity", "posting_status"], name="rcpt_entity_status_idx"),
        ]

    def __str__(self):
        return f"Receipt {self.pk} ({self.total})"

    @property
    def posting_amount(self):
        return self.total

    def clean(self):
        _same_entity(self, "customer", "cash_account")
        if self.net_amount is not None and self.net_amount <= 0:
            raise ValidationError("Receipt net amount must be positive.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Money out ----------
class PaymentMade(PostableDocument):
    """Payment of a vendor bill: Dr AP, Cr cash"""

    JOURNAL_PREFIX = "PAY-BILL"

    bill = models.ForeignKey(
        Bill, on_delete=models.PROTECT, related_name="payments")
    cash_account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="+")
    amount = models.BigIntegerField()
    date = models.DateField()
    reference = models.CharField(max_length=200, blank=True, default="")

    class Meta:
        verbose_name_plural = "payments made"
        indexes = [
            models.Index(fields=["entity", "posting_status"], name="paymade_entity_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="paymade_positive_amount",
            ),
        ]

    def __str__(self):
        return f"Payment {self.pk} on Bill {self.bill_id} ({self.amount})"

    @property
    def posting_amount(self):
        return self.amount

    def clean(self):
        _same_entity(self, "bill", "cash_account")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class Expense(PostableDocument):
    """Direct expense paid on the spot: Dr expense + input tax, Cr cash"""

    JOURNAL_PREFIX = "EXP"

    vendor = models.ForeignKey(
        Vendor, null=True, blank=True, on_delete=models.PROTECT)
    expense_account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="+")
    cash_account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="+")
    date = models.DateField()
    net_amount = models.BigIntegerField()
    tax_amount = models.BigIntegerField(default=0)
    total = models.BigIntegerField()
    description = models.TextField(blank=True, default="")

    class Meta:
        indexes = [
            models.Index(fields=["entity", "posting_status"], name="exp_entity_status_idx"),
        ]

    def __str__(self):
        return f"Expense {self.pk} ({self.total})"

    @property
    def posting_amount(self):
        return self.total

    def clean(self):
        _same_entity(self, "vendor", "expense_account", "cash_account")
        if self.net_amount is not None and self.net_amount <= 0:
            raise ValidationError("Expense net amount must be positive.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

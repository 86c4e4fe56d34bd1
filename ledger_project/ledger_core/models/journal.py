from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..choices import PENDING, POSTING_STATUS, TRANSACTION_TYPES
from ..managers import TenantManager
from .account import Account
from .tenant import Entity


# ---------- Journal (one balanced posting event) ----------
class Journal(models.Model):
    """
    Immutable record of one posting. Corrections are new journals.
    `lines` keeps the posted lines as written:
        [{"account_id": 7, "debit": 1100, "credit": 0, "description": "..."}]
    """

    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    date = models.DateField()
    # "{PREFIX}-{document id}", e.g. "INV-42"
    reference = models.CharField(max_length=64)
    description = models.TextField(blank=True, default="")
    lines = models.JSONField(default=list)
    total_debit = models.BigIntegerField(default=0)
    total_credit = models.BigIntegerField(default=0)

    # optional polymorphic source info (invoice, bill, payment ...)
    source_type = models.CharField(max_length=50, blank=True, default="")
    source_id = models.BigIntegerField(null=True, blank=True)
    posted_at = models.DateTimeField(default=timezone.now)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["entity", "date"], name="jrnl_entity_date_idx"),
            models.Index(
                fields=["entity", "source_type", "source_id"],
                name="jrnl_entity_source_idx",
            ),
        ]
        constraints = [
            # A document posts once: its reference is unique per entity
            models.UniqueConstraint(
                fields=["entity", "reference"], name="uq_journal_entity_ref"
            ),
            models.CheckConstraint(
                condition=models.Q(total_debit=models.F("total_credit")),
                name="journal_balanced_totals",
            ),
        ]

    def __str__(self):
        return f"{self.reference} {self.date} D:{self.total_debit} C:{self.total_credit}"

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValidationError("Journals are immutable once written.")
        return super().save(*args, **kwargs)


class AccountTransaction(models.Model):
    """
    One row per journal line, denormalised for querying.
    running_balance is the account balance right after this line applied.
    """

    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    # can’t delete an account or journal once lines exist
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    journal = models.ForeignKey(
        Journal,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    date = models.DateField()
    description = models.CharField(max_length=400, blank=True, default="")
    reference = models.CharField(max_length=64, blank=True, default="")
    type = models.CharField(max_length=32, choices=TRANSACTION_TYPES)
    status = models.CharField(
        max_length=12, choices=POSTING_STATUS, default=PENDING)
    debit_amount = models.BigIntegerField(default=0)
    credit_amount = models.BigIntegerField(default=0)
    running_balance = models.BigIntegerField(default=0)

    # Link back to the business object that caused it
    related_entity_type = models.CharField(
        max_length=50, blank=True, default="")
    related_entity_id = models.BigIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["entity", "account"], name="atx_entity_account_idx"),
            models.Index(fields=["entity", "journal"], name="atx_entity_journal_idx"),
            models.Index(
                fields=["related_entity_type", "related_entity_id"],
                name="atx_related_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(debit_amount__gte=0) &
                    models.Q(credit_amount__gte=0)
                ),
                name="atx_non_negative_amounts",
            ),
            # exactly one side carries the amount
            models.CheckConstraint(
                condition=(
                    (models.Q(debit_amount=0) & models.Q(credit_amount__gt=0)) |
                    (models.Q(credit_amount=0) & models.Q(debit_amount__gt=0))
                ),
                name="atx_debit_xor_credit",
            ),
        ]

    def __str__(self):
        return (
            f"{self.reference} | {self.account.code} | "
            f"D:{self.debit_amount} C:{self.credit_amount} = {self.running_balance}"
        )

from django.db import models

from ..exceptions import FinalizedRecordError
from ..managers import TenantManager
from .account import Account
from .tenant import Entity

DRAFT = "Draft"
FINALIZED = "Finalized"
OB_STATUS_CHOICES = [
    (DRAFT, "Draft"),
    (FINALIZED, "Finalized"),
]

MONTHLY = "monthly"
QUARTERLY = "quarterly"
YEARLY = "yearly"
PERIOD_TYPES = [
    (MONTHLY, "Monthly"),
    (QUARTERLY, "Quarterly"),
    (YEARLY, "Yearly"),
]


# ---------- Opening balance ----------
class OpeningBalance(models.Model):
    """
    Descriptive record of the balances an entity starts from.
    Items are not rolled into Account.balance and create no transactions.
    """

    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    date = models.DateField()
    fiscal_year = models.IntegerField(null=True, blank=True)
    note = models.TextField(blank=True, default="")
    status = models.CharField(
        max_length=10, choices=OB_STATUS_CHOICES, default=DRAFT)
    total_debit = models.BigIntegerField(default=0)
    total_credit = models.BigIntegerField(default=0)
    # total_credit - total_debit
    difference = models.BigIntegerField(default=0)
    finalized_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [models.Index(fields=["entity", "date"], name="ob_entity_date_idx")]

    def __str__(self):
        return f"Opening balance {self.date} [{self.status}]"

    @property
    def is_finalized(self):
        return self.status == FINALIZED

    def recalc_totals(self):
        items = list(self.items.all())
        self.total_debit = sum(item.debit for item in items)
        self.total_credit = sum(item.credit for item in items)
        self.difference = self.total_credit - self.total_debit

    def save(self, *args, **kwargs):
        # finalizing is one-way: once stored as Finalized the row is frozen
        if self.pk:
            stored = (
                OpeningBalance.objects.filter(pk=self.pk)
                .values_list("status", flat=True)
                .first()
            )
            if stored == FINALIZED:
                raise FinalizedRecordError(
                    f"Opening balance {self.pk} is finalized and cannot change."
                )
        self.full_clean()
        return super().save(*args, **kwargs)


class OpeningBalanceItem(models.Model):
    opening_balance = models.ForeignKey(
        OpeningBalance, on_delete=models.CASCADE, related_name="items")
    account = models.ForeignKey(Account, on_delete=models.PROTECT)
    debit = models.BigIntegerField(default=0)
    credit = models.BigIntegerField(default=0)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="obi_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"{self.account.code} D:{self.debit} C:{self.credit}"


# ---------- Budget ----------
class Budget(models.Model):
    """One planned amount for one account in one period"""

    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    period_type = models.CharField(max_length=10, choices=PERIOD_TYPES)
    # 1-12, only meaningful for monthly budgets
    month = models.PositiveSmallIntegerField(null=True, blank=True)
    fiscal_year = models.IntegerField()
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="budgets")
    amount = models.BigIntegerField(default=0)
    note = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["entity", "fiscal_year"], name="budget_entity_year_idx"),
            models.Index(fields=["entity", "account"], name="budget_entity_account_idx"),
        ]

    def __str__(self):
        return f"{self.name} {self.fiscal_year} {self.account.code}: {self.amount}"

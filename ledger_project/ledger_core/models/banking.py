from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .account import Account
from .tenant import Entity


# ---------- Banking ----------
class BankAccount(models.Model):  # Represents bank account an entity maintains
    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    name = models.CharField(
        max_length=200
    )  # e.g. "Checking Account", "Savings Account"
    bank_name = models.CharField(max_length=200, blank=True, default="")
    # Partial account number for display/security
    account_number_masked = models.CharField(
        max_length=50, blank=True, default="")
    currency_code = models.CharField(max_length=10, default="USD")

    # Ledger account under 1110 Cash and Cash Equivalents,
    # created together with the bank account
    ledger_account = models.OneToOneField(
        Account,
        on_delete=models.PROTECT,
        related_name="bank_account",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        # An entity cannot have two bank accounts with the same name
        constraints = [
            models.UniqueConstraint(
                fields=["entity", "name"], name="uq_entity_bankaccount_name"
            ),
        ]

    def __str__(self):
        # Show name + masked number for clarity
        if self.account_number_masked:
            return f"{self.name} ({self.account_number_masked})"
        return self.name

    def clean(self):
        if self.ledger_account_id and self.ledger_account.entity_id != self.entity_id:
            raise ValidationError(
                "Ledger account must belong to the same entity.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)

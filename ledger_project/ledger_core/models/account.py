from django.core.exceptions import ValidationError
from django.db import models

from ..choices import DEBIT, NORMAL_BALANCE, ROLE_CHOICES
from ..managers import TenantManager
from .chart import AccountSubCategory
from .tenant import Entity


class Account(models.Model):
    """
    Actual ledger account in the Chart of Accounts.
    - code is unique per entity, usually "{subcategory code}-{suffix}"
    - normal_balance is copied from the account type at creation,
      posting never walks Account -> SubCategory -> Category -> Type
    - balance is in minor units and only moves through posting
    """

    # Each account belongs to one entity
    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    sub_category = models.ForeignKey(
        AccountSubCategory,
        on_delete=models.PROTECT,
        related_name="accounts",
    )
    # e.g. "1120-01"
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")

    # Running total of every Success AccountTransaction, signed per normal_balance
    balance = models.BigIntegerField(default=0)
    normal_balance = models.CharField(
        max_length=6,
        choices=NORMAL_BALANCE,
        default=DEBIT,
    )
    # “soft deactivate” accounts (stop new postings) without deleting history
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["entity", "code"], name="acct_entity_code_idx"),
            models.Index(fields=["entity", "sub_category"], name="acct_entity_sub_idx"),
        ]
        """ Each entity has its own accounts.
               Codes repeat across entities but must be unique within one. """
        constraints = [
            models.UniqueConstraint(
                fields=["entity", "code"], name="uq_entity_account_code"
            )
        ]

    def __str__(self):
        return f"{self.code} {self.name}"

    def clean(self):
        """Sub category must come from the entity's own group chart"""
        if (
            self.sub_category_id
            and self.entity_id
            and self.sub_category.category.group_id != self.entity.group_id
        ):
            raise ValidationError(
                "Account sub category must belong to the entity's group."
            )

    def save(self, *args, **kwargs):
        """Balance is only moved by posting (atomic UPDATE), never by save()"""
        if self.pk:
            stored = (
                Account.objects.filter(pk=self.pk)
                .values_list("balance", flat=True)
                .first()
            )
            if stored is not None and stored != self.balance:
                raise ValidationError(
                    "Account balance can only change through posting."
                )
        self.full_clean()
        return super().save(*args, **kwargs)


class ChartRoleBinding(models.Model):
    """Entity role (AR, AP, Tax Payable ...) -> the account that plays it"""

    entity = models.ForeignKey(
        Entity,
        on_delete=models.CASCADE,
        related_name="role_bindings",
    )
    role = models.CharField(max_length=32, choices=ROLE_CHOICES)
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="role_bindings",
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        # one account per role per entity
        constraints = [
            models.UniqueConstraint(
                fields=["entity", "role"], name="uq_entity_role_binding"
            ),
        ]

    def __str__(self):
        return f"{self.entity_id}:{self.role} -> {self.account.code}"

    def clean(self):
        if self.account_id and self.account.entity_id != self.entity_id:
            raise ValidationError(
                "Bound account must belong to the same entity.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)

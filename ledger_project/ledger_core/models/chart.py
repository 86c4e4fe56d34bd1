from django.core.exceptions import ValidationError
from django.db import models

from ..choices import NORMAL_BALANCE
from ..managers import TenantManager
from .tenant import Group

# Band sizes of the code hierarchy
TYPE_STEP = 1000
CATEGORY_STEP = 100
SUBCATEGORY_STEP = 10


def _in_band(code, parent_code, step, band):
    """True when code = parent + n*step with 1 <= n and code < parent + band"""
    if not (code or "").isdigit():
        return False
    value, parent = int(code), int(parent_code)
    return (
        parent + step <= value < parent + band
        and (value - parent) % step == 0
    )


# ---------- Chart of Accounts ----------
class AccountType(models.Model):
    """
    Fixed, system-wide taxonomy:
    1000 Assets, 2000 Liabilities, 3000 Equity, 4000 Revenue, 5000 Expenses.
    Exactly one type per 1000-band.
    """

    code = models.CharField(max_length=4, unique=True)
    name = models.CharField(max_length=100)
    # Assets/Expenses -> debit, Liabilities/Equity/Revenue -> credit
    normal_balance = models.CharField(max_length=6, choices=NORMAL_BALANCE)

    class Meta:
        ordering = ["code"]

    def __str__(self):
        return f"{self.code} {self.name}"

    def clean(self):
        code = self.code or ""
        if len(code) != 4 or not code.isdigit() or int(code) % TYPE_STEP:
            raise ValidationError(
                "Account type code must be a 4-digit multiple of 1000.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class AccountCategory(models.Model):
    # each group has its own set of categories (multi-tenant safe)
    group = models.ForeignKey(Group, on_delete=models.CASCADE)
    account_type = models.ForeignKey(
        AccountType,
        on_delete=models.PROTECT,
        related_name="categories",
    )
    # type.code + n*100, e.g. "1100" Current Assets
    code = models.CharField(max_length=4)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, default="")

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ["code"]
        # Codes repeat across groups but must be unique within one
        constraints = [
            models.UniqueConstraint(
                fields=["group", "code"], name="uq_group_category_code"
            ),
        ]

    def __str__(self):
        return f"{self.code} {self.name}"

    def clean(self):
        if self.account_type_id and not _in_band(
            self.code, self.account_type.code, CATEGORY_STEP, TYPE_STEP
        ):
            raise ValidationError(
                f"Category code {self.code} is outside the band of "
                f"type {self.account_type.code}."
            )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class AccountSubCategory(models.Model):
    category = models.ForeignKey(
        AccountCategory,
        on_delete=models.CASCADE,
        related_name="subcategories",
    )
    # category.code + n*10, e.g. "1110" Cash and Cash Equivalents
    code = models.CharField(max_length=4)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["code"]
        verbose_name_plural = "account subcategories"
        constraints = [
            models.UniqueConstraint(
                fields=["category", "code"], name="uq_category_subcategory_code"
            ),
        ]

    def __str__(self):
        return f"{self.code} {self.name}"

    @property
    def normal_balance(self):
        return self.category.account_type.normal_balance

    def clean(self):
        if self.category_id and not _in_band(
            self.code, self.category.code, SUBCATEGORY_STEP, CATEGORY_STEP
        ):
            raise ValidationError(
                f"Subcategory code {self.code} is outside the band of "
                f"category {self.category.code}."
            )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

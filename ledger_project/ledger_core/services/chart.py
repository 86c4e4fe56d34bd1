import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from ..choices import CREDIT, DEBIT, ROLE_LABELS
from ..exceptions import (AccountOwnershipError, CodeConflictError,
                          MissingAccountConfiguration, NotFoundError)
from ..models import (Account, AccountCategory, AccountSubCategory,
                      AccountType, BankAccount, ChartRoleBinding)
from ..models.chart import CATEGORY_STEP, SUBCATEGORY_STEP, TYPE_STEP
from .audit_helper import log_action
from .rules import ChartRoleBindings

logger = logging.getLogger(__name__)

# Bank accounts get their ledger account under this subcategory
BANK_SUBCATEGORY_CODE = "1110"

ACCOUNT_TYPES = [
    ("1000", "Assets", DEBIT),
    ("2000", "Liabilities", CREDIT),
    ("3000", "Equity", CREDIT),
    ("4000", "Revenue", CREDIT),
    ("5000", "Expenses", DEBIT),
]

# type code -> [(category code, name, [(subcategory code, name), ...]), ...]
DEFAULT_CHART = {
    "1000": [
        ("1100", "Current Assets", [
            ("1110", "Cash and Cash Equivalents"),
            ("1120", "Accounts Receivable"),
            ("1130", "Inventory"),
            ("1140", "Prepaid Expenses"),
            ("1150", "Short-term Investments"),
        ]),
        ("1200", "Fixed Assets", [
            ("1210", "Property, Plant & Equipment"),
            ("1220", "Machinery & Equipment"),
            ("1230", "Vehicles"),
            ("1240", "Furniture & Fixtures"),
            ("1250", "Accumulated Depreciation"),
        ]),
        ("1300", "Intangible Assets", [
            ("1310", "Goodwill"),
            ("1320", "Patents & Trademarks"),
            ("1330", "Software & Licenses"),
        ]),
    ],
    "2000": [
        ("2100", "Current Liabilities", [
            ("2110", "Accounts Payable"),
            ("2120", "Wages Payable"),
            ("2130", "Short-term Debt"),
            ("2140", "Income Tax Payable"),
            ("2150", "Deferred Revenue"),
        ]),
        ("2200", "Long-term Liabilities", [
            ("2210", "Long-term Debt"),
            ("2220", "Bonds Payable"),
            ("2230", "Deferred Tax Liabilities"),
        ]),
    ],
    "3000": [
        ("3100", "Shareholders Equity", [
            ("3110", "Capital Stock"),
            ("3120", "Retained Earnings"),
            ("3130", "Dividends"),
        ]),
    ],
    "4000": [
        ("4100", "Operating Revenue", [
            ("4110", "Product Sales Revenue"),
            ("4120", "Service Revenue"),
            ("4130", "Rental Income"),
        ]),
        ("4200", "Other Income", [
            ("4210", "Interest Income"),
            ("4220", "Gain on Sale of Assets"),
            ("4230", "Miscellaneous Income"),
        ]),
    ],
    "5000": [
        ("5100", "Cost of Goods Sold", [
            ("5110", "Cost of Goods Sold"),
            ("5120", "Direct Labor"),
            ("5130", "Manufacturing Overhead"),
        ]),
        ("5200", "Operating Expenses", [
            ("5210", "Salaries & Wages"),
            ("5220", "Rent Expense"),
            ("5230", "Utilities"),
            ("5240", "Office Supplies"),
            ("5250", "Marketing & Advertising"),
            ("5260", "Depreciation Expense"),
            ("5270", "Insurance Expense"),
        ]),
        ("5300", "Other Expenses", [
            ("5310", "Interest Expense"),
            ("5320", "Loss on Sale of Assets"),
            ("5330", "Taxes & Licenses"),
        ]),
    ],
}


# ----------------------------
# Code generation
# ----------------------------
def next_code(base, step, band, sibling_codes):
    """
    Next code under a parent: max sibling in [base, base+band) plus step,
    or base+step when there is no sibling yet. Codes are compared as
    numbers and returned zero-padded to the parent's width.

    next_code("1000", 100, 1000, ["1100", "1200"]) -> "1300"
    """
    base_value = int(base)
    width = len(str(base))
    in_band = [
        int(code)
        for code in sibling_codes
        if str(code).isdigit() and base_value <= int(code) < base_value + band
    ]
    candidate = (max(in_band) if in_band else base_value) + step
    if candidate >= base_value + band:
        raise CodeConflictError(
            f"No codes left under {base}: band of {band} is exhausted"
        )
    return str(candidate).zfill(width)


def _check_supplied_code(code, parent_code, step, band):
    if not str(code).isdigit():
        raise CodeConflictError(f"Code {code} is not numeric")
    value, parent = int(code), int(parent_code)
    if not (parent + step <= value < parent + band) or (value - parent) % step:
        raise CodeConflictError(
            f"Code {code} is outside the band of {parent_code}"
        )


# ----------------------------
# Chart workflows
# ----------------------------
def create_category(group, type_id, name, code=None, description=""):
    """Add a category under an account type, generating the code when not given"""
    try:
        account_type = AccountType.objects.get(pk=type_id)
    except AccountType.DoesNotExist:
        raise NotFoundError(f"Account type {type_id} not found")

    with transaction.atomic():
        siblings = list(
            AccountCategory.objects.for_group(group)
            .select_for_update()
            .values_list("code", flat=True)
        )
        if code is None:
            code = next_code(account_type.code, CATEGORY_STEP, TYPE_STEP, siblings)
        else:
            code = str(code)
            _check_supplied_code(code, account_type.code, CATEGORY_STEP, TYPE_STEP)
        if code in siblings:
            raise CodeConflictError(
                f"Category code {code} already exists in this group")

        try:
            with transaction.atomic():
                category = AccountCategory.objects.create(
                    group=group,
                    account_type=account_type,
                    code=code,
                    name=name,
                    description=description,
                )
        except (IntegrityError, ValidationError) as exc:
            # unique (group, code) is the backstop under concurrent creation
            raise CodeConflictError(
                f"Category code {code} already exists in this group") from exc

    logger.info("Created category %s %s for group %s", code, name, group.pk)
    return category


def create_subcategory(category_id, name, code=None, description="", group=None):
    try:
        category = AccountCategory.objects.select_related("account_type").get(
            pk=category_id)
    except AccountCategory.DoesNotExist:
        raise NotFoundError(f"Account category {category_id} not found")
    # categories of other tenants are invisible
    if group is not None and category.group_id != group.pk:
        raise NotFoundError(f"Account category {category_id} not found")

    with transaction.atomic():
        siblings = list(
            AccountSubCategory.objects.filter(category=category)
            .select_for_update()
            .values_list("code", flat=True)
        )
        if code is None:
            code = next_code(category.code, SUBCATEGORY_STEP, CATEGORY_STEP, siblings)
        else:
            code = str(code)
            _check_supplied_code(code, category.code, SUBCATEGORY_STEP, CATEGORY_STEP)
        if code in siblings:
            raise CodeConflictError(
                f"Subcategory code {code} already exists in category {category.code}")

        try:
            with transaction.atomic():
                sub = AccountSubCategory.objects.create(
                    category=category,
                    code=code,
                    name=name,
                    description=description,
                )
        except (IntegrityError, ValidationError) as exc:
            raise CodeConflictError(
                f"Subcategory code {code} already exists in category {category.code}"
            ) from exc

    logger.info("Created subcategory %s %s under %s", code, name, category.code)
    return sub


# ----------------------------
# Seeding
# ----------------------------
def seed_account_types():
    """Idempotent: the five system-wide types"""
    types = []
    for code, name, normal_balance in ACCOUNT_TYPES:
        account_type, _ = AccountType.objects.update_or_create(
            code=code,
            defaults={"name": name, "normal_balance": normal_balance},
        )
        types.append(account_type)
    return types


@transaction.atomic
def seed_group_chart(group):
    """
    Idempotent: default categories / subcategories for a group.
    Returns the number of rows created.
    """
    types = {t.code: t for t in seed_account_types()}
    created = 0
    for type_code, categories in DEFAULT_CHART.items():
        for cat_code, cat_name, subs in categories:
            category, made = AccountCategory.objects.get_or_create(
                group=group,
                code=cat_code,
                defaults={"account_type": types[type_code], "name": cat_name},
            )
            created += made
            for sub_code, sub_name in subs:
                _, made = AccountSubCategory.objects.get_or_create(
                    category=category,
                    code=sub_code,
                    defaults={"name": sub_name},
                )
                created += made
    logger.info("Seeded chart for group %s (%s rows created)", group.pk, created)
    return created


# ----------------------------
# Accounts
# ----------------------------
def _next_account_code(entity, sub_category):
    prefix = f"{sub_category.code}-"
    suffixes = [
        int(code[len(prefix):])
        for code in Account.objects.for_entity(entity)
        .filter(code__startswith=prefix)
        .values_list("code", flat=True)
        if code[len(prefix):].isdigit()
    ]
    return f"{prefix}{(max(suffixes) if suffixes else 0) + 1:02d}"


def create_account(entity, sub_category, name, description=""):
    """New account "{subcategory}-{suffix}" with the type's normal balance"""
    sub_category = AccountSubCategory.objects.select_related(
        "category__account_type").get(pk=getattr(sub_category, "pk", sub_category))
    if sub_category.category.group_id != entity.group_id:
        raise AccountOwnershipError(
            f"Subcategory {sub_category.code} does not belong to the "
            f"group of entity {entity.pk}"
        )

    with transaction.atomic():
        code = _next_account_code(entity, sub_category)
        try:
            with transaction.atomic():
                account = Account.objects.create(
                    entity=entity,
                    sub_category=sub_category,
                    code=code,
                    name=name,
                    description=description,
                    normal_balance=sub_category.normal_balance,
                )
        except (IntegrityError, ValidationError) as exc:
            raise CodeConflictError(
                f"Account code {code} already exists for entity {entity.pk}"
            ) from exc
    return account


@transaction.atomic
def seed_entity_accounts(entity):
    """One "-01" account per subcategory of the group, skipping existing ones"""
    existing = set(
        Account.objects.for_entity(entity).values_list("code", flat=True))
    created = []
    subs = AccountSubCategory.objects.filter(
        category__group=entity.group
    ).select_related("category__account_type").order_by("code")
    for sub in subs:
        code = f"{sub.code}-01"
        if code in existing:
            continue
        created.append(
            Account.objects.create(
                entity=entity,
                sub_category=sub,
                code=code,
                name=sub.name,
                normal_balance=sub.normal_balance,
            )
        )
    logger.info("Seeded %s accounts for entity %s", len(created), entity.pk)
    return created


def bind_default_roles(entity, codes=None):
    """
    Bind every well-known role to the entity's account with the configured
    code. Checked eagerly: any missing account fails the whole call.
    """
    codes = codes or settings.LEDGER_WELL_KNOWN_CODES
    accounts = {
        account.code: account
        for account in Account.objects.for_entity(entity).filter(
            code__in=list(codes.values()))
    }
    missing = [
        f"{ROLE_LABELS.get(role, role)} ({code})"
        for role, code in codes.items()
        if code not in accounts
    ]
    if missing:
        raise MissingAccountConfiguration(
            f"{', '.join(missing)} not configured for entity {entity.pk}"
        )

    with transaction.atomic():
        for role, code in codes.items():
            ChartRoleBinding.objects.update_or_create(
                entity=entity,
                role=role,
                defaults={"account": accounts[code]},
            )
    return ChartRoleBindings.for_entity(entity)


# ----------------------------
# Banking
# ----------------------------
def open_bank_account(
    entity,
    name,
    bank_name="",
    account_number_masked="",
    currency_code=None,
):
    """Bank account plus its ledger account under Cash and Cash Equivalents"""
    sub = AccountSubCategory.objects.filter(
        category__group=entity.group, code=BANK_SUBCATEGORY_CODE
    ).first()
    if sub is None:
        raise MissingAccountConfiguration(
            f"Cash and Cash Equivalents ({BANK_SUBCATEGORY_CODE}) not "
            f"configured for entity {entity.pk}"
        )

    with transaction.atomic():
        ledger_account = create_account(
            entity, sub, name, description=f"Bank account {name}")
        bank_account = BankAccount.objects.create(
            entity=entity,
            name=name,
            bank_name=bank_name,
            account_number_masked=account_number_masked,
            currency_code=currency_code or entity.currency_code,
            ledger_account=ledger_account,
        )
        log_action(
            action="create",
            instance=bank_account,
            changes={"ledger_account": ledger_account.code},
        )
    return bank_account

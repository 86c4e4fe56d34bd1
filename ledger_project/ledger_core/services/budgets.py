from django.core.exceptions import ValidationError
from django.db import transaction

from ..exceptions import AccountOwnershipError
from ..models import Account, Budget
from ..models.opening_balance import MONTHLY, PERIOD_TYPES
from .audit_helper import log_action


@transaction.atomic
def create_bulk_budgets(
    entity, name, period_type, fiscal_year, lines, month=None, note=""
):
    """
    One Budget row per {"account_id", "amount"} line.
    All accounts are checked against the entity before anything is written.
    """
    if period_type not in dict(PERIOD_TYPES):
        raise ValidationError(f"Unknown budget period type {period_type!r}")
    if period_type == MONTHLY and not (month and 1 <= int(month) <= 12):
        raise ValidationError("Monthly budgets need a month between 1 and 12")

    rows = [(int(line["account_id"]), int(line.get("amount") or 0)) for line in lines]
    owned = set(
        Account.objects.for_entity(entity)
        .filter(pk__in=[account_id for account_id, _ in rows])
        .values_list("pk", flat=True)
    )
    for account_id, _ in rows:
        if account_id not in owned:
            raise AccountOwnershipError(
                f"Account {account_id} does not belong to entity {entity.pk}")

    budgets = Budget.objects.bulk_create(
        Budget(
            entity=entity,
            name=name,
            period_type=period_type,
            month=month,
            fiscal_year=fiscal_year,
            account_id=account_id,
            amount=amount,
            note=note,
        )
        for account_id, amount in rows
    )
    log_action(
        action="create_budgets",
        instance=entity,
        entity=entity,
        changes={"name": name, "fiscal_year": fiscal_year, "lines": len(budgets)},
    )
    return budgets

import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..exceptions import AccountOwnershipError, FinalizedRecordError
from ..models import Account, OpeningBalance, OpeningBalanceItem
from ..models.opening_balance import FINALIZED
from .audit_helper import log_action

logger = logging.getLogger(__name__)


def _normalise_items(entity, items):
    """
    items: iterable of {"account_id", "debit", "credit"} dicts.
    Every account must belong to the entity; the first foreign one is rejected.
    """
    rows = [
        (
            int(item["account_id"]),
            int(item.get("debit") or 0),
            int(item.get("credit") or 0),
        )
        for item in items
    ]
    owned = set(
        Account.objects.for_entity(entity)
        .filter(pk__in=[account_id for account_id, _, _ in rows])
        .values_list("pk", flat=True)
    )
    for account_id, debit, credit in rows:
        if account_id not in owned:
            raise AccountOwnershipError(
                f"Account {account_id} does not belong to entity {entity.pk}")
        if debit < 0 or credit < 0:
            raise ValidationError(
                f"Opening balance amounts for account {account_id} must be >= 0")
    return rows


def _replace_items(opening_balance, rows):
    opening_balance.items.all().delete()
    OpeningBalanceItem.objects.bulk_create(
        OpeningBalanceItem(
            opening_balance=opening_balance,
            account_id=account_id,
            debit=debit,
            credit=credit,
        )
        for account_id, debit, credit in rows
    )
    opening_balance.recalc_totals()


def _ensure_draft(opening_balance):
    if opening_balance.status == FINALIZED:
        raise FinalizedRecordError(
            f"Opening balance {opening_balance.pk} is finalized")


# ----------------------------
# Opening balance workflows
# ----------------------------
# Descriptive only: Account.balance and AccountTransaction are never touched.
def create_opening_balance(entity, date, items, fiscal_year=None, note=""):
    rows = _normalise_items(entity, items)
    with transaction.atomic():
        ob = OpeningBalance.objects.create(
            entity=entity, date=date, fiscal_year=fiscal_year, note=note)
        _replace_items(ob, rows)
        ob.save(update_fields=["total_debit", "total_credit", "difference"])
        log_action(
            action="create",
            instance=ob,
            changes={"difference": ob.difference, "items": len(rows)},
        )
    if ob.difference:
        logger.info(
            "Opening balance %s for entity %s is off by %s",
            ob.pk, entity.pk, ob.difference,
        )
    return ob


def update_opening_balance(
    opening_balance, *, date=None, items=None, fiscal_year=None, note=None
):
    with transaction.atomic():
        ob = OpeningBalance.objects.select_for_update().get(pk=opening_balance.pk)
        _ensure_draft(ob)
        if date is not None:
            ob.date = date
        if fiscal_year is not None:
            ob.fiscal_year = fiscal_year
        if note is not None:
            ob.note = note
        if items is not None:
            _replace_items(ob, _normalise_items(ob.entity, items))
        ob.save()
        log_action(action="update", instance=ob,
                   changes={"difference": ob.difference})
    return ob


def delete_opening_balance(opening_balance):
    with transaction.atomic():
        ob = OpeningBalance.objects.select_for_update().get(pk=opening_balance.pk)
        _ensure_draft(ob)
        log_action(action="delete", instance=ob)
        ob.delete()


def finalize_opening_balance(opening_balance):
    """One-way: a finalized opening balance never goes back to Draft"""
    with transaction.atomic():
        ob = OpeningBalance.objects.select_for_update().get(pk=opening_balance.pk)
        _ensure_draft(ob)
        ob.status = FINALIZED
        ob.finalized_at = timezone.now()
        ob.save(update_fields=["status", "finalized_at"])
        log_action(action="finalize", instance=ob)
    return ob


def get_opening_balance(entity):
    """Latest opening balance of the entity, or None"""
    return (
        OpeningBalance.objects.for_entity(entity)
        .order_by("-date", "-id")
        .first()
    )

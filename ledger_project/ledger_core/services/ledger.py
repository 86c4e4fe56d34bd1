import logging
import uuid

from django.db import IntegrityError, transaction
from django.db.models import Count, F, Sum

from ..choices import CREDIT, SUCCESS, TXN_BANK, TXN_MANUAL
from ..exceptions import (AccountOwnershipError, CodeConflictError,
                          InvalidJournalLine, NotFoundError)
from ..models import Account, AccountTransaction, BankAccount, Journal
from .audit_helper import log_action
from .rules import JournalLine, PostingResult, build_result, ensure_balanced

logger = logging.getLogger(__name__)


def balance_delta(normal_balance, debit, credit):
    """
    Signed change a line makes to an account balance:
    debit-normal (assets, expenses)  -> debit - credit
    credit-normal (liabilities, equity, revenue) -> credit - debit
    """
    if normal_balance == CREDIT:
        return credit - debit
    return debit - credit


# ----------------------------
# Journal-related workflows
# ----------------------------
def _lock_accounts(entity, account_ids):
    """
    Lock every touched account row, always in id order so two postings
    sharing accounts cannot deadlock each other.
    """
    accounts = {
        account.pk: account
        for account in Account.objects.select_for_update()
        .filter(pk__in=account_ids)
        .order_by("pk")
    }
    for account_id in account_ids:
        account = accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        if account.entity_id != entity.pk:
            raise AccountOwnershipError(
                f"Account {account_id} does not belong to entity {entity.pk}"
            )
        if not account.is_active:
            raise InvalidJournalLine(
                f"Account {account.code} is inactive and cannot be posted to"
            )
    return accounts


def record_journal(
    *,
    entity,
    reference,
    date,
    result: PostingResult,
    txn_type,
    related=None,
    description="",
):
    """
    Write one posting: the Journal, one AccountTransaction per line and the
    balance of every touched account, all in one transaction. Any failure
    rolls every write back.

    `related` is the business document the posting came from; it fills
    Journal.source_* and AccountTransaction.related_entity_*.
    """
    related_type = related.__class__.__name__ if related is not None else ""
    related_id = related.pk if related is not None else None

    with transaction.atomic():
        # re-check, the result may have been built outside this transaction
        ensure_balanced(result.total_debit, result.total_credit)
        if not result.lines:
            raise InvalidJournalLine("Cannot record a journal with no lines")

        account_ids = sorted({line.account_id for line in result.lines})
        accounts = _lock_accounts(entity, account_ids)

        if Journal.objects.filter(entity=entity, reference=reference).exists():
            raise CodeConflictError(
                f"Journal {reference} already exists for entity {entity.pk}"
            )
        try:
            # savepoint, so a lost race on the reference leaves the outer block usable
            with transaction.atomic():
                journal = Journal.objects.create(
                    entity=entity,
                    date=date,
                    reference=reference,
                    description=description,
                    lines=[line.as_dict() for line in result.lines],
                    total_debit=result.total_debit,
                    total_credit=result.total_credit,
                    source_type=related_type,
                    source_id=related_id,
                )
        except IntegrityError as exc:
            raise CodeConflictError(
                f"Journal {reference} already exists for entity {entity.pk}"
            ) from exc

        for line in result.lines:
            account = accounts[line.account_id]
            delta = balance_delta(account.normal_balance, line.debit, line.credit)
            # atomic increment, the row lock above serialises concurrent postings
            Account.objects.filter(pk=account.pk).update(
                balance=F("balance") + delta)
            running = Account.objects.values_list(
                "balance", flat=True).get(pk=account.pk)

            AccountTransaction.objects.create(
                entity=entity,
                account=account,
                journal=journal,
                date=date,
                description=line.description[:400],
                reference=reference,
                type=txn_type,
                status=SUCCESS,
                debit_amount=line.debit,
                credit_amount=line.credit,
                running_balance=running,
                related_entity_type=related_type,
                related_entity_id=related_id,
            )

    logger.debug(
        "Recorded journal %s for entity %s (%s lines, %s)",
        reference, entity.pk, len(result.lines), result.total_debit,
    )
    return journal


# ----------------------------
# Verification
# ----------------------------
def reconstruct_balance(account):
    """Balance implied by the account's Success transactions"""
    agg = AccountTransaction.objects.filter(
        account=account, status=SUCCESS
    ).aggregate(
        debit=Sum("debit_amount"),
        credit=Sum("credit_amount"),
    )
    # If nothing was posted, Django returns None -> fallback to 0
    return balance_delta(
        account.normal_balance, agg["debit"] or 0, agg["credit"] or 0)


def verify_entity_balances(entity):
    """
    Compare every stored Account.balance with its reconstruction.
    Returns one dict per mismatching account (empty list when healthy).
    """
    mismatches = []
    for account in Account.objects.for_entity(entity).order_by("code"):
        expected = reconstruct_balance(account)
        if expected != account.balance:
            logger.warning(
                "Balance mismatch on %s (entity %s): stored=%s expected=%s",
                account.code, entity.pk, account.balance, expected,
            )
            mismatches.append(
                {
                    "account_id": account.pk,
                    "code": account.code,
                    "stored": account.balance,
                    "expected": expected,
                }
            )
    return mismatches


# ----------------------------
# Manual and bank postings
# ----------------------------
MANUAL_PREFIX = "JRNL"
BANK_PREFIX = "BANK"

DEPOSIT = "deposit"
WITHDRAWAL = "withdrawal"


def _as_journal_line(line):
    if isinstance(line, JournalLine):
        return line
    return JournalLine(
        account_id=line["account_id"],
        debit=line.get("debit") or 0,
        credit=line.get("credit") or 0,
        description=line.get("description", ""),
    )


def post_manual_journal(
    entity, date, lines, reference=None, description="", actor="system"
):
    """
    Balanced journal keyed in by hand, posted straight away.
    `lines` holds JournalLine objects or dicts shaped like Journal.lines.
    """
    result = build_result(*(_as_journal_line(line) for line in lines))
    reference = reference or f"{MANUAL_PREFIX}-{uuid.uuid4().hex[:12].upper()}"

    with transaction.atomic():
        journal = record_journal(
            entity=entity,
            reference=reference,
            date=date,
            result=result,
            txn_type=TXN_MANUAL,
            description=description,
        )
        log_action(
            action="post",
            instance=journal,
            actor=actor,
            changes={"journal": reference, "total": result.total_debit},
        )
    logger.info("Posted manual journal %s for entity %s", reference, entity.pk)
    return journal


def record_bank_transaction(
    bank_account,
    amount,
    direction,
    counter_account,
    date,
    description="",
    reference=None,
    actor="system",
):
    """
    Money into or out of a bank account.
    deposit:    Dr bank ledger account, Cr counter_account
    withdrawal: Dr counter_account, Cr bank ledger account
    Both lines are written as BANK transactions.
    """
    if direction not in (DEPOSIT, WITHDRAWAL):
        raise InvalidJournalLine(f"Unknown bank transaction direction {direction!r}")
    if not amount or amount <= 0:
        raise InvalidJournalLine("Bank transaction amount must be positive")
    if counter_account.pk == bank_account.ledger_account_id:
        raise InvalidJournalLine(
            "Counter account must differ from the bank's ledger account")

    bank_line = JournalLine(
        bank_account.ledger_account_id, debit=amount, description=description)
    other_line = JournalLine(counter_account.pk, credit=amount, description=description)
    if direction == WITHDRAWAL:
        bank_line = JournalLine(
            bank_account.ledger_account_id, credit=amount, description=description)
        other_line = JournalLine(
            counter_account.pk, debit=amount, description=description)
    result = build_result(bank_line, other_line)

    with transaction.atomic():
        # the bank row lock keeps generated sequence numbers unique
        bank_account = BankAccount.objects.select_for_update().select_related(
            "entity").get(pk=bank_account.pk)
        if not bank_account.is_active:
            raise InvalidJournalLine(
                f"Bank account {bank_account.name} is inactive")
        if reference is None:
            seq = Journal.objects.filter(
                entity_id=bank_account.entity_id,
                source_type=BankAccount.__name__,
                source_id=bank_account.pk,
            ).count() + 1
            reference = f"{BANK_PREFIX}-{bank_account.pk}-{seq}"

        journal = record_journal(
            entity=bank_account.entity,
            reference=reference,
            date=date,
            result=result,
            txn_type=TXN_BANK,
            related=bank_account,
            description=description or f"{direction.title()} {bank_account.name}",
        )
        log_action(
            action=direction,
            instance=bank_account,
            actor=actor,
            changes={"journal": reference, "amount": amount},
        )
    return journal


# ----------------------------
# Aggregation
# ----------------------------
def transaction_summary(entity, account=None, bank_account=None):
    """
    Debit/credit totals and count of an entity's transactions, optionally
    narrowed to one account or one bank account, with a per-type breakdown.
    """
    rows = AccountTransaction.objects.for_entity(entity)
    if account is not None:
        rows = rows.filter(account=account)
    if bank_account is not None:
        rows = rows.filter(account_id=bank_account.ledger_account_id)

    totals = rows.aggregate(
        debit=Sum("debit_amount"),
        credit=Sum("credit_amount"),
        count=Count("id"),
    )
    by_type = {
        row["type"]: {
            "debit": row["debit"] or 0,
            "credit": row["credit"] or 0,
            "count": row["count"],
        }
        for row in rows.order_by()
        .values("type")
        .annotate(
            debit=Sum("debit_amount"),
            credit=Sum("credit_amount"),
            count=Count("id"),
        )
    }
    return {
        "total_debits": totals["debit"] or 0,
        "total_credits": totals["credit"] or 0,
        "transaction_count": totals["count"],
        "by_type": by_type,
    }

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models.deletion import ProtectedError
from django.test import TestCase

from ledger_core.choices import SUCCESS, TXN_BANK, TXN_MANUAL
from ledger_core.exceptions import (AccountOwnershipError, CodeConflictError,
                                    InvalidJournalLine, UnbalancedJournalError)
from ledger_core.models import Account, AccountTransaction, AuditLog, Journal
from ledger_core.services import (post_manual_journal, reconstruct_balance,
                                  record_bank_transaction, record_journal,
                                  transaction_summary, verify_entity_balances)
from ledger_core.services.ledger import DEPOSIT, WITHDRAWAL
from ledger_core.services.rules import JournalLine, build_result

from .helpers import TODAY, account, balance, make_bank, make_entity


def lines(*pairs):
    """(account, debit, credit) -> balanced PostingResult"""
    return build_result(
        *(JournalLine(acc.pk, debit=debit, credit=credit)
          for acc, debit, credit in pairs)
    )


class RecordJournalTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.cash = account(self.entity, "1110-01")
        self.ar = account(self.entity, "1120-01")
        self.revenue = account(self.entity, "4120-01")
        self.rent = account(self.entity, "5220-01")

    def post(self, reference, *pairs):
        return record_journal(
            entity=self.entity,
            reference=reference,
            date=TODAY,
            result=lines(*pairs),
            txn_type=TXN_MANUAL,
        )

    def test_balances_follow_normal_side(self):
        self.post("M-1", (self.ar, 500, 0), (self.revenue, 0, 500))
        self.post("M-2", (self.cash, 200, 0), (self.ar, 0, 200))

        self.ar.refresh_from_db()
        self.revenue.refresh_from_db()
        self.cash.refresh_from_db()
        # debit-normal asset: 500 - 200
        self.assertEqual(self.ar.balance, 300)
        # credit-normal revenue increases on credit
        self.assertEqual(self.revenue.balance, 500)
        self.assertEqual(self.cash.balance, 200)

    def test_running_balance_per_transaction(self):
        self.post("M-1", (self.ar, 500, 0), (self.revenue, 0, 500))
        self.post("M-2", (self.cash, 200, 0), (self.ar, 0, 200))

        running = list(
            AccountTransaction.objects.filter(account=self.ar)
            .order_by("id")
            .values_list("debit_amount", "credit_amount", "running_balance")
        )
        self.assertEqual(running, [(500, 0, 500), (0, 200, 300)])
        self.assertFalse(
            AccountTransaction.objects.filter(journal__reference="M-1")
            .exclude(status=SUCCESS).exists()
        )

    def test_journal_keeps_lines_and_totals(self):
        journal = self.post("M-1", (self.rent, 750, 0), (self.cash, 0, 750))
        self.assertEqual(journal.total_debit, 750)
        self.assertEqual(journal.total_credit, 750)
        self.assertEqual(
            [(row["account_id"], row["debit"], row["credit"]) for row in journal.lines],
            [(self.rent.pk, 750, 0), (self.cash.pk, 0, 750)],
        )
        self.assertEqual(journal.transactions.count(), 2)

    def test_foreign_account_rolls_everything_back(self):
        other = make_entity(group_slug="initech", entity_slug="main")
        foreign_cash = account(other, "1110-01")

        with self.assertRaises(AccountOwnershipError):
            self.post("M-1", (foreign_cash, 100, 0), (self.revenue, 0, 100))

        self.assertFalse(Journal.objects.filter(reference="M-1").exists())
        self.assertEqual(AccountTransaction.objects.count(), 0)
        self.revenue.refresh_from_db()
        self.assertEqual(self.revenue.balance, 0)

    def test_inactive_account_rejected(self):
        Account.objects.filter(pk=self.rent.pk).update(is_active=False)
        with self.assertRaises(InvalidJournalLine):
            self.post("M-1", (self.rent, 100, 0), (self.cash, 0, 100))
        self.assertEqual(Journal.objects.count(), 0)

    def test_reference_is_unique_per_entity(self):
        self.post("INV-1", (self.ar, 100, 0), (self.revenue, 0, 100))
        with self.assertRaises(CodeConflictError):
            self.post("INV-1", (self.ar, 100, 0), (self.revenue, 0, 100))
        self.ar.refresh_from_db()
        self.assertEqual(self.ar.balance, 100)

    def test_balance_reconstructs_from_transactions(self):
        self.post("M-1", (self.ar, 500, 0), (self.revenue, 0, 500))
        self.post("M-2", (self.cash, 200, 0), (self.ar, 0, 200))

        self.assertEqual(reconstruct_balance(self.ar), 300)
        self.assertEqual(reconstruct_balance(self.revenue), 500)
        self.assertEqual(verify_entity_balances(self.entity), [])

        # drift the stored balance behind posting's back
        Account.objects.filter(pk=self.ar.pk).update(balance=999)
        mismatches = verify_entity_balances(self.entity)
        self.assertEqual(
            mismatches,
            [{"account_id": self.ar.pk, "code": "1120-01",
              "stored": 999, "expected": 300}],
        )


class ImmutabilityTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.cash = account(self.entity, "1110-01")
        self.revenue = account(self.entity, "4120-01")
        self.journal = record_journal(
            entity=self.entity,
            reference="M-1",
            date=TODAY,
            result=lines((self.cash, 100, 0), (self.revenue, 0, 100)),
            txn_type=TXN_MANUAL,
        )

    def test_journal_cannot_be_edited_or_deleted(self):
        self.journal.description = "changed"
        with self.assertRaises(ValidationError):
            self.journal.save()
        # posted lines protect the journal
        with self.assertRaises(ProtectedError):
            self.journal.delete()

    def test_empty_journal_cannot_be_deleted_either(self):
        journal = Journal.objects.create(
            entity=self.entity, date=TODAY, reference="EMPTY-1")
        with self.assertRaises(ValidationError), transaction.atomic():
            journal.delete()

    def test_posted_account_cannot_be_deleted(self):
        with self.assertRaises(ProtectedError):
            account(self.entity, "1110-01").delete()

    def test_balance_only_moves_through_posting(self):
        cash = account(self.entity, "1110-01")
        cash.balance = 5000
        with self.assertRaises(ValidationError):
            cash.save()
        # other fields still editable
        cash = account(self.entity, "1110-01")
        cash.name = "Cash drawer"
        cash.save()
        self.assertEqual(account(self.entity, "1110-01").balance, 100)


class ManualJournalTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.cash = account(self.entity, "1110-01")
        self.rent = account(self.entity, "5220-01")

    def test_posts_lines_keyed_in_by_hand(self):
        journal = post_manual_journal(
            self.entity,
            TODAY,
            [
                {"account_id": self.rent.pk, "debit": 750, "description": "September rent"},
                {"account_id": self.cash.pk, "credit": 750},
            ],
            description="Rent",
            actor="bob",
        )

        self.assertTrue(journal.reference.startswith("JRNL-"))
        self.assertEqual(journal.total_debit, 750)
        self.assertEqual(balance(self.entity, "5220-01"), 750)
        self.assertEqual(balance(self.entity, "1110-01"), -750)
        self.assertEqual(
            set(journal.transactions.values_list("type", flat=True)), {TXN_MANUAL})
        self.assertTrue(
            AuditLog.objects.filter(
                object_type="Journal", object_id=str(journal.pk),
                action="post", actor="bob",
            ).exists()
        )

    def test_unbalanced_lines_write_nothing(self):
        with self.assertRaises(UnbalancedJournalError):
            post_manual_journal(
                self.entity,
                TODAY,
                [JournalLine(self.rent.pk, debit=750), JournalLine(self.cash.pk, credit=700)],
            )
        self.assertEqual(Journal.objects.count(), 0)
        self.assertEqual(balance(self.entity, "1110-01"), 0)

    def test_supplied_reference_must_be_unused(self):
        lines_in = [JournalLine(self.rent.pk, debit=10), JournalLine(self.cash.pk, credit=10)]
        post_manual_journal(self.entity, TODAY, lines_in, reference="ADJ-1")
        with self.assertRaises(CodeConflictError):
            post_manual_journal(self.entity, TODAY, lines_in, reference="ADJ-1")
        self.assertEqual(balance(self.entity, "5220-01"), 10)


class BankTransactionTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.bank = make_bank(self.entity).bank_account
        self.capital = account(self.entity, "3110-01")
        self.rent = account(self.entity, "5220-01")

    def test_deposit_then_withdrawal(self):
        deposit = record_bank_transaction(
            self.bank, 1000, DEPOSIT, self.capital, TODAY, description="Owner funding")
        withdrawal = record_bank_transaction(
            self.bank, 300, WITHDRAWAL, self.rent, TODAY)

        self.assertEqual(deposit.reference, f"BANK-{self.bank.pk}-1")
        self.assertEqual(withdrawal.reference, f"BANK-{self.bank.pk}-2")
        self.assertEqual(withdrawal.source_type, "BankAccount")
        self.assertEqual(balance(self.entity, "1110-02"), 700)
        self.assertEqual(balance(self.entity, "3110-01"), 1000)
        self.assertEqual(balance(self.entity, "5220-01"), 300)

        bank_rows = list(
            AccountTransaction.objects.filter(account=self.bank.ledger_account)
            .order_by("id")
            .values_list("type", "debit_amount", "credit_amount", "running_balance")
        )
        self.assertEqual(
            bank_rows, [(TXN_BANK, 1000, 0, 1000), (TXN_BANK, 0, 300, 700)])
        self.assertEqual(verify_entity_balances(self.entity), [])

    def test_invalid_amount_or_direction_rejected(self):
        with self.assertRaises(InvalidJournalLine):
            record_bank_transaction(self.bank, 0, DEPOSIT, self.capital, TODAY)
        with self.assertRaises(InvalidJournalLine):
            record_bank_transaction(self.bank, 100, "sideways", self.capital, TODAY)
        with self.assertRaises(InvalidJournalLine):
            record_bank_transaction(
                self.bank, 100, DEPOSIT, self.bank.ledger_account, TODAY)
        self.assertEqual(Journal.objects.count(), 0)

    def test_counter_account_of_other_entity_rejected(self):
        other = make_entity(group_slug="initech", entity_slug="main")
        with self.assertRaises(AccountOwnershipError):
            record_bank_transaction(
                self.bank, 100, DEPOSIT, account(other, "3110-01"), TODAY)
        self.assertEqual(Journal.objects.count(), 0)
        self.assertEqual(balance(self.entity, "1110-02"), 0)


class TransactionSummaryTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.bank = make_bank(self.entity).bank_account
        record_bank_transaction(
            self.bank, 1000, DEPOSIT, account(self.entity, "3110-01"), TODAY)
        post_manual_journal(
            self.entity,
            TODAY,
            [
                JournalLine(account(self.entity, "5220-01").pk, debit=250),
                JournalLine(self.bank.ledger_account_id, credit=250),
            ],
        )

    def test_entity_totals_and_breakdown(self):
        summary = transaction_summary(self.entity)
        self.assertEqual(summary["total_debits"], 1250)
        self.assertEqual(summary["total_credits"], 1250)
        self.assertEqual(summary["transaction_count"], 4)
        self.assertEqual(
            summary["by_type"],
            {
                TXN_BANK: {"debit": 1000, "credit": 1000, "count": 2},
                TXN_MANUAL: {"debit": 250, "credit": 250, "count": 2},
            },
        )

    def test_narrowed_to_bank_account(self):
        summary = transaction_summary(self.entity, bank_account=self.bank)
        self.assertEqual(summary["total_debits"], 1000)
        self.assertEqual(summary["total_credits"], 250)
        self.assertEqual(summary["transaction_count"], 2)
        self.assertEqual(
            summary["by_type"][TXN_MANUAL], {"debit": 0, "credit": 250, "count": 1})

    def test_empty_account(self):
        summary = transaction_summary(
            self.entity, account=account(self.entity, "1120-01"))
        self.assertEqual(
            summary,
            {"total_debits": 0, "total_credits": 0,
             "transaction_count": 0, "by_type": {}},
        )

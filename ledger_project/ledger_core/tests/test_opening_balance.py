import datetime

from django.core.exceptions import ValidationError
from django.db import transaction
from django.test import TestCase

from ledger_core.exceptions import AccountOwnershipError, FinalizedRecordError
from ledger_core.models import AccountTransaction, Budget, OpeningBalance
from ledger_core.services import (create_bulk_budgets, create_opening_balance,
                                  delete_opening_balance,
                                  finalize_opening_balance,
                                  get_opening_balance, update_opening_balance)

from .helpers import account, make_entity


class OpeningBalanceTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.cash = account(self.entity, "1110-01")
        self.capital = account(self.entity, "3110-01")
        self.loan = account(self.entity, "2210-01")

    def create(self, items, date=datetime.date(2025, 1, 1)):
        return create_opening_balance(self.entity, date, items, fiscal_year=2025)

    def test_totals_and_difference(self):
        ob = self.create([
            {"account_id": self.cash.pk, "debit": 5000},
            {"account_id": self.capital.pk, "credit": 4000},
            {"account_id": self.loan.pk, "credit": 500},
        ])
        self.assertEqual(ob.total_debit, 5000)
        self.assertEqual(ob.total_credit, 4500)
        # credit - debit, an unbalanced opening balance is allowed
        self.assertEqual(ob.difference, -500)
        self.assertEqual(ob.items.count(), 3)
        self.assertEqual(ob.status, "Draft")

    def test_does_not_touch_ledger(self):
        self.create([
            {"account_id": self.cash.pk, "debit": 5000},
            {"account_id": self.capital.pk, "credit": 5000},
        ])
        self.cash.refresh_from_db()
        self.assertEqual(self.cash.balance, 0)
        self.assertEqual(AccountTransaction.objects.count(), 0)

    def test_foreign_account_rejected(self):
        other = make_entity(group_slug="initech", entity_slug="main")
        foreign = account(other, "1110-01")
        with self.assertRaises(AccountOwnershipError) as ctx:
            self.create([{"account_id": foreign.pk, "debit": 100}])
        self.assertIn(str(foreign.pk), str(ctx.exception))
        self.assertEqual(OpeningBalance.objects.count(), 0)

    def test_negative_amount_rejected(self):
        with self.assertRaises(ValidationError):
            self.create([{"account_id": self.cash.pk, "debit": -1}])

    def test_update_replaces_items(self):
        ob = self.create([{"account_id": self.cash.pk, "debit": 100}])
        ob = update_opening_balance(
            ob,
            items=[
                {"account_id": self.cash.pk, "debit": 300},
                {"account_id": self.capital.pk, "credit": 300},
            ],
            note="restated",
        )
        self.assertEqual(ob.items.count(), 2)
        self.assertEqual(ob.difference, 0)
        self.assertEqual(OpeningBalance.objects.get(pk=ob.pk).note, "restated")

    def test_finalized_is_read_only(self):
        ob = self.create([{"account_id": self.cash.pk, "debit": 100}])
        ob = finalize_opening_balance(ob)
        self.assertTrue(ob.is_finalized)
        self.assertIsNotNone(ob.finalized_at)

        with self.assertRaises(FinalizedRecordError):
            update_opening_balance(ob, note="too late")
        with self.assertRaises(FinalizedRecordError):
            delete_opening_balance(ob)
        with self.assertRaises(FinalizedRecordError):
            finalize_opening_balance(ob)
        with self.assertRaises(FinalizedRecordError), transaction.atomic():
            ob.delete()

        stored = OpeningBalance.objects.get(pk=ob.pk)
        stored.note = "sneaky"
        with self.assertRaises(FinalizedRecordError):
            stored.save()

    def test_draft_can_be_deleted(self):
        ob = self.create([{"account_id": self.cash.pk, "debit": 100}])
        delete_opening_balance(ob)
        self.assertFalse(OpeningBalance.objects.filter(pk=ob.pk).exists())

    def test_get_returns_latest(self):
        self.assertIsNone(get_opening_balance(self.entity))
        self.create([], date=datetime.date(2024, 1, 1))
        latest = self.create([], date=datetime.date(2025, 1, 1))
        self.assertEqual(get_opening_balance(self.entity), latest)


class BudgetTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.rent = account(self.entity, "5220-01")
        self.utilities = account(self.entity, "5230-01")

    def test_bulk_create_one_row_per_line(self):
        budgets = create_bulk_budgets(
            self.entity, "Opex 2025", "monthly", 2025,
            [
                {"account_id": self.rent.pk, "amount": 12000},
                {"account_id": self.utilities.pk, "amount": 3000},
            ],
            month=3,
        )
        self.assertEqual(len(budgets), 2)
        self.assertEqual(
            sorted(Budget.objects.for_entity(self.entity)
                   .values_list("account__code", "amount", "month")),
            [("5220-01", 12000, 3), ("5230-01", 3000, 3)],
        )

    def test_monthly_needs_valid_month(self):
        for month in (None, 0, 13):
            with self.assertRaises(ValidationError):
                create_bulk_budgets(
                    self.entity, "Bad", "monthly", 2025,
                    [{"account_id": self.rent.pk, "amount": 1}], month=month)

    def test_foreign_account_writes_nothing(self):
        other = make_entity(group_slug="initech", entity_slug="main")
        with self.assertRaises(AccountOwnershipError):
            create_bulk_budgets(
                self.entity, "Mixed", "yearly", 2025,
                [
                    {"account_id": self.rent.pk, "amount": 100},
                    {"account_id": account(other, "5220-01").pk, "amount": 100},
                ],
            )
        self.assertEqual(Budget.objects.count(), 0)

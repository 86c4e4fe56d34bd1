from unittest import mock

from django.core.exceptions import ValidationError
from django.db import IntegrityError, OperationalError
from django.test import TestCase

from ledger_core.choices import FAILED, PENDING, PROCESSING, SUCCESS
from ledger_core.exceptions import (InvalidStatusTransition, OverpaymentError,
                                    TransientPostingError)
from ledger_core.models import (AuditLog, Bill, BillLine, Invoice, Journal,
                                PaymentReceived, Vendor)
from ledger_core.services import (bind_default_roles, build_payload, claim,
                                  failed_postings, issue_invoice,
                                  mark_bill_unpaid, pay_bill, post_now,
                                  process_posting_job, receive_payment,
                                  record_expense, record_receipt,
                                  retry_failed_posting)
from ledger_core.services.ledger import record_journal
from ledger_core.services.pipeline import POST_INVOICE
from ledger_core.tasks import post_document_journal, verify_account_balances

from .helpers import (TODAY, account, balance, make_bank, make_entity,
                      make_invoice, make_item)


class InvoicePostingTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.widget = make_item(self.entity, sku="W-1", cost_price=300,
                                track_inventory=True)
        self.consulting = make_item(self.entity, sku="S-1", item_type="service")

    def issue(self, invoice):
        with self.captureOnCommitCallbacks(execute=True):
            issue_invoice(invoice, actor="alice")
        invoice.refresh_from_db()
        return invoice

    def test_issue_posts_revenue_tax_and_cost(self):
        invoice = make_invoice(self.entity, [
            (self.widget, 2, 500, 100),
            (self.consulting, 1, 400, 0),
        ])
        self.assertEqual(invoice.total, 1500)

        invoice = self.issue(invoice)

        self.assertEqual(invoice.status, "sent")
        self.assertEqual(invoice.posting_status, SUCCESS)
        self.assertEqual(invoice.journal_reference, f"INV-{invoice.pk}")
        self.assertIsNotNone(invoice.posted_at)
        self.assertEqual(invoice.error_code, "")

        self.assertEqual(balance(self.entity, "1120-01"), 1500)  # AR
        self.assertEqual(balance(self.entity, "4110-01"), 1000)  # product revenue
        self.assertEqual(balance(self.entity, "4120-01"), 400)   # service revenue
        self.assertEqual(balance(self.entity, "2140-01"), 100)   # tax payable
        self.assertEqual(balance(self.entity, "5110-01"), 600)   # COGS
        self.assertEqual(balance(self.entity, "1130-01"), -600)  # inventory

        journal = Journal.objects.get(entity=self.entity)
        self.assertEqual(journal.reference, invoice.journal_reference)
        self.assertEqual(journal.total_debit, 2100)
        self.assertEqual(journal.source_type, "Invoice")
        self.assertEqual(journal.source_id, invoice.pk)
        self.assertEqual(journal.transactions.count(), 6)

    def test_untracked_items_post_no_cost(self):
        plain = make_item(self.entity, sku="W-2", cost_price=300)
        invoice = self.issue(make_invoice(self.entity, [(plain, 1, 1000, 100)]))
        self.assertEqual(invoice.posting_status, SUCCESS)
        self.assertEqual(balance(self.entity, "5110-01"), 0)
        self.assertEqual(
            Journal.objects.get(reference=invoice.journal_reference).transactions.count(),
            3,
        )

    def test_reprocessing_a_posted_document_is_a_no_op(self):
        invoice = self.issue(make_invoice(self.entity, [(None, 1, 1000, 100)]))

        self.assertIsNone(
            process_posting_job(POST_INVOICE, build_payload(POST_INVOICE, invoice)))
        self.assertIsNone(post_now(invoice))

        self.assertEqual(Journal.objects.count(), 1)
        self.assertEqual(balance(self.entity, "1120-01"), 1100)

    def test_issue_records_audit_trail(self):
        invoice = self.issue(make_invoice(self.entity, [(None, 1, 1000, 0)]))
        actions = list(
            AuditLog.objects.for_entity(self.entity)
            .filter(object_type="Invoice", object_id=str(invoice.pk))
            .order_by("id")
            .values_list("action", "actor")
        )
        self.assertEqual(actions, [("issue", "alice"), ("post", "system")])

    def test_issue_without_lines_is_rejected(self):
        invoice = make_invoice(self.entity, [])
        with self.assertRaises(ValidationError):
            issue_invoice(invoice)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, "draft")
        self.assertEqual(Journal.objects.count(), 0)

    def test_claim_is_compare_and_swap(self):
        invoice = make_invoice(self.entity, [(None, 1, 1000, 0)])
        with self.captureOnCommitCallbacks(execute=False):
            issue_invoice(invoice)

        self.assertTrue(claim(Invoice, invoice.pk))
        self.assertFalse(claim(Invoice, invoice.pk))
        invoice.refresh_from_db()
        self.assertEqual(invoice.posting_status, PROCESSING)

    def test_stale_status_update_loses(self):
        invoice = make_invoice(self.entity, [(None, 1, 1000, 0)])
        stale = Invoice.objects.get(pk=invoice.pk)
        invoice.set_posting_status(PROCESSING)

        # stale copy still thinks it is Pending
        with self.assertRaises(InvalidStatusTransition):
            stale.set_posting_status(PROCESSING)

    def test_success_is_terminal(self):
        invoice = self.issue(make_invoice(self.entity, [(None, 1, 1000, 0)]))
        with self.assertRaises(InvalidStatusTransition):
            invoice.set_posting_status(PENDING)
        with self.assertRaises(InvalidStatusTransition):
            retry_failed_posting(invoice)


class FailedPostingTests(TestCase):
    def setUp(self):
        # chart seeded but no role bindings yet
        self.entity = make_entity(bind_roles=False)

    def test_missing_configuration_marks_failed(self):
        invoice = make_invoice(self.entity, [(None, 1, 1000, 100)])
        with self.captureOnCommitCallbacks(execute=True):
            issue_invoice(invoice)

        invoice.refresh_from_db()
        self.assertEqual(invoice.status, "sent")
        self.assertEqual(invoice.posting_status, FAILED)
        self.assertEqual(invoice.error_code, "missing_account_configuration")
        self.assertEqual(
            invoice.error_message,
            f"Accounts Receivable not configured for entity {self.entity.pk}",
        )
        self.assertEqual(invoice.journal_reference, "")
        self.assertEqual(Journal.objects.count(), 0)
        self.assertEqual(balance(self.entity, "1120-01"), 0)
        self.assertEqual(failed_postings(self.entity), [invoice])

    def test_retry_after_fixing_configuration(self):
        invoice = make_invoice(self.entity, [(None, 1, 1000, 100)])
        with self.captureOnCommitCallbacks(execute=True):
            issue_invoice(invoice)
        invoice.refresh_from_db()

        bind_default_roles(self.entity)
        with self.captureOnCommitCallbacks(execute=True):
            retry_failed_posting(invoice)

        invoice.refresh_from_db()
        self.assertEqual(invoice.posting_status, SUCCESS)
        self.assertEqual(invoice.error_code, "")
        self.assertEqual(balance(self.entity, "1120-01"), 1100)
        self.assertEqual(failed_postings(self.entity), [])

    def test_only_failed_postings_can_be_retried(self):
        invoice = make_invoice(self.entity, [(None, 1, 1000, 0)])
        # still Pending
        with self.assertRaises(InvalidStatusTransition):
            retry_failed_posting(invoice)

    def test_retry_reads_the_current_row(self):
        invoice = make_invoice(self.entity, [(None, 1, 1000, 0)])
        stale = Invoice.objects.get(pk=invoice.pk)
        with self.captureOnCommitCallbacks(execute=True):
            issue_invoice(invoice)
        # stale copy still says Pending, the row says Failed
        self.assertEqual(stale.posting_status, PENDING)

        bind_default_roles(self.entity)
        with self.captureOnCommitCallbacks(execute=True):
            retry_failed_posting(stale)

        invoice.refresh_from_db()
        self.assertEqual(invoice.posting_status, SUCCESS)
        self.assertEqual(balance(self.entity, "1120-01"), 1000)


class UnexpectedFailureTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        invoice = make_invoice(self.entity, [(None, 1, 1000, 100)])
        with self.captureOnCommitCallbacks(execute=False):
            issue_invoice(invoice)
        self.invoice = Invoice.objects.get(pk=invoice.pk)
        self.payload = build_payload(POST_INVOICE, self.invoice)

    def test_integrity_error_marks_failed(self):
        with mock.patch(
            "ledger_core.services.pipeline.record_journal",
            side_effect=IntegrityError("duplicate key value"),
        ):
            self.assertIsNone(process_posting_job(POST_INVOICE, self.payload))

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.posting_status, FAILED)
        self.assertEqual(self.invoice.error_code, "posting_error")
        self.assertEqual(self.invoice.error_message, "duplicate key value")
        self.assertEqual(Journal.objects.count(), 0)
        self.assertEqual(failed_postings(self.entity), [self.invoice])

        # Failed is recoverable
        with self.captureOnCommitCallbacks(execute=True):
            retry_failed_posting(self.invoice)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.posting_status, SUCCESS)
        self.assertEqual(balance(self.entity, "1120-01"), 1100)

    def test_error_after_journal_rolls_it_back(self):
        with mock.patch(
            "ledger_core.services.pipeline.log_action",
            side_effect=[ValueError("audit store unavailable"), mock.DEFAULT],
        ):
            self.assertIsNone(process_posting_job(POST_INVOICE, self.payload))

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.posting_status, FAILED)
        self.assertEqual(self.invoice.error_code, "posting_error")
        self.assertEqual(self.invoice.journal_reference, "")
        self.assertEqual(Journal.objects.count(), 0)
        self.assertEqual(balance(self.entity, "1120-01"), 0)


class PaymentTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.bank = make_bank(self.entity)
        invoice = make_invoice(self.entity, [(None, 1, 1000, 100)])
        with self.captureOnCommitCallbacks(execute=True):
            issue_invoice(invoice)
        self.invoice = Invoice.objects.get(pk=invoice.pk)

    def pay(self, amount):
        with self.captureOnCommitCallbacks(execute=True):
            payment = receive_payment(self.invoice, amount, self.bank)
        payment.refresh_from_db()
        self.invoice.refresh_from_db()
        return payment

    def test_bank_account_gets_its_own_ledger_account(self):
        self.assertEqual(self.bank.code, "1110-02")
        self.assertEqual(self.bank.bank_account.bank_name, "First Bank")

    def test_partial_then_full_payment(self):
        payment = self.pay(400)
        self.assertEqual(payment.posting_status, SUCCESS)
        self.assertEqual(payment.journal_reference, f"PAY-RECV-{payment.pk}")
        self.assertEqual(self.invoice.status, "partially_paid")
        self.assertEqual(self.invoice.amount_paid, 400)
        self.assertEqual(balance(self.entity, "1120-01"), 700)
        self.assertEqual(balance(self.entity, "1110-02"), 400)

        self.pay(700)
        self.assertEqual(self.invoice.status, "paid")
        self.assertEqual(balance(self.entity, "1120-01"), 0)
        self.assertEqual(balance(self.entity, "1110-02"), 1100)

    def test_overpayment_writes_nothing(self):
        with self.assertRaises(OverpaymentError):
            receive_payment(self.invoice, 2000, self.bank)

        self.assertEqual(PaymentReceived.objects.count(), 0)
        self.assertFalse(
            Journal.objects.filter(reference__startswith="PAY-RECV").exists())
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.amount_paid, 0)
        self.assertEqual(balance(self.entity, "1120-01"), 1100)

    def test_draft_invoice_cannot_be_paid(self):
        draft = make_invoice(self.entity, [(None, 1, 500, 0)], number="INV-002")
        with self.assertRaises(InvalidStatusTransition):
            receive_payment(draft, 100, self.bank)

    def test_receipt_and_expense(self):
        with self.captureOnCommitCallbacks(execute=True):
            receipt = record_receipt(
                self.entity, self.bank, 200, tax_amount=20, revenue_type="product")
            expense = record_expense(
                self.entity, account(self.entity, "5220-01"), self.bank, 300,
                tax_amount=30)

        receipt.refresh_from_db()
        expense.refresh_from_db()
        self.assertEqual(receipt.journal_reference, f"RCPT-{receipt.pk}")
        self.assertEqual(expense.journal_reference, f"EXP-{expense.pk}")
        self.assertEqual(balance(self.entity, "1110-02"), 220 - 330)
        self.assertEqual(balance(self.entity, "4110-01"), 1000 + 200)
        self.assertEqual(balance(self.entity, "5220-01"), 300)
        # 100 output on the invoice + 20 output - 30 input
        self.assertEqual(balance(self.entity, "2140-01"), 90)


class BillPostingTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        self.bank = make_bank(self.entity)
        vendor = Vendor.objects.create(entity=self.entity, name="Landlord Ltd")
        self.bill = Bill.objects.create(
            entity=self.entity, vendor=vendor, bill_number="B-1", date=TODAY)
        BillLine.objects.create(
            bill=self.bill, expense_account=account(self.entity, "5220-01"),
            amount=1000, tax_amount=100)
        BillLine.objects.create(
            bill=self.bill, expense_account=account(self.entity, "5230-01"),
            amount=400)

    def test_bill_then_part_payment_leaves_ap_outstanding(self):
        with self.captureOnCommitCallbacks(execute=True):
            mark_bill_unpaid(self.bill)
        self.bill.refresh_from_db()

        self.assertEqual(self.bill.status, "unpaid")
        self.assertEqual(self.bill.total, 1500)
        self.assertEqual(self.bill.posting_status, SUCCESS)
        self.assertEqual(self.bill.journal_reference, f"BILL-{self.bill.pk}")
        self.assertEqual(balance(self.entity, "2110-01"), 1500)
        self.assertEqual(balance(self.entity, "5220-01"), 1000)
        self.assertEqual(balance(self.entity, "5230-01"), 400)
        # input tax reduces the liability
        self.assertEqual(balance(self.entity, "2140-01"), -100)

        with self.captureOnCommitCallbacks(execute=True):
            payment = pay_bill(self.bill, 1000, self.bank)
        payment.refresh_from_db()
        self.bill.refresh_from_db()

        self.assertEqual(payment.journal_reference, f"PAY-BILL-{payment.pk}")
        self.assertEqual(self.bill.status, "partially_paid")
        self.assertEqual(balance(self.entity, "2110-01"), 500)
        self.assertEqual(balance(self.entity, "1110-02"), -1000)

    def test_bill_overpayment_rejected(self):
        with self.captureOnCommitCallbacks(execute=True):
            mark_bill_unpaid(self.bill)
        with self.assertRaises(OverpaymentError):
            pay_bill(self.bill, 1501, self.bank)
        self.assertEqual(balance(self.entity, "2110-01"), 1500)


class TransientFailureTests(TestCase):
    def setUp(self):
        self.entity = make_entity()
        invoice = make_invoice(self.entity, [(None, 1, 1000, 100)])
        # issue without running the queued job
        with self.captureOnCommitCallbacks(execute=False):
            issue_invoice(invoice)
        self.invoice = Invoice.objects.get(pk=invoice.pk)
        self.payload = build_payload(POST_INVOICE, self.invoice)

    def test_database_error_is_retried_by_the_task(self):
        calls = []

        def flaky(**kwargs):
            calls.append(kwargs["reference"])
            if len(calls) == 1:
                raise OperationalError("server closed the connection")
            return record_journal(**kwargs)

        with mock.patch(
            "ledger_core.services.pipeline.record_journal", side_effect=flaky
        ):
            result = post_document_journal.apply(
                args=[POST_INVOICE, self.payload], throw=False)

        self.assertEqual(result.get(), f"INV-{self.invoice.pk}")
        self.assertEqual(len(calls), 2)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.posting_status, SUCCESS)
        self.assertEqual(Journal.objects.count(), 1)
        self.assertEqual(balance(self.entity, "1120-01"), 1100)

    def test_gives_up_after_max_retries(self):
        with self.settings(LEDGER_POSTING_MAX_RETRIES=0), mock.patch(
            "ledger_core.services.pipeline.record_journal",
            side_effect=OperationalError("database is down"),
        ):
            with self.assertRaises(TransientPostingError):
                post_document_journal.apply(args=[POST_INVOICE, self.payload])

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.posting_status, FAILED)
        self.assertEqual(self.invoice.error_code, "transient_failure")
        self.assertEqual(Journal.objects.count(), 0)

    def test_worker_lost_before_commit_leaves_document_claimable(self):
        with mock.patch(
            "ledger_core.services.pipeline.record_journal",
            side_effect=SystemExit("worker killed"),
        ):
            with self.assertRaises(SystemExit):
                process_posting_job(POST_INVOICE, self.payload)

        # the claim rolled back with everything else
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.posting_status, PENDING)
        self.assertEqual(Journal.objects.count(), 0)

        # redelivered job
        self.assertEqual(
            process_posting_job(POST_INVOICE, self.payload),
            f"INV-{self.invoice.pk}",
        )
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.posting_status, SUCCESS)
        self.assertEqual(balance(self.entity, "1120-01"), 1100)

    def test_verification_task_reports_no_drift(self):
        post_now(self.invoice)
        result = verify_account_balances.apply(args=[self.entity.pk])
        self.assertEqual(result.get(), 0)

import datetime

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..exceptions import (AccountOwnershipError, InvalidStatusTransition,
                          OverpaymentError)
from ..models import (Bill, Expense, Invoice, PaymentMade, PaymentReceived,
                      Receipt)
from ..models import bill as bill_status
from ..models import invoice as invoice_status
from .audit_helper import log_action
from .pipeline import (POST_BILL, POST_EXPENSE, POST_INVOICE,
                       POST_PAYMENT_MADE, POST_PAYMENT_RECEIVED, POST_RECEIPT,
                       build_payload, enqueue)

# Every trigger validates synchronously, saves the document and queues the
# posting in the same transaction. The caller gets the document back at once;
# posting failures only show up later on posting_status.


def _check_account(entity, account, what):
    if account.entity_id != entity.pk:
        raise AccountOwnershipError(
            f"{what} {account.pk} does not belong to entity {entity.pk}")


def _check_positive(amount, what):
    if amount is None or amount <= 0:
        raise ValidationError(f"{what} must be positive")


def _today():
    return timezone.localdate()


# ----------------------------------------------
# Invoice workflows
# ----------------------------------------------
"""Move invoice from draft → sent and post revenue."""
def issue_invoice(invoice: Invoice, actor="system"):
    with transaction.atomic():
        # Lock the row to avoid two issues racing
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        if not invoice.lines.exists():
            raise ValidationError("Cannot issue invoice with no lines")

        invoice.recalc_totals()
        if invoice.total <= 0:
            raise ValidationError("Invoice total must be > 0 to post revenue")

        invoice.transition_to(invoice_status.SENT)
        invoice.save()
        log_action(
            action="issue",
            instance=invoice,
            actor=actor,
            changes={"total": invoice.total, "tax": invoice.tax_amount},
        )
        enqueue(POST_INVOICE, build_payload(POST_INVOICE, invoice))
    return invoice


"""Record a customer payment against an issued invoice."""
def receive_payment(
    invoice: Invoice,
    amount: int,
    cash_account,
    date: datetime.date | None = None,
    reference="",
    actor="system",
):
    _check_positive(amount, "Payment amount")
    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)

        # overpayment is rejected before anything is written
        if amount > invoice.outstanding_amount:
            raise OverpaymentError(
                f"Payment {amount} exceeds outstanding {invoice.outstanding_amount} "
                f"on invoice {invoice.pk}"
            )
        if invoice.status == invoice_status.DRAFT:
            raise InvalidStatusTransition(
                "Cannot receive payment on a draft invoice")
        _check_account(invoice.entity, cash_account, "Cash account")

        payment = PaymentReceived.objects.create(
            entity=invoice.entity,
            invoice=invoice,
            cash_account=cash_account,
            amount=amount,
            date=date or _today(),
            reference=reference,
        )

        # Update invoice paid amount and status
        invoice.amount_paid += amount
        new_status = (
            invoice_status.PAID
            if invoice.outstanding_amount == 0
            else invoice_status.PARTIALLY_PAID
        )
        if new_status != invoice.status:
            invoice.transition_to(new_status)
        invoice.save(update_fields=["amount_paid", "status"])

        log_action(
            action="receive_payment",
            instance=payment,
            actor=actor,
            changes={"invoice_id": invoice.pk, "amount": amount},
        )
        enqueue(POST_PAYMENT_RECEIVED,
                build_payload(POST_PAYMENT_RECEIVED, payment))
    return payment


"""Cash sale without an invoice."""
def record_receipt(
    entity,
    cash_account,
    net_amount: int,
    tax_amount: int = 0,
    revenue_type="service",
    date: datetime.date | None = None,
    customer=None,
    description="",
    actor="system",
):
    _check_positive(net_amount, "Receipt net amount")
    _check_account(entity, cash_account, "Cash account")
    with transaction.atomic():
        receipt = Receipt.objects.create(
            entity=entity,
            customer=customer,
            cash_account=cash_account,
            revenue_type=revenue_type,
            date=date or _today(),
            net_amount=net_amount,
            tax_amount=tax_amount,
            total=net_amount + tax_amount,
            description=description,
        )
        log_action(action="create", instance=receipt, actor=actor,
                   changes={"total": receipt.total})
        enqueue(POST_RECEIPT, build_payload(POST_RECEIPT, receipt))
    return receipt


# ------------------------------------
# Bill workflows
# ------------------------------------
"""Move bill from draft → unpaid and post the expense + AP."""
def mark_bill_unpaid(bill: Bill, actor="system"):
    with transaction.atomic():
        bill = Bill.objects.select_for_update().get(pk=bill.pk)
        if not bill.lines.exists():
            raise ValidationError("Cannot post bill with no lines")

        bill.recalc_totals()
        if bill.total <= 0:
            raise ValidationError("Bill total must be > 0")

        bill.transition_to(bill_status.UNPAID)
        bill.save()
        log_action(
            action="mark_unpaid",
            instance=bill,
            actor=actor,
            changes={"total": bill.total, "tax": bill.tax_amount},
        )
        enqueue(POST_BILL, build_payload(POST_BILL, bill))
    return bill


"""Pay (part of) an unpaid bill from a cash account."""
def pay_bill(
    bill: Bill,
    amount: int,
    cash_account,
    date: datetime.date | None = None,
    reference="",
    actor="system",
):
    _check_positive(amount, "Payment amount")
    with transaction.atomic():
        bill = Bill.objects.select_for_update().get(pk=bill.pk)

        if amount > bill.outstanding_amount:
            raise OverpaymentError(
                f"Payment {amount} exceeds outstanding {bill.outstanding_amount} "
                f"on bill {bill.pk}"
            )
        if bill.status == bill_status.DRAFT:
            raise InvalidStatusTransition("Cannot pay a draft bill")
        _check_account(bill.entity, cash_account, "Cash account")

        payment = PaymentMade.objects.create(
            entity=bill.entity,
            bill=bill,
            cash_account=cash_account,
            amount=amount,
            date=date or _today(),
            reference=reference,
        )

        bill.amount_paid += amount
        new_status = (
            bill_status.PAID
            if bill.outstanding_amount == 0
            else bill_status.PARTIALLY_PAID
        )
        if new_status != bill.status:
            bill.transition_to(new_status)
        bill.save(update_fields=["amount_paid", "status"])

        log_action(
            action="pay_bill",
            instance=payment,
            actor=actor,
            changes={"bill_id": bill.pk, "amount": amount},
        )
        enqueue(POST_PAYMENT_MADE, build_payload(POST_PAYMENT_MADE, payment))
    return payment


"""Direct expense paid from cash, no bill."""
def record_expense(
    entity,
    expense_account,
    cash_account,
    net_amount: int,
    tax_amount: int = 0,
    date: datetime.date | None = None,
    vendor=None,
    description="",
    actor="system",
):
    _check_positive(net_amount, "Expense net amount")
    _check_account(entity, expense_account, "Expense account")
    _check_account(entity, cash_account, "Cash account")
    with transaction.atomic():
        expense = Expense.objects.create(
            entity=entity,
            vendor=vendor,
            expense_account=expense_account,
            cash_account=cash_account,
            date=date or _today(),
            net_amount=net_amount,
            tax_amount=tax_amount,
            total=net_amount + tax_amount,
            description=description,
        )
        log_action(action="create", instance=expense, actor=actor,
                   changes={"total": expense.total})
        enqueue(POST_EXPENSE, build_payload(POST_EXPENSE, expense))
    return expense

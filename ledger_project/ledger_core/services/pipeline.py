"""
Asynchronous posting pipeline.

A trigger saves a business document (posting_status=Pending) and enqueues a
named job carrying only ids. A Celery worker then runs process_posting_job:

    claim (Pending -> Processing, compare-and-swap)
    -> resolve role bindings -> build lines -> record journal
    -> document Success, all inside one transaction

Ledger errors, and any other unexpected error, mark the document Failed
with an error code. Database outages roll everything back, mark it Failed
and raise TransientPostingError so the task can put it back to Pending
and retry.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict

from django.db import InterfaceError, OperationalError, transaction

from ..choices import (FAILED, PENDING, PROCESSING, PRODUCT, SUCCESS,
                       TXN_BILL, TXN_EXPENSE, TXN_INVOICE, TXN_PAYMENT_MADE,
                       TXN_PAYMENT_RECEIVED, TXN_RECEIPT)
from ..exceptions import (InvalidStatusTransition, LedgerError, NotFoundError,
                          TransientPostingError)
from ..models import (Bill, Expense, Invoice, PaymentMade, PaymentReceived,
                      Receipt)
from .audit_helper import log_action
from .ledger import record_journal
from .rules import (BillEvent, ChartRoleBindings, ExpenseEvent, InvoiceEvent,
                    PaymentEvent, ReceiptEvent, bill_rule, expense_rule,
                    invoice_rule, payment_made_rule, payment_received_rule,
                    receipt_rule)

logger = logging.getLogger(__name__)

# Job names
POST_INVOICE = "post-invoice-journal"
POST_PAYMENT_RECEIVED = "post-payment-received-journal"
POST_RECEIPT = "post-receipt-journal"
POST_BILL = "post-bill-journal"
POST_PAYMENT_MADE = "post-payment-made-journal"
POST_EXPENSE = "post-expense-journal"


# ---- Document -> posting result ----
def _invoice_posting(invoice, bindings):
    product_net = service_net = tax = cost = 0
    for line in invoice.lines.select_related("item"):
        if line.line_type == PRODUCT:
            product_net += line.line_total
        else:
            service_net += line.line_total
        tax += line.tax_amount
        item = line.item
        # no stock-level check: tracked items post at cost whatever is on hand
        if item is not None and item.track_inventory and item.cost_price:
            cost += item.cost_price * line.quantity
    event = InvoiceEvent(
        product_net=product_net,
        service_net=service_net,
        tax=tax,
        total=invoice.total,
        cost=cost,
        reference=invoice.journal_reference_for(),
    )
    return invoice_rule(event, bindings)


def _payment_received_posting(payment, bindings):
    return payment_received_rule(
        PaymentEvent(
            cash_account_id=payment.cash_account_id,
            amount=payment.amount,
            reference=payment.journal_reference_for(),
        ),
        bindings,
    )


def _receipt_posting(receipt, bindings):
    return receipt_rule(
        ReceiptEvent(
            cash_account_id=receipt.cash_account_id,
            revenue_type=receipt.revenue_type,
            net=receipt.net_amount,
            tax=receipt.tax_amount,
            total=receipt.total,
            reference=receipt.journal_reference_for(),
        ),
        bindings,
    )


def _bill_posting(bill, bindings):
    lines = tuple(
        bill.lines.order_by("id").values_list("expense_account_id", "amount")
    )
    tax = sum(bill.lines.values_list("tax_amount", flat=True))
    return bill_rule(
        BillEvent(
            lines=lines,
            tax=tax,
            total=bill.total,
            reference=bill.journal_reference_for(),
        ),
        bindings,
    )


def _payment_made_posting(payment, bindings):
    return payment_made_rule(
        PaymentEvent(
            cash_account_id=payment.cash_account_id,
            amount=payment.amount,
            reference=payment.journal_reference_for(),
        ),
        bindings,
    )


def _expense_posting(expense, bindings):
    return expense_rule(
        ExpenseEvent(
            expense_account_id=expense.expense_account_id,
            cash_account_id=expense.cash_account_id,
            net=expense.net_amount,
            tax=expense.tax_amount,
            total=expense.total,
            reference=expense.journal_reference_for(),
        ),
        bindings,
    )


@dataclass(frozen=True)
class PostingJob:
    name: str
    model: type
    txn_type: str
    build: Callable


JOBS: Dict[str, PostingJob] = {
    job.name: job
    for job in (
        PostingJob(POST_INVOICE, Invoice, TXN_INVOICE, _invoice_posting),
        PostingJob(POST_PAYMENT_RECEIVED, PaymentReceived,
                   TXN_PAYMENT_RECEIVED, _payment_received_posting),
        PostingJob(POST_RECEIPT, Receipt, TXN_RECEIPT, _receipt_posting),
        PostingJob(POST_BILL, Bill, TXN_BILL, _bill_posting),
        PostingJob(POST_PAYMENT_MADE, PaymentMade,
                   TXN_PAYMENT_MADE, _payment_made_posting),
        PostingJob(POST_EXPENSE, Expense, TXN_EXPENSE, _expense_posting),
    )
}


def get_job(job_name):
    try:
        return JOBS[job_name]
    except KeyError:
        raise NotFoundError(f"Unknown posting job {job_name!r}")


def job_for_document(document):
    for job in JOBS.values():
        if isinstance(document, job.model):
            return job
    raise NotFoundError(f"{type(document).__name__} is not a postable document")


# ---- Queueing ----
def build_payload(job_name, document):
    """Ids plus the little denormalised data a worker log line needs"""
    get_job(job_name)
    return {
        "document_id": document.pk,
        "entity_id": document.entity_id,
        "reference": document.journal_reference_for(),
        "amount": document.posting_amount,
    }


def enqueue(job_name, payload):
    """Schedule the posting task once the surrounding transaction commits"""
    from ..tasks import post_document_journal

    get_job(job_name)
    transaction.on_commit(
        lambda: post_document_journal.delay(job_name, payload))
    logger.info(
        "Queued %s for document %s", job_name, payload.get("document_id"))


def claim(model, document_id):
    """
    Pending -> Processing as one conditional UPDATE.
    Returns True only for the worker whose update hit the row.
    """
    return (
        model.objects.filter(pk=document_id, posting_status=PENDING).update(
            posting_status=PROCESSING
        )
        == 1
    )


# error_code for failures that are neither ledger errors nor database outages
UNEXPECTED_ERROR_CODE = "posting_error"


def _mark_failed(document, error_code, message):
    document.refresh_from_db(fields=["posting_status"])
    document.set_posting_status(
        FAILED, error_message=message[:2000], error_code=error_code)
    log_action(
        action="post_failed",
        instance=document,
        changes={"error_code": error_code, "error_message": message[:500]},
    )


def _fail_after_rollback(job, document_id, error_code, message):
    """
    The posting transaction was rolled back, claim included, so the
    document is Pending again. Claim it once more and mark it Failed.
    """
    with transaction.atomic():
        if not claim(job.model, document_id):
            return False
        document = job.model.objects.get(pk=document_id)
        _mark_failed(document, error_code, message)
    return True


def _post_claimed(job, document, label):
    bindings = ChartRoleBindings.for_entity(document.entity)
    result = job.build(document, bindings)
    journal = record_journal(
        entity=document.entity,
        reference=document.journal_reference_for(),
        date=document.date,
        result=result,
        txn_type=job.txn_type,
        related=document,
        description=f"{label} {document.pk}",
    )
    document.set_posting_status(
        SUCCESS,
        journal_reference=journal.reference,
        posted_at=journal.posted_at,
        error_message="",
        error_code="",
    )
    log_action(
        action="post",
        instance=document,
        changes={"journal": journal.reference, "total": result.total_debit},
    )
    return journal


# ---- Worker ----
def process_posting_job(job_name, payload):
    """
    Post one document. Returns the journal reference, or None when the
    document was not claimable (already posted, already being posted) or
    the posting failed for a non-retryable reason.

    The claim commits together with the outcome (Success or Failed). A
    worker lost before the commit leaves the document Pending, so the
    redelivered job can claim it again.
    """
    job = get_job(job_name)
    document_id = payload["document_id"]
    label = job.model.__name__
    logger.info(
        "Posting %s for %s %s (%s, amount %s)",
        job_name, label, document_id,
        payload.get("reference"), payload.get("amount"),
    )

    try:
        with transaction.atomic():
            if not claim(job.model, document_id):
                status = (
                    job.model.objects.filter(pk=document_id)
                    .values_list("posting_status", flat=True)
                    .first()
                )
                logger.info(
                    "%s %s not claimable (status=%s), skipping",
                    label, document_id, status,
                )
                return None

            document = job.model.objects.select_related("entity").get(pk=document_id)
            try:
                # savepoint, a failed posting keeps the claim so it can be marked Failed
                with transaction.atomic():
                    journal = _post_claimed(job, document, label)
            except LedgerError as exc:
                logger.warning(
                    "Posting %s for %s %s failed [%s]: %s",
                    job_name, label, document_id, exc.code, exc,
                )
                _mark_failed(document, exc.code, str(exc))
                return None
            except (OperationalError, InterfaceError):
                raise
            except Exception as exc:
                logger.exception(
                    "Posting %s for %s %s failed unexpectedly",
                    job_name, label, document_id,
                )
                _mark_failed(
                    document, UNEXPECTED_ERROR_CODE, str(exc) or type(exc).__name__)
                return None
    except (OperationalError, InterfaceError) as exc:
        logger.error(
            "Posting %s for %s %s hit a database error: %s",
            job_name, label, document_id, exc,
        )
        try:
            _fail_after_rollback(
                job, document_id, TransientPostingError.code, str(exc))
        except (OperationalError, InterfaceError):
            logger.exception(
                "Could not mark %s %s failed, left Pending", label, document_id)
        raise TransientPostingError(
            f"{label} {document_id}: {exc}") from exc

    logger.info("Posted %s %s as %s", label, document_id, journal.reference)
    return journal.reference


def requeue_after_transient_failure(job_name, document_id):
    """Failed -> Pending so the retried task can claim the document again"""
    job = get_job(job_name)
    return (
        job.model.objects.filter(pk=document_id, posting_status=FAILED).update(
            posting_status=PENDING, error_message="", error_code=""
        )
        == 1
    )


# ---- Recovery ----
def retry_failed_posting(document):
    """Only Failed documents may go back to Pending and be re-queued"""
    job = job_for_document(document)
    # the caller's instance may be stale, the row decides
    document.refresh_from_db(fields=["posting_status"])
    if document.posting_status != FAILED:
        raise InvalidStatusTransition(
            f"Only failed postings can be retried; {type(document).__name__} "
            f"{document.pk} is {document.posting_status}"
        )
    with transaction.atomic():
        document.set_posting_status(PENDING, error_message="", error_code="")
        log_action(action="retry", instance=document)
        enqueue(job.name, build_payload(job.name, document))
    return document


def failed_postings(entity, model=None):
    """Failed documents of an entity, oldest first"""
    models = [model] if model is not None else [job.model for job in JOBS.values()]
    failed = []
    for doc_model in models:
        failed.extend(doc_model.objects.for_entity(entity).failed().order_by("id"))
    return failed


def post_now(document):
    """Run the job for a document in-process, bypassing the queue"""
    job = job_for_document(document)
    return process_posting_job(job.name, build_payload(job.name, document))

from django.core.exceptions import ValidationError
from django.db.models.signals import post_delete, post_save, pre_delete
from django.dispatch import receiver

from .exceptions import FinalizedRecordError
from .models import (Account, AccountTransaction, Bill, BillLine, Invoice,
                     InvoiceLine, Journal, OpeningBalance)
from .models.opening_balance import FINALIZED

"""Block deletion if account has ever been posted to."""


@receiver(pre_delete, sender=Account)
def prevent_delete_account_with_transactions(sender, instance, **kwargs):
    if AccountTransaction.objects.filter(account=instance).exists():
        raise ValidationError("Cannot delete account with posted transactions.")


"""Journals are append-only: corrections are new journals."""


@receiver(pre_delete, sender=Journal)
def prevent_delete_journal(sender, instance, **kwargs):
    raise ValidationError("Journals are immutable and cannot be deleted.")


"""Finalized opening balances are read-only."""


@receiver(pre_delete, sender=OpeningBalance)
def prevent_delete_finalized_opening_balance(sender, instance, **kwargs):
    if instance.status == FINALIZED:
        raise FinalizedRecordError(
            f"Opening balance {instance.pk} is finalized and cannot be deleted."
        )


"""
    Recalculate document totals when a line is added/updated/removed,
    as long as nothing has been posted for the document yet.
"""


@receiver((post_save, post_delete), sender=InvoiceLine)
def invoice_line_changed(sender, instance, **kwargs):
    inv = Invoice.objects.filter(pk=instance.invoice_id).first()
    if inv is None or inv.status != "draft":
        return
    inv.recalc_totals()
    inv.save(update_fields=["subtotal", "tax_amount", "total"])


@receiver((post_save, post_delete), sender=BillLine)
def bill_line_changed(sender, instance, **kwargs):
    bill = Bill.objects.filter(pk=instance.bill_id).first()
    if bill is None or bill.status != "draft":
        return
    bill.recalc_totals()
    bill.save(update_fields=["subtotal", "tax_amount", "total"])

"""
Posting rules: business event -> balanced journal lines.

Every rule is a pure function of an event and the entity's
ChartRoleBindings. Nothing here reads or writes the database,
so the rules can be exercised without an entity on disk.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional, Tuple, Union

from ..choices import (ACCOUNTS_PAYABLE, ACCOUNTS_RECEIVABLE, COGS,
                       INVENTORY, PRODUCT, PRODUCT_REVENUE, ROLE_LABELS,
                       SERVICE_REVENUE, TAX_PAYABLE)
from ..exceptions import (InvalidJournalLine, MissingAccountConfiguration,
                          UnbalancedJournalError)

Amount = Union[int, Decimal]

# Decimal journals may drift by rounding, integer minor units may not
DECIMAL_TOLERANCE = Decimal("0.01")


# ---------- Role bindings ----------
@dataclass(frozen=True)
class ChartRoleBindings:
    """Role -> account id for one entity, loaded once per posting"""

    entity_id: int
    accounts: Dict[str, int] = field(default_factory=dict)

    def require(self, role: str) -> int:
        account_id = self.accounts.get(role)
        if account_id is None:
            label = ROLE_LABELS.get(role, role)
            raise MissingAccountConfiguration(
                f"{label} not configured for entity {self.entity_id}"
            )
        return account_id

    @classmethod
    def for_entity(cls, entity) -> "ChartRoleBindings":
        # lazy import keeps the rules importable without the ORM
        from ..models import ChartRoleBinding

        rows = ChartRoleBinding.objects.for_entity(entity).values_list(
            "role", "account_id"
        )
        return cls(entity_id=entity.pk, accounts=dict(rows))


# ---------- Lines ----------
@dataclass(frozen=True)
class JournalLine:
    """Exactly one of debit / credit is non-zero, neither is negative"""

    account_id: int
    debit: Amount = 0
    credit: Amount = 0
    description: str = ""

    def __post_init__(self):
        if self.debit < 0 or self.credit < 0:
            raise InvalidJournalLine(
                f"Negative amount on account {self.account_id}: "
                f"debit={self.debit}, credit={self.credit}"
            )
        if bool(self.debit) == bool(self.credit):
            raise InvalidJournalLine(
                f"Line on account {self.account_id} must carry exactly one "
                f"of debit or credit (debit={self.debit}, credit={self.credit})"
            )

    def as_dict(self):
        return {
            "account_id": self.account_id,
            "debit": self.debit,
            "credit": self.credit,
            "description": self.description,
        }


@dataclass(frozen=True)
class PostingResult:
    lines: Tuple[JournalLine, ...]
    total_debit: Amount
    total_credit: Amount


def ensure_balanced(total_debit: Amount, total_credit: Amount) -> None:
    """Exact for integer minor units, within 0.01 for Decimal amounts"""
    if isinstance(total_debit, Decimal) or isinstance(total_credit, Decimal):
        if abs(Decimal(total_debit) - Decimal(total_credit)) > DECIMAL_TOLERANCE:
            raise UnbalancedJournalError(
                f"Journal not balanced: debits={total_debit}, credits={total_credit}"
            )
        return
    if total_debit != total_credit:
        raise UnbalancedJournalError(
            f"Journal not balanced: debits={total_debit}, credits={total_credit}"
        )


def build_result(*lines: Optional[JournalLine]) -> PostingResult:
    """Drop omitted (zero) lines, total them and check the balance"""
    kept = tuple(line for line in lines if line is not None)
    if not kept:
        raise InvalidJournalLine("Posting produced no journal lines")
    total_debit = sum(line.debit for line in kept)
    total_credit = sum(line.credit for line in kept)
    ensure_balanced(total_debit, total_credit)
    return PostingResult(kept, total_debit, total_credit)


def _debit(account_id, amount, description=""):
    if not amount:
        return None
    return JournalLine(account_id, debit=amount, description=description)


def _credit(account_id, amount, description=""):
    if not amount:
        return None
    return JournalLine(account_id, credit=amount, description=description)


def _role_debit(bindings, role, amount, description=""):
    # roles are only required when the amount is actually posted
    if not amount:
        return None
    return _debit(bindings.require(role), amount, description)


def _role_credit(bindings, role, amount, description=""):
    if not amount:
        return None
    return _credit(bindings.require(role), amount, description)


def _check_total(net, tax, total, what):
    if net + tax != total:
        raise UnbalancedJournalError(
            f"{what} does not reconcile: net {net} + tax {tax} != total {total}"
        )


# ---------- Events ----------
@dataclass(frozen=True)
class InvoiceEvent:
    product_net: Amount
    service_net: Amount
    tax: Amount
    total: Amount
    # cost of tracked product items sold, 0 when nothing is tracked
    cost: Amount = 0
    reference: str = ""


@dataclass(frozen=True)
class PaymentEvent:
    """Money moving between a cash account and AR or AP"""

    cash_account_id: int
    amount: Amount
    reference: str = ""


@dataclass(frozen=True)
class ReceiptEvent:
    cash_account_id: int
    revenue_type: str
    net: Amount
    tax: Amount
    total: Amount
    reference: str = ""


@dataclass(frozen=True)
class BillEvent:
    # (expense account id, net amount) per bill line
    lines: Tuple[Tuple[int, Amount], ...]
    tax: Amount
    total: Amount
    reference: str = ""


@dataclass(frozen=True)
class ExpenseEvent:
    expense_account_id: int
    cash_account_id: int
    net: Amount
    tax: Amount
    total: Amount
    reference: str = ""


# ---------- Rules ----------
def invoice_rule(event: InvoiceEvent, bindings: ChartRoleBindings) -> PostingResult:
    """
    Dr AR = total
    Cr Product Revenue = product net, Cr Service Revenue = service net
    Cr Tax Payable = tax
    Dr COGS / Cr Inventory = cost of tracked product items
    """
    _check_total(event.product_net + event.service_net, event.tax,
                 event.total, f"Invoice {event.reference}")
    ref = event.reference
    return build_result(
        _role_debit(bindings, ACCOUNTS_RECEIVABLE, event.total, f"AR for {ref}"),
        _role_credit(bindings, PRODUCT_REVENUE, event.product_net,
                     f"Product revenue: {ref}"),
        _role_credit(bindings, SERVICE_REVENUE, event.service_net,
                     f"Service revenue: {ref}"),
        _role_credit(bindings, TAX_PAYABLE, event.tax, f"Output tax: {ref}"),
        _role_debit(bindings, COGS, event.cost, f"Cost of sales: {ref}"),
        _role_credit(bindings, INVENTORY, event.cost, f"Inventory out: {ref}"),
    )


def payment_received_rule(event: PaymentEvent, bindings: ChartRoleBindings) -> PostingResult:
    """Dr cash, Cr AR"""
    ref = event.reference
    return build_result(
        _debit(event.cash_account_id, event.amount, f"Payment received: {ref}"),
        _role_credit(bindings, ACCOUNTS_RECEIVABLE, event.amount,
                     f"Clear AR: {ref}"),
    )


def receipt_rule(event: ReceiptEvent, bindings: ChartRoleBindings) -> PostingResult:
    """Dr cash = total, Cr product or service revenue = net, Cr Tax Payable = tax"""
    _check_total(event.net, event.tax, event.total, f"Receipt {event.reference}")
    revenue_role = PRODUCT_REVENUE if event.revenue_type == PRODUCT else SERVICE_REVENUE
    ref = event.reference
    return build_result(
        _debit(event.cash_account_id, event.total, f"Cash receipt: {ref}"),
        _role_credit(bindings, revenue_role, event.net, f"Revenue: {ref}"),
        _role_credit(bindings, TAX_PAYABLE, event.tax, f"Output tax: {ref}"),
    )


def bill_rule(event: BillEvent, bindings: ChartRoleBindings) -> PostingResult:
    """
    Dr each expense account = net (lines on the same account are summed)
    Dr Tax Payable (input tax) = tax
    Cr AP = total
    """
    per_account: Dict[int, Amount] = {}
    for account_id, amount in event.lines:
        per_account[account_id] = per_account.get(account_id, 0) + amount
    _check_total(sum(per_account.values()), event.tax, event.total,
                 f"Bill {event.reference}")
    ref = event.reference
    expense_lines = [
        _debit(account_id, amount, f"Expense: {ref}")
        for account_id, amount in per_account.items()
    ]
    return build_result(
        *expense_lines,
        _role_debit(bindings, TAX_PAYABLE, event.tax, f"Input tax: {ref}"),
        _role_credit(bindings, ACCOUNTS_PAYABLE, event.total, f"AP for {ref}"),
    )


def payment_made_rule(event: PaymentEvent, bindings: ChartRoleBindings) -> PostingResult:
    """Dr AP, Cr cash"""
    ref = event.reference
    return build_result(
        _role_debit(bindings, ACCOUNTS_PAYABLE, event.amount, f"Settle AP: {ref}"),
        _credit(event.cash_account_id, event.amount, f"Bill payment: {ref}"),
    )


def expense_rule(event: ExpenseEvent, bindings: ChartRoleBindings) -> PostingResult:
    """Dr expense = net, Dr Tax Payable (input) = tax, Cr cash = total"""
    _check_total(event.net, event.tax, event.total, f"Expense {event.reference}")
    ref = event.reference
    return build_result(
        _debit(event.expense_account_id, event.net, f"Expense: {ref}"),
        _role_debit(bindings, TAX_PAYABLE, event.tax, f"Input tax: {ref}"),
        _credit(event.cash_account_id, event.total, f"Paid from cash: {ref}"),
    )

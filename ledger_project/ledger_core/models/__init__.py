from .account import Account, ChartRoleBinding
from .auditlog import AuditLog
from .banking import BankAccount
from .bill import Bill, BillLine
from .chart import AccountCategory, AccountSubCategory, AccountType
from .customer import Customer
from .invoice import Invoice, InvoiceLine
from .item import Item
from .journal import AccountTransaction, Journal
from .opening_balance import Budget, OpeningBalance, OpeningBalanceItem
from .payments import Expense, PaymentMade, PaymentReceived, Receipt
from .postable import PostableDocument
from .tenant import Entity, Group
from .vendor import Vendor

# Choice lists shared by models and services.
# Plain constants so pure posting rules can use them without touching the ORM.

# Define whether an account normally increases on the debit or credit side
DEBIT = "debit"
CREDIT = "credit"
NORMAL_BALANCE = [
    (DEBIT, "Debit"),
    (CREDIT, "Credit"),
]

# ---------- Posting status (business documents + account transactions) ----------
PENDING = "Pending"
PROCESSING = "Processing"
SUCCESS = "Success"
FAILED = "Failed"
POSTING_STATUS = [
    (PENDING, "Pending"),
    (PROCESSING, "Processing"),
    (SUCCESS, "Success"),
    (FAILED, "Failed"),
]
# Success is terminal, Failed only goes back to Pending
POSTING_TRANSITIONS = {
    PENDING: [PROCESSING],
    PROCESSING: [SUCCESS, FAILED],
    SUCCESS: [],
    FAILED: [PENDING],
}

# ---------- AccountTransaction types ----------
TXN_BANK = "BANK"
TXN_INVOICE = "INVOICE_POSTING"
TXN_PAYMENT_RECEIVED = "PAYMENT_RECEIVED_POSTING"
TXN_RECEIPT = "RECEIPT_POSTING"
TXN_BILL = "BILL_POSTING"
TXN_PAYMENT_MADE = "PAYMENT_MADE_POSTING"
TXN_EXPENSE = "EXPENSE_POSTING"
TXN_MANUAL = "MANUAL"
TRANSACTION_TYPES = [
    (TXN_BANK, "Bank"),
    (TXN_INVOICE, "Invoice posting"),
    (TXN_PAYMENT_RECEIVED, "Payment received posting"),
    (TXN_RECEIPT, "Receipt posting"),
    (TXN_BILL, "Bill posting"),
    (TXN_PAYMENT_MADE, "Payment made posting"),
    (TXN_EXPENSE, "Expense posting"),
    (TXN_MANUAL, "Manual"),
]

# ---------- Well-known roles (keys of LEDGER_WELL_KNOWN_CODES) ----------
ACCOUNTS_RECEIVABLE = "accounts_receivable"
ACCOUNTS_PAYABLE = "accounts_payable"
TAX_PAYABLE = "tax_payable"
PRODUCT_REVENUE = "product_revenue"
SERVICE_REVENUE = "service_revenue"
COGS = "cogs"
INVENTORY = "inventory"
ROLE_CHOICES = [
    (ACCOUNTS_RECEIVABLE, "Accounts Receivable"),
    (ACCOUNTS_PAYABLE, "Accounts Payable"),
    (TAX_PAYABLE, "Tax Payable"),
    (PRODUCT_REVENUE, "Product Revenue"),
    (SERVICE_REVENUE, "Service Revenue"),
    (COGS, "COGS"),
    (INVENTORY, "Inventory"),
]
ROLE_LABELS = dict(ROLE_CHOICES)

# ---------- Items / revenue split ----------
PRODUCT = "product"
SERVICE = "service"
ITEM_TYPES = [
    (PRODUCT, "Product"),
    (SERVICE, "Service"),
]

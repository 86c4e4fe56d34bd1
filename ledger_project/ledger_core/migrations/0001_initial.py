import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models

POSTING_STATUS = [
    ("Pending", "Pending"),
    ("Processing", "Processing"),
    ("Success", "Success"),
    ("Failed", "Failed"),
]
NORMAL_BALANCE = [("debit", "Debit"), ("credit", "Credit")]
ITEM_TYPES = [("product", "Product"), ("service", "Service")]


def postable_fields():
    """Columns shared by every document that posts a journal"""
    return [
        (
            "posting_status",
            models.CharField(
                choices=POSTING_STATUS, default="Pending", max_length=12),
        ),
        (
            "journal_reference",
            models.CharField(blank=True, default="", max_length=64),
        ),
        ("posted_at", models.DateTimeField(blank=True, null=True)),
        ("error_message", models.TextField(blank=True, default="")),
        ("error_code", models.CharField(blank=True, default="", max_length=64)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        (
            "entity",
            models.ForeignKey(
                on_delete=django.db.models.deletion.CASCADE,
                to="ledger_core.entity",
            ),
        ),
    ]


def id_field():
    return (
        "id",
        models.BigAutoField(
            auto_created=True, primary_key=True, serialize=False,
            verbose_name="ID"),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        # ---------- Tenancy ----------
        migrations.CreateModel(
            name="Group",
            fields=[
                id_field(),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.CreateModel(
            name="Entity",
            fields=[
                id_field(),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80)),
                ("currency_code", models.CharField(default="USD", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "group",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="entities",
                        to="ledger_core.group",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "entities",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("group", "slug"), name="uq_group_entity_slug"),
                ],
            },
        ),
        # ---------- Chart of accounts ----------
        migrations.CreateModel(
            name="AccountType",
            fields=[
                id_field(),
                ("code", models.CharField(max_length=4, unique=True)),
                ("name", models.CharField(max_length=100)),
                (
                    "normal_balance",
                    models.CharField(choices=NORMAL_BALANCE, max_length=6),
                ),
            ],
            options={"ordering": ["code"]},
        ),
        migrations.CreateModel(
            name="AccountCategory",
            fields=[
                id_field(),
                ("code", models.CharField(max_length=4)),
                ("name", models.CharField(max_length=100)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "account_type",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="categories",
                        to="ledger_core.accounttype",
                    ),
                ),
                (
                    "group",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.group",
                    ),
                ),
            ],
            options={
                "ordering": ["code"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("group", "code"), name="uq_group_category_code"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AccountSubCategory",
            fields=[
                id_field(),
                ("code", models.CharField(max_length=4)),
                ("name", models.CharField(max_length=100)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "category",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="subcategories",
                        to="ledger_core.accountcategory",
                    ),
                ),
            ],
            options={
                "ordering": ["code"],
                "verbose_name_plural": "account subcategories",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("category", "code"),
                        name="uq_category_subcategory_code",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Account",
            fields=[
                id_field(),
                ("code", models.CharField(max_length=32)),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("balance", models.BigIntegerField(default=0)),
                (
                    "normal_balance",
                    models.CharField(
                        choices=NORMAL_BALANCE, default="debit", max_length=6),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "entity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.entity",
                    ),
                ),
                (
                    "sub_category",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="accounts",
                        to="ledger_core.accountsubcategory",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "code"], name="acct_entity_code_idx"),
                    models.Index(
                        fields=["entity", "sub_category"],
                        name="acct_entity_sub_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("entity", "code"), name="uq_entity_account_code"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ChartRoleBinding",
            fields=[
                id_field(),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("accounts_receivable", "Accounts Receivable"),
                            ("accounts_payable", "Accounts Payable"),
                            ("tax_payable", "Tax Payable"),
                            ("product_revenue", "Product Revenue"),
                            ("service_revenue", "Service Revenue"),
                            ("cogs", "COGS"),
                            ("inventory", "Inventory"),
                        ],
                        max_length=32,
                    ),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="role_bindings",
                        to="ledger_core.account",
                    ),
                ),
                (
                    "entity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="role_bindings",
                        to="ledger_core.entity",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("entity", "role"), name="uq_entity_role_binding"),
                ],
            },
        ),
        # ---------- Audit ----------
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                id_field(),
                ("actor", models.CharField(default="system", max_length=150)),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "entity",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to="ledger_core.entity",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "created_at"],
                        name="audit_entity_created_idx",
                    ),
                    models.Index(
                        fields=["object_type", "object_id"],
                        name="audit_object_idx",
                    ),
                ],
            },
        ),
        # ---------- Banking ----------
        migrations.CreateModel(
            name="BankAccount",
            fields=[
                id_field(),
                ("name", models.CharField(max_length=200)),
                ("bank_name", models.CharField(blank=True, default="", max_length=200)),
                (
                    "account_number_masked",
                    models.CharField(blank=True, default="", max_length=50),
                ),
                ("currency_code", models.CharField(default="USD", max_length=10)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "entity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.entity",
                    ),
                ),
                (
                    "ledger_account",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bank_account",
                        to="ledger_core.account",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("entity", "name"),
                        name="uq_entity_bankaccount_name",
                    ),
                ],
            },
        ),
        # ---------- Parties and items ----------
        migrations.CreateModel(
            name="Customer",
            fields=[
                id_field(),
                ("name", models.CharField(max_length=200)),
                ("contact_email", models.EmailField(blank=True, max_length=254, null=True)),
                ("payment_terms_days", models.IntegerField(default=30)),
                (
                    "entity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.entity",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "name"], name="cust_entity_name_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Vendor",
            fields=[
                id_field(),
                ("name", models.CharField(max_length=200)),
                ("contact_email", models.EmailField(blank=True, max_length=254, null=True)),
                ("payment_terms_days", models.IntegerField(default=30)),
                (
                    "entity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.entity",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "name"], name="vend_entity_name_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("entity", "name"), name="uq_entity_vendor_name"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Item",
            fields=[
                id_field(),
                ("sku", models.CharField(blank=True, max_length=80, null=True)),
                ("name", models.CharField(max_length=200)),
                (
                    "item_type",
                    models.CharField(
                        choices=ITEM_TYPES, default="product", max_length=10),
                ),
                ("track_inventory", models.BooleanField(default=False)),
                ("cost_price", models.BigIntegerField(default=0)),
                ("sale_price", models.BigIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "entity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.entity",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "name"], name="item_entity_name_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("entity", "sku"), name="uq_entity_item_sku"),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("cost_price__gte", 0), ("sale_price__gte", 0)),
                        name="item_non_negative_prices",
                    ),
                ],
            },
        ),
        # ---------- Invoices (AR) ----------
        migrations.CreateModel(
            name="Invoice",
            fields=[
                id_field(),
                *postable_fields(),
                ("invoice_number", models.CharField(blank=True, max_length=64, null=True)),
                ("date", models.DateField()),
                ("due_date", models.DateField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("sent", "Sent"),
                            ("partially_paid", "Partially paid"),
                            ("paid", "Paid"),
                        ],
                        default="draft",
                        max_length=16,
                    ),
                ),
                ("subtotal", models.BigIntegerField(default=0)),
                ("tax_amount", models.BigIntegerField(default=0)),
                ("total", models.BigIntegerField(default=0)),
                ("amount_paid", models.BigIntegerField(default=0)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        to="ledger_core.customer",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "invoice_number"],
                        name="inv_entity_number_idx",
                    ),
                    models.Index(
                        fields=["entity", "posting_status"],
                        name="inv_entity_status_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("entity", "invoice_number"),
                        name="uq_invoice_entity_number",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("amount_paid__lte", models.F("total"))),
                        name="invoice_not_overpaid",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoiceLine",
            fields=[
                id_field(),
                ("description", models.TextField(blank=True, default="")),
                (
                    "line_type",
                    models.CharField(
                        choices=ITEM_TYPES, default="product", max_length=10),
                ),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("unit_price", models.BigIntegerField(default=0)),
                ("tax_amount", models.BigIntegerField(default=0)),
                ("line_total", models.BigIntegerField(default=0)),
                (
                    "entity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.entity",
                    ),
                ),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="ledger_core.invoice",
                    ),
                ),
                (
                    "item",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        to="ledger_core.item",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "invoice"],
                        name="invl_entity_invoice_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("unit_price__gte", 0), ("tax_amount__gte", 0)),
                        name="invl_non_negative_amounts",
                    ),
                ],
            },
        ),
        # ---------- Bills (AP) ----------
        migrations.CreateModel(
            name="Bill",
            fields=[
                id_field(),
                *postable_fields(),
                ("bill_number", models.CharField(blank=True, max_length=64, null=True)),
                ("date", models.DateField()),
                ("due_date", models.DateField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("unpaid", "Unpaid"),
                            ("partially_paid", "Partially paid"),
                            ("paid", "Paid"),
                        ],
                        default="draft",
                        max_length=16,
                    ),
                ),
                ("subtotal", models.BigIntegerField(default=0)),
                ("tax_amount", models.BigIntegerField(default=0)),
                ("total", models.BigIntegerField(default=0)),
                ("amount_paid", models.BigIntegerField(default=0)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "vendor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        to="ledger_core.vendor",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "bill_number"],
                        name="bill_entity_number_idx",
                    ),
                    models.Index(
                        fields=["entity", "posting_status"],
                        name="bill_entity_status_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("entity", "bill_number"),
                        name="uq_bill_entity_number",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("amount_paid__lte", models.F("total"))),
                        name="bill_not_overpaid",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BillLine",
            fields=[
                id_field(),
                ("description", models.TextField(blank=True, default="")),
                ("amount", models.BigIntegerField(default=0)),
                ("tax_amount", models.BigIntegerField(default=0)),
                (
                    "bill",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="ledger_core.bill",
                    ),
                ),
                (
                    "entity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.entity",
                    ),
                ),
                (
                    "expense_account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bill_lines",
                        to="ledger_core.account",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "bill"], name="billl_entity_bill_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("amount__gte", 0), ("tax_amount__gte", 0)),
                        name="billl_non_negative_amounts",
                    ),
                ],
            },
        ),
        # ---------- Payments, receipts, expenses ----------
        migrations.CreateModel(
            name="PaymentReceived",
            fields=[
                id_field(),
                *postable_fields(),
                ("amount", models.BigIntegerField()),
                ("date", models.DateField()),
                ("reference", models.CharField(blank=True, default="", max_length=200)),
                (
                    "cash_account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="ledger_core.account",
                    ),
                ),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="ledger_core.invoice",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "posting_status"],
                        name="payrecv_entity_status_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="payrecv_positive_amount",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Receipt",
            fields=[
                id_field(),
                *postable_fields(),
                (
                    "revenue_type",
                    models.CharField(
                        choices=ITEM_TYPES, default="service", max_length=10),
                ),
                ("date", models.DateField()),
                ("net_amount", models.BigIntegerField()),
                ("tax_amount", models.BigIntegerField(default=0)),
                ("total", models.BigIntegerField()),
                ("description", models.TextField(blank=True, default="")),
                (
                    "cash_account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="ledger_core.account",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        to="ledger_core.customer",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "posting_status"],
                        name="rcpt_entity_status_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentMade",
            fields=[
                id_field(),
                *postable_fields(),
                ("amount", models.BigIntegerField()),
                ("date", models.DateField()),
                ("reference", models.CharField(blank=True, default="", max_length=200)),
                (
                    "bill",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="ledger_core.bill",
                    ),
                ),
                (
                    "cash_account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="ledger_core.account",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "payments made",
                "indexes": [
                    models.Index(
                        fields=["entity", "posting_status"],
                        name="paymade_entity_status_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="paymade_positive_amount",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Expense",
            fields=[
                id_field(),
                *postable_fields(),
                ("date", models.DateField()),
                ("net_amount", models.BigIntegerField()),
                ("tax_amount", models.BigIntegerField(default=0)),
                ("total", models.BigIntegerField()),
                ("description", models.TextField(blank=True, default="")),
                (
                    "cash_account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="ledger_core.account",
                    ),
                ),
                (
                    "expense_account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="ledger_core.account",
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        to="ledger_core.vendor",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "posting_status"],
                        name="exp_entity_status_idx",
                    ),
                ],
            },
        ),
        # ---------- Journal + account transactions ----------
        migrations.CreateModel(
            name="Journal",
            fields=[
                id_field(),
                ("date", models.DateField()),
                ("reference", models.CharField(max_length=64)),
                ("description", models.TextField(blank=True, default="")),
                ("lines", models.JSONField(default=list)),
                ("total_debit", models.BigIntegerField(default=0)),
                ("total_credit", models.BigIntegerField(default=0)),
                ("source_type", models.CharField(blank=True, default="", max_length=50)),
                ("source_id", models.BigIntegerField(blank=True, null=True)),
                ("posted_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "entity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.entity",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "date"], name="jrnl_entity_date_idx"),
                    models.Index(
                        fields=["entity", "source_type", "source_id"],
                        name="jrnl_entity_source_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("entity", "reference"),
                        name="uq_journal_entity_ref",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("total_debit", models.F("total_credit"))),
                        name="journal_balanced_totals",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AccountTransaction",
            fields=[
                id_field(),
                ("date", models.DateField()),
                ("description", models.CharField(blank=True, default="", max_length=400)),
                ("reference", models.CharField(blank=True, default="", max_length=64)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("BANK", "Bank"),
                            ("INVOICE_POSTING", "Invoice posting"),
                            ("PAYMENT_RECEIVED_POSTING", "Payment received posting"),
                            ("RECEIPT_POSTING", "Receipt posting"),
                            ("BILL_POSTING", "Bill posting"),
                            ("PAYMENT_MADE_POSTING", "Payment made posting"),
                            ("EXPENSE_POSTING", "Expense posting"),
                            ("MANUAL", "Manual"),
                        ],
                        max_length=32,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=POSTING_STATUS, default="Pending", max_length=12),
                ),
                ("debit_amount", models.BigIntegerField(default=0)),
                ("credit_amount", models.BigIntegerField(default=0)),
                ("running_balance", models.BigIntegerField(default=0)),
                (
                    "related_entity_type",
                    models.CharField(blank=True, default="", max_length=50),
                ),
                ("related_entity_id", models.BigIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="ledger_core.account",
                    ),
                ),
                (
                    "entity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.entity",
                    ),
                ),
                (
                    "journal",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="ledger_core.journal",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "account"],
                        name="atx_entity_account_idx",
                    ),
                    models.Index(
                        fields=["entity", "journal"],
                        name="atx_entity_journal_idx",
                    ),
                    models.Index(
                        fields=["related_entity_type", "related_entity_id"],
                        name="atx_related_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("debit_amount__gte", 0), ("credit_amount__gte", 0)),
                        name="atx_non_negative_amounts",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("debit_amount", 0), ("credit_amount__gt", 0)),
                            models.Q(("credit_amount", 0), ("debit_amount__gt", 0)),
                            _connector="OR",
                        ),
                        name="atx_debit_xor_credit",
                    ),
                ],
            },
        ),
        # ---------- Opening balances + budgets ----------
        migrations.CreateModel(
            name="OpeningBalance",
            fields=[
                id_field(),
                ("date", models.DateField()),
                ("fiscal_year", models.IntegerField(blank=True, null=True)),
                ("note", models.TextField(blank=True, default="")),
                (
                    "status",
                    models.CharField(
                        choices=[("Draft", "Draft"), ("Finalized", "Finalized")],
                        default="Draft",
                        max_length=10,
                    ),
                ),
                ("total_debit", models.BigIntegerField(default=0)),
                ("total_credit", models.BigIntegerField(default=0)),
                ("difference", models.BigIntegerField(default=0)),
                ("finalized_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "entity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.entity",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "date"], name="ob_entity_date_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OpeningBalanceItem",
            fields=[
                id_field(),
                ("debit", models.BigIntegerField(default=0)),
                ("credit", models.BigIntegerField(default=0)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        to="ledger_core.account",
                    ),
                ),
                (
                    "opening_balance",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="ledger_core.openingbalance",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("debit__gte", 0), ("credit__gte", 0)),
                        name="obi_non_negative_amounts",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Budget",
            fields=[
                id_field(),
                ("name", models.CharField(max_length=200)),
                (
                    "period_type",
                    models.CharField(
                        choices=[
                            ("monthly", "Monthly"),
                            ("quarterly", "Quarterly"),
                            ("yearly", "Yearly"),
                        ],
                        max_length=10,
                    ),
                ),
                ("month", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("fiscal_year", models.IntegerField()),
                ("amount", models.BigIntegerField(default=0)),
                ("note", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="budgets",
                        to="ledger_core.account",
                    ),
                ),
                (
                    "entity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        to="ledger_core.entity",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["entity", "fiscal_year"],
                        name="budget_entity_year_idx",
                    ),
                    models.Index(
                        fields=["entity", "account"],
                        name="budget_entity_account_idx",
                    ),
                ],
            },
        ),
    ]

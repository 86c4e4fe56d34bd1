from .budgets import create_bulk_budgets
from .chart import (bind_default_roles, create_account, create_category,
                    create_subcategory, next_code, open_bank_account,
                    seed_account_types, seed_entity_accounts,
                    seed_group_chart)
from .documents import (issue_invoice, mark_bill_unpaid, pay_bill,
                        receive_payment, record_expense, record_receipt)
from .ledger import (balance_delta, post_manual_journal, reconstruct_balance,
                     record_bank_transaction, record_journal,
                     transaction_summary, verify_entity_balances)
from .opening_balances import (create_opening_balance,
                               delete_opening_balance,
                               finalize_opening_balance, get_opening_balance,
                               update_opening_balance)
from .pipeline import (build_payload, claim, enqueue, failed_postings,
                       post_now, process_posting_job, retry_failed_posting)
from .rules import ChartRoleBindings, JournalLine, PostingResult

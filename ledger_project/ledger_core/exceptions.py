"""
Error taxonomy for the posting engine.

Every error carries a stable ``code``. When a posting job fails the code is
written to the document's ``error_code`` so operators can filter on it.
"""


class LedgerError(Exception):
    """Base for every failure raised by ledger services."""

    code = "ledger_error"
    retryable = False

    def __init__(self, message="", code=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def __str__(self):
        return self.message or self.code


# ---- Configuration ----
class MissingAccountConfiguration(LedgerError):
    """A well-known role (AR, AP, tax ...) has no account bound for the entity."""

    code = "missing_account_configuration"


# ---- Validation ----
class UnbalancedJournalError(LedgerError):
    """Raised when a journal fails the double-entry balance check."""

    code = "unbalanced_journal"


class InvalidJournalLine(LedgerError):
    code = "invalid_journal_line"


class OverpaymentError(LedgerError):
    """Payment larger than what is still outstanding on the document."""

    code = "overpayment"


class InvalidStatusTransition(LedgerError):
    code = "invalid_status_transition"


class FinalizedRecordError(LedgerError):
    """Finalized records are read-only."""

    code = "finalized_record"


class AccountOwnershipError(LedgerError):
    """Account (or chart node) belongs to another entity or group."""

    code = "account_ownership"


# ---- Lookup / conflict ----
class NotFoundError(LedgerError):
    code = "not_found"


class CodeConflictError(LedgerError):
    code = "code_conflict"


# ---- Infrastructure ----
class TransientPostingError(LedgerError):
    """Database was unavailable mid-posting; the job may be retried."""

    code = "transient_failure"
    retryable = True

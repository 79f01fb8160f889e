"""Public interface for the ``bank_reconciliation`` package.

This module exposes the package's API functions and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .api import (
    add_expense,
    auto_reconcile,
    confirm_match,
    create_expense_from_transaction,
    delete_transaction,
    flag_discrepancy,
    import_extracted,
    import_statement_csv,
    list_transactions,
    reconciliation_summary,
    recurring_payments,
    revert_to_pending,
    split_transaction,
    suggest_matches,
    vendor_totals,
)
from .errors import InvalidTransition, NotFound, ParseError, ReconciliationError
from .ingest import iter_statement, parse_statement
from .lifecycle import TransactionStatus
from .matching import match_transaction
from .models import (
    BankTransactionRecord,
    ExpenseRecord,
    Frequency,
    ImportSummary,
    MatchCandidate,
    MatchType,
    ParsedTransaction,
    ParseResult,
    RecurringPayment,
    SplitItem,
    TransactionMatches,
    VendorTotal,
)
from .recurrence import detect_recurring, top_vendors

__all__ = [
    # Core
    "parse_statement",
    "iter_statement",
    "match_transaction",
    "detect_recurring",
    "top_vendors",
    # API
    "import_statement_csv",
    "import_extracted",
    "add_expense",
    "list_transactions",
    "suggest_matches",
    "auto_reconcile",
    "confirm_match",
    "flag_discrepancy",
    "revert_to_pending",
    "delete_transaction",
    "create_expense_from_transaction",
    "split_transaction",
    "reconciliation_summary",
    "recurring_payments",
    "vendor_totals",
    # Errors
    "ReconciliationError",
    "ParseError",
    "NotFound",
    "InvalidTransition",
    # Models / types
    "TransactionStatus",
    "ParsedTransaction",
    "ParseResult",
    "BankTransactionRecord",
    "ExpenseRecord",
    "MatchType",
    "MatchCandidate",
    "TransactionMatches",
    "Frequency",
    "RecurringPayment",
    "SplitItem",
    "VendorTotal",
    "ImportSummary",
]

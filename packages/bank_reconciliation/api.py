"""Public API and orchestration for the ``bank_reconciliation`` package.

Each function opens its own ``session_scope`` (``database_url`` overrides the
``DATABASE_URL`` environment variable) so callers such as the CLI never deal
with sessions. Parsing and matching run outside of database transactions;
writes for one operation happen in a single transaction and roll back
together on failure.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal
from typing import Any

from db.client import session_scope
from sqlalchemy.orm import Session

from . import persistence
from .errors import InvalidTransition, NotFound
from .ingest import normalize_extracted, parse_statement
from .lifecycle import TransactionStatus, validate_transition
from .logging_setup import get_logger
from .matching import match_many
from .models import (
    BankTransactionRecord,
    ExpenseRecord,
    ImportSummary,
    ParseResult,
    RecurringPayment,
    SplitItem,
    TransactionMatches,
    VendorTotal,
)
from .recurrence import detect_recurring, top_vendors

_logger = get_logger("bank_reconciliation.api")

_WORKERS_ENV = "BANK_RECON_MATCH_WORKERS"
_DEFAULT_WORKERS = 4
_MAX_WORKERS = 32


def resolve_match_workers(concurrency: int | None = None) -> int:
    """Worker count for batch matching.

    An explicit ``concurrency`` wins; otherwise ``BANK_RECON_MATCH_WORKERS``
    is honored when it is a positive integer. The result is clamped to 1..32.
    """

    if concurrency is None:
        env_val = os.getenv(_WORKERS_ENV)
        try:
            concurrency = int(env_val) if env_val else _DEFAULT_WORKERS
        except ValueError:
            _logger.warning("Ignoring non-integer %s=%r", _WORKERS_ENV, env_val)
            concurrency = _DEFAULT_WORKERS
        if concurrency <= 0:
            concurrency = _DEFAULT_WORKERS
    return max(1, min(concurrency, _MAX_WORKERS))


# ---- Import ------------------------------------------------------------------


def _persist_batch(result: ParseResult, *, source: str, database_url: str | None) -> ImportSummary:
    batch_id = str(uuid.uuid4())
    with session_scope(database_url=database_url) as session:
        ids = persistence.insert_transactions(
            session, result.transactions, source=source, import_batch_id=batch_id
        )
    _logger.info(
        "Imported %d %s transaction(s) in batch %s (%d skipped)",
        len(ids),
        source,
        batch_id,
        result.skipped_count,
    )
    return ImportSummary(batch_id=batch_id, inserted=len(ids), skipped=result.skipped_count)


def import_statement_csv(csv_text: str, *, database_url: str | None = None) -> ImportSummary:
    """Parse a CSV statement and store every valid row as ``pending``.

    ``ParseError`` is raised before the database is touched; otherwise the
    whole batch is inserted in one transaction.
    """

    result = parse_statement(csv_text)
    return _persist_batch(result, source="csv", database_url=database_url)


def import_extracted(
    records: Iterable[Mapping[str, Any] | Any], *, database_url: str | None = None
) -> ImportSummary:
    """Store AI-extracted candidates; invalid items are counted as skipped."""

    result = normalize_extracted(records)
    if not result.transactions:
        _logger.info("No valid extracted transactions (%d skipped)", result.skipped_count)
        return ImportSummary(batch_id="", inserted=0, skipped=result.skipped_count)
    return _persist_batch(result, source="extracted", database_url=database_url)


# ---- Matching ----------------------------------------------------------------


def suggest_matches(
    *, database_url: str | None = None, concurrency: int | None = None
) -> list[TransactionMatches]:
    """Shortlist every ``pending`` transaction against unreconciled expenses."""

    with session_scope(database_url=database_url) as session:
        pending = persistence.list_transactions(session, status=TransactionStatus.PENDING)
        expenses = persistence.list_expenses(session, include_reconciled=False)
    return match_many(pending, expenses, concurrency=resolve_match_workers(concurrency))


def auto_reconcile(*, database_url: str | None = None, min_score: int = 100) -> int:
    """Confirm unambiguous top candidates and return how many were confirmed.

    A transaction is confirmed only when its best candidate scores at least
    ``min_score``, no other candidate ties that score, and the expense has not
    already been claimed earlier in the same run.

    Each confirmation commits on its own. A transaction that another caller
    confirmed, flagged or deleted after the suggestions were computed is
    logged and skipped without undoing the confirmations already made.
    """

    suggestions = suggest_matches(database_url=database_url)
    claimed: set[str] = set()
    confirmed = 0
    for tm in suggestions:
        best = tm.best
        if best is None or best.score < min_score:
            continue
        if len(tm.candidates) > 1 and tm.candidates[1].score == best.score:
            continue
        if best.expense.id in claimed:
            continue
        try:
            with session_scope(database_url=database_url) as session:
                persistence.confirm_match(session, tm.transaction.id, best.expense.id)
                persistence.set_expense_reconciled(session, best.expense.id, True)
        except (InvalidTransition, NotFound) as exc:
            _logger.info("Skipping auto-reconcile of %s: %s", tm.transaction.id, exc)
            continue
        claimed.add(best.expense.id)
        confirmed += 1
    _logger.info("Auto-reconciled %d of %d pending transaction(s)", confirmed, len(suggestions))
    return confirmed


# ---- State changes -----------------------------------------------------------


def confirm_match(
    transaction_id: str, expense_id: str, *, database_url: str | None = None
) -> BankTransactionRecord:
    with session_scope(database_url=database_url) as session:
        record = persistence.confirm_match(session, transaction_id, expense_id)
        persistence.set_expense_reconciled(session, expense_id, True)
    return record


def flag_discrepancy(transaction_id: str, *, database_url: str | None = None) -> BankTransactionRecord:
    with session_scope(database_url=database_url) as session:
        return persistence.flag_discrepancy(session, transaction_id)


def revert_to_pending(
    transaction_id: str, *, database_url: str | None = None
) -> BankTransactionRecord:
    """Undo a match or discrepancy.

    The unlinked expense, and any expense created or split out of this
    transaction, loses its ``reconciled`` flag unless another matched
    transaction still points at it. Those expenses stay in the ledger.
    """

    with session_scope(database_url=database_url) as session:
        expense_id = persistence.revert_to_pending(session, transaction_id)
        released = {e.id for e in persistence.expenses_from_transaction(session, transaction_id)}
        if expense_id is not None:
            released.add(expense_id)
        for eid in sorted(released):
            if persistence.count_matches_for_expense(session, eid) == 0:
                persistence.set_expense_reconciled(session, eid, False)
        return persistence.get_transaction(session, transaction_id)


def delete_transaction(transaction_id: str, *, database_url: str | None = None) -> None:
    with session_scope(database_url=database_url) as session:
        persistence.delete_transaction(session, transaction_id)


# ---- Resolving with new expenses ---------------------------------------------

SPLIT_TOLERANCE = Decimal("0.01")


def _pending_for_match(session: Session, transaction_id: str) -> BankTransactionRecord:
    tx = persistence.get_transaction(session, transaction_id)
    validate_transition(tx.status, TransactionStatus.MATCHED, transaction_id=transaction_id)
    return tx


def create_expense_from_transaction(
    transaction_id: str,
    *,
    vendor: str | None = None,
    description: str | None = None,
    category: str | None = None,
    database_url: str | None = None,
) -> tuple[ExpenseRecord, BankTransactionRecord]:
    """Record a new expense mirroring a pending transaction and match the two.

    The expense takes the transaction's date and amount; ``vendor`` and
    ``description`` default to the transaction description. Both writes
    commit together or not at all.
    """

    with session_scope(database_url=database_url) as session:
        tx = _pending_for_match(session, transaction_id)
        expense = persistence.add_expense(
            session,
            date=tx.date,
            amount=tx.amount,
            vendor=vendor or tx.description,
            description=description or tx.description,
            category=category,
            origin_transaction_id=tx.id,
            reconciled=True,
        )
        record = persistence.confirm_match(session, tx.id, expense.id)
    _logger.info("Created expense %s from transaction %s", expense.id, transaction_id)
    return expense, record


def split_transaction(
    transaction_id: str,
    items: Iterable[SplitItem | Mapping[str, Any]],
    *,
    database_url: str | None = None,
) -> tuple[list[ExpenseRecord], BankTransactionRecord]:
    """Split a pending transaction into several new expenses and match it.

    Every item needs a vendor and an amount above zero, and the amounts must
    add up to the transaction amount within ``SPLIT_TOLERANCE``. The
    transaction is linked to the first item's expense; the others carry the
    transaction as their origin. Nothing is written when validation fails.
    """

    parts = [i if isinstance(i, SplitItem) else SplitItem.model_validate(i) for i in items]
    if not parts:
        raise ValueError("a split needs at least one item")

    with session_scope(database_url=database_url) as session:
        tx = _pending_for_match(session, transaction_id)
        total = sum((p.amount for p in parts), Decimal(0))
        if abs(total - tx.amount) >= SPLIT_TOLERANCE:
            raise ValueError(
                f"split amounts add up to {total} but transaction {tx.id} is {tx.amount}"
            )
        expenses = [
            persistence.add_expense(
                session,
                date=tx.date,
                amount=p.amount,
                vendor=p.vendor,
                description=p.description or tx.description,
                category=p.category,
                origin_transaction_id=tx.id,
                reconciled=True,
            )
            for p in parts
        ]
        record = persistence.confirm_match(session, tx.id, expenses[0].id)
    _logger.info("Split transaction %s into %d expense(s)", transaction_id, len(expenses))
    return expenses, record


# ---- Ledger and listings -----------------------------------------------------


def add_expense(
    *,
    date: date,
    amount: Decimal,
    vendor: str | None = None,
    description: str | None = None,
    category: str | None = None,
    database_url: str | None = None,
) -> ExpenseRecord:
    with session_scope(database_url=database_url) as session:
        return persistence.add_expense(
            session,
            date=date,
            amount=amount,
            vendor=vendor,
            description=description,
            category=category,
        )


def list_transactions(
    *, status: TransactionStatus | str | None = None, database_url: str | None = None
) -> list[BankTransactionRecord]:
    with session_scope(database_url=database_url) as session:
        return persistence.list_transactions(session, status=status)


# ---- Reporting ---------------------------------------------------------------


def reconciliation_summary(*, database_url: str | None = None) -> dict[TransactionStatus, int]:
    with session_scope(database_url=database_url) as session:
        return persistence.count_by_status(session)


def recurring_payments(*, database_url: str | None = None) -> list[RecurringPayment]:
    with session_scope(database_url=database_url) as session:
        transactions = persistence.list_transactions(session)
    return detect_recurring(transactions)


def vendor_totals(*, limit: int = 10, database_url: str | None = None) -> list[VendorTotal]:
    with session_scope(database_url=database_url) as session:
        transactions = persistence.list_transactions(session)
    return top_vendors(transactions, limit=limit)


__all__ = [
    "add_expense",
    "auto_reconcile",
    "confirm_match",
    "create_expense_from_transaction",
    "delete_transaction",
    "flag_discrepancy",
    "import_extracted",
    "import_statement_csv",
    "list_transactions",
    "reconciliation_summary",
    "recurring_payments",
    "resolve_match_workers",
    "revert_to_pending",
    "split_transaction",
    "suggest_matches",
    "vendor_totals",
]

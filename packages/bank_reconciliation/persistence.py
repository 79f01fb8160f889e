# ruff: noqa: I001
"""Reconciliation state store over ``rc_bank_transactions`` / ``rc_expenses``.

Every function takes an active SQLAlchemy session (see ``db.client``) and
leaves commit/rollback to the caller, so a batch insert is all-or-nothing
within the caller's ``session_scope``.

Status changes are single compare-and-set statements::

    UPDATE rc_bank_transactions SET ... WHERE id = :id AND status IN (:sources)

When no row is affected a follow-up read decides between :class:`NotFound`
(the id does not exist) and :class:`InvalidTransition` (the row is in a state
from which the change is not allowed). Two callers racing on the same row
therefore cannot both succeed. SQLAlchemy errors propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from sqlalchemy import ColumnElement, delete, func, select, update
from sqlalchemy.orm import Session

from db.models.reconciliation import RcBankTransaction, RcExpense
from .errors import InvalidTransition, NotFound
from .lifecycle import TransactionStatus, sources_for, validate_transition
from .logging_setup import get_logger
from .models import BankTransactionRecord, ExpenseRecord, ParsedTransaction

logger = get_logger("bank_reconciliation.persistence")

_SOURCES = ("csv", "extracted")


# ---------------------------------------------------------------------------
# Bank transactions
# ---------------------------------------------------------------------------


def insert_transactions(
    session: Session,
    transactions: Iterable[ParsedTransaction],
    *,
    source: str = "csv",
    import_batch_id: str | None = None,
) -> list[str]:
    """Insert parsed rows as ``pending`` and return their new ids in input order."""

    if source not in _SOURCES:
        raise ValueError(f"unknown transaction source: {source!r}")

    rows = [
        RcBankTransaction(
            transaction_date=tx.date,
            amount=tx.amount,
            description=tx.description,
            status=TransactionStatus.PENDING.value,
            source=source,
            import_batch_id=import_batch_id,
        )
        for tx in transactions
    ]
    if not rows:
        return []
    session.add_all(rows)
    # Assigns Python-side default ids and surfaces constraint errors here
    session.flush()
    logger.debug("Inserted %d %s transaction(s) (batch=%s)", len(rows), source, import_batch_id)
    return [r.id for r in rows]


def _fetch_row(session: Session, transaction_id: str) -> RcBankTransaction | None:
    stmt = (
        select(RcBankTransaction)
        .where(RcBankTransaction.id == transaction_id)
        .execution_options(populate_existing=True)
    )
    return session.execute(stmt).scalar_one_or_none()


def get_transaction(session: Session, transaction_id: str) -> BankTransactionRecord:
    row = _fetch_row(session, transaction_id)
    if row is None:
        raise NotFound(transaction_id)
    return BankTransactionRecord.from_row(row)


def list_transactions(
    session: Session, *, status: TransactionStatus | str | None = None
) -> list[BankTransactionRecord]:
    """Return transactions ordered by date, optionally filtered by status."""

    stmt = select(RcBankTransaction).execution_options(populate_existing=True)
    if status is not None:
        stmt = stmt.where(RcBankTransaction.status == TransactionStatus(status).value)
    stmt = stmt.order_by(RcBankTransaction.transaction_date, RcBankTransaction.created_at)
    return [BankTransactionRecord.from_row(r) for r in session.execute(stmt).scalars()]


def count_by_status(session: Session) -> dict[TransactionStatus, int]:
    """Return the number of transactions per status (every status present)."""

    counts = {s: 0 for s in TransactionStatus}
    stmt = select(RcBankTransaction.status, func.count()).group_by(RcBankTransaction.status)
    for status, n in session.execute(stmt).all():
        counts[TransactionStatus(status)] = int(n)
    return counts


def _transition(
    session: Session,
    transaction_id: str,
    target: TransactionStatus,
    *,
    guard: ColumnElement[bool] | None = None,
    **values: object,
) -> None:
    sources = sorted(s.value for s in sources_for(target))
    condition = (RcBankTransaction.id == transaction_id) & (
        RcBankTransaction.status.in_(sources)
    )
    if guard is not None:
        condition = condition & guard
    stmt = (
        update(RcBankTransaction)
        .where(condition)
        .values(status=target.value, updated_at=func.now(), **values)
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    if result.rowcount == 0:
        current = session.execute(
            select(RcBankTransaction.status).where(RcBankTransaction.id == transaction_id)
        ).scalar_one_or_none()
        if current is None:
            raise NotFound(transaction_id)
        validate_transition(current, target, transaction_id=transaction_id)
        # Status is a valid source again, so the row (or the guard) changed
        # between the two statements.
        raise InvalidTransition(transaction_id, current, target.value)
    logger.info("Transaction %s -> %s", transaction_id, target.value)


def confirm_match(session: Session, transaction_id: str, expense_id: str) -> BankTransactionRecord:
    """Link a ``pending`` transaction to ``expense_id`` and mark it ``matched``.

    Raises :class:`NotFound` for an unknown transaction or expense and
    :class:`InvalidTransition` when the transaction is not ``pending``.
    """

    if session.get(RcExpense, expense_id) is None:
        raise NotFound(expense_id, entity="expense")
    _transition(
        session,
        transaction_id,
        TransactionStatus.MATCHED,
        matched_expense_id=expense_id,
        matched_at=func.now(),
    )
    return get_transaction(session, transaction_id)


def flag_discrepancy(session: Session, transaction_id: str) -> BankTransactionRecord:
    """Mark a ``pending`` transaction as having no acceptable counterpart."""

    _transition(session, transaction_id, TransactionStatus.DISCREPANCY)
    return get_transaction(session, transaction_id)


def revert_to_pending(session: Session, transaction_id: str) -> str | None:
    """Move a ``matched`` or ``discrepancy`` transaction back to ``pending``.

    Clears the expense link and returns the expense id that was unlinked
    (``None`` when reverting a discrepancy). The update only applies while the
    link is still the one read here; if another caller re-linked the row in
    between, :class:`InvalidTransition` is raised instead of returning a stale id.
    """

    row = _fetch_row(session, transaction_id)
    if row is None:
        raise NotFound(transaction_id)
    previous = row.matched_expense_id
    link = RcBankTransaction.matched_expense_id
    _transition(
        session,
        transaction_id,
        TransactionStatus.PENDING,
        guard=link.is_(None) if previous is None else link == previous,
        matched_expense_id=None,
        matched_at=None,
    )
    return previous


def delete_transaction(session: Session, transaction_id: str) -> None:
    """Permanently remove a transaction in any status. Expenses are untouched."""

    stmt = (
        delete(RcBankTransaction)
        .where(RcBankTransaction.id == transaction_id)
        .execution_options(synchronize_session=False)
    )
    if session.execute(stmt).rowcount == 0:
        raise NotFound(transaction_id)
    logger.info("Deleted transaction %s", transaction_id)


def count_matches_for_expense(session: Session, expense_id: str) -> int:
    stmt = (
        select(func.count())
        .select_from(RcBankTransaction)
        .where(
            (RcBankTransaction.matched_expense_id == expense_id)
            & (RcBankTransaction.status == TransactionStatus.MATCHED.value)
        )
    )
    return int(session.execute(stmt).scalar_one())


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------


def add_expense(
    session: Session,
    *,
    date: date,
    amount: Decimal,
    vendor: str | None = None,
    description: str | None = None,
    category: str | None = None,
    origin_transaction_id: str | None = None,
    reconciled: bool = False,
) -> ExpenseRecord:
    amt = Decimal(amount)
    if amt < 0:
        raise ValueError("expense amount must be non-negative")
    row = RcExpense(
        date=date,
        amount=amt,
        vendor=vendor,
        description=description,
        category=category,
        origin_transaction_id=origin_transaction_id,
        reconciled=reconciled,
    )
    session.add(row)
    session.flush()
    return ExpenseRecord.from_row(row)


def list_expenses(session: Session, *, include_reconciled: bool = True) -> list[ExpenseRecord]:
    """Return ledger expenses ordered by date.

    With ``include_reconciled=False`` only expenses not yet claimed by a
    confirmed match are returned (the matching snapshot).
    """

    stmt = select(RcExpense).execution_options(populate_existing=True)
    if not include_reconciled:
        stmt = stmt.where(RcExpense.reconciled.is_(False))
    stmt = stmt.order_by(RcExpense.date, RcExpense.created_at)
    return [ExpenseRecord.from_row(r) for r in session.execute(stmt).scalars()]


def expenses_from_transaction(session: Session, transaction_id: str) -> list[ExpenseRecord]:
    """Expenses created from or split out of ``transaction_id``."""

    stmt = (
        select(RcExpense)
        .where(RcExpense.origin_transaction_id == transaction_id)
        .order_by(RcExpense.created_at, RcExpense.id)
    )
    return [ExpenseRecord.from_row(r) for r in session.execute(stmt).scalars()]


def set_expense_reconciled(session: Session, expense_id: str, reconciled: bool = True) -> None:
    stmt = (
        update(RcExpense)
        .where(RcExpense.id == expense_id)
        .values(reconciled=reconciled, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if session.execute(stmt).rowcount == 0:
        raise NotFound(expense_id, entity="expense")


__all__ = [
    "add_expense",
    "confirm_match",
    "count_by_status",
    "count_matches_for_expense",
    "delete_transaction",
    "expenses_from_transaction",
    "flag_discrepancy",
    "get_transaction",
    "insert_transactions",
    "list_expenses",
    "list_transactions",
    "revert_to_pending",
    "set_expense_reconciled",
]

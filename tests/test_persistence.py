from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db.client import session_scope
from db.models.reconciliation import RcBankTransaction, RcExpense

from bank_reconciliation import persistence
from bank_reconciliation.errors import InvalidTransition, NotFound
from bank_reconciliation.lifecycle import TransactionStatus
from bank_reconciliation.models import ParsedTransaction

from tests.helpers.db import seed_expense


def _insert(db_url: str, *rows: tuple[date, str, str]) -> list[str]:
    with session_scope(database_url=db_url) as session:
        return persistence.insert_transactions(
            session,
            [ParsedTransaction(date=d, amount=Decimal(a), description=desc) for d, a, desc in rows],
            import_batch_id="batch-1",
        )


def _assert_link_invariant(db_url: str) -> None:
    with session_scope(database_url=db_url) as session:
        for tx in persistence.list_transactions(session):
            assert (tx.status is TransactionStatus.MATCHED) == (tx.matched_expense_id is not None)


def test_insert_and_read_back(db_url: str) -> None:
    ids = _insert(db_url, (date(2024, 1, 5), "45.00", "Shell"), (date(2024, 1, 6), "12.00", "Coffee"))

    assert len(ids) == 2 and len(set(ids)) == 2
    with session_scope(database_url=db_url) as session:
        tx = persistence.get_transaction(session, ids[0])
        listed = persistence.list_transactions(session)
    assert tx.status is TransactionStatus.PENDING
    assert tx.amount == Decimal("45.00")
    assert tx.description == "Shell"
    assert tx.import_batch_id == "batch-1"
    assert [t.id for t in listed] == ids


def test_insert_nothing(db_url: str) -> None:
    with session_scope(database_url=db_url) as session:
        assert persistence.insert_transactions(session, []) == []


def test_insert_rejects_unknown_source(db_url: str) -> None:
    with session_scope(database_url=db_url) as session, pytest.raises(ValueError):
        persistence.insert_transactions(session, [], source="scanner")


def test_confirm_then_delete_leaves_expense_untouched(db_url: str) -> None:
    [tx_id] = _insert(db_url, (date(2024, 3, 10), "100.00", "Netflix"))
    seed_expense(db_url, expense_id="exp-9", on=date(2024, 3, 11), amount="100.00", reconciled=True)

    with session_scope(database_url=db_url) as session:
        record = persistence.confirm_match(session, tx_id, "exp-9")
    assert record.status is TransactionStatus.MATCHED
    assert record.matched_expense_id == "exp-9"

    with session_scope(database_url=db_url) as session:
        persistence.delete_transaction(session, tx_id)

    with session_scope(database_url=db_url) as session:
        with pytest.raises(NotFound):
            persistence.get_transaction(session, tx_id)
        expense = session.get(RcExpense, "exp-9")
        assert expense is not None
        assert expense.reconciled is True


def test_confirm_sets_matched_at_and_keeps_invariant(db_url: str) -> None:
    [tx_id] = _insert(db_url, (date(2024, 3, 10), "100.00", "Netflix"))
    seed_expense(db_url, expense_id="exp-1", on=date(2024, 3, 10), amount="100.00")

    with session_scope(database_url=db_url) as session:
        persistence.confirm_match(session, tx_id, "exp-1")

    with session_scope(database_url=db_url) as session:
        row = session.execute(
            select(RcBankTransaction).where(RcBankTransaction.id == tx_id)
        ).scalar_one()
        assert row.matched_at is not None
    _assert_link_invariant(db_url)


def test_rematching_a_matched_transaction_is_rejected(db_url: str) -> None:
    [tx_id] = _insert(db_url, (date(2024, 3, 10), "100.00", "Netflix"))
    seed_expense(db_url, expense_id="exp-1", on=date(2024, 3, 10), amount="100.00")
    seed_expense(db_url, expense_id="exp-2", on=date(2024, 3, 10), amount="100.00")

    with session_scope(database_url=db_url) as session:
        persistence.confirm_match(session, tx_id, "exp-1")

    with session_scope(database_url=db_url) as session:
        with pytest.raises(InvalidTransition) as exc_info:
            persistence.confirm_match(session, tx_id, "exp-2")
    assert exc_info.value.current == "matched"

    with session_scope(database_url=db_url) as session:
        assert persistence.get_transaction(session, tx_id).matched_expense_id == "exp-1"


def test_flag_and_revert(db_url: str) -> None:
    [tx_id] = _insert(db_url, (date(2024, 3, 10), "100.00", "Mystery"))

    with session_scope(database_url=db_url) as session:
        flagged = persistence.flag_discrepancy(session, tx_id)
    assert flagged.status is TransactionStatus.DISCREPANCY

    with session_scope(database_url=db_url) as session:
        with pytest.raises(InvalidTransition):
            persistence.flag_discrepancy(session, tx_id)

    with session_scope(database_url=db_url) as session:
        assert persistence.revert_to_pending(session, tx_id) is None
        assert persistence.get_transaction(session, tx_id).status is TransactionStatus.PENDING


def test_revert_match_clears_link_and_returns_expense(db_url: str) -> None:
    [tx_id] = _insert(db_url, (date(2024, 3, 10), "100.00", "Netflix"))
    seed_expense(db_url, expense_id="exp-1", on=date(2024, 3, 10), amount="100.00")

    with session_scope(database_url=db_url) as session:
        persistence.confirm_match(session, tx_id, "exp-1")
    with session_scope(database_url=db_url) as session:
        assert persistence.revert_to_pending(session, tx_id) == "exp-1"
        tx = persistence.get_transaction(session, tx_id)
    assert tx.status is TransactionStatus.PENDING
    assert tx.matched_expense_id is None
    _assert_link_invariant(db_url)


def test_revert_pending_is_invalid(db_url: str) -> None:
    [tx_id] = _insert(db_url, (date(2024, 3, 10), "1.00", "x"))
    with session_scope(database_url=db_url) as session, pytest.raises(InvalidTransition):
        persistence.revert_to_pending(session, tx_id)


@pytest.mark.parametrize("op", ["flag", "revert", "delete", "get"])
def test_unknown_transaction_id(db_url: str, op: str) -> None:
    with session_scope(database_url=db_url) as session, pytest.raises(NotFound) as exc_info:
        if op == "flag":
            persistence.flag_discrepancy(session, "missing")
        elif op == "revert":
            persistence.revert_to_pending(session, "missing")
        elif op == "delete":
            persistence.delete_transaction(session, "missing")
        else:
            persistence.get_transaction(session, "missing")
    assert exc_info.value.record_id == "missing"


def test_confirm_unknown_ids(db_url: str) -> None:
    [tx_id] = _insert(db_url, (date(2024, 3, 10), "1.00", "x"))
    seed_expense(db_url, expense_id="exp-1", on=date(2024, 3, 10), amount="1.00")

    with session_scope(database_url=db_url) as session, pytest.raises(NotFound) as exc_info:
        persistence.confirm_match(session, tx_id, "no-such-expense")
    assert exc_info.value.entity == "expense"

    with session_scope(database_url=db_url) as session, pytest.raises(NotFound) as exc_info:
        persistence.confirm_match(session, "no-such-tx", "exp-1")
    assert exc_info.value.entity == "bank transaction"


def test_link_constraint_enforced_by_database(db_url: str) -> None:
    [tx_id] = _insert(db_url, (date(2024, 3, 10), "1.00", "x"))

    with pytest.raises(IntegrityError):
        with session_scope(database_url=db_url) as session:
            session.execute(
                update(RcBankTransaction)
                .where(RcBankTransaction.id == tx_id)
                .values(status="matched")
            )


def test_expense_link_is_a_foreign_key(db_url: str) -> None:
    [tx_id] = _insert(db_url, (date(2024, 3, 10), "1.00", "x"))

    with pytest.raises(IntegrityError):
        with session_scope(database_url=db_url) as session:
            session.execute(
                update(RcBankTransaction)
                .where(RcBankTransaction.id == tx_id)
                .values(status="matched", matched_expense_id="ghost")
            )


def test_count_by_status(db_url: str) -> None:
    ids = _insert(
        db_url,
        (date(2024, 1, 1), "1.00", "a"),
        (date(2024, 1, 2), "2.00", "b"),
        (date(2024, 1, 3), "3.00", "c"),
    )
    with session_scope(database_url=db_url) as session:
        persistence.flag_discrepancy(session, ids[0])
        counts = persistence.count_by_status(session)
        pending = persistence.list_transactions(session, status="pending")

    assert counts == {
        TransactionStatus.PENDING: 2,
        TransactionStatus.MATCHED: 0,
        TransactionStatus.DISCREPANCY: 1,
    }
    assert [t.id for t in pending] == ids[1:]


def test_expenses(db_url: str) -> None:
    with session_scope(database_url=db_url) as session:
        first = persistence.add_expense(
            session, date=date(2024, 2, 1), amount=Decimal("10.00"), vendor="Gym"
        )
        second = persistence.add_expense(session, date=date(2024, 1, 1), amount=Decimal("5.00"))
        persistence.set_expense_reconciled(session, first.id, True)

    with session_scope(database_url=db_url) as session:
        assert [e.id for e in persistence.list_expenses(session)] == [second.id, first.id]
        assert [e.id for e in persistence.list_expenses(session, include_reconciled=False)] == [
            second.id
        ]
        assert session.get(RcExpense, first.id).reconciled is True
        with pytest.raises(NotFound):
            persistence.set_expense_reconciled(session, "missing")


def test_add_expense_rejects_negative_amount(db_url: str) -> None:
    with session_scope(database_url=db_url) as session, pytest.raises(ValueError):
        persistence.add_expense(session, date=date(2024, 1, 1), amount=Decimal("-1"))


def _race(db_url: str, *ops: Callable[[Session], object]) -> list[str]:
    """Run each op in its own thread and session, released together."""

    barrier = threading.Barrier(len(ops))
    outcomes = [""] * len(ops)

    def run(i: int) -> None:
        barrier.wait()
        try:
            with session_scope(database_url=db_url) as session:
                ops[i](session)
        except InvalidTransition:
            outcomes[i] = "rejected"
        else:
            outcomes[i] = "won"

    threads = [threading.Thread(target=run, args=(i,)) for i in range(len(ops))]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


def test_concurrent_confirms_have_a_single_winner(db_url: str) -> None:
    [tx_id] = _insert(db_url, (date(2024, 3, 10), "100.00", "Netflix"))
    seed_expense(db_url, expense_id="exp-a", on=date(2024, 3, 10), amount="100.00")
    seed_expense(db_url, expense_id="exp-b", on=date(2024, 3, 10), amount="100.00")

    outcomes = _race(
        db_url,
        lambda s: persistence.confirm_match(s, tx_id, "exp-a"),
        lambda s: persistence.confirm_match(s, tx_id, "exp-b"),
    )

    assert sorted(outcomes) == ["rejected", "won"]
    winner = "exp-a" if outcomes[0] == "won" else "exp-b"
    with session_scope(database_url=db_url) as session:
        tx = persistence.get_transaction(session, tx_id)
    assert tx.status is TransactionStatus.MATCHED
    assert tx.matched_expense_id == winner


def test_concurrent_confirm_and_flag_have_a_single_winner(db_url: str) -> None:
    [tx_id] = _insert(db_url, (date(2024, 3, 10), "100.00", "Netflix"))
    seed_expense(db_url, expense_id="exp-a", on=date(2024, 3, 10), amount="100.00")

    outcomes = _race(
        db_url,
        lambda s: persistence.confirm_match(s, tx_id, "exp-a"),
        lambda s: persistence.flag_discrepancy(s, tx_id),
    )

    assert sorted(outcomes) == ["rejected", "won"]
    with session_scope(database_url=db_url) as session:
        tx = persistence.get_transaction(session, tx_id)
    if outcomes[0] == "won":
        assert (tx.status, tx.matched_expense_id) == (TransactionStatus.MATCHED, "exp-a")
    else:
        assert (tx.status, tx.matched_expense_id) == (TransactionStatus.DISCREPANCY, None)


def test_revert_refuses_when_link_changed_since_read(
    db_url: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    [tx_id] = _insert(db_url, (date(2024, 3, 10), "100.00", "Netflix"))
    seed_expense(db_url, expense_id="exp-1", on=date(2024, 3, 10), amount="100.00")
    seed_expense(db_url, expense_id="exp-2", on=date(2024, 3, 10), amount="100.00")
    with session_scope(database_url=db_url) as session:
        persistence.confirm_match(session, tx_id, "exp-2")

    # Another caller reverted and re-linked to exp-2 after exp-1 was read.
    monkeypatch.setattr(
        persistence, "_fetch_row", lambda _s, _id: SimpleNamespace(matched_expense_id="exp-1")
    )
    with session_scope(database_url=db_url) as session, pytest.raises(InvalidTransition):
        persistence.revert_to_pending(session, tx_id)
    monkeypatch.undo()

    with session_scope(database_url=db_url) as session:
        tx = persistence.get_transaction(session, tx_id)
    assert (tx.status, tx.matched_expense_id) == (TransactionStatus.MATCHED, "exp-2")


def test_expenses_from_transaction(db_url: str) -> None:
    with session_scope(database_url=db_url) as session:
        kept = persistence.add_expense(
            session,
            date=date(2024, 4, 1),
            amount=Decimal("5.00"),
            origin_transaction_id="tx-1",
            reconciled=True,
        )
        persistence.add_expense(session, date=date(2024, 4, 1), amount=Decimal("6.00"))

    with session_scope(database_url=db_url) as session:
        found = persistence.expenses_from_transaction(session, "tx-1")
        assert [e.id for e in found] == [kept.id]
        assert found[0].origin_transaction_id == "tx-1"
        assert session.get(RcExpense, kept.id).reconciled is True

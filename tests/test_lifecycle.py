from __future__ import annotations

import pytest

from bank_reconciliation.errors import InvalidTransition
from bank_reconciliation.lifecycle import (
    ALLOWED_TRANSITIONS,
    TransactionStatus,
    sources_for,
    validate_transition,
)

P = TransactionStatus.PENDING
M = TransactionStatus.MATCHED
D = TransactionStatus.DISCREPANCY


@pytest.mark.parametrize(("current", "target"), [(P, M), (P, D), (M, P), (D, P)])
def test_allowed(current: TransactionStatus, target: TransactionStatus) -> None:
    assert validate_transition(current, target) is target


@pytest.mark.parametrize(
    ("current", "target"), [(M, M), (M, D), (D, M), (D, D), (P, P)]
)
def test_rejected(current: TransactionStatus, target: TransactionStatus) -> None:
    with pytest.raises(InvalidTransition) as exc_info:
        validate_transition(current, target, transaction_id="tx-1")
    err = exc_info.value
    assert (err.transaction_id, err.current, err.target) == ("tx-1", current.value, target.value)
    assert isinstance(err, ValueError)


def test_accepts_plain_strings() -> None:
    assert validate_transition("pending", "matched") is M


def test_unknown_status_is_rejected() -> None:
    with pytest.raises(ValueError):
        validate_transition("pending", "archived")


def test_sources_for() -> None:
    assert sources_for(M) == {P}
    assert sources_for(D) == {P}
    assert sources_for(P) == {M, D}


def test_every_status_has_an_entry() -> None:
    assert set(ALLOWED_TRANSITIONS) == set(TransactionStatus)

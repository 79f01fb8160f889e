from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from bank_reconciliation.matching import (
    MAX_CANDIDATES,
    MIN_SCORE,
    amount_diff_ratio,
    match_many,
    match_transaction,
    score_expense,
)
from bank_reconciliation.models import ExpenseRecord, MatchType, ParsedTransaction

BASE = date(2024, 3, 10)


def _tx(amount: str = "100.00", *, on: date = BASE, description: str = "Card payment") -> ParsedTransaction:
    return ParsedTransaction(date=on, amount=Decimal(amount), description=description)


def _exp(
    expense_id: str,
    amount: str = "100.00",
    *,
    days: int = 0,
    vendor: str | None = "Vendor",
) -> ExpenseRecord:
    return ExpenseRecord(
        id=expense_id, date=BASE + timedelta(days=days), amount=Decimal(amount), vendor=vendor
    )


def test_scenario_one_day_apart_same_amount_is_exact() -> None:
    tx = ParsedTransaction(date=date(2024, 3, 10), amount=Decimal("100.00"), description="Netflix")
    exp = ExpenseRecord(
        id="exp-1", date=date(2024, 3, 11), amount=Decimal("100.00"), vendor="Netflix Inc"
    )

    cand = score_expense(tx, exp)

    assert cand is not None
    assert cand.score == 100
    assert cand.match_type is MatchType.EXACT


@pytest.mark.parametrize(
    ("amount", "days", "score", "match_type"),
    [
        ("100.00", 3, 100, MatchType.EXACT),
        ("100.00", -3, 100, MatchType.EXACT),
        ("100.00", 5, 85, MatchType.AMOUNT),
        ("100.00", 7, 85, MatchType.AMOUNT),
        ("104.00", 1, 80, MatchType.DATE),
        ("108.00", 2, 70, MatchType.FUZZY),
        ("110.00", 3, 70, MatchType.FUZZY),
        ("112.00", 6, 50, MatchType.FUZZY),
    ],
)
def test_tiers(amount: str, days: int, score: int, match_type: MatchType) -> None:
    cand = score_expense(_tx(), _exp("e", amount, days=days))
    assert cand is not None
    assert (cand.score, cand.match_type) == (score, match_type)


@pytest.mark.parametrize(
    ("amount", "days"),
    [
        ("100.00", 8),  # too far apart
        ("120.00", 0),  # amount ratio above 0.15
        ("112.00", 8),
    ],
)
def test_no_tier_applies(amount: str, days: int) -> None:
    assert score_expense(_tx(), _exp("e", amount, days=days)) is None


def test_one_percent_difference_is_not_exact() -> None:
    # ratio == 0.01 fails the strict "< 0.01" of the first two tiers
    cand = score_expense(_tx("99.00"), _exp("e", "100.00", days=0))
    assert cand is not None
    assert cand.match_type is MatchType.DATE


def test_both_amounts_zero_never_match() -> None:
    assert amount_diff_ratio(Decimal(0), Decimal(0)) is None
    assert score_expense(_tx("0"), _exp("e", "0")) is None


def test_text_bonus_is_capped_at_100() -> None:
    tx = _tx("108.00", description="Spotify")
    cand = score_expense(tx, _exp("e", "100.00", days=2, vendor="SPOTIFY AB"))
    assert cand is not None
    assert cand.score == 80
    assert cand.match_type is MatchType.FUZZY

    exact = score_expense(tx, _exp("e2", "108.00", days=0, vendor="spotify"))
    assert exact is not None
    assert exact.score == 100


def test_text_bonus_needs_both_sides() -> None:
    cand = score_expense(_tx("108.00", description=""), _exp("e", "100.00", days=2, vendor=""))
    assert cand is not None
    assert cand.score == 70


def test_score_is_monotonic_in_date_distance() -> None:
    scores = []
    for days in range(0, 9):
        cand = score_expense(_tx(), _exp("e", days=days))
        scores.append(cand.score if cand is not None else 0)
    assert scores == sorted(scores, reverse=True)


def test_score_is_monotonic_in_amount_difference() -> None:
    scores = []
    for amount in ("100.00", "100.50", "103.00", "109.00", "114.00", "130.00"):
        cand = score_expense(_tx(), _exp("e", amount, days=1))
        scores.append(cand.score if cand is not None else 0)
    assert scores == sorted(scores, reverse=True)


def test_shortlist_bound_and_floor() -> None:
    expenses = [_exp(f"e{i}", days=i % 8) for i in range(10)] + [_exp("far", days=30)]

    shortlist = match_transaction(_tx(), expenses)

    assert 0 < len(shortlist) <= MAX_CANDIDATES
    assert all(c.score >= MIN_SCORE for c in shortlist)
    assert [c.score for c in shortlist] == sorted((c.score for c in shortlist), reverse=True)
    assert "far" not in {c.expense.id for c in shortlist}


def test_ties_keep_input_order() -> None:
    expenses = [_exp("b", days=6), _exp("a", days=1), _exp("c", days=-2), _exp("d", days=3)]

    shortlist = match_transaction(_tx(), expenses)

    # a, c and d all score 100; b scores 85
    assert [c.expense.id for c in shortlist] == ["a", "c", "d"]


def test_no_expenses_no_candidates() -> None:
    assert match_transaction(_tx(), []) == []


def test_match_many_preserves_order_and_uses_one_snapshot() -> None:
    txs = [_tx(str(100 + i), description=f"tx{i}") for i in range(6)]
    expenses = [_exp("e100", "100.00"), _exp("e103", "103.00")]

    results = match_many(txs, expenses, concurrency=3)

    assert [r.transaction for r in results] == txs
    assert results[0].best is not None and results[0].best.expense.id == "e100"
    assert results[3].best is not None and results[3].best.expense.id == "e103"
    assert results[5].candidates  # 105 is within 5% of 103 on the same day
    sequential = [tuple(match_transaction(t, expenses)) for t in txs]
    assert [r.candidates for r in results] == sequential

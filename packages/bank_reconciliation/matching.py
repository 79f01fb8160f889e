"""Score ledger expenses against bank transactions and build shortlists.

Each (transaction, expense) pair is scored on its own: there is no global
assignment and no awareness of other transactions. A pair falls into the
first tier of :data:`MATCH_TIERS` whose date and amount limits it meets; a
description/vendor substring hit adds :data:`TEXT_BONUS` (capped at 100).

All functions here are pure and safe to call concurrently.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from .logging_setup import get_logger
from .models import (
    ExpenseRecord,
    MatchCandidate,
    MatchType,
    StatementLine,
    TransactionMatches,
)
from .pmap import p_map

logger = get_logger("bank_reconciliation.matching")

MIN_SCORE = 50
MAX_CANDIDATES = 3
TEXT_BONUS = 10


@dataclass(frozen=True, slots=True)
class MatchTier:
    """Date/amount limits for one score level.

    ``strict_amount`` compares the amount ratio with ``<`` instead of ``<=``.
    """

    max_days: int
    max_ratio: Decimal
    strict_amount: bool
    score: int
    match_type: MatchType

    def accepts(self, days: int, ratio: Decimal) -> bool:
        if days > self.max_days:
            return False
        if self.strict_amount:
            return ratio < self.max_ratio
        return ratio <= self.max_ratio


# Checked in order; the first tier that accepts wins.
MATCH_TIERS: tuple[MatchTier, ...] = (
    MatchTier(3, Decimal("0.01"), True, 100, MatchType.EXACT),
    MatchTier(7, Decimal("0.01"), True, 85, MatchType.AMOUNT),
    MatchTier(1, Decimal("0.05"), False, 80, MatchType.DATE),
    MatchTier(3, Decimal("0.10"), False, 70, MatchType.FUZZY),
    MatchTier(7, Decimal("0.15"), False, 50, MatchType.FUZZY),
)


def amount_diff_ratio(a: Decimal, b: Decimal) -> Decimal | None:
    """``|a - b| / max(a, b)``, or ``None`` when both amounts are zero."""

    hi = max(a, b)
    if hi == 0:
        return None
    return abs(a - b) / hi


def _text_overlaps(description: str | None, vendor: str | None) -> bool:
    d = (description or "").strip().casefold()
    v = (vendor or "").strip().casefold()
    if not d or not v:
        return False
    return d in v or v in d


def score_expense(transaction: StatementLine, expense: ExpenseRecord) -> MatchCandidate | None:
    """Score one expense for ``transaction``; ``None`` when no tier applies."""

    days = abs((transaction.date - expense.date).days)
    ratio = amount_diff_ratio(abs(transaction.amount), abs(expense.amount))
    if ratio is None:
        return None

    for tier in MATCH_TIERS:
        if tier.accepts(days, ratio):
            score = tier.score
            if _text_overlaps(transaction.description, expense.vendor):
                score = min(100, score + TEXT_BONUS)
            return MatchCandidate(expense=expense, score=score, match_type=tier.match_type)
    return None


def match_transaction(
    transaction: StatementLine,
    expenses: Iterable[ExpenseRecord],
    *,
    limit: int = MAX_CANDIDATES,
) -> list[MatchCandidate]:
    """Return up to ``limit`` candidates scoring at least 50, best first.

    Ties keep the order of ``expenses``.
    """

    scored: list[MatchCandidate] = []
    for expense in expenses:
        cand = score_expense(transaction, expense)
        if cand is not None and cand.score >= MIN_SCORE:
            scored.append(cand)
    # list.sort is stable, so equal scores stay in input order
    scored.sort(key=lambda c: c.score, reverse=True)
    return scored[:limit]


def match_many(
    transactions: Iterable[StatementLine],
    expenses: Sequence[ExpenseRecord],
    *,
    concurrency: int = 4,
    limit: int = MAX_CANDIDATES,
) -> list[TransactionMatches]:
    """Shortlist every transaction against the same expense snapshot.

    Work is split per transaction across ``concurrency`` threads; output
    order follows ``transactions``.
    """

    snapshot = tuple(expenses)

    def _one(tx: StatementLine) -> TransactionMatches:
        return TransactionMatches(
            transaction=tx,
            candidates=tuple(match_transaction(tx, snapshot, limit=limit)),
        )

    results = p_map(transactions, _one, concurrency=concurrency)
    logger.debug(
        "Matched %d transaction(s) against %d expense(s); %d with candidates",
        len(results),
        len(snapshot),
        sum(1 for r in results if r.candidates),
    )
    return results


__all__ = [
    "MATCH_TIERS",
    "MAX_CANDIDATES",
    "MIN_SCORE",
    "MatchTier",
    "TEXT_BONUS",
    "amount_diff_ratio",
    "match_many",
    "match_transaction",
    "score_expense",
]

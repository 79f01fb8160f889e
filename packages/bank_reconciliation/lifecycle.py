"""Reconciliation status of an imported bank transaction.

Allowed transitions::

    pending ──confirm──▶ matched
    pending ──flag─────▶ discrepancy
    matched ──revert───▶ pending
    discrepancy ─revert▶ pending

Everything else (re-matching a matched row, matched → discrepancy, …) is
rejected with :class:`~bank_reconciliation.errors.InvalidTransition`.
"""

from __future__ import annotations

from enum import StrEnum

from .errors import InvalidTransition


class TransactionStatus(StrEnum):
    PENDING = "pending"
    MATCHED = "matched"
    DISCREPANCY = "discrepancy"


ALLOWED_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.PENDING: frozenset({TransactionStatus.MATCHED, TransactionStatus.DISCREPANCY}),
    TransactionStatus.MATCHED: frozenset({TransactionStatus.PENDING}),
    TransactionStatus.DISCREPANCY: frozenset({TransactionStatus.PENDING}),
}


def sources_for(target: TransactionStatus) -> frozenset[TransactionStatus]:
    """Return the statuses from which ``target`` may be entered."""

    return frozenset(src for src, dests in ALLOWED_TRANSITIONS.items() if target in dests)


def validate_transition(
    current: TransactionStatus | str,
    target: TransactionStatus | str,
    *,
    transaction_id: str | None = None,
) -> TransactionStatus:
    """Return ``target`` as an enum when ``current → target`` is allowed."""

    cur = TransactionStatus(current)
    tgt = TransactionStatus(target)
    if tgt not in ALLOWED_TRANSITIONS[cur]:
        raise InvalidTransition(transaction_id, cur.value, tgt.value)
    return tgt


__all__ = [
    "ALLOWED_TRANSITIONS",
    "TransactionStatus",
    "sources_for",
    "validate_transition",
]

"""Recurring-payment detection and vendor totals over a transaction history.

Transactions are grouped by their description, lower-cased and trimmed
(missing/empty descriptions share the ``"unknown"`` key). A group is
recurring when it has at least two occurrences and *every* amount lies
within :data:`AMOUNT_TOLERANCE` of the group mean; a single outlier excludes
the whole group.

Frequency comes from the spacing of the occurrences: the mean gap between
consecutive (sorted) dates is bucketed by :data:`FREQUENCY_BANDS`, anything
outside the bands is ``irregular``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from .models import Frequency, RecurringPayment, StatementLine, VendorTotal

AMOUNT_TOLERANCE = Decimal("0.15")
UNKNOWN_KEY = "unknown"
UNKNOWN_LABEL = "Unknown"

# (min mean gap in days, max mean gap in days, frequency), inclusive bounds
FREQUENCY_BANDS: tuple[tuple[float, float, Frequency], ...] = (
    (1, 10, Frequency.WEEKLY),
    (25, 35, Frequency.MONTHLY),
    (80, 100, Frequency.QUARTERLY),
    (350, 380, Frequency.YEARLY),
)

_PERIODS_PER_YEAR: dict[Frequency, int] = {
    Frequency.WEEKLY: 52,
    Frequency.MONTHLY: 12,
    Frequency.QUARTERLY: 4,
    Frequency.YEARLY: 1,
}


@dataclass(slots=True)
class _Group:
    label: str
    amounts: list[Decimal]
    dates: list[date]


def vendor_key(description: str | None) -> str:
    key = (description or "").strip().lower()
    return key or UNKNOWN_KEY


def group_by_vendor(transactions: Iterable[StatementLine]) -> dict[str, _Group]:
    """Group by :func:`vendor_key`; the first description seen is the label."""

    groups: dict[str, _Group] = {}
    for tx in transactions:
        key = vendor_key(tx.description)
        grp = groups.get(key)
        if grp is None:
            label = (tx.description or "").strip() or UNKNOWN_LABEL
            grp = groups[key] = _Group(label=label, amounts=[], dates=[])
        grp.amounts.append(Decimal(tx.amount))
        grp.dates.append(tx.date)
    return groups


def amounts_are_stable(amounts: list[Decimal], tolerance: Decimal = AMOUNT_TOLERANCE) -> bool:
    """True when every amount is within ``tolerance`` of the mean (relative)."""

    if not amounts:
        return False
    mean = sum(amounts, Decimal(0)) / len(amounts)
    if mean == 0:
        return False
    return all(abs(a - mean) / mean <= tolerance for a in amounts)


def classify_frequency(dates: Iterable[date]) -> tuple[Frequency, float]:
    """Return ``(frequency, interval_confidence)`` for a set of occurrence dates.

    Confidence is ``100 - (stdev / mean_gap) * 100`` of the gaps, floored at 0.
    Fewer than two dates, or all on the same day, is ``irregular`` with 0.
    """

    ordered = sorted(dates)
    if len(ordered) < 2:
        return Frequency.IRREGULAR, 0.0
    gaps = [(b - a).days for a, b in zip(ordered, ordered[1:], strict=False)]
    mean_gap = sum(gaps) / len(gaps)
    if mean_gap <= 0:
        return Frequency.IRREGULAR, 0.0

    variance = sum((g - mean_gap) ** 2 for g in gaps) / len(gaps)
    confidence = max(0.0, 100.0 - (math.sqrt(variance) / mean_gap) * 100.0)

    for lo, hi, freq in FREQUENCY_BANDS:
        if lo <= mean_gap <= hi:
            return freq, confidence
    return Frequency.IRREGULAR, 0.0


def detect_recurring(
    transactions: Iterable[StatementLine],
    *,
    tolerance: Decimal = AMOUNT_TOLERANCE,
) -> list[RecurringPayment]:
    """Return recurring payment groups, highest mean amount first."""

    found: list[RecurringPayment] = []
    for key, grp in group_by_vendor(transactions).items():
        if len(grp.amounts) < 2 or not amounts_are_stable(grp.amounts, tolerance):
            continue
        total = sum(grp.amounts, Decimal(0))
        mean = total / len(grp.amounts)
        frequency, confidence = classify_frequency(grp.dates)
        per_year = _PERIODS_PER_YEAR.get(frequency)
        found.append(
            RecurringPayment(
                key=key,
                description=grp.label,
                amount=mean,
                occurrences=len(grp.amounts),
                frequency=frequency,
                total=total,
                last_date=max(grp.dates),
                interval_confidence=round(confidence, 1),
                annualized_cost=(mean * per_year) if per_year is not None else None,
            )
        )
    found.sort(key=lambda r: r.amount, reverse=True)
    return found


def top_vendors(transactions: Iterable[StatementLine], *, limit: int = 10) -> list[VendorTotal]:
    """Rank every vendor group (recurring or not) by summed amount."""

    totals = [
        VendorTotal(vendor=grp.label, total=sum(grp.amounts, Decimal(0)), count=len(grp.amounts))
        for grp in group_by_vendor(transactions).values()
    ]
    totals.sort(key=lambda v: v.total, reverse=True)
    return totals[:limit]


__all__ = [
    "AMOUNT_TOLERANCE",
    "FREQUENCY_BANDS",
    "UNKNOWN_KEY",
    "amounts_are_stable",
    "classify_frequency",
    "detect_recurring",
    "group_by_vendor",
    "top_vendors",
    "vendor_key",
]

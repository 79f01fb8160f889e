"""Data models for ``bank_reconciliation``.

Bank-side records (parsed statement rows and persisted transactions),
ledger-side expenses, and the derived, non-persisted results of matching and
recurrence detection. Amounts are ``Decimal`` and always non-negative; dates
are calendar dates with no time component.
"""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from .lifecycle import TransactionStatus

# ---------------------------------------------------------------------------
# Bank side
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParsedTransaction:
    """A normalized statement row, not yet persisted."""

    date: date
    amount: Decimal
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "amount": str(self.amount),
            "description": self.description,
        }


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Outcome of parsing one statement.

    ``skipped_count`` counts data rows dropped because their date or amount
    could not be parsed. Blank lines are not counted.
    """

    transactions: tuple[ParsedTransaction, ...]
    skipped_count: int = 0
    # Resolved column positions, e.g. {"date": 0, "amount": 2, "description": 1}
    columns: dict[str, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.transactions)


@dataclass(frozen=True, slots=True)
class BankTransactionRecord:
    """A persisted bank transaction as seen by the matching/recurrence code."""

    id: str
    date: date
    amount: Decimal
    description: str | None
    status: TransactionStatus = TransactionStatus.PENDING
    matched_expense_id: str | None = None
    import_batch_id: str | None = None

    @classmethod
    def from_row(cls, row: Any) -> BankTransactionRecord:
        """Build from an ``RcBankTransaction`` ORM row."""

        return cls(
            id=row.id,
            date=row.transaction_date,
            amount=Decimal(row.amount),
            description=row.description,
            status=TransactionStatus(row.status),
            matched_expense_id=row.matched_expense_id,
            import_batch_id=row.import_batch_id,
        )


type StatementLine = ParsedTransaction | BankTransactionRecord
"""Anything with ``date``, ``amount`` and ``description``."""


# ---------------------------------------------------------------------------
# Ledger side
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExpenseRecord:
    """Read-only view of a ledger expense."""

    id: str
    date: date
    amount: Decimal
    vendor: str | None = None
    description: str | None = None
    category: str | None = None
    origin_transaction_id: str | None = None

    @classmethod
    def from_row(cls, row: Any) -> ExpenseRecord:
        """Build from an ``RcExpense`` ORM row."""

        return cls(
            id=row.id,
            date=row.date,
            amount=Decimal(row.amount),
            vendor=row.vendor,
            description=row.description,
            category=row.category,
            origin_transaction_id=row.origin_transaction_id,
        )


# ---------------------------------------------------------------------------
# Matching results
# ---------------------------------------------------------------------------


class MatchType(StrEnum):
    EXACT = "exact"
    AMOUNT = "amount"
    DATE = "date"
    FUZZY = "fuzzy"


@dataclass(frozen=True, slots=True)
class MatchCandidate:
    expense: ExpenseRecord
    score: int
    match_type: MatchType


@dataclass(frozen=True, slots=True)
class TransactionMatches:
    """Shortlist computed for one bank transaction (best first)."""

    transaction: StatementLine
    candidates: tuple[MatchCandidate, ...]

    @property
    def best(self) -> MatchCandidate | None:
        return self.candidates[0] if self.candidates else None


# ---------------------------------------------------------------------------
# Recurrence results
# ---------------------------------------------------------------------------


class Frequency(StrEnum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    IRREGULAR = "irregular"


@dataclass(frozen=True, slots=True)
class RecurringPayment:
    """A vendor group whose amounts stay within tolerance of their mean.

    ``amount`` is the group mean. ``interval_confidence`` (0 to 100) reflects how
    evenly spaced the occurrences are; ``annualized_cost`` is ``None`` when
    the frequency is irregular.
    """

    key: str
    description: str
    amount: Decimal
    occurrences: int
    frequency: Frequency
    total: Decimal
    last_date: date
    interval_confidence: float
    annualized_cost: Decimal | None


@dataclass(frozen=True, slots=True)
class VendorTotal:
    vendor: str
    total: Decimal
    count: int


# ---------------------------------------------------------------------------
# Orchestration results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ImportSummary:
    batch_id: str
    inserted: int
    skipped: int


# ---------------------------------------------------------------------------
# Upstream AI-extracted candidates
# ---------------------------------------------------------------------------


class ExtractedTransaction(BaseModel):
    """One candidate produced by the statement image/PDF extraction step.

    The extractor is asked for ``{"date": "YYYY-MM-DD", "amount": <positive
    number>, "description": "..."}``. Amounts must be JSON numbers (strings
    are rejected), zero amounts are dropped, and the sign is discarded.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    date: _dt.date
    amount: Decimal
    description: str = "Unknown"

    @field_validator("date", mode="before")
    @classmethod
    def _iso_date(cls, v: Any) -> _dt.date:
        if isinstance(v, _dt.date):
            return v
        if not isinstance(v, str) or not v.strip():
            raise ValueError("date must be an ISO-8601 string")
        return _dt.date.fromisoformat(v.strip()[:10])

    @field_validator("amount", mode="before")
    @classmethod
    def _numeric_amount(cls, v: Any) -> Decimal:
        if isinstance(v, bool) or not isinstance(v, int | float | Decimal):
            raise ValueError("amount must be a number")
        try:
            d = Decimal(str(v))
        except InvalidOperation as exc:
            raise ValueError(f"invalid amount: {v!r}") from exc
        if not d.is_finite() or d == 0:
            raise ValueError("amount must be a finite, non-zero number")
        return abs(d)

    @field_validator("description", mode="before")
    @classmethod
    def _default_description(cls, v: Any) -> str:
        if v is None:
            return "Unknown"
        s = str(v).strip()
        return s if s else "Unknown"

    def to_parsed(self) -> ParsedTransaction:
        return ParsedTransaction(date=self.date, amount=self.amount, description=self.description)


# ---------------------------------------------------------------------------
# Splitting one bank transaction into several expenses
# ---------------------------------------------------------------------------


class SplitItem(BaseModel):
    """One expense carved out of a bank transaction (e.g. fuel + food)."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    vendor: str
    amount: Decimal
    category: str | None = None
    description: str | None = None

    @field_validator("vendor")
    @classmethod
    def _vendor_required(cls, v: str) -> str:
        if not v:
            raise ValueError("vendor is required")
        return v

    @field_validator("amount")
    @classmethod
    def _positive_amount(cls, v: Decimal) -> Decimal:
        if not v.is_finite() or v <= 0:
            raise ValueError("amount must be greater than zero")
        return v


__all__ = [
    "BankTransactionRecord",
    "ExpenseRecord",
    "ExtractedTransaction",
    "Frequency",
    "ImportSummary",
    "MatchCandidate",
    "MatchType",
    "ParseResult",
    "ParsedTransaction",
    "RecurringPayment",
    "SplitItem",
    "StatementLine",
    "TransactionMatches",
    "VendorTotal",
]

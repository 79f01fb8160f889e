"""Exception types raised by the reconciliation core.

Persistence-layer failures (SQLAlchemy errors) are never wrapped; they reach
the caller unchanged.
"""

from __future__ import annotations

import csv
from typing import Literal

type ParseErrorKind = Literal["missing_columns", "no_rows"]


class ReconciliationError(Exception):
    """Base class for errors raised by ``bank_reconciliation``."""


class ParseError(csv.Error, ReconciliationError):
    """A statement could not be imported at all.

    Subclasses ``csv.Error`` so callers that already treat ``csv.Error`` as a
    parse failure keep working.
    """

    def __init__(self, kind: ParseErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind: ParseErrorKind = kind


class NotFound(LookupError, ReconciliationError):
    def __init__(self, record_id: str, *, entity: str = "bank transaction") -> None:
        super().__init__(f"{entity} not found: {record_id!r}")
        self.record_id = record_id
        self.entity = entity


class InvalidTransition(ValueError, ReconciliationError):
    """Requested status change is not in the lifecycle's transition table."""

    def __init__(self, transaction_id: str | None, current: str, target: str) -> None:
        where = f" for {transaction_id!r}" if transaction_id is not None else ""
        super().__init__(f"cannot move bank transaction{where} from {current!r} to {target!r}")
        self.transaction_id = transaction_id
        self.current = current
        self.target = target


__all__ = [
    "InvalidTransition",
    "NotFound",
    "ParseError",
    "ParseErrorKind",
    "ReconciliationError",
]

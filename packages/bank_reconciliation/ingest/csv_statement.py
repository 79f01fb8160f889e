"""Parser for bank-statement CSV exports with arbitrary column order.

Contract
--------
- The first non-empty line is the header. Column purpose is resolved from
  :data:`COLUMN_RULES`; for each field the first header column matching any
  of its rules wins. Missing date or amount columns raise
  :class:`~bank_reconciliation.errors.ParseError` (``missing_columns``).
- Each line is split by a quote-toggle scanner: ``"`` toggles quoting and is
  dropped, the delimiter only splits outside quotes, fields are trimmed.
  Doubled/escaped quotes are not supported (unlike RFC 4180).
- Dates are tried as ``YYYY-MM-DD``, ``MM/DD/YYYY`` then ``DD-MM-YYYY``; the
  first pattern matching the whole token wins.
- Amounts lose currency symbols, thousands separators, parentheses and sign;
  the absolute value is kept.
- Rows whose date or amount cannot be parsed are skipped and counted, so one
  bad row does not abort an import.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Literal

from ..errors import ParseError
from ..logging_setup import get_logger
from ..models import ParsedTransaction, ParseResult

logger = get_logger("bank_reconciliation.ingest.csv_statement")

type Field = Literal["date", "amount", "description"]


# ---------------------------------------------------------------------------
# Header resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ColumnRule:
    """Header synonym: ``contains`` matches a substring, ``equals`` the whole name."""

    field: Field
    mode: Literal["contains", "equals"]
    token: str

    def matches(self, header: str) -> bool:
        if self.mode == "equals":
            return header == self.token
        return self.token in header


COLUMN_RULES: tuple[ColumnRule, ...] = (
    ColumnRule("date", "contains", "date"),
    ColumnRule("date", "contains", "fecha"),
    ColumnRule("date", "equals", "posted date"),
    ColumnRule("date", "equals", "transaction date"),
    ColumnRule("amount", "contains", "amount"),
    ColumnRule("amount", "contains", "monto"),
    ColumnRule("amount", "contains", "importe"),
    ColumnRule("amount", "equals", "debit"),
    ColumnRule("amount", "equals", "credit"),
    ColumnRule("description", "contains", "description"),
    ColumnRule("description", "contains", "descripcion"),
    ColumnRule("description", "contains", "memo"),
    ColumnRule("description", "contains", "details"),
)

_REQUIRED_FIELDS: tuple[Field, ...] = ("date", "amount")


def resolve_columns(headers: list[str]) -> dict[str, int]:
    """Map each field to the index of the first header matching one of its rules.

    Headers are compared lower-cased and trimmed. Fields with no matching
    header are absent from the result.
    """

    normalized = [h.strip().lower() for h in headers]
    resolved: dict[str, int] = {}
    for field_name in ("date", "amount", "description"):
        rules = [r for r in COLUMN_RULES if r.field == field_name]
        for idx, header in enumerate(normalized):
            if any(rule.matches(header) for rule in rules):
                resolved[field_name] = idx
                break
    return resolved


# ---------------------------------------------------------------------------
# Tokenizing and value normalization
# ---------------------------------------------------------------------------


def split_line(line: str, delimiter: str = ",") -> list[str]:
    """Split one line on ``delimiter`` outside of double quotes."""

    values: list[str] = []
    current: list[str] = []
    in_quotes = False
    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == delimiter and not in_quotes:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    values.append("".join(current).strip())
    return values


def _ymd(m: re.Match[str]) -> date:
    return date(int(m["a"]), int(m["b"]), int(m["c"]))


def _mdy(m: re.Match[str]) -> date:
    return date(int(m["c"]), int(m["a"]), int(m["b"]))


def _dmy(m: re.Match[str]) -> date:
    return date(int(m["c"]), int(m["b"]), int(m["a"]))


DATE_PATTERNS: tuple[tuple[re.Pattern[str], Callable[[re.Match[str]], date]], ...] = (
    (re.compile(r"(?P<a>\d{4})-(?P<b>\d{1,2})-(?P<c>\d{1,2})"), _ymd),  # YYYY-MM-DD
    (re.compile(r"(?P<a>\d{1,2})/(?P<b>\d{1,2})/(?P<c>\d{4})"), _mdy),  # MM/DD/YYYY
    (re.compile(r"(?P<a>\d{1,2})-(?P<b>\d{1,2})-(?P<c>\d{4})"), _dmy),  # DD-MM-YYYY
)


def parse_date(token: str) -> date | None:
    """Return the date for the first pattern matching all of ``token``.

    A pattern that matches but names an impossible day (``2024-02-30``) makes
    the token unparseable; later patterns are not consulted.
    """

    s = token.strip()
    for pattern, build in DATE_PATTERNS:
        m = pattern.fullmatch(s)
        if m is None:
            continue
        try:
            return build(m)
        except ValueError:
            return None
    return None


_AMOUNT_NOISE = re.compile(r"[\s,$€£¥₹]|[A-Za-z]{3}$|^[A-Za-z]{3}")
_AMOUNT_SIGN = re.compile(r"^[+-]|[+-]$")
_AMOUNT_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def parse_amount(token: str) -> Decimal | None:
    """Return ``abs(amount)`` or ``None`` when ``token`` is not a number.

    Strips currency symbols (``$ € £ ¥ ₹`` and a leading/trailing ISO code
    such as ``USD``), thousands separators, wrapping parentheses and one
    leading or trailing sign. What remains must be a plain decimal number.
    """

    s = _AMOUNT_NOISE.sub("", token.strip())
    if s.startswith("(") and s.endswith(")"):
        s = s[1:-1]
    s = _AMOUNT_SIGN.sub("", s, count=1)
    if not _AMOUNT_NUMBER.fullmatch(s):
        return None
    return Decimal(s)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _lines(raw_text: str) -> list[str]:
    return raw_text.strip().splitlines()


def _header_and_columns(lines: list[str], delimiter: str) -> dict[str, int]:
    if not lines:
        raise ParseError("no_rows", "statement is empty")
    headers = split_line(lines[0], delimiter)
    columns = resolve_columns(headers)
    missing = [f for f in _REQUIRED_FIELDS if f not in columns]
    if missing:
        raise ParseError(
            "missing_columns",
            "Could not find required columns (" + ", ".join(missing) + ") in header: "
            + ", ".join(h.strip() for h in headers),
        )
    return columns


def _iter_rows(
    lines: list[str], columns: dict[str, int], delimiter: str
) -> Iterator[ParsedTransaction | None]:
    """Yield a record per data line, or ``None`` for a skipped row."""

    date_idx = columns["date"]
    amount_idx = columns["amount"]
    desc_idx = columns.get("description")
    for lineno, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        values = split_line(line, delimiter)
        date_tok = values[date_idx] if date_idx < len(values) else ""
        amount_tok = values[amount_idx] if amount_idx < len(values) else ""
        description = (
            values[desc_idx] if desc_idx is not None and desc_idx < len(values) else ""
        )

        parsed_date = parse_date(date_tok) if date_tok else None
        amount = parse_amount(amount_tok) if amount_tok else None
        if parsed_date is None or amount is None:
            logger.debug(
                "Skipping line %d: date=%r amount=%r", lineno, date_tok, amount_tok
            )
            yield None
            continue
        yield ParsedTransaction(date=parsed_date, amount=amount, description=description)


def iter_statement(raw_text: str, *, delimiter: str = ",") -> Iterator[ParsedTransaction]:
    """Lazily yield parsed rows in file order.

    Each call starts a fresh scan, so the sequence can be re-iterated by
    calling again. Header problems raise on the first ``next()``; when every
    data row is skipped, ``ParseError("no_rows")`` is raised once the scan
    ends, as in :func:`parse_statement`.
    """

    lines = _lines(raw_text)
    columns = _header_and_columns(lines, delimiter)
    yielded = 0
    for row in _iter_rows(lines, columns, delimiter):
        if row is not None:
            yielded += 1
            yield row
    if not yielded:
        raise ParseError("no_rows", "no valid transaction rows found")


def parse_statement(raw_text: str, *, delimiter: str = ",") -> ParseResult:
    """Parse a whole statement into a :class:`ParseResult`.

    Raises ``ParseError("missing_columns")`` when the header lacks a date or
    amount column, and ``ParseError("no_rows")`` when no data row survives.
    """

    lines = _lines(raw_text)
    columns = _header_and_columns(lines, delimiter)

    rows: list[ParsedTransaction] = []
    skipped = 0
    for row in _iter_rows(lines, columns, delimiter):
        if row is None:
            skipped += 1
        else:
            rows.append(row)

    if not rows:
        raise ParseError(
            "no_rows",
            f"no valid transaction rows found ({skipped} malformed row(s) skipped)",
        )
    if skipped:
        logger.info("Parsed %d row(s); skipped %d malformed row(s)", len(rows), skipped)
    return ParseResult(transactions=tuple(rows), skipped_count=skipped, columns=columns)


__all__ = [
    "COLUMN_RULES",
    "ColumnRule",
    "DATE_PATTERNS",
    "iter_statement",
    "parse_amount",
    "parse_date",
    "parse_statement",
    "resolve_columns",
    "split_line",
]

"""Normalize transaction candidates produced by statement image/PDF extraction.

The extraction step (an external model call) returns a JSON array such as::

    [{"date": "2024-01-15", "amount": 45.99, "description": "Grocery Store"}]

sometimes wrapped in a Markdown code fence. Items are validated with
:class:`~bank_reconciliation.models.ExtractedTransaction`; invalid items are
skipped and counted rather than failing the whole batch.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from ..errors import ParseError
from ..logging_setup import get_logger
from ..models import ExtractedTransaction, ParsedTransaction, ParseResult

logger = get_logger("bank_reconciliation.ingest.extracted")

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def parse_extracted_json(content: str) -> list[Any]:
    """Return the JSON array in ``content``, unwrapping a code fence if present.

    Raises ``ParseError("no_rows")`` when the payload is not a JSON array.
    """

    payload = content.strip()
    fenced = _FENCE.search(payload)
    if fenced:
        payload = fenced.group(1).strip()
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ParseError("no_rows", f"extracted content is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise ParseError("no_rows", "extracted content must be a JSON array of transactions")
    return data


def normalize_extracted(records: Iterable[Mapping[str, Any] | Any]) -> ParseResult:
    """Validate extracted candidates and return them as parsed transactions.

    Unlike CSV parsing, an empty result is not an error here: the extractor
    reports "no transactions visible" with an empty array.
    """

    rows: list[ParsedTransaction] = []
    skipped = 0
    for pos, rec in enumerate(records):
        if not isinstance(rec, Mapping):
            skipped += 1
            continue
        try:
            item = ExtractedTransaction.model_validate(dict(rec))
        except ValidationError as exc:
            logger.debug("Skipping extracted item %d: %s", pos, exc.errors(include_url=False))
            skipped += 1
            continue
        rows.append(item.to_parsed())

    if skipped:
        logger.info("Extracted %d row(s); skipped %d invalid item(s)", len(rows), skipped)
    return ParseResult(transactions=tuple(rows), skipped_count=skipped)


__all__ = ["normalize_extracted", "parse_extracted_json"]

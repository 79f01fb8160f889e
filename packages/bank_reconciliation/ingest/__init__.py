"""Statement ingest: CSV exports and AI-extracted candidates."""

from .csv_statement import iter_statement, parse_statement
from .extracted import normalize_extracted, parse_extracted_json

__all__ = [
    "iter_statement",
    "normalize_extracted",
    "parse_extracted_json",
    "parse_statement",
]

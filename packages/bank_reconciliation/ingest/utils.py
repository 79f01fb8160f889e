"""File helpers for the CLI ingest commands."""

from __future__ import annotations

from os import PathLike
from pathlib import Path


def read_statement_text(path: str | PathLike[str]) -> str:
    """Read a statement export as text.

    Tries UTF-8 (with or without BOM) first and falls back to Latin-1, which
    many Spanish-language bank exports still use.
    """

    raw = Path(path).read_bytes()
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


__all__ = ["read_statement_text"]

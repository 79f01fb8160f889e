"""Pytest configuration for test isolation.

Tests import the workspace packages straight from the source tree
(``packages/`` and ``libs/db/src``), so those directories and the repo root
are put on ``sys.path`` here.

``db.client`` keeps one engine per process and refuses to rebind it to a
different URL. Every test gets its own SQLite file, so an autouse fixture
disposes the shared engine around each test and detaches any logging handler
a CLI invocation configured.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
sys.path[:0] = [
    p
    for p in (str(_ROOT / "packages"), str(_ROOT / "libs/db/src"), str(_ROOT))
    if p not in sys.path
]

from bank_reconciliation.logging_setup import reset_logging  # noqa: E402
from db.client import dispose_engine  # noqa: E402
from tests.helpers.db import bootstrap_sqlite_db  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_engine(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Start each test without a bound engine or an ambient DATABASE_URL."""

    monkeypatch.delenv("DATABASE_URL", raising=False)
    for var in ("BANK_RECON_MATCH_WORKERS", "BANK_RECON_LOG_LEVEL", "BANK_RECON_SQL_ECHO"):
        monkeypatch.delenv(var, raising=False)
    dispose_engine()
    reset_logging()
    yield
    dispose_engine()
    reset_logging()


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "recon.db")

# ruff: noqa: I001
"""CLI for the ``bank_reconciliation`` package (``bank-recon``).

Environment variables (notably ``DATABASE_URL``) are loaded from a local
``.env`` using ``python-dotenv`` before any command runs; every command also
accepts ``--database-url``. Output is one tab-separated line per item on
stdout. Failures print ``Error: ...`` on stderr and exit with status 1.
Business logic lives in :mod:`bank_reconciliation.api`.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from typer.models import OptionInfo

from .errors import InvalidTransition, NotFound, ParseError
from .logging_setup import configure_logging


# ---- Module-level option objects (ruff B008: no calls in parameter defaults) --


DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
TRANSACTION_ID_OPTION: OptionInfo = typer.Option(
    ..., "--transaction-id", help="Bank transaction id."
)
CSV_PATH_OPTION: OptionInfo = typer.Option(
    ...,
    "--csv-path",
    help="Path to a bank statement CSV export",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)
JSON_PATH_OPTION: OptionInfo = typer.Option(
    ...,
    "--json-path",
    help="Path to a JSON array of extracted transactions",
    dir_okay=False,
    file_okay=True,
    exists=False,
)


def _fmt_amount(value: Decimal | None) -> str:
    if value is None:
        return ""
    return f"{value:.2f}"


def _guarded(action: Callable[[], None]) -> int:
    """Run ``action`` and translate expected failures into ``Error:`` lines."""

    try:
        action()
    except FileNotFoundError as e:
        print(f"Error: File not found: {e.filename}", file=sys.stderr)
        return 1
    except PermissionError as e:
        print(f"Error: Permission denied: {e.filename}", file=sys.stderr)
        return 1
    except ParseError as e:
        print(f"Error: Failed to parse statement ({e.kind}): {e}", file=sys.stderr)
        return 1
    except (NotFound, InvalidTransition) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except SQLAlchemyError as e:
        print(f"Error: database operation failed: {e}", file=sys.stderr)
        return 1
    except (RuntimeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def _finish(code: int) -> None:
    if code:
        raise typer.Exit(code)


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Reconcile bank statement transactions against recorded expenses. "
        "Loads DATABASE_URL from a local .env before running."
    ),
)


@app.command("import-csv")
def import_csv_cmd(
    csv_path: Path = CSV_PATH_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Parse a statement CSV and store its rows as pending transactions."""

    from .api import import_statement_csv
    from .ingest.utils import read_statement_text

    def _run() -> None:
        summary = import_statement_csv(read_statement_text(csv_path), database_url=database_url)
        print(f"{summary.batch_id}\t{summary.inserted}\t{summary.skipped}")

    _finish(_guarded(_run))


@app.command("import-extracted")
def import_extracted_cmd(
    json_path: Path = JSON_PATH_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Store transactions extracted from a statement image or PDF."""

    from .api import import_extracted
    from .ingest import parse_extracted_json
    from .ingest.utils import read_statement_text

    def _run() -> None:
        records = parse_extracted_json(read_statement_text(json_path))
        summary = import_extracted(records, database_url=database_url)
        print(f"{summary.batch_id or '-'}\t{summary.inserted}\t{summary.skipped}")

    _finish(_guarded(_run))


@app.command("add-expense")
def add_expense_cmd(
    date: datetime = typer.Option(..., "--date", formats=["%Y-%m-%d"], help="Expense date."),  # noqa: B008
    amount: str = typer.Option(..., "--amount", help="Expense amount, e.g. 42.50."),  # noqa: B008
    vendor: str | None = typer.Option(None, "--vendor"),  # noqa: B008
    description: str | None = typer.Option(None, "--description"),  # noqa: B008
    category: str | None = typer.Option(None, "--category"),  # noqa: B008
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Record a ledger expense and print its id."""

    from .api import add_expense

    def _run() -> None:
        try:
            value = Decimal(amount.strip())
        except InvalidOperation as exc:
            raise ValueError(f"invalid amount: {amount!r}") from exc
        expense = add_expense(
            date=date.date(),
            amount=value,
            vendor=vendor,
            description=description,
            category=category,
            database_url=database_url,
        )
        print(expense.id)

    _finish(_guarded(_run))


@app.command("transactions")
def transactions_cmd(
    status: str | None = typer.Option(  # noqa: B008
        None, "--status", help="Only list transactions in this status."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """List stored bank transactions."""

    from .api import list_transactions

    def _run() -> None:
        for tx in list_transactions(status=status, database_url=database_url):
            print(
                f"{tx.id}\t{tx.date.isoformat()}\t{_fmt_amount(tx.amount)}\t"
                f"{tx.status}\t{tx.matched_expense_id or ''}\t{tx.description or ''}"
            )

    _finish(_guarded(_run))


@app.command("suggest")
def suggest_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """Print match candidates for every pending transaction."""

    from .api import suggest_matches

    def _run() -> None:
        for tm in suggest_matches(database_url=database_url):
            for cand in tm.candidates:
                print(
                    f"{tm.transaction.id}\t{cand.expense.id}\t{cand.score}\t"
                    f"{cand.match_type}\t{cand.expense.vendor or ''}"
                )

    _finish(_guarded(_run))


@app.command("auto-reconcile")
def auto_reconcile_cmd(
    min_score: int = typer.Option(  # noqa: B008
        100, "--min-score", min=50, max=100, help="Minimum score to confirm automatically."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Confirm unambiguous top candidates."""

    from .api import auto_reconcile

    def _run() -> None:
        print(auto_reconcile(database_url=database_url, min_score=min_score))

    _finish(_guarded(_run))


@app.command("confirm")
def confirm_cmd(
    transaction_id: str = TRANSACTION_ID_OPTION,
    expense_id: str = typer.Option(..., "--expense-id", help="Ledger expense id."),  # noqa: B008
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Confirm a pending transaction against an expense."""

    from .api import confirm_match

    def _run() -> None:
        tx = confirm_match(transaction_id, expense_id, database_url=database_url)
        print(f"{tx.id}\t{tx.status}\t{tx.matched_expense_id}")

    _finish(_guarded(_run))


@app.command("flag")
def flag_cmd(
    transaction_id: str = TRANSACTION_ID_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Mark a pending transaction as a discrepancy."""

    from .api import flag_discrepancy

    def _run() -> None:
        tx = flag_discrepancy(transaction_id, database_url=database_url)
        print(f"{tx.id}\t{tx.status}")

    _finish(_guarded(_run))


@app.command("revert")
def revert_cmd(
    transaction_id: str = TRANSACTION_ID_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Move a matched or flagged transaction back to pending."""

    from .api import revert_to_pending

    def _run() -> None:
        tx = revert_to_pending(transaction_id, database_url=database_url)
        print(f"{tx.id}\t{tx.status}")

    _finish(_guarded(_run))


@app.command("delete")
def delete_cmd(
    transaction_id: str = TRANSACTION_ID_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Permanently delete a transaction."""

    from .api import delete_transaction

    def _run() -> None:
        delete_transaction(transaction_id, database_url=database_url)
        print(f"{transaction_id}\tdeleted")

    _finish(_guarded(_run))


@app.command("create-expense")
def create_expense_cmd(
    transaction_id: str = TRANSACTION_ID_OPTION,
    vendor: str | None = typer.Option(None, "--vendor"),  # noqa: B008
    description: str | None = typer.Option(None, "--description"),  # noqa: B008
    category: str | None = typer.Option(None, "--category"),  # noqa: B008
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Record a new expense from a pending transaction and match them."""

    from .api import create_expense_from_transaction

    def _run() -> None:
        _expense, tx = create_expense_from_transaction(
            transaction_id,
            vendor=vendor,
            description=description,
            category=category,
            database_url=database_url,
        )
        print(f"{tx.id}\t{tx.status}\t{tx.matched_expense_id}")

    _finish(_guarded(_run))


def _split_item(raw: str) -> dict[str, str]:
    """``VENDOR=AMOUNT`` or ``VENDOR=AMOUNT=CATEGORY``."""

    parts = [p.strip() for p in raw.split("=")]
    if len(parts) not in (2, 3):
        raise ValueError(f"invalid split item {raw!r}; expected VENDOR=AMOUNT[=CATEGORY]")
    try:
        Decimal(parts[1])
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount in split item {raw!r}") from exc
    item = {"vendor": parts[0], "amount": parts[1]}
    if len(parts) == 3 and parts[2]:
        item["category"] = parts[2]
    return item


@app.command("split")
def split_cmd(
    transaction_id: str = TRANSACTION_ID_OPTION,
    items: list[str] = typer.Option(  # noqa: B008
        ..., "--item", help="VENDOR=AMOUNT[=CATEGORY]; repeat once per expense."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Split a pending transaction into several new expenses."""

    from .api import split_transaction

    def _run() -> None:
        expenses, tx = split_transaction(
            transaction_id, [_split_item(i) for i in items], database_url=database_url
        )
        for e in expenses:
            print(f"{tx.id}\t{e.id}\t{_fmt_amount(e.amount)}\t{e.vendor or ''}")

    _finish(_guarded(_run))


@app.command("recurring")
def recurring_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """List recurring payments, highest amount first."""

    from .api import recurring_payments

    def _run() -> None:
        for rp in recurring_payments(database_url=database_url):
            print(
                f"{rp.description}\t{_fmt_amount(rp.amount)}\t{rp.occurrences}\t"
                f"{rp.frequency}\t{rp.interval_confidence:.1f}\t"
                f"{_fmt_amount(rp.annualized_cost)}"
            )

    _finish(_guarded(_run))


@app.command("top-vendors")
def top_vendors_cmd(
    limit: int = typer.Option(10, "--limit", min=1, help="Number of vendors to show."),  # noqa: B008
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Rank vendors by total amount."""

    from .api import vendor_totals

    def _run() -> None:
        for vt in vendor_totals(limit=limit, database_url=database_url):
            print(f"{vt.vendor}\t{_fmt_amount(vt.total)}\t{vt.count}")

    _finish(_guarded(_run))


@app.command("summary")
def summary_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """Print the number of transactions per status."""

    from .api import reconciliation_summary

    def _run() -> None:
        for status, n in reconciliation_summary(database_url=database_url).items():
            print(f"{status}\t{n}")

    _finish(_guarded(_run))


@app.callback()
def _root() -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m bank_reconciliation.cli`
    app()

# ruff: noqa: I001
"""
Alembic environment for the reconciliation ``db`` library.

URL resolution: ``DATABASE_URL`` (after loading the nearest ``.env`` without
overriding the process environment), else ``sqlalchemy.url`` from the INI.

Autogenerate only considers ``rc_*`` tables so the reconciliation schema can
live in a database shared with other applications. SQLite URLs run in batch
mode because SQLite cannot ALTER constraints in place.
"""

from __future__ import annotations

import logging
import os
from logging.config import fileConfig

from alembic import context
from dotenv import find_dotenv, load_dotenv
from sqlalchemy import engine_from_config, pool

import db as _db_pkg

_TABLE_PREFIX = "rc_"

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")


def _resolve_url() -> str:
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set. Provide it via environment or set "
            "'sqlalchemy.url' in alembic.ini."
        )
    return url


def _include_object(obj, name, type_, reflected, compare_to) -> bool:  # noqa: ANN001
    if type_ == "table":
        return bool(name) and name.startswith(_TABLE_PREFIX)
    table = getattr(obj, "table", None)
    if table is not None:
        return table.name.startswith(_TABLE_PREFIX)
    return True


db_url = _resolve_url()
config.set_main_option("sqlalchemy.url", db_url)

_common_opts = {
    "target_metadata": _db_pkg.metadata,
    "compare_type": True,
    "include_object": _include_object,
    "render_as_batch": db_url.startswith("sqlite"),
}


def run_migrations_offline() -> None:
    """Emit SQL to stdout without connecting."""

    context.configure(url=db_url, literal_binds=True, **_common_opts)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Connect and apply migrations in one transaction."""

    section = dict(config.get_section(config.config_ini_section) or {})
    section["sqlalchemy.url"] = db_url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    logger.info("Applying reconciliation migrations")
    with connectable.connect() as connection:
        context.configure(connection=connection, **_common_opts)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

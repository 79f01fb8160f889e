"""Track the bank transaction an expense was created or split from.

Revision ID: 0002_rc_expense_origin
Revises: 0001_rc_core
Create Date: 2025-11-17
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0002_rc_expense_origin"
down_revision: str | None = "0001_rc_core"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    with op.batch_alter_table("rc_expenses") as batch:
        batch.add_column(sa.Column("origin_transaction_id", sa.String(), nullable=True))
    op.create_index(
        "ix_rc_expenses_origin_tx", "rc_expenses", ["origin_transaction_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_rc_expenses_origin_tx", table_name="rc_expenses")
    with op.batch_alter_table("rc_expenses") as batch:
        batch.drop_column("origin_transaction_id")

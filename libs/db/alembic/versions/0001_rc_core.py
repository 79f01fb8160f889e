# ruff: noqa: I001
"""Reconciliation core tables: rc_expenses and rc_bank_transactions.

Revision ID: 0001_rc_core
Revises: None
Create Date: 2025-11-03
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_rc_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "rc_expenses",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("vendor", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column(
            "reconciled",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="ck_rc_expense_amount_non_negative"),
    )
    op.create_index("ix_rc_expenses_date", "rc_expenses", ["date"], unique=False)

    op.create_table(
        "rc_bank_transactions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.String(),
            nullable=False,
            server_default=sa.text("'pending'"),
        ),
        sa.Column("matched_expense_id", sa.String(), nullable=True),
        sa.Column("matched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("source", sa.String(), nullable=False, server_default=sa.text("'csv'")),
        sa.Column("import_batch_id", sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["matched_expense_id"],
            ["rc_expenses.id"],
            name="fk_rc_tx_matched_expense",
        ),
        sa.CheckConstraint(
            "status in ('pending','matched','discrepancy')",
            name="ck_rc_tx_status",
        ),
        sa.CheckConstraint("source in ('csv','extracted')", name="ck_rc_tx_source"),
        sa.CheckConstraint("amount >= 0", name="ck_rc_tx_amount_non_negative"),
        sa.CheckConstraint(
            (
                "(status = 'matched' AND matched_expense_id IS NOT NULL) OR "
                "(status <> 'matched' AND matched_expense_id IS NULL)"
            ),
            name="ck_rc_tx_match_link",
        ),
    )
    op.create_index("ix_rc_tx_status", "rc_bank_transactions", ["status"], unique=False)
    op.create_index("ix_rc_tx_date", "rc_bank_transactions", ["transaction_date"], unique=False)
    op.create_index("ix_rc_tx_batch", "rc_bank_transactions", ["import_batch_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_rc_tx_batch", table_name="rc_bank_transactions")
    op.drop_index("ix_rc_tx_date", table_name="rc_bank_transactions")
    op.drop_index("ix_rc_tx_status", table_name="rc_bank_transactions")
    op.drop_table("rc_bank_transactions")
    op.drop_index("ix_rc_expenses_date", table_name="rc_expenses")
    op.drop_table("rc_expenses")

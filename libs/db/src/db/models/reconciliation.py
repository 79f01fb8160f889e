from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


# ---------------------------
# Ledger side: rc_expenses
# ---------------------------


class RcExpense(Base):
    __tablename__ = "rc_expenses"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    vendor: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    # Stamped by the API layer when a bank transaction is confirmed against
    # this expense. Deleting the transaction never clears it.
    reconciled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false"), default=False
    )
    # Set when the expense was created from (or split out of) a bank transaction.
    # Plain column: deleting the transaction leaves the expense untouched.
    origin_transaction_id: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_rc_expense_amount_non_negative"),
        Index("ix_rc_expenses_date", "date"),
        Index("ix_rc_expenses_origin_tx", "origin_transaction_id"),
    )


# ---------------------------
# Bank side: rc_bank_transactions
# ---------------------------


class RcBankTransaction(Base):
    __tablename__ = "rc_bank_transactions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    # Absolute value; debit/credit direction is not modeled.
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'pending'"), default="pending"
    )
    matched_expense_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("rc_expenses.id", name="fk_rc_tx_matched_expense"), nullable=True
    )
    matched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    source: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'csv'"))
    import_batch_id: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "status in ('pending','matched','discrepancy')",
            name="ck_rc_tx_status",
        ),
        CheckConstraint("source in ('csv','extracted')", name="ck_rc_tx_source"),
        CheckConstraint("amount >= 0", name="ck_rc_tx_amount_non_negative"),
        # matched_expense_id is set iff status = 'matched'
        CheckConstraint(
            (
                "(status = 'matched' AND matched_expense_id IS NOT NULL) OR "
                "(status <> 'matched' AND matched_expense_id IS NULL)"
            ),
            name="ck_rc_tx_match_link",
        ),
        Index("ix_rc_tx_status", "status"),
        Index("ix_rc_tx_date", "transaction_date"),
        Index("ix_rc_tx_batch", "import_batch_id"),
    )


__all__ = [
    "Base",
    "RcBankTransaction",
    "RcExpense",
]

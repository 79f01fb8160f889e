"""ORM models registry for the reconciliation database."""

from .reconciliation import Base, RcBankTransaction, RcExpense

__all__ = [
    "Base",
    "RcBankTransaction",
    "RcExpense",
]

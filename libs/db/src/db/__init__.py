"""db: shared database library for bank reconciliation (SQLAlchemy/Alembic).

Public exports
--------------
- ``Base`` and ``metadata`` for Alembic autogenerate/targeting
- ORM models from ``db.models.reconciliation``
- Engine/session helpers live in ``db.client``
"""

from __future__ import annotations

from .models.reconciliation import Base, RcBankTransaction, RcExpense

metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "RcBankTransaction",
    "RcExpense",
]

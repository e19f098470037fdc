"""SQLAlchemy ORM models for the expense tracker service.

These models define the relational schema used by the application.
Enumerated fields are stored using SQLAlchemy's native Enum type and
the receipt provenance block is a JSON column that is SQL ``NULL`` for
transactions that did not come from a receipt, so history queries can
filter on it directly.

If you extend or modify these models remember to call the ``init_db``
helper during development to recreate the tables.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    String,
    DateTime,
    Enum,
    Float,
    Index,
    JSON,
)

from expense_tracker.core.database import Base
from expense_tracker.utils.helpers import utcnow
from .enums import TransactionKind, PaymentMethod


def _new_id() -> str:
    return uuid.uuid4().hex


class Transaction(Base):
    """Income or expense entry owned by a user."""

    __tablename__ = "transactions"

    id = Column(String(32), primary_key=True, default=_new_id)
    user_id = Column(String(24), nullable=False, index=True)
    kind = Column(Enum(TransactionKind), nullable=False)
    category = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    description = Column(String(500), nullable=True)
    date = Column(DateTime, nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=True)
    # Present only for receipt-derived transactions
    receipt_provenance = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_transactions_user_created_at", "user_id", "created_at"),
    )

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"<Transaction id={self.id} user={self.user_id} {self.kind} {self.amount}>"

"""Transaction persistence over an async SQLAlchemy session.

The store validates every new transaction against ``TransactionCreate``
before writing it.  Schema rejections surface as
:class:`TransactionValidationError` with per-field messages; database
failures propagate as ``SQLAlchemyError`` after the session is rolled
back.  A single ``create`` is one commit, so each document write is
atomic on its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from expense_tracker.models.schemas import TransactionCreate
from expense_tracker.models.tables import Transaction

logger = logging.getLogger(__name__)


class TransactionValidationError(ValueError):
    """Raised when a payload does not satisfy the transaction schema."""

    def __init__(self, errors: List[Dict[str, str]]) -> None:
        self.errors = errors
        super().__init__("; ".join(f"{e['field']}: {e['message']}" for e in errors))

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "TransactionValidationError":
        errors = []
        for err in exc.errors():
            field = ".".join(str(p) for p in err.get("loc", ())) or "transaction"
            message = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
            errors.append({"field": field, "message": message})
        return cls(errors)


@dataclass
class Page:
    items: Sequence[Transaction]
    total_count: int


class TransactionStore:
    """Create, find and paginate transactions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, data: Mapping[str, Any] | TransactionCreate) -> Transaction:
        try:
            validated = data if isinstance(data, TransactionCreate) else TransactionCreate.model_validate(dict(data))
        except ValidationError as exc:
            raise TransactionValidationError.from_pydantic(exc) from exc

        provenance = validated.receipt_provenance
        row = Transaction(
            user_id=validated.user_id,
            kind=validated.kind,
            category=validated.category,
            amount=validated.amount,
            description=validated.description,
            date=validated.date,
            payment_method=validated.payment_method,
            receipt_provenance=provenance.model_dump(mode="json") if provenance is not None else None,
        )
        self.session.add(row)
        try:
            await self.session.commit()
            await self.session.refresh(row)
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        logger.info("[store] created transaction id=%s user=%s", row.id, row.user_id)
        return row

    async def find(self, transaction_id: str, user_id: Optional[str] = None) -> Optional[Transaction]:
        query = select(Transaction).where(Transaction.id == transaction_id)
        if user_id is not None:
            query = query.where(Transaction.user_id == user_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def paginate(
        self,
        user_id: str,
        page: int,
        limit: int,
        receipts_only: bool = False,
    ) -> Page:
        """Return one page of a user's transactions, newest first."""
        conditions = [Transaction.user_id == user_id]
        if receipts_only:
            conditions.append(Transaction.receipt_provenance.is_not(None))

        count_q = select(func.count(Transaction.id)).where(*conditions)
        total = (await self.session.execute(count_q)).scalar() or 0

        query = (
            select(Transaction)
            .where(*conditions)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return Page(items=result.scalars().all(), total_count=int(total))

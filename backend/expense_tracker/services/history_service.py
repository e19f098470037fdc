"""Paginated history of receipt-derived transactions."""

from __future__ import annotations

import logging
import math
from typing import Optional

from pydantic import ValidationError

from expense_tracker.core.config import settings
from expense_tracker.core.errors import InvalidUserIdentifier
from expense_tracker.models.schemas import Pagination, ReceiptHistoryPage, TransactionRead
from expense_tracker.services.cache import cache_get_json, cache_set_json, history_cache_key
from expense_tracker.services.transaction_store import TransactionStore
from expense_tracker.utils.helpers import is_valid_user_id

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def build_pagination(page: int, limit: int, total_count: int) -> Pagination:
    total_pages = math.ceil(total_count / limit) if limit else 0
    return Pagination(
        page=page,
        limit=limit,
        total_count=total_count,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


class ReceiptHistoryService:
    def __init__(self, store: TransactionStore) -> None:
        self.store = store

    async def get_history(self, user_id: Optional[str], page: int = 1, limit: int = 10) -> ReceiptHistoryPage:
        """Return one page of the user's receipt transactions, newest first."""
        if not is_valid_user_id(user_id):
            raise InvalidUserIdentifier()
        page = max(1, int(page))
        limit = max(1, min(int(limit), MAX_PAGE_SIZE))

        key = history_cache_key(user_id, page, limit)
        cached = await cache_get_json(key)
        if isinstance(cached, dict):
            try:
                return ReceiptHistoryPage.model_validate(cached)
            except ValidationError:
                logger.warning("[history] ignoring malformed cache entry key=%s", key)

        result = await self.store.paginate(user_id, page, limit, receipts_only=True)
        history = ReceiptHistoryPage(
            data=[TransactionRead.model_validate(tx) for tx in result.items],
            pagination=build_pagination(page, limit, result.total_count),
        )
        await cache_set_json(key, history.model_dump(mode="json"), ttl=settings.HISTORY_CACHE_TTL)
        return history

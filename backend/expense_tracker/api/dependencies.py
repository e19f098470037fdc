"""Common dependencies for FastAPI routes.

This module defines shared dependency functions for database access and
the receipt pipeline services.  Routes depend on these factories rather
than constructing services themselves so tests can swap any piece via
``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from expense_tracker.core.database import get_db
from expense_tracker.services.extraction_service import Extractor, SubprocessExtractor
from expense_tracker.services.history_service import ReceiptHistoryService
from expense_tracker.services.ingestion_service import ReceiptIngestionService
from expense_tracker.services.transaction_store import TransactionStore
from expense_tracker.services.upload_service import UploadService

# -----------------------------------------------------------------------------
# Shared resources

_upload_service: UploadService | None = None


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Alias for `get_db` to be imported in routers."""
    async for session in get_db():
        yield session


def get_upload_service() -> UploadService:
    """Return the process-wide upload receiver (directories created once)."""
    global _upload_service
    if _upload_service is None:
        _upload_service = UploadService()
    return _upload_service


def get_extractor() -> Extractor:
    return SubprocessExtractor()


def get_transaction_store(db: AsyncSession = Depends(get_db_session)) -> TransactionStore:
    return TransactionStore(db)


def get_ingestion_service(
    uploads: UploadService = Depends(get_upload_service),
    extractor: Extractor = Depends(get_extractor),
    store: TransactionStore = Depends(get_transaction_store),
) -> ReceiptIngestionService:
    # One orchestrator per request; it tracks that request's state
    return ReceiptIngestionService(uploads, extractor, store)


def get_history_service(store: TransactionStore = Depends(get_transaction_store)) -> ReceiptHistoryService:
    return ReceiptHistoryService(store)

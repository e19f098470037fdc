"""Receipt ingestion orchestrator.

Sequences one ingestion attempt through

    received -> uploaded -> extracting -> extracted -> normalized -> persisted

with ``failed`` reachable from every non-terminal state.  This is the
only component that deletes uploaded files: any failure after the file
was stored (including cancellation of the calling task) removes it
before the error propagates, and on success the file is kept as the
receipt of record, referenced from the transaction's provenance block.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from fastapi import UploadFile
from sqlalchemy.exc import SQLAlchemyError

from expense_tracker.core.errors import (
    IngestionError,
    InvalidUserIdentifier,
    PersistenceError,
    PersistenceValidationFailed,
)
from expense_tracker.core.observability import sentry_breadcrumb, sentry_set_tags
from expense_tracker.models.enums import IngestionState
from expense_tracker.models.schemas import ExtractionResult
from expense_tracker.models.tables import Transaction
from expense_tracker.services.cache import invalidate_receipt_history
from expense_tracker.services.extraction_service import Extractor
from expense_tracker.services.normalization import normalize_extraction
from expense_tracker.services.transaction_store import TransactionStore, TransactionValidationError
from expense_tracker.services.upload_service import RECEIPT_FIELD, UploadedFile, UploadService
from expense_tracker.utils.helpers import is_valid_user_id, utcnow

logger = logging.getLogger(__name__)


@dataclass
class IngestionOutcome:
    """Everything produced by one successful ingestion."""

    transaction: Transaction
    extraction: ExtractionResult
    uploaded: UploadedFile
    states: List[IngestionState] = field(default_factory=list)


class ReceiptIngestionService:
    """Turns one uploaded receipt into one persisted expense transaction."""

    def __init__(self, uploads: UploadService, extractor: Extractor, store: TransactionStore) -> None:
        self.uploads = uploads
        self.extractor = extractor
        self.store = store
        self.state = IngestionState.RECEIVED
        self.history: List[IngestionState] = [IngestionState.RECEIVED]

    def _transition(self, state: IngestionState, **data) -> None:
        self.state = state
        self.history.append(state)
        logger.info("[ingest] state=%s %s", state.value, " ".join(f"{k}={v}" for k, v in data.items()))
        sentry_breadcrumb(category="ingestion", message=f"receipt.{state.value}", data=data)

    def _fail(self, exc: IngestionError, uploaded: Optional[UploadedFile]) -> IngestionError:
        if uploaded is not None:
            exc.file_removed = self.uploads.discard(uploaded)
        self._transition(IngestionState.FAILED, kind=exc.kind, file_removed=exc.file_removed)
        sentry_set_tags({"ingestion.failed": exc.kind})
        return exc

    async def ingest(self, user_id: Optional[str], files: Optional[Sequence[UploadFile]]) -> IngestionOutcome:
        """Run the full pipeline for one request.

        Raises a subclass of ``IngestionError`` on failure; by then any
        file stored for this request has been deleted.
        """
        if not is_valid_user_id(user_id):
            raise self._fail(InvalidUserIdentifier(), None)

        try:
            uploaded = await self.uploads.receive(RECEIPT_FIELD, files)
        except IngestionError as exc:
            raise self._fail(exc, None)
        self._transition(IngestionState.UPLOADED, file=uploaded.filename, bytes=uploaded.size)

        try:
            return await self._process(user_id, uploaded)
        except IngestionError as exc:
            raise self._fail(exc, uploaded)
        except (Exception, asyncio.CancelledError) as exc:
            self.uploads.discard(uploaded)
            self._transition(IngestionState.FAILED, kind=type(exc).__name__)
            raise

    async def _process(self, user_id: str, uploaded: UploadedFile) -> IngestionOutcome:
        self._transition(IngestionState.EXTRACTING)
        extraction = await self.extractor.extract(uploaded.path)
        self._transition(IngestionState.EXTRACTED, merchant=extraction.merchant)

        processed_at = utcnow()
        payload = normalize_extraction(extraction, user_id, processed_at=processed_at)
        payload["receipt_provenance"] = payload["receipt_provenance"].model_copy(
            update={
                "original_filename": uploaded.original_name,
                "uploaded_filename": uploaded.filename,
                "file_size": uploaded.size,
                "file_path": str(uploaded.path),
                "processed_at": processed_at,
            }
        )
        self._transition(IngestionState.NORMALIZED, category=payload["category"])

        try:
            transaction = await self.store.create(payload)
        except TransactionValidationError as exc:
            raise PersistenceValidationFailed(errors=exc.errors) from exc
        except SQLAlchemyError as exc:
            logger.exception("[ingest] store write failed")
            raise PersistenceError(detail=str(exc)) from exc
        self._transition(IngestionState.PERSISTED, transaction=transaction.id)

        await invalidate_receipt_history(user_id)
        return IngestionOutcome(
            transaction=transaction,
            extraction=extraction,
            uploaded=uploaded,
            states=list(self.history),
        )

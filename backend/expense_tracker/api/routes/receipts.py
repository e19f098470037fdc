"""API routes for receipt ingestion and history."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse

from expense_tracker.api.dependencies import (
    get_history_service,
    get_ingestion_service,
    get_transaction_store,
)
from expense_tracker.models.schemas import (
    ExtractedDataSummary,
    ReceiptFileInfo,
    ReceiptHistoryResponse,
    ReceiptIngestData,
    ReceiptIngestResponse,
    TransactionRead,
)
from expense_tracker.services.history_service import MAX_PAGE_SIZE, ReceiptHistoryService
from expense_tracker.services.ingestion_service import ReceiptIngestionService
from expense_tracker.services.transaction_store import TransactionStore
from expense_tracker.utils.helpers import is_valid_user_id

router = APIRouter(prefix="/receipts", tags=["receipts"])

_ERROR_RESPONSES = {
    400: {"description": "Invalid input, unreadable amount or rejected transaction"},
    500: {"description": "Extraction tool or storage failure"},
}


@router.post(
    "/process",
    status_code=status.HTTP_201_CREATED,
    response_model=ReceiptIngestResponse,
    responses=_ERROR_RESPONSES,
)
async def process_receipt(
    receipt: Optional[List[UploadFile]] = File(None),
    user_id: Optional[str] = Form(None, alias="userId"),
    service: ReceiptIngestionService = Depends(get_ingestion_service),
) -> JSONResponse:
    """Upload a receipt, extract it and record the resulting expense."""
    outcome = await service.ingest(user_id, receipt)

    transaction = TransactionRead.model_validate(outcome.transaction)
    extraction = outcome.extraction
    uploaded = outcome.uploaded
    body = ReceiptIngestResponse(
        data=ReceiptIngestData(
            transaction=transaction,
            extracted_data=ExtractedDataSummary(
                merchant=extraction.merchant,
                amount=transaction.amount,
                date=transaction.date,
                category=transaction.category,
                items=list(extraction.items),
                confidence=extraction.category_source or "unknown",
            ),
            receipt_file=ReceiptFileInfo(
                filename=uploaded.filename,
                original_name=uploaded.original_name,
                size=uploaded.size,
                saved=True,
            ),
        )
    )
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=body.model_dump(mode="json", by_alias=True),
    )


@router.get("/history", response_model=ReceiptHistoryResponse, responses={400: _ERROR_RESPONSES[400]})
async def receipt_history(
    user_id: Optional[str] = Query(None, alias="userId"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    service: ReceiptHistoryService = Depends(get_history_service),
) -> JSONResponse:
    """List the user's receipt-derived transactions, newest first."""
    history = await service.get_history(user_id, page=page, limit=limit)
    body = ReceiptHistoryResponse(data=history.data, pagination=history.pagination)
    return JSONResponse(content=body.model_dump(mode="json", by_alias=True))


@router.get("/{transaction_id}", response_model=TransactionRead)
async def get_receipt_transaction(
    transaction_id: str,
    user_id: Optional[str] = Query(None, alias="userId"),
    store: TransactionStore = Depends(get_transaction_store),
) -> JSONResponse:
    """Return one receipt-derived transaction owned by the user."""
    if not is_valid_user_id(user_id):
        raise HTTPException(status_code=400, detail="Valid user ID is required")
    transaction = await store.find(transaction_id, user_id=user_id)
    if transaction is None or transaction.receipt_provenance is None:
        raise HTTPException(status_code=404, detail="Receipt transaction not found")
    return JSONResponse(content=TransactionRead.model_validate(transaction).model_dump(mode="json", by_alias=True))

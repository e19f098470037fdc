from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError

from expense_tracker.core.errors import (
    ExtractionFailed,
    ExtractionIncomplete,
    ExtractionLaunchFailed,
    ExtractionOutputMalformed,
    ExtractionTimeout,
    InvalidFileType,
    InvalidUserIdentifier,
    PersistenceError,
    PersistenceValidationFailed,
)
from expense_tracker.models.enums import IngestionState
from expense_tracker.services.extraction_service import SubprocessExtractor
from expense_tracker.services.ingestion_service import ReceiptIngestionService
from expense_tracker.services.transaction_store import TransactionStore

from support import USER_ID, CannedExtractor, make_upload

GOOD_OUTPUT = json.dumps({"total": 42.5, "merchant": "Corner Cafe", "category": "food", "date": "2024-03-01"})


class BrokenStore:
    async def create(self, data):
        raise OperationalError("INSERT INTO transactions", {}, Exception("disk I/O error"))


class BlockingExtractor:
    def __init__(self):
        self.started = asyncio.Event()

    async def extract(self, file_path):
        self.started.set()
        await asyncio.sleep(30)


@pytest.mark.asyncio
async def test_success_keeps_file_and_records_provenance(session_factory, upload_service, temp_files):
    extractor = CannedExtractor(stdout=GOOD_OUTPUT)
    async with session_factory() as session:
        service = ReceiptIngestionService(upload_service, extractor, TransactionStore(session))
        outcome = await service.ingest(USER_ID, [make_upload(filename="lunch.jpg")])

    tx = outcome.transaction
    assert tx.amount == 42.5
    assert tx.category == "food"
    assert tx.user_id == USER_ID
    assert extractor.calls == [outcome.uploaded.path]
    assert temp_files() == [outcome.uploaded.filename]
    assert Path(tx.receipt_provenance["file_path"]) == outcome.uploaded.path
    assert tx.receipt_provenance["original_filename"] == "lunch.jpg"
    assert tx.receipt_provenance["uploaded_filename"] == outcome.uploaded.filename
    assert tx.receipt_provenance["file_size"] == outcome.uploaded.size
    assert outcome.states == [
        IngestionState.RECEIVED,
        IngestionState.UPLOADED,
        IngestionState.EXTRACTING,
        IngestionState.EXTRACTED,
        IngestionState.NORMALIZED,
        IngestionState.PERSISTED,
    ]


@pytest.mark.asyncio
async def test_identical_uploads_create_distinct_transactions(session_factory, upload_service, temp_files):
    async with session_factory() as session:
        store = TransactionStore(session)
        first = await ReceiptIngestionService(upload_service, CannedExtractor(stdout=GOOD_OUTPUT), store).ingest(
            USER_ID, [make_upload(b"same-bytes")]
        )
        second = await ReceiptIngestionService(upload_service, CannedExtractor(stdout=GOOD_OUTPUT), store).ingest(
            USER_ID, [make_upload(b"same-bytes")]
        )
    assert first.transaction.id != second.transaction.id
    assert first.uploaded.filename != second.uploaded.filename
    assert len(temp_files()) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "extractor,expected",
    [
        (CannedExtractor(stdout="", exit_code=1, stderr="model unavailable"), ExtractionFailed),
        (CannedExtractor(stdout="{not json"), ExtractionOutputMalformed),
        (CannedExtractor(stdout='{"merchant": "Cafe"}'), ExtractionIncomplete),
        (CannedExtractor(stdout='{"total": 0}'), PersistenceValidationFailed),
        (CannedExtractor(error=ExtractionTimeout(1)), ExtractionTimeout),
        (CannedExtractor(error=ExtractionLaunchFailed(detail="no such file")), ExtractionLaunchFailed),
    ],
)
async def test_failures_after_upload_remove_the_file(session_factory, upload_service, temp_files, extractor, expected):
    async with session_factory() as session:
        store = TransactionStore(session)
        service = ReceiptIngestionService(upload_service, extractor, store)
        with pytest.raises(expected) as exc_info:
            await service.ingest(USER_ID, [make_upload()])
        page = await store.paginate(USER_ID, 1, 10)

    assert exc_info.value.file_removed is True
    assert "The uploaded file has been removed" in exc_info.value.to_payload()["message"]
    assert service.state == IngestionState.FAILED
    assert temp_files() == []
    assert page.total_count == 0


@pytest.mark.asyncio
async def test_zero_total_reports_store_errors(session_factory, upload_service):
    async with session_factory() as session:
        service = ReceiptIngestionService(upload_service, CannedExtractor(stdout='{"total": 0}'), TransactionStore(session))
        with pytest.raises(PersistenceValidationFailed) as exc_info:
            await service.ingest(USER_ID, [make_upload()])
    assert exc_info.value.status_code == 400
    assert [e["field"] for e in exc_info.value.errors] == ["amount"]


@pytest.mark.asyncio
async def test_store_failure_is_internal_error(upload_service, temp_files):
    service = ReceiptIngestionService(upload_service, CannedExtractor(stdout=GOOD_OUTPUT), BrokenStore())
    with pytest.raises(PersistenceError) as exc_info:
        await service.ingest(USER_ID, [make_upload()])
    assert exc_info.value.status_code == 500
    assert temp_files() == []


@pytest.mark.asyncio
async def test_unexpected_error_still_removes_file(upload_service, temp_files):
    extractor = CannedExtractor(error=RuntimeError("boom"))
    service = ReceiptIngestionService(upload_service, extractor, BrokenStore())
    with pytest.raises(RuntimeError):
        await service.ingest(USER_ID, [make_upload()])
    assert service.state == IngestionState.FAILED
    assert temp_files() == []


@pytest.mark.asyncio
async def test_cancellation_removes_file(upload_service, temp_files):
    extractor = BlockingExtractor()
    service = ReceiptIngestionService(upload_service, extractor, BrokenStore())
    task = asyncio.create_task(service.ingest(USER_ID, [make_upload()]))
    await asyncio.wait_for(extractor.started.wait(), timeout=5)
    assert len(temp_files()) == 1

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert temp_files() == []
    assert service.state == IngestionState.FAILED


@pytest.mark.asyncio
async def test_invalid_user_is_rejected_before_storing(upload_service, temp_files):
    extractor = CannedExtractor(stdout=GOOD_OUTPUT)
    service = ReceiptIngestionService(upload_service, extractor, BrokenStore())
    with pytest.raises(InvalidUserIdentifier) as exc_info:
        await service.ingest("not-a-user", [make_upload()])
    assert exc_info.value.file_removed is None
    assert extractor.calls == []
    assert temp_files() == []


@pytest.mark.asyncio
async def test_rejected_upload_never_reaches_extraction(upload_service, temp_files):
    extractor = CannedExtractor(stdout=GOOD_OUTPUT)
    service = ReceiptIngestionService(upload_service, extractor, BrokenStore())
    with pytest.raises(InvalidFileType):
        await service.ingest(USER_ID, [make_upload(filename="a.gif", content_type="image/gif")])
    assert extractor.calls == []
    assert temp_files() == []
    assert service.history == [IngestionState.RECEIVED, IngestionState.FAILED]


@pytest.mark.asyncio
async def test_tool_timeout_removes_the_file(session_factory, upload_service, temp_files, make_tool):
    extractor = SubprocessExtractor(command=make_tool("import time\ntime.sleep(30)\n"), timeout=0.5)
    async with session_factory() as session:
        service = ReceiptIngestionService(upload_service, extractor, TransactionStore(session))
        with pytest.raises(ExtractionTimeout) as exc_info:
            await service.ingest(USER_ID, [make_upload()])
    assert exc_info.value.file_removed is True
    assert temp_files() == []

from __future__ import annotations

import datetime as dt

import pytest

from expense_tracker.models.enums import PaymentMethod, TransactionKind
from expense_tracker.services.transaction_store import TransactionStore, TransactionValidationError

from support import OTHER_USER_ID, USER_ID


def _expense(**overrides):
    data = {
        "user_id": USER_ID,
        "kind": TransactionKind.EXPENSE,
        "category": "food",
        "amount": 9.99,
        "description": "Lunch",
        "date": dt.datetime(2024, 3, 1),
    }
    data.update(overrides)
    return data


def _provenance():
    return {"merchant": "Cafe", "extracted_at": dt.datetime(2024, 3, 1, 12, 0), "file_path": "/tmp/r.jpg"}


@pytest.mark.asyncio
async def test_create_assigns_id_and_defaults_payment_method(session_factory):
    async with session_factory() as session:
        store = TransactionStore(session)
        row = await store.create(_expense(description="  <b>Lunch</b>  ", receipt_provenance=_provenance()))

        assert len(row.id) == 32
        assert row.payment_method == PaymentMethod.OTHER
        assert row.description == "&lt;b&gt;Lunch&lt;/b&gt;"
        assert row.receipt_provenance["merchant"] == "Cafe"
        assert row.receipt_provenance["extracted_at"] == "2024-03-01T12:00:00"
        assert row.created_at is not None

        found = await store.find(row.id, user_id=USER_ID)
        assert found is not None and found.id == row.id
        assert await store.find(row.id, user_id=OTHER_USER_ID) is None


@pytest.mark.asyncio
async def test_income_with_payment_method_is_rejected(session_factory):
    async with session_factory() as session:
        store = TransactionStore(session)
        with pytest.raises(TransactionValidationError) as exc_info:
            await store.create(
                _expense(kind=TransactionKind.INCOME, category="salary", payment_method=PaymentMethod.CASH)
            )
    messages = [e["message"] for e in exc_info.value.errors]
    assert "Payment method should not be specified for income transactions" in messages


@pytest.mark.asyncio
async def test_category_must_match_kind(session_factory):
    async with session_factory() as session:
        store = TransactionStore(session)
        with pytest.raises(TransactionValidationError) as exc_info:
            await store.create(_expense(category="salary"))
    assert exc_info.value.errors[0]["field"] == "transaction"
    assert exc_info.value.errors[0]["message"].startswith("Invalid expense category")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"amount": 0}, "amount"),
        ({"user_id": "not-an-id"}, "user_id"),
        ({"description": "x" * 501}, "description"),
    ],
)
async def test_field_level_rejections(session_factory, overrides, field):
    async with session_factory() as session:
        store = TransactionStore(session)
        with pytest.raises(TransactionValidationError) as exc_info:
            await store.create(_expense(**overrides))
        page = await store.paginate(USER_ID, 1, 10)
    assert [e["field"] for e in exc_info.value.errors] == [field]
    assert page.total_count == 0


@pytest.mark.asyncio
async def test_income_without_payment_method_is_accepted(session_factory):
    async with session_factory() as session:
        row = await TransactionStore(session).create(_expense(kind=TransactionKind.INCOME, category="refunds"))
    assert row.payment_method is None


@pytest.mark.asyncio
async def test_paginate_filters_receipts_and_orders_newest_first(session_factory):
    async with session_factory() as session:
        store = TransactionStore(session)
        created = []
        for i in range(3):
            created.append(await store.create(_expense(amount=i + 1, receipt_provenance=_provenance())))
        await store.create(_expense(amount=50))
        await store.create(_expense(user_id=OTHER_USER_ID, receipt_provenance=_provenance()))

        receipts = await store.paginate(USER_ID, 1, 10, receipts_only=True)
        everything = await store.paginate(USER_ID, 1, 10)
        second = await store.paginate(USER_ID, 2, 2, receipts_only=True)

    assert receipts.total_count == 3
    assert everything.total_count == 4
    assert all(tx.receipt_provenance is not None for tx in receipts.items)
    created_at = [tx.created_at for tx in receipts.items]
    assert created_at == sorted(created_at, reverse=True)
    assert len(second.items) == 1

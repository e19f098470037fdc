"""Map extraction output onto the canonical transaction shape.

Receipts are always expenses.  Payment method metadata on receipts is
unreliable, so every receipt transaction is recorded with
``PaymentMethod.OTHER``.  The mapping is pure: the processing time is
passed in, so identical inputs give identical outputs.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Optional

from expense_tracker.models.enums import (
    EXPENSE_CATEGORIES,
    ExpenseCategory,
    PaymentMethod,
    TransactionKind,
)
from expense_tracker.models.schemas import ExtractionResult, ReceiptProvenance
from expense_tracker.utils.helpers import parse_receipt_date, utcnow

UNKNOWN_MERCHANT = "Unknown Merchant"
FALLBACK_CATEGORY = ExpenseCategory.OTHER_EXPENSES.value


def resolve_expense_category(label: Optional[str]) -> str:
    """Return ``label`` if it names an expense category, else the fallback."""
    if isinstance(label, str):
        candidate = label.strip().lower()
        if candidate in EXPENSE_CATEGORIES:
            return candidate
    return FALLBACK_CATEGORY


def describe_receipt(merchant: Optional[str]) -> str:
    name = (merchant or "").strip() or UNKNOWN_MERCHANT
    return f"Receipt from {name}"


def normalize_extraction(
    result: ExtractionResult,
    user_id: str,
    processed_at: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    """Build the unsaved transaction payload for ``result``.

    The returned dict matches ``TransactionCreate``; the orchestrator adds
    file metadata to ``receipt_provenance`` before persisting.
    """
    now = processed_at or utcnow()
    amount = result.resolved_amount()
    return {
        "user_id": user_id,
        "kind": TransactionKind.EXPENSE,
        "category": resolve_expense_category(result.category),
        "amount": amount if amount is not None else 0.0,
        "description": describe_receipt(result.merchant),
        "date": parse_receipt_date(result.date) or now,
        "payment_method": PaymentMethod.OTHER,
        "receipt_provenance": ReceiptProvenance(
            merchant=result.merchant,
            items=list(result.items),
            ocr_confidence=result.category_source or "unknown",
            extracted_at=now,
        ),
    }

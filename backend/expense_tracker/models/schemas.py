"""Pydantic schemas for request and response models.

Pydantic models validate and serialise data that crosses the boundary
of the API or of the external extraction tool. This module defines the
domain schemas (``ExtractionResult``, ``ReceiptProvenance``), the
canonical transaction schema enforced by the transaction store
(``TransactionCreate``) and the API facing response envelopes.

Response models serialise with camelCase keys (``paymentMethod``,
``receiptProvenance``) while validation always uses the Python field
names, so ORM rows and cached payloads load the same way.

Whenever you modify the underlying SQLAlchemy models be sure to
update these Pydantic models accordingly.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import (
    AliasGenerator,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from expense_tracker.utils.helpers import is_valid_user_id, parse_amount
from expense_tracker.utils.sanitization import sanitize_string
from .enums import PaymentMethod, TransactionKind, categories_for


class CamelModel(BaseModel):
    """Base for models rendered to clients with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=AliasGenerator(serialization_alias=to_camel),
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# Extraction tool output


class ExtractionResult(BaseModel):
    """Raw structured data printed by the extraction tool.

    Amount fields are kept as emitted (number or string) and resolved by
    :meth:`resolved_amount`. ``date`` and ``category`` are kept as emitted
    too; the normalizer falls back when they are not usable strings.
    Unknown keys are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    total: Any = None
    amount_paid: Any = None
    merchant: Optional[str] = None
    date: Any = None
    category: Any = None
    items: List[Any] = Field(default_factory=list)
    category_source: Optional[str] = None

    @field_validator("items", mode="before")
    @classmethod
    def _null_items(cls, v):
        return [] if v is None else v

    @field_validator("merchant", "category_source", mode="before")
    @classmethod
    def _scalar_text(cls, v):
        # Numbers are rendered as text; anything else non-string is dropped
        if isinstance(v, str) or v is None:
            return v
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return None

    def resolved_amount(self) -> Optional[float]:
        """Total, falling back to ``amount_paid``; ``None`` if neither is a
        non-negative number."""
        for raw in (self.total, self.amount_paid):
            amount = parse_amount(raw)
            if amount is not None and amount >= 0:
                return amount
        return None


# ---------------------------------------------------------------------------
# Transactions


class ReceiptProvenance(CamelModel):
    """Fields recording that a transaction was derived from a receipt."""

    merchant: Optional[str] = None
    items: List[Any] = Field(default_factory=list)
    ocr_confidence: str = "unknown"
    extracted_at: datetime
    original_filename: Optional[str] = None
    uploaded_filename: Optional[str] = None
    file_size: Optional[int] = None
    file_path: Optional[str] = None
    processed_at: Optional[datetime] = None


class TransactionCreate(BaseModel):
    """Canonical transaction shape accepted by the transaction store."""

    user_id: str
    kind: TransactionKind
    category: str
    amount: float = Field(ge=0.01)
    description: Optional[str] = Field(default=None, max_length=500)
    date: datetime
    payment_method: Optional[PaymentMethod] = None
    receipt_provenance: Optional[ReceiptProvenance] = None

    @field_validator("user_id")
    @classmethod
    def _check_user_id(cls, v: str) -> str:
        if not is_valid_user_id(v):
            raise ValueError("Invalid user ID format")
        return v

    @field_validator("description", mode="before")
    @classmethod
    def _clean_description(cls, v):
        return sanitize_string(v) if isinstance(v, str) else v

    @model_validator(mode="after")
    def _check_kind_dependent_fields(self) -> "TransactionCreate":
        allowed = categories_for(self.kind)
        if self.category not in allowed:
            raise ValueError(
                f"Invalid {self.kind.value} category. Allowed values: {', '.join(sorted(allowed))}"
            )
        if self.kind == TransactionKind.EXPENSE:
            if self.payment_method is None:
                self.payment_method = PaymentMethod.OTHER
        elif self.payment_method is not None:
            raise ValueError("Payment method should not be specified for income transactions")
        return self


class TransactionRead(CamelModel):
    id: str
    user_id: str
    kind: TransactionKind
    category: str
    amount: float
    description: Optional[str] = None
    date: datetime
    payment_method: Optional[PaymentMethod] = None
    receipt_provenance: Optional[ReceiptProvenance] = None
    created_at: datetime
    updated_at: datetime

    @field_serializer("amount")
    def _display_amount(self, amount: float) -> float:
        return round(amount, 2)


# ---------------------------------------------------------------------------
# Receipt ingestion responses


class ExtractedDataSummary(CamelModel):
    merchant: Optional[str] = None
    amount: float
    date: datetime
    category: str
    items: List[Any] = Field(default_factory=list)
    confidence: str = "unknown"

    @field_serializer("amount")
    def _display_amount(self, amount: float) -> float:
        return round(amount, 2)


class ReceiptFileInfo(CamelModel):
    filename: str
    original_name: Optional[str] = None
    size: int
    saved: bool = True


class ReceiptIngestData(CamelModel):
    transaction: TransactionRead
    extracted_data: ExtractedDataSummary
    receipt_file: ReceiptFileInfo


class ReceiptIngestResponse(CamelModel):
    success: bool = True
    message: str = "Receipt successfully processed and expense transaction created"
    data: ReceiptIngestData


# ---------------------------------------------------------------------------
# History


class Pagination(CamelModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ReceiptHistoryPage(CamelModel):
    data: List[TransactionRead]
    pagination: Pagination


class ReceiptHistoryResponse(ReceiptHistoryPage):
    success: bool = True
    message: str = "Receipt history retrieved successfully"

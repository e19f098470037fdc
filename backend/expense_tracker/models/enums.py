"""Enumeration types used throughout the expense tracker service.

Enumerations constrain the values that can be stored in the database
or passed through the API. Transaction categories are conditioned on
the transaction kind: an expense may only use an expense category and
an income may only use an income category.

When modifying these enums you should update any corresponding
database columns or Pydantic validators so that new values are
accepted where appropriate.
"""

from enum import Enum


class TransactionKind(str, Enum):
    """Direction of money flow for a transaction."""

    INCOME = "income"
    EXPENSE = "expense"


class ExpenseCategory(str, Enum):
    FOOD = "food"
    GROCERIES = "groceries"
    TRANSPORTATION = "transportation"
    HOUSING = "housing"
    UTILITIES = "utilities"
    HEALTHCARE = "healthcare"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    EDUCATION = "education"
    TRAVEL = "travel"
    INSURANCE = "insurance"
    PERSONAL_CARE = "personal_care"
    SUBSCRIPTIONS = "subscriptions"
    OTHER_EXPENSES = "other_expenses"


class IncomeCategory(str, Enum):
    SALARY = "salary"
    FREELANCE = "freelance"
    BUSINESS = "business"
    INVESTMENTS = "investments"
    RENTAL = "rental"
    GIFTS = "gifts"
    REFUNDS = "refunds"
    OTHER_INCOME = "other_income"


class PaymentMethod(str, Enum):
    """How an expense was paid.  Receipts default to ``OTHER``."""

    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    DIGITAL_WALLET = "digital_wallet"
    CHECK = "check"
    OTHER = "other"


class IngestionState(str, Enum):
    """Processing states of a single receipt ingestion attempt."""

    RECEIVED = "received"
    UPLOADED = "uploaded"
    EXTRACTING = "extracting"
    EXTRACTED = "extracted"
    NORMALIZED = "normalized"
    PERSISTED = "persisted"
    FAILED = "failed"


EXPENSE_CATEGORIES: frozenset[str] = frozenset(c.value for c in ExpenseCategory)
INCOME_CATEGORIES: frozenset[str] = frozenset(c.value for c in IncomeCategory)


def categories_for(kind: TransactionKind) -> frozenset[str]:
    """Return the category labels allowed for ``kind``."""
    if kind == TransactionKind.INCOME:
        return INCOME_CATEGORIES
    return EXPENSE_CATEGORIES

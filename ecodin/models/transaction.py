"""
Core Data Models for ecodin

These models define the strict schemas for the transactions a user records.
They are designed to:
1. Enforce the income/expense category rules at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Amounts are Decimal, never float.
Totals and category breakdowns must add up exactly, so the aggregation
layer never has to reason about rounding drift.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 200


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class Category(str, Enum):
    """
    Transaction categories.

    RENDA is the sentinel carried by every income transaction.
    All other members are expense categories (see EXPENSE_CATEGORIES).
    """
    MORADIA = "Moradia"
    TRANSPORTE = "Transporte"
    ALIMENTACAO = "Alimentação"
    SAUDE = "Saúde"
    EDUCACAO = "Educação"
    LAZER = "Lazer"
    INVESTIMENTOS = "Investimentos"
    OUTROS = "Outros"
    RENDA = "Renda"


INCOME_CATEGORY = Category.RENDA

EXPENSE_CATEGORIES: tuple[Category, ...] = tuple(
    cat for cat in Category if cat is not INCOME_CATEGORY
)


def parse_expense_category(value: object) -> Optional[Category]:
    """
    Map a raw value to an expense category.

    Returns None for anything that is not an expense category,
    including the income sentinel.
    """
    if isinstance(value, Category):
        category = value
    else:
        try:
            category = Category(str(value).strip())
        except ValueError:
            return None
    return category if category in EXPENSE_CATEGORIES else None


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A single recorded income or expense event.

    The id is assigned by the store when the transaction is first saved,
    so a freshly built transaction carries id=None.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = Field(
        default=None,
        description="Store-assigned identifier"
    )
    type: TransactionType
    name: str = Field(
        ...,
        min_length=NAME_MIN_LENGTH,
        max_length=NAME_MAX_LENGTH,
        description="Display label"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Positive amount in the user's currency"
    )
    category: Category
    date: datetime = Field(
        default_factory=utc_now,
        description="When the transaction happened"
    )

    @model_validator(mode='after')
    def validate_category_matches_type(self) -> 'Transaction':
        """Income carries Renda, expenses never do."""
        if self.type == TransactionType.INCOME and self.category != INCOME_CATEGORY:
            raise ValueError("Income transactions must use the Renda category")
        if self.type == TransactionType.EXPENSE and self.category == INCOME_CATEGORY:
            raise ValueError("Expense transactions cannot use the Renda category")
        return self

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    @property
    def month_key(self) -> str:
        """Calendar month of the transaction as YYYY-MM."""
        return self.date.strftime("%Y-%m")


class TransactionInput(BaseModel):
    """
    Raw transaction data as typed into the add/edit form.

    Fields are loosely typed: this is what the validator inspects
    before a Transaction is ever built.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: str = Field(default=TransactionType.EXPENSE.value)
    name: str = Field(default="")
    amount: Union[Decimal, float, int, str, None] = None
    category: Optional[str] = None
    date: Optional[datetime] = None

    def to_transaction(
        self,
        transaction_id: Optional[str] = None,
        default_date: Optional[datetime] = None,
    ) -> Transaction:
        """
        Build a Transaction from validated input.

        Income always gets the Renda category regardless of what the
        form sent. When no date was entered, default_date (the date of
        the transaction being edited) or the current time is used.
        """
        tx_type = TransactionType(self.type)
        if tx_type == TransactionType.INCOME:
            category = INCOME_CATEGORY
        else:
            category = parse_expense_category(self.category)
            if category is None:
                raise ValueError(f"Invalid expense category: {self.category!r}")

        return Transaction(
            id=transaction_id,
            type=tx_type,
            name=self.name,
            amount=Decimal(str(self.amount)),
            category=category,
            date=self.date or default_date or utc_now(),
        )

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> 'TransactionInput':
        """Pre-fill the edit form from a stored transaction."""
        return cls(
            type=transaction.type.value,
            name=transaction.name,
            amount=transaction.amount,
            category=transaction.category.value,
            date=transaction.date,
        )


# =============================================================================
# DATE RANGES
# =============================================================================

class DateRange(BaseModel):
    """
    Inclusive calendar-date range.

    Either bound may be missing: one-sided ranges filter on the given
    bound only, and a range with no bounds matches everything.
    """

    start: Optional[date] = None
    end: Optional[date] = None

    @model_validator(mode='after')
    def validate_order(self) -> 'DateRange':
        if self.start and self.end and self.start > self.end:
            raise ValueError("Start date must be on or before end date")
        return self

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, moment: Union[date, datetime]) -> bool:
        day = moment.date() if isinstance(moment, datetime) else moment
        if self.start and day < self.start:
            return False
        if self.end and day > self.end:
            return False
        return True


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem with form input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'too_short', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Message shown next to the field"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of validating a TransactionInput."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    def messages_for(self, field: str) -> list[str]:
        """Messages to render inline under one form field."""
        return [issue.message for issue in self.issues if issue.field == field]

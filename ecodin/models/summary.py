"""
Derived and AI-facing models.

Everything in here is computed from transactions or returned by the
summary flow; nothing is typed in by the user directly.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ecodin.models.transaction import Category, DateRange, Transaction


class Totals(BaseModel):
    """Income, expenses and balance over a set of transactions."""

    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")


class MonthlyPoint(BaseModel):
    """Income and expense accumulated for one YYYY-MM month."""

    month_key: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")


class QuotaRecord(BaseModel):
    """
    Per-user AI summary usage counter.

    usage_count only means something for usage_month: once the calendar
    moves on, the effective count is zero until the next write resets it.
    """

    usage_month: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$",
        description="Calendar month the count belongs to (YYYY-MM)"
    )
    usage_count: int = Field(
        default=0,
        ge=0,
        description="AI summaries generated within usage_month"
    )


class QuotaUsage(BaseModel):
    """Quota state as shown to the user."""

    month_key: str
    used: int = Field(ge=0)
    limit: int = Field(ge=0)
    remaining: int = Field(ge=0)

    @property
    def exhausted(self) -> bool:
        return self.remaining == 0


class MonthlySummary(BaseModel):
    """Structured response of the AI summary request."""

    summary: str = Field(
        ...,
        min_length=1,
        description="Summary of the user's spending habits"
    )
    suggestions: list[str] = Field(
        default_factory=list,
        description="Personalized savings suggestions, in order"
    )


class SummaryStatus(str, Enum):
    """How an AI summary request ended."""
    GENERATED = "generated"
    QUOTA_EXCEEDED = "quota_exceeded"
    NO_DATA = "no_data"
    FAILED = "failed"


class SummaryOutcome(BaseModel):
    """What the summary flow hands back to the UI."""

    status: SummaryStatus
    message: Optional[str] = None
    summary: Optional[MonthlySummary] = None
    usage: Optional[QuotaUsage] = None

    @property
    def generated(self) -> bool:
        return self.status == SummaryStatus.GENERATED


class DashboardSnapshot(BaseModel):
    """Everything the dashboard renders for one transaction list."""

    date_range: DateRange = Field(default_factory=DateRange)
    transactions: list[Transaction] = Field(default_factory=list)
    totals: Totals = Field(default_factory=Totals)
    by_category: dict[Category, Decimal] = Field(default_factory=dict)
    ranked_categories: list[tuple[Category, Decimal]] = Field(default_factory=list)
    monthly_series: list[MonthlyPoint] = Field(default_factory=list)
    savings_goal: Decimal = Decimal("0")
    savings_progress: Optional[Decimal] = None

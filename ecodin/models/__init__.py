"""
Data Models Package

This package contains all Pydantic models used in ecodin.
All data flowing through the system must conform to these schemas.
"""

from ecodin.models.transaction import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORY,
    Category,
    DateRange,
    Transaction,
    TransactionInput,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    parse_expense_category,
    utc_now,
)
from ecodin.models.summary import (
    DashboardSnapshot,
    MonthlyPoint,
    MonthlySummary,
    QuotaRecord,
    QuotaUsage,
    SummaryOutcome,
    SummaryStatus,
    Totals,
)
from ecodin.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORY",
    "Category",
    "DateRange",
    "Transaction",
    "TransactionInput",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    "parse_expense_category",
    "utc_now",
    # Derived models
    "DashboardSnapshot",
    "MonthlyPoint",
    "MonthlySummary",
    "QuotaRecord",
    "QuotaUsage",
    "SummaryOutcome",
    "SummaryStatus",
    "Totals",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]

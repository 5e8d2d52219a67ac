"""
Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and stateless.
Every function here takes a list of transactions (already narrowed to the
date range the user picked) and returns a fresh value. The dashboard
recomputes everything on every store push instead of patching totals
incrementally, so there is no cached state to get out of sync.

Input is assumed well-formed: Transaction already enforces its own
invariants, and form input is validated before it reaches the store.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union

from ecodin.models.summary import MonthlyPoint, Totals
from ecodin.models.transaction import (
    INCOME_CATEGORY,
    Category,
    DateRange,
    Transaction,
    TransactionType,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def filter_by_date_range(
    transactions: Iterable[Transaction],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[Transaction]:
    """
    Keep transactions whose calendar date falls inside [start, end].

    Both bounds are inclusive; a missing bound leaves that side open,
    and no bounds at all returns every transaction. Input order is kept.
    """
    window = DateRange(start=start, end=end)
    if window.is_unbounded:
        return list(transactions)
    return [tx for tx in transactions if window.contains(tx.date)]


def totals(transactions: Iterable[Transaction]) -> Totals:
    """Sum income and expenses in one pass; balance is their difference."""
    income = ZERO
    expenses = ZERO

    for tx in transactions:
        if tx.type == TransactionType.INCOME:
            income += tx.amount
        elif tx.type == TransactionType.EXPENSE:
            expenses += tx.amount

    return Totals(income=income, expenses=expenses, balance=income - expenses)


def by_category(transactions: Iterable[Transaction]) -> dict[Category, Decimal]:
    """
    Total expense amount per category.

    Categories without expenses get no entry. Anything tagged with the
    income sentinel is skipped even if it somehow arrives as an expense.
    """
    groups: dict[Category, Decimal] = {}

    for tx in transactions:
        if tx.type != TransactionType.EXPENSE or tx.category == INCOME_CATEGORY:
            continue
        groups[tx.category] = groups.get(tx.category, ZERO) + tx.amount

    return groups


def sorted_categories(
    breakdown: dict[Category, Decimal],
) -> list[tuple[Category, Decimal]]:
    """Category totals, largest first; ties ordered by category name."""
    return sorted(breakdown.items(), key=lambda item: (-item[1], item[0].value))


def monthly_series(transactions: Iterable[Transaction]) -> list[MonthlyPoint]:
    """
    Income and expense per YYYY-MM month, oldest month first.

    YYYY-MM keys sort lexicographically in chronological order,
    so a plain string sort is enough.
    """
    groups: dict[str, dict[str, Decimal]] = {}

    for tx in transactions:
        bucket = groups.setdefault(tx.month_key, {"income": ZERO, "expense": ZERO})
        if tx.type == TransactionType.INCOME:
            bucket["income"] += tx.amount
        else:
            bucket["expense"] += tx.amount

    return [
        MonthlyPoint(month_key=key, income=values["income"], expense=values["expense"])
        for key, values in sorted(groups.items())
    ]


def savings_progress(
    balance: Union[Decimal, int, float],
    goal: Union[Decimal, int, float],
) -> Decimal:
    """
    Percentage of the savings goal reached by the current balance.

    A negative balance counts as zero progress. The result is not capped
    at 100. The goal must be positive; the dashboard slider starts at 1.
    """
    goal_value = Decimal(str(goal))
    if goal_value <= 0:
        raise ValueError("Savings goal must be greater than zero")

    balance_value = max(ZERO, Decimal(str(balance)))
    return balance_value / goal_value * HUNDRED


def expense_breakdown_for_prompt(
    transactions: Sequence[Transaction],
) -> dict[str, float]:
    """
    Category totals keyed by category label, as floats.

    This is the shape the AI summary prompt consumes.
    """
    return {
        category.value: float(amount)
        for category, amount in by_category(transactions).items()
    }

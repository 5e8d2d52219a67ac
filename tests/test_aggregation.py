"""Tests for the aggregation engine and date-range presets."""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from ecodin.analytics import (
    DateRangePreset,
    by_category,
    custom_range,
    expense_breakdown_for_prompt,
    filter_by_date_range,
    monthly_series,
    resolve_preset,
    savings_progress,
    sorted_categories,
    totals,
)
from ecodin.models.transaction import Category, Transaction, TransactionType


def make_tx(kind: str, amount: str, category: Category, when: datetime, name: str = "Teste") -> Transaction:
    return Transaction(
        id=f"{name}-{when.isoformat()}",
        type=TransactionType(kind),
        name=name,
        amount=Decimal(amount),
        category=category,
        date=when,
    )


def utc(year: int, month: int, day: int, hour: int = 12) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def june_transactions():
    return [
        make_tx("income", "1000", Category.RENDA, utc(2024, 6, 1), "Salário"),
        make_tx("expense", "300", Category.MORADIA, utc(2024, 6, 5), "Aluguel"),
        make_tx("expense", "200", Category.ALIMENTACAO, utc(2024, 6, 10), "Mercado"),
    ]


class TestTotals:
    """Tests for income/expense/balance totals."""

    def test_basic_scenario(self, june_transactions):
        """Test 1000 income against 500 of expenses."""
        result = totals(june_transactions)
        assert result.income == Decimal("1000")
        assert result.expenses == Decimal("500")
        assert result.balance == Decimal("500")

    def test_empty_input(self):
        """Test that no transactions give zero totals."""
        result = totals([])
        assert result.income == 0
        assert result.expenses == 0
        assert result.balance == 0

    def test_negative_balance(self):
        """Test that spending more than earned gives a negative balance."""
        result = totals([
            make_tx("income", "100", Category.RENDA, utc(2024, 6, 1)),
            make_tx("expense", "250.75", Category.LAZER, utc(2024, 6, 2)),
        ])
        assert result.balance == Decimal("-150.75")

    def test_decimal_sums_are_exact(self):
        """Test that cents add up without float drift."""
        txs = [make_tx("expense", "0.10", Category.OUTROS, utc(2024, 6, d)) for d in range(1, 4)]
        assert totals(txs).expenses == Decimal("0.30")


class TestByCategory:
    """Tests for the expense breakdown."""

    def test_basic_scenario(self, june_transactions):
        """Test that only expenses are grouped and income is left out."""
        breakdown = by_category(june_transactions)
        assert breakdown == {
            Category.MORADIA: Decimal("300"),
            Category.ALIMENTACAO: Decimal("200"),
        }
        assert Category.RENDA not in breakdown

    def test_sums_match_total_expenses(self, june_transactions):
        """Test that the breakdown adds up to total expenses."""
        extra = june_transactions + [make_tx("expense", "45", Category.MORADIA, utc(2024, 6, 20))]
        assert sum(by_category(extra).values()) == totals(extra).expenses

    def test_empty_input(self):
        """Test that no expenses give an empty breakdown."""
        assert by_category([]) == {}

    def test_sorted_categories_ties_by_name(self):
        """Test descending order with ties broken by category name."""
        breakdown = {
            Category.TRANSPORTE: Decimal("50"),
            Category.LAZER: Decimal("50"),
            Category.MORADIA: Decimal("900"),
        }
        ranked = sorted_categories(breakdown)
        assert [c for c, _ in ranked] == [Category.MORADIA, Category.LAZER, Category.TRANSPORTE]

    def test_prompt_breakdown_uses_labels(self, june_transactions):
        """Test the shape sent to the summary prompt."""
        assert expense_breakdown_for_prompt(june_transactions) == {
            "Moradia": 300.0,
            "Alimentação": 200.0,
        }


class TestMonthlySeries:
    """Tests for the per-month series."""

    def test_groups_and_orders_months(self):
        """Test grouping by YYYY-MM in ascending order."""
        txs = [
            make_tx("expense", "80", Category.LAZER, utc(2024, 3, 15)),
            make_tx("income", "1000", Category.RENDA, utc(2024, 1, 5)),
            make_tx("expense", "20", Category.LAZER, utc(2024, 3, 1)),
            make_tx("expense", "10", Category.OUTROS, utc(2024, 1, 31)),
        ]
        series = monthly_series(txs)

        assert [p.month_key for p in series] == ["2024-01", "2024-03"]
        assert series[0].income == Decimal("1000")
        assert series[0].expense == Decimal("10")
        assert series[1].income == 0
        assert series[1].expense == Decimal("100")

    def test_year_boundary(self):
        """Test that December sorts before the following January."""
        txs = [
            make_tx("expense", "5", Category.OUTROS, utc(2025, 1, 1)),
            make_tx("expense", "5", Category.OUTROS, utc(2024, 12, 31)),
        ]
        assert [p.month_key for p in monthly_series(txs)] == ["2024-12", "2025-01"]

    def test_empty_input(self):
        assert monthly_series([]) == []


class TestFilterByDateRange:
    """Tests for date-range filtering."""

    def test_inclusive_bounds(self, june_transactions):
        """Test that both bounds are inclusive."""
        result = filter_by_date_range(june_transactions, date(2024, 6, 1), date(2024, 6, 5))
        assert [tx.name for tx in result] == ["Salário", "Aluguel"]

    def test_one_sided(self, june_transactions):
        """Test start-only and end-only filtering."""
        assert len(filter_by_date_range(june_transactions, start=date(2024, 6, 6))) == 1
        assert len(filter_by_date_range(june_transactions, end=date(2024, 6, 4))) == 1

    def test_no_bounds_returns_everything(self, june_transactions):
        assert filter_by_date_range(june_transactions) == june_transactions

    def test_late_evening_timestamp_counts_for_its_day(self):
        """Test that comparison uses the calendar date of the timestamp."""
        tx = make_tx("expense", "10", Category.OUTROS, datetime(2024, 6, 30, 23, 59, tzinfo=timezone.utc))
        assert filter_by_date_range([tx], date(2024, 6, 30), date(2024, 6, 30)) == [tx]


class TestSavingsProgress:
    """Tests for savings goal progress."""

    def test_half_way(self):
        assert savings_progress(Decimal("500"), 1000) == Decimal("50")

    def test_negative_balance_is_zero(self):
        """Test that a negative balance counts as no progress."""
        assert savings_progress(Decimal("-200"), 1000) == 0

    def test_not_capped(self):
        """Test that exceeding the goal goes past 100%."""
        assert savings_progress(Decimal("3000"), 1000) == Decimal("300")

    def test_linear_in_balance(self):
        """Test that doubling a non-negative balance doubles the progress."""
        for balance in ("0", "0.01", "123.45", "999.99", "5000"):
            # Goals whose quotients terminate, so Decimal rounding stays out of it
            for goal in (1, 250, Decimal("312.5")):
                single = savings_progress(Decimal(balance), goal)
                double = savings_progress(Decimal(balance) * 2, goal)
                assert double == single * 2

    def test_non_positive_goal_rejected(self):
        """Test that a zero goal is refused."""
        with pytest.raises(ValueError):
            savings_progress(Decimal("100"), 0)


class TestPresets:
    """Tests for date-range presets."""

    # Wednesday
    TODAY = date(2024, 3, 13)

    def test_today_and_yesterday(self):
        assert resolve_preset(DateRangePreset.TODAY, today=self.TODAY).start == self.TODAY
        yesterday = resolve_preset("yesterday", today=self.TODAY)
        assert yesterday.start == yesterday.end == date(2024, 3, 12)

    def test_weeks_run_monday_to_sunday(self):
        """Test ISO week bounds."""
        this_week = resolve_preset(DateRangePreset.THIS_WEEK, today=self.TODAY)
        assert (this_week.start, this_week.end) == (date(2024, 3, 11), date(2024, 3, 17))
        last_week = resolve_preset(DateRangePreset.LAST_WEEK, today=self.TODAY)
        assert (last_week.start, last_week.end) == (date(2024, 3, 4), date(2024, 3, 10))

    def test_months(self):
        """Test month presets, including a leap-year February."""
        this_month = resolve_preset(DateRangePreset.THIS_MONTH, today=self.TODAY)
        assert (this_month.start, this_month.end) == (date(2024, 3, 1), date(2024, 3, 31))
        last_month = resolve_preset(DateRangePreset.LAST_MONTH, today=self.TODAY)
        assert (last_month.start, last_month.end) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_last_month_in_january(self):
        last_month = resolve_preset(DateRangePreset.LAST_MONTH, today=date(2024, 1, 10))
        assert (last_month.start, last_month.end) == (date(2023, 12, 1), date(2023, 12, 31))

    def test_this_year_and_all(self):
        this_year = resolve_preset(DateRangePreset.THIS_YEAR, today=self.TODAY)
        assert (this_year.start, this_year.end) == (date(2024, 1, 1), date(2024, 12, 31))
        assert resolve_preset(DateRangePreset.ALL, today=self.TODAY).is_unbounded

    def test_custom_range_rejects_inverted(self):
        with pytest.raises(ValueError):
            custom_range(date(2024, 5, 2), date(2024, 5, 1))

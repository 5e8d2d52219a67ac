"""Aggregation engine and date-range helpers."""

from ecodin.analytics.aggregation import (
    by_category,
    expense_breakdown_for_prompt,
    filter_by_date_range,
    monthly_series,
    savings_progress,
    sorted_categories,
    totals,
)
from ecodin.analytics.periods import (
    PRESET_LABELS,
    DateRangePreset,
    custom_range,
    resolve_preset,
)

__all__ = [
    "by_category",
    "expense_breakdown_for_prompt",
    "filter_by_date_range",
    "monthly_series",
    "savings_progress",
    "sorted_categories",
    "totals",
    "PRESET_LABELS",
    "DateRangePreset",
    "custom_range",
    "resolve_preset",
]

"""Date-range presets offered by the dashboard and reports pages."""

from datetime import date, timedelta
from enum import Enum
from typing import Optional, Union

from ecodin.models.transaction import DateRange


class DateRangePreset(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    THIS_WEEK = "this_week"
    LAST_WEEK = "last_week"
    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
    THIS_YEAR = "this_year"
    ALL = "all"


PRESET_LABELS = {
    DateRangePreset.TODAY: "Hoje",
    DateRangePreset.YESTERDAY: "Ontem",
    DateRangePreset.THIS_WEEK: "Esta semana",
    DateRangePreset.LAST_WEEK: "Semana passada",
    DateRangePreset.THIS_MONTH: "Este mês",
    DateRangePreset.LAST_MONTH: "Mês passado",
    DateRangePreset.THIS_YEAR: "Este ano",
    DateRangePreset.ALL: "Todo o período",
}


def _end_of_month(day: date) -> date:
    first = day.replace(day=1)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return next_month - timedelta(days=1)


def _week_bounds(day: date) -> tuple[date, date]:
    # ISO week: Monday through Sunday
    start = day - timedelta(days=day.weekday())
    return start, start + timedelta(days=6)


def resolve_preset(
    preset: Union[DateRangePreset, str],
    *,
    today: Optional[date] = None,
) -> DateRange:
    """Turn a preset into concrete inclusive bounds relative to today."""
    today = today or date.today()
    preset = DateRangePreset(preset)

    if preset == DateRangePreset.TODAY:
        return DateRange(start=today, end=today)
    if preset == DateRangePreset.YESTERDAY:
        yesterday = today - timedelta(days=1)
        return DateRange(start=yesterday, end=yesterday)
    if preset == DateRangePreset.THIS_WEEK:
        start, end = _week_bounds(today)
        return DateRange(start=start, end=end)
    if preset == DateRangePreset.LAST_WEEK:
        start, end = _week_bounds(today - timedelta(days=7))
        return DateRange(start=start, end=end)
    if preset == DateRangePreset.THIS_MONTH:
        return DateRange(start=today.replace(day=1), end=_end_of_month(today))
    if preset == DateRangePreset.LAST_MONTH:
        last_month_end = today.replace(day=1) - timedelta(days=1)
        return DateRange(start=last_month_end.replace(day=1), end=last_month_end)
    if preset == DateRangePreset.THIS_YEAR:
        return DateRange(start=date(today.year, 1, 1), end=date(today.year, 12, 31))

    return DateRange()


def custom_range(start: Optional[date], end: Optional[date]) -> DateRange:
    """Range picked on the calendar. Raises ValueError when start > end."""
    return DateRange(start=start, end=end)

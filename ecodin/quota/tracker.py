"""
AI Summary Quota Tracker

DESIGN DECISION: The quota is a pair of plain functions over a QuotaRecord,
not a long-lived object. The record lives in the store; the summary flow
reads it, asks check_allowed() before calling the model, and writes back
record_usage() only after the model answered.

Month rollover is lazy. Nothing resets counters when a month ends: a record
from an earlier month simply counts as zero, and the next successful summary
overwrites it with a fresh count of 1.

The check and the write are two separate steps, so two sessions of the same
user can both pass the check before either writes. The limit can then be
overshot by the number of concurrent in-flight requests minus one.
"""

from datetime import datetime, timezone
from typing import Optional

from ecodin.models.summary import QuotaRecord, QuotaUsage

# Free plan; there is no paid tier behind the "Pro" copy in the UI.
FREE_PLAN_MONTHLY_LIMIT = 2


def current_month_key(now: Optional[datetime] = None) -> str:
    """YYYY-MM of the given moment (default: now), in UTC."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m")


def effective_usage(record: Optional[QuotaRecord], month_key: str) -> int:
    """Summaries already used in month_key; stale or missing records count as 0."""
    if record is None or record.usage_month != month_key:
        return 0
    return record.usage_count


def check_allowed(
    record: Optional[QuotaRecord],
    month_key: str,
    limit: int = FREE_PLAN_MONTHLY_LIMIT,
) -> bool:
    """False only when this month's record has already reached the limit."""
    if record is None or record.usage_month != month_key:
        return True
    return record.usage_count < limit


def record_usage(record: Optional[QuotaRecord], month_key: str) -> QuotaRecord:
    """
    Count one more successful summary.

    Same month increments; a missing or stale record restarts at 1.
    Returns a new record and leaves the input untouched.
    """
    if record is not None and record.usage_month == month_key:
        return QuotaRecord(usage_month=month_key, usage_count=record.usage_count + 1)
    return QuotaRecord(usage_month=month_key, usage_count=1)


def remaining(
    record: Optional[QuotaRecord],
    month_key: str,
    limit: int = FREE_PLAN_MONTHLY_LIMIT,
) -> int:
    return max(0, limit - effective_usage(record, month_key))


def usage_for(
    record: Optional[QuotaRecord],
    month_key: str,
    limit: int = FREE_PLAN_MONTHLY_LIMIT,
) -> QuotaUsage:
    """Quota state for display."""
    return QuotaUsage(
        month_key=month_key,
        used=effective_usage(record, month_key),
        limit=limit,
        remaining=remaining(record, month_key, limit),
    )

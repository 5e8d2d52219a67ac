"""AI usage quota package."""

from ecodin.quota.tracker import (
    FREE_PLAN_MONTHLY_LIMIT,
    check_allowed,
    current_month_key,
    effective_usage,
    record_usage,
    remaining,
    usage_for,
)

__all__ = [
    "FREE_PLAN_MONTHLY_LIMIT",
    "check_allowed",
    "current_month_key",
    "effective_usage",
    "record_usage",
    "remaining",
    "usage_for",
]

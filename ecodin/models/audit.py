"""
Audit Models for ecodin

Every transaction change and every AI request is logged for audit purposes.
This provides:
1. Traceability of what a user changed and when
2. Debugging information when an external service fails
3. A record of AI usage independent of the quota counter

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    VALIDATION_FAILED = "validation_failed"

    # AI summary
    SUMMARY_REQUESTED = "summary_requested"
    SUMMARY_GENERATED = "summary_generated"
    SUMMARY_SKIPPED = "summary_skipped"
    SUMMARY_FAILED = "summary_failed"
    QUOTA_EXCEEDED = "quota_exceeded"
    QUOTA_UPDATED = "quota_updated"

    # Category suggestion
    CATEGORY_SUGGESTED = "category_suggested"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Who and what
    user_id: Optional[str] = Field(
        default=None,
        description="User the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'quota', 'summary')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one summary request)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(user_id, tx_id, name, amount)
        event = AuditEventBuilder.quota_exceeded(user_id, month_key, count, correlation_id)
    """

    @staticmethod
    def transaction_created(
        user_id: str,
        transaction_id: str,
        name: str,
        amount: str,
        transaction_type: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction added: {name} ({amount})",
            details={
                "name": name,
                "amount": amount,
                "type": transaction_type,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        user_id: str,
        transaction_id: str,
        changes: dict[str, Any],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction edited: {', '.join(sorted(changes)) or 'no changes'}",
            details={"changes": changes},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        user_id: str,
        transaction_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction removed",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        user_id: str,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="transaction",
            description=f"Transaction input rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def summary_requested(
        user_id: str,
        month_key: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_REQUESTED,
            user_id=user_id,
            entity_type="summary",
            correlation_id=correlation_id,
            description=f"AI summary requested for {month_key}",
            details={"month_key": month_key},
            is_user_action=True,
        )

    @staticmethod
    def summary_generated(
        user_id: str,
        suggestion_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_GENERATED,
            user_id=user_id,
            entity_type="summary",
            correlation_id=correlation_id,
            description=f"AI summary generated with {suggestion_count} suggestions",
            details={"suggestion_count": suggestion_count},
        )

    @staticmethod
    def summary_skipped(
        user_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_SKIPPED,
            user_id=user_id,
            entity_type="summary",
            correlation_id=correlation_id,
            description=f"AI summary not requested: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def summary_failed(
        user_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type="summary",
            correlation_id=correlation_id,
            description="AI summary generation failed",
            error_message=error_message,
        )

    @staticmethod
    def quota_exceeded(
        user_id: str,
        month_key: str,
        usage_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUOTA_EXCEEDED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="quota",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Monthly AI summary limit reached for {month_key}",
            details={
                "month_key": month_key,
                "usage_count": usage_count,
            },
        )

    @staticmethod
    def quota_updated(
        user_id: str,
        month_key: str,
        usage_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUOTA_UPDATED,
            user_id=user_id,
            entity_type="quota",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"AI usage for {month_key} is now {usage_count}",
            details={
                "month_key": month_key,
                "usage_count": usage_count,
            },
        )

    @staticmethod
    def category_suggested(
        transaction_name: str,
        category: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_SUGGESTED,
            severity=AuditSeverity.DEBUG,
            entity_type="suggestion",
            description=f"Category suggestion for '{transaction_name[:50]}': {category or 'none'}",
            details={
                "transaction_name": transaction_name,
                "category": category,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )

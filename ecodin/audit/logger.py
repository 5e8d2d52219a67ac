"""
Audit Logger

DESIGN DECISION: Every transaction change and every AI request is logged.
This provides:
1. Traceability of user changes
2. Debugging capability when a hosted service misbehaves
3. A record of AI usage next to the quota counter

Audit writes are awaited alongside the flow that triggered them. A failed
write is logged locally and swallowed, and one correlation id ties
together every event of a single summary request.
"""

from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from ecodin.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from ecodin.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (Google Sheets or in-memory), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ecodin.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_created(
        self,
        user_id: str,
        transaction_id: str,
        name: str,
        amount: str,
        transaction_type: str,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_created(
            user_id=user_id,
            transaction_id=transaction_id,
            name=name,
            amount=amount,
            transaction_type=transaction_type,
        ))

    async def log_transaction_updated(
        self,
        user_id: str,
        transaction_id: str,
        changes: dict[str, Any],
    ) -> None:
        await self.log(AuditEventBuilder.transaction_updated(
            user_id=user_id,
            transaction_id=transaction_id,
            changes=changes,
        ))

    async def log_transaction_deleted(self, user_id: str, transaction_id: str) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            user_id=user_id,
            transaction_id=transaction_id,
        ))

    async def log_validation_failed(self, user_id: str, issues: list[dict]) -> None:
        await self.log(AuditEventBuilder.validation_failed(user_id=user_id, issues=issues))

    async def log_summary_requested(
        self,
        user_id: str,
        month_key: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.summary_requested(
            user_id=user_id,
            month_key=month_key,
            correlation_id=correlation_id,
        ))

    async def log_summary_generated(
        self,
        user_id: str,
        suggestion_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.summary_generated(
            user_id=user_id,
            suggestion_count=suggestion_count,
            correlation_id=correlation_id,
        ))

    async def log_summary_skipped(
        self,
        user_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.summary_skipped(
            user_id=user_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_summary_failed(
        self,
        user_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.summary_failed(
            user_id=user_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_quota_exceeded(
        self,
        user_id: str,
        month_key: str,
        usage_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.quota_exceeded(
            user_id=user_id,
            month_key=month_key,
            usage_count=usage_count,
            correlation_id=correlation_id,
        ))

    async def log_quota_updated(
        self,
        user_id: str,
        month_key: str,
        usage_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.quota_updated(
            user_id=user_id,
            month_key=month_key,
            usage_count=usage_count,
            correlation_id=correlation_id,
        ))

    async def log_category_suggested(
        self,
        transaction_name: str,
        category: Optional[str],
    ) -> None:
        await self.log(AuditEventBuilder.category_suggested(
            transaction_name=transaction_name,
            category=category,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a summary request).
    Pass it through all subsequent operations.
    """
    return uuid4()

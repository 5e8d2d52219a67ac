"""
Main Orchestrator for Ecodin

This module ties together all the components and defines the
end-to-end flows for:
1. Transactions (form input → validate → persist → audit)
2. Dashboard (store snapshot → aggregate → render)
3. AI Summary (quota check → aggregate → Gemini → quota update)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches storage without passing validation
- A summary is never requested once the month's quota is used up
- A failed summary never counts against the quota
- Every step is audited

Failures of external services stop here: the UI only ever receives
a result object with a user-facing message.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict

from ecodin.agents import (
    AIServiceError,
    CategoryAgent,
    CategorySuggestionSession,
    SummaryAgent,
)
from ecodin.analytics import aggregation
from ecodin.audit import AuditLogger, create_correlation_id
from ecodin.config import get_settings
from ecodin.models.summary import (
    DashboardSnapshot,
    QuotaUsage,
    SummaryOutcome,
    SummaryStatus,
)
from ecodin.models.transaction import (
    Category,
    DateRange,
    Transaction,
    TransactionInput,
    ValidationResult,
)
from ecodin.quota import check_allowed, current_month_key, record_usage, usage_for
from ecodin.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsQuotaStorage,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryQuotaStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    QuotaStorageInterface,
    StorageError,
    Subscription,
    TransactionStorageInterface,
)
from ecodin.validation import TransactionValidator

logger = structlog.get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Ocorreu um erro. Por favor, tente novamente mais tarde."
NOT_FOUND_MESSAGE = "Transação não encontrada."
QUOTA_EXCEEDED_MESSAGE = (
    "Você atingiu seu limite de {limit} resumos de IA para este mês. "
    "Para resumos ilimitados, considere o plano Pro."
)
NO_DATA_MESSAGE = "Adicione algumas transações de renda e despesa para gerar um resumo."
SUMMARY_FAILED_MESSAGE = (
    "Ocorreu um erro ao gerar o resumo. Por favor, tente novamente mais tarde."
)


class FlowResult(BaseModel):
    """Outcome of a transaction add/edit/delete, as shown to the user."""

    ok: bool
    message: str
    transaction: Optional[Transaction] = None
    validation: Optional[ValidationResult] = None


class TransactionFlow:
    """
    Orchestrates transaction changes.

    Flow:
    1. Validate → raw form input against the write-boundary rules
    2. Persist → add, replace or delete in the store
    3. Audit → one event per change

    The store pushes the new snapshot to subscribers on its own;
    this flow never touches the dashboard.
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger or AuditLogger()

    async def _reject(self, user_id: str, validation: ValidationResult) -> FlowResult:
        await self._audit_logger.log_validation_failed(
            user_id=user_id,
            issues=[issue.model_dump() for issue in validation.issues],
        )
        return FlowResult(
            ok=False,
            message=self._validator.get_user_friendly_summary(validation),
            validation=validation,
        )

    async def _storage_failure(self, operation: str, error: Exception) -> FlowResult:
        await self._audit_logger.log_error(
            error_type="storage_error",
            error_message=str(error),
            details={"operation": operation},
        )
        return FlowResult(ok=False, message=GENERIC_ERROR_MESSAGE)

    async def add(self, user_id: str, raw: TransactionInput) -> FlowResult:
        """Validate and store a new transaction."""
        validation = self._validator.validate(raw)
        if not validation.is_valid:
            return await self._reject(user_id, validation)

        try:
            stored = await self._storage.add_transaction(user_id, raw.to_transaction())
        except StorageError as e:
            return await self._storage_failure("add", e)

        await self._audit_logger.log_transaction_created(
            user_id=user_id,
            transaction_id=stored.id,
            name=stored.name,
            amount=str(stored.amount),
            transaction_type=stored.type.value,
        )
        return FlowResult(
            ok=True,
            message="Transação adicionada.",
            transaction=stored,
            validation=validation,
        )

    async def edit(self, user_id: str, transaction_id: str, raw: TransactionInput) -> FlowResult:
        """
        Replace name, amount, category and date of a stored transaction.

        The type may change only together with a matching category;
        validation takes care of that.
        """
        validation = self._validator.validate(raw)
        if not validation.is_valid:
            return await self._reject(user_id, validation)

        try:
            current = await self._storage.get_transaction(user_id, transaction_id)
            if current is None:
                return FlowResult(ok=False, message=NOT_FOUND_MESSAGE, validation=validation)

            updated = raw.to_transaction(
                transaction_id=transaction_id,
                default_date=current.date,
            )
            stored = await self._storage.update_transaction(user_id, updated)
        except NotFoundError:
            return FlowResult(ok=False, message=NOT_FOUND_MESSAGE, validation=validation)
        except StorageError as e:
            return await self._storage_failure("edit", e)

        changes = {
            field: str(getattr(stored, field))
            for field in ("type", "name", "amount", "category", "date")
            if getattr(stored, field) != getattr(current, field)
        }
        await self._audit_logger.log_transaction_updated(
            user_id=user_id,
            transaction_id=transaction_id,
            changes=changes,
        )
        return FlowResult(
            ok=True,
            message="Transação atualizada.",
            transaction=stored,
            validation=validation,
        )

    async def delete(self, user_id: str, transaction_id: str) -> FlowResult:
        try:
            deleted = await self._storage.delete_transaction(user_id, transaction_id)
        except StorageError as e:
            return await self._storage_failure("delete", e)

        if not deleted:
            return FlowResult(ok=False, message=NOT_FOUND_MESSAGE)

        await self._audit_logger.log_transaction_deleted(
            user_id=user_id,
            transaction_id=transaction_id,
        )
        return FlowResult(ok=True, message="Transação excluída.")


class DashboardFlow:
    """
    Recomputes every dashboard figure from a transaction snapshot.

    There is no cached aggregate: each push from the store produces a
    fresh DashboardSnapshot.
    """

    def __init__(self, storage: TransactionStorageInterface):
        self._storage = storage

    def snapshot(
        self,
        transactions: list[Transaction],
        date_range: Optional[DateRange] = None,
        savings_goal: Union[Decimal, int, float] = 0,
    ) -> DashboardSnapshot:
        date_range = date_range or DateRange()
        visible = aggregation.filter_by_date_range(
            transactions,
            start=date_range.start,
            end=date_range.end,
        )
        totals = aggregation.totals(visible)
        breakdown = aggregation.by_category(visible)
        goal = Decimal(str(savings_goal))

        return DashboardSnapshot(
            date_range=date_range,
            transactions=visible,
            totals=totals,
            by_category=breakdown,
            ranked_categories=aggregation.sorted_categories(breakdown),
            monthly_series=aggregation.monthly_series(visible),
            savings_goal=goal,
            savings_progress=(
                aggregation.savings_progress(totals.balance, goal) if goal > 0 else None
            ),
        )

    def watch(
        self,
        user_id: str,
        on_snapshot: Callable[[DashboardSnapshot], None],
        date_range: Optional[DateRange] = None,
        savings_goal: Union[Decimal, int, float] = 0,
    ) -> Subscription:
        """Subscribe to the store and hand a new DashboardSnapshot to on_snapshot on every push."""
        def recompute(transactions: list[Transaction]) -> None:
            on_snapshot(self.snapshot(transactions, date_range, savings_goal))

        return self._storage.subscribe(user_id, recompute)

    async def load(
        self,
        user_id: str,
        date_range: Optional[DateRange] = None,
        savings_goal: Union[Decimal, int, float] = 0,
    ) -> DashboardSnapshot:
        """One-off snapshot read straight from the store."""
        transactions = await self._storage.list_transactions(user_id)
        return self.snapshot(transactions, date_range, savings_goal)


class SummaryFlow:
    """
    Orchestrates the AI summary request.

    Flow:
    1. Quota check → stop with a quota message if the month is used up
    2. Aggregate → income and per-category expenses
    3. Request → Gemini summary and suggestions
    4. Quota update → only after a successful response

    Check and update are separate steps; two requests racing each
    other can overshoot the limit.
    """

    def __init__(
        self,
        quota_storage: QuotaStorageInterface,
        summary_agent: Optional[SummaryAgent] = None,
        suggestion_session: Optional[CategorySuggestionSession] = None,
        audit_logger: Optional[AuditLogger] = None,
        monthly_limit: Optional[int] = None,
        category_agent: Optional[CategoryAgent] = None,
    ):
        self._quota_storage = quota_storage
        self._summary_agent = summary_agent
        self._suggestion_session = suggestion_session
        self._shared_category_agent = category_agent
        self._audit_logger = audit_logger or AuditLogger()
        if monthly_limit is None:
            monthly_limit = get_settings().app.ai_summary_monthly_limit
        self._monthly_limit = monthly_limit

    @property
    def monthly_limit(self) -> int:
        return self._monthly_limit

    def _agent(self) -> SummaryAgent:
        # Built on first use so the app starts without a Gemini key
        if self._summary_agent is None:
            try:
                self._summary_agent = SummaryAgent()
            except Exception as e:
                raise AIServiceError(f"Gemini is not configured: {e}") from e
        return self._summary_agent

    def _category_agent(self) -> Optional[CategoryAgent]:
        # Stateless, so one agent serves every form
        if self._shared_category_agent is None:
            try:
                self._shared_category_agent = CategoryAgent()
            except Exception as e:
                logger.warning("category_agent_unavailable", error=str(e))
        return self._shared_category_agent

    def new_suggestion_session(self) -> Optional[CategorySuggestionSession]:
        """A fresh debounce session for one form; None when Gemini is not configured."""
        agent = self._category_agent()
        if agent is None:
            return None
        return CategorySuggestionSession(agent)

    def _session(self) -> Optional[CategorySuggestionSession]:
        if self._suggestion_session is None:
            self._suggestion_session = self.new_suggestion_session()
        return self._suggestion_session

    async def usage(self, user_id: str, now: Optional[datetime] = None) -> Optional[QuotaUsage]:
        """Summaries used and left in the current month; None when the store is unreachable."""
        month_key = current_month_key(now)
        try:
            record = await self._quota_storage.get_quota(user_id)
        except StorageError as e:
            logger.warning("quota_usage_unavailable", user_id=user_id, error=str(e))
            return None
        return usage_for(record, month_key, self._monthly_limit)

    async def generate(
        self,
        user_id: str,
        transactions: list[Transaction],
        savings_goal: Union[Decimal, int, float] = 0,
        now: Optional[datetime] = None,
    ) -> SummaryOutcome:
        correlation_id = create_correlation_id()
        month_key = current_month_key(now)

        await self._audit_logger.log_summary_requested(
            user_id=user_id,
            month_key=month_key,
            correlation_id=correlation_id,
        )

        try:
            record = await self._quota_storage.get_quota(user_id)
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type="storage_error",
                error_message=str(e),
                details={"operation": "get_quota"},
                correlation_id=correlation_id,
            )
            return SummaryOutcome(status=SummaryStatus.FAILED, message=SUMMARY_FAILED_MESSAGE)

        usage = usage_for(record, month_key, self._monthly_limit)

        if not check_allowed(record, month_key, self._monthly_limit):
            await self._audit_logger.log_quota_exceeded(
                user_id=user_id,
                month_key=month_key,
                usage_count=usage.used,
                correlation_id=correlation_id,
            )
            return SummaryOutcome(
                status=SummaryStatus.QUOTA_EXCEEDED,
                message=QUOTA_EXCEEDED_MESSAGE.format(limit=self._monthly_limit),
                usage=usage,
            )

        income = aggregation.totals(transactions).income
        expenses = aggregation.expense_breakdown_for_prompt(transactions)

        if income == 0 and not expenses:
            await self._audit_logger.log_summary_skipped(
                user_id=user_id,
                reason="no_data",
                correlation_id=correlation_id,
            )
            return SummaryOutcome(
                status=SummaryStatus.NO_DATA,
                message=NO_DATA_MESSAGE,
                usage=usage,
            )

        goal = Decimal(str(savings_goal))
        try:
            summary = await self._agent().request_summary(
                income=float(income),
                expenses_by_category=expenses,
                savings_goal=float(goal) if goal > 0 else None,
            )
        except AIServiceError as e:
            await self._audit_logger.log_summary_failed(
                user_id=user_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            await self._audit_logger.log_external_service_error(
                service="gemini",
                error_message=str(e),
                user_id=user_id,
                correlation_id=correlation_id,
            )
            return SummaryOutcome(
                status=SummaryStatus.FAILED,
                message=SUMMARY_FAILED_MESSAGE,
                usage=usage,
            )

        updated = record_usage(record, month_key)
        try:
            await self._quota_storage.save_quota(user_id, updated)
        except StorageError as e:
            # The summary is already paid for; show it even if the count was lost
            await self._audit_logger.log_error(
                error_type="storage_error",
                error_message=str(e),
                details={"operation": "save_quota"},
                correlation_id=correlation_id,
            )
        else:
            await self._audit_logger.log_quota_updated(
                user_id=user_id,
                month_key=month_key,
                usage_count=updated.usage_count,
                correlation_id=correlation_id,
            )

        await self._audit_logger.log_summary_generated(
            user_id=user_id,
            suggestion_count=len(summary.suggestions),
            correlation_id=correlation_id,
        )
        return SummaryOutcome(
            status=SummaryStatus.GENERATED,
            summary=summary,
            usage=usage_for(updated, month_key, self._monthly_limit),
        )

    async def suggest_category(
        self,
        transaction_name: str,
        session: Optional[CategorySuggestionSession] = None,
    ) -> Optional[Category]:
        """
        Debounced category suggestion; None when superseded or unsure.

        Pass the form's own session so requests from other forms never
        supersede it. Without one, the flow's default session is used.
        """
        session = session or self._session()
        if session is None:
            return None

        suggestion = await session.request(transaction_name)
        if suggestion is not None:
            await self._audit_logger.log_category_suggested(
                transaction_name=transaction_name,
                category=suggestion.value,
            )
        return suggestion


class AppComponents(BaseModel):
    """Everything the UI needs, wired together."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    transaction_flow: TransactionFlow
    dashboard_flow: DashboardFlow
    summary_flow: SummaryFlow
    transaction_storage: TransactionStorageInterface
    sheets_client: Optional[GoogleSheetsClient] = None

    @property
    def uses_sheets(self) -> bool:
        return self.sheets_client is not None


def create_app_components(use_storage: bool = True) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run entirely in memory.
    """
    sheets_client = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.get_spreadsheet()
            transaction_storage = GoogleSheetsTransactionStorage(sheets_client)
            quota_storage = GoogleSheetsQuotaStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    if sheets_client is None:
        transaction_storage = InMemoryTransactionStorage()
        quota_storage = InMemoryQuotaStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    return AppComponents(
        transaction_flow=TransactionFlow(transaction_storage, audit_logger=audit_logger),
        dashboard_flow=DashboardFlow(transaction_storage),
        summary_flow=SummaryFlow(quota_storage, audit_logger=audit_logger),
        transaction_storage=transaction_storage,
        sheets_client=sheets_client,
    )

"""
Integration tests for the flows.

In-memory storage and fake agents stand in for Google Sheets and Gemini.
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal

from ecodin.agents import AIServiceError
from ecodin.audit import AuditLogger
from ecodin.models.audit import AuditEventType
from ecodin.models.summary import MonthlySummary, QuotaRecord, SummaryStatus
from ecodin.models.transaction import (
    Category,
    DateRange,
    Transaction,
    TransactionInput,
    TransactionType,
)
from ecodin.orchestrator import (
    GENERIC_ERROR_MESSAGE,
    NO_DATA_MESSAGE,
    DashboardFlow,
    SummaryFlow,
    TransactionFlow,
    create_app_components,
)
from ecodin.services.storage import (
    GoogleSheetsQuotaStorage,
    InMemoryAuditStorage,
    InMemoryQuotaStorage,
    InMemoryTransactionStorage,
    StorageError,
)
from ecodin.services.storage.google_sheets import QUOTA_COLUMNS

JUNE = datetime(2024, 6, 15, 12, tzinfo=timezone.utc)
JULY = datetime(2024, 7, 1, 9, tzinfo=timezone.utc)


def tx(kind: str, amount: str, category: Category, day: int = 10, name: str = "Teste") -> Transaction:
    return Transaction(
        id=f"{name}-{day}",
        type=TransactionType(kind),
        name=name,
        amount=Decimal(amount),
        category=category,
        date=datetime(2024, 6, day, 12, tzinfo=timezone.utc),
    )


BASIC = [
    tx("income", "1000", Category.RENDA, 1, "Salário"),
    tx("expense", "300", Category.MORADIA, 5, "Aluguel"),
    tx("expense", "200", Category.ALIMENTACAO, 10, "Mercado"),
]


class FakeSummaryAgent:
    def __init__(self, error: Exception = None):
        self.error = error
        self.calls = []

    async def request_summary(self, income, expenses_by_category, savings_goal=None):
        self.calls.append((income, dict(expenses_by_category), savings_goal))
        if self.error:
            raise self.error
        return MonthlySummary(summary="Seus gastos estão equilibrados.", suggestions=["Reduza o delivery"])


class FakeSuggestionSession:
    def __init__(self, answer):
        self.answer = answer

    async def request(self, transaction_name):
        return self.answer


class BrokenQuotaStorage(InMemoryQuotaStorage):
    async def save_quota(self, user_id, record):
        raise StorageError("sheet unavailable")


class UnreachableQuotaStorage(InMemoryQuotaStorage):
    async def get_quota(self, user_id):
        raise StorageError("sheet unavailable")


class CorruptQuotaSheetClient:
    """Sheets client whose usage worksheet holds a hand-edited row."""

    class Sheet:
        def get_all_values(self):
            return [QUOTA_COLUMNS, ["u1", "2024-06", "two", "x"]]

    def get_quota_sheet(self):
        return self.Sheet()


class SlowCategoryAgent:
    async def suggest_category(self, transaction_name):
        await asyncio.sleep(0.02)
        return Category.SAUDE if "Farm" in transaction_name else Category.TRANSPORTE


class BrokenTransactionStorage(InMemoryTransactionStorage):
    async def add_transaction(self, user_id, transaction):
        raise StorageError("sheet unavailable")


def summary_flow(agent=None, quota_storage=None, audit_storage=None, limit=2):
    return SummaryFlow(
        quota_storage if quota_storage is not None else InMemoryQuotaStorage(),
        summary_agent=agent or FakeSummaryAgent(),
        audit_logger=AuditLogger(audit_storage),
        monthly_limit=limit,
    )


def event_types(audit_storage) -> list:
    return [e.event_type for e in asyncio.run(audit_storage.get_recent_events())]


class TestSummaryFlow:
    """Tests for quota-gated AI summaries."""

    def test_generates_and_counts_usage(self):
        """Test a first summary of the month creates the quota record."""
        quota = InMemoryQuotaStorage()
        agent = FakeSummaryAgent()
        flow = summary_flow(agent, quota)

        outcome = asyncio.run(flow.generate("u1", BASIC, savings_goal=1000, now=JUNE))

        assert outcome.status == SummaryStatus.GENERATED
        assert outcome.summary.suggestions == ["Reduza o delivery"]
        assert outcome.usage.used == 1
        assert asyncio.run(quota.get_quota("u1")) == QuotaRecord(usage_month="2024-06", usage_count=1)
        assert agent.calls == [(1000.0, {"Moradia": 300.0, "Alimentação": 200.0}, 1000.0)]

    def test_blocks_when_month_used_up(self):
        """Test that {2024-06, 2} blocks in June without calling the model."""
        quota = InMemoryQuotaStorage()
        asyncio.run(quota.save_quota("u1", QuotaRecord(usage_month="2024-06", usage_count=2)))
        agent = FakeSummaryAgent()

        outcome = asyncio.run(summary_flow(agent, quota).generate("u1", BASIC, now=JUNE))

        assert outcome.status == SummaryStatus.QUOTA_EXCEEDED
        assert "limite de 2 resumos" in outcome.message
        assert "plano Pro" in outcome.message
        assert agent.calls == []
        assert asyncio.run(quota.get_quota("u1")).usage_count == 2

    def test_new_month_resets(self):
        """Test that {2024-06, 2} allows in July and becomes {2024-07, 1}."""
        quota = InMemoryQuotaStorage()
        asyncio.run(quota.save_quota("u1", QuotaRecord(usage_month="2024-06", usage_count=2)))

        outcome = asyncio.run(summary_flow(quota_storage=quota).generate("u1", BASIC, now=JULY))

        assert outcome.generated
        assert asyncio.run(quota.get_quota("u1")) == QuotaRecord(usage_month="2024-07", usage_count=1)

    def test_third_request_in_month_blocked(self):
        quota = InMemoryQuotaStorage()
        flow = summary_flow(quota_storage=quota)

        statuses = [
            asyncio.run(flow.generate("u1", BASIC, now=JUNE)).status
            for _ in range(3)
        ]

        assert statuses == [
            SummaryStatus.GENERATED,
            SummaryStatus.GENERATED,
            SummaryStatus.QUOTA_EXCEEDED,
        ]

    def test_no_data_short_circuits(self):
        """Test that an empty list skips the call and leaves the quota alone."""
        quota = InMemoryQuotaStorage()
        agent = FakeSummaryAgent()

        outcome = asyncio.run(summary_flow(agent, quota).generate("u1", [], now=JUNE))

        assert outcome.status == SummaryStatus.NO_DATA
        assert outcome.message == NO_DATA_MESSAGE
        assert agent.calls == []
        assert asyncio.run(quota.get_quota("u1")) is None

    def test_failure_does_not_count(self):
        """Test that an AI failure leaves the quota untouched."""
        quota = InMemoryQuotaStorage()
        audit = InMemoryAuditStorage()
        agent = FakeSummaryAgent(error=AIServiceError("503"))

        outcome = asyncio.run(summary_flow(agent, quota, audit).generate("u1", BASIC, now=JUNE))

        assert outcome.status == SummaryStatus.FAILED
        assert "erro ao gerar o resumo" in outcome.message
        assert asyncio.run(quota.get_quota("u1")) is None
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in event_types(audit)

    def test_goal_sent_only_when_positive(self):
        agent = FakeSummaryAgent()
        asyncio.run(summary_flow(agent).generate("u1", BASIC, savings_goal=0, now=JUNE))
        assert agent.calls[0][2] is None

    def test_income_only_is_enough(self):
        agent = FakeSummaryAgent()
        income_only = [tx("income", "500", Category.RENDA)]

        outcome = asyncio.run(summary_flow(agent).generate("u1", income_only, now=JUNE))

        assert outcome.generated
        assert agent.calls[0][1] == {}

    def test_quota_save_failure_still_returns_summary(self):
        audit = InMemoryAuditStorage()
        flow = summary_flow(quota_storage=BrokenQuotaStorage(), audit_storage=audit)

        outcome = asyncio.run(flow.generate("u1", BASIC, now=JUNE))

        assert outcome.generated
        assert AuditEventType.SYSTEM_ERROR in event_types(audit)

    def test_usage_report(self):
        quota = InMemoryQuotaStorage()
        asyncio.run(quota.save_quota("u1", QuotaRecord(usage_month="2024-06", usage_count=1)))
        flow = summary_flow(quota_storage=quota)

        june = asyncio.run(flow.usage("u1", now=JUNE))
        july = asyncio.run(flow.usage("u1", now=JULY))

        assert (june.used, june.remaining) == (1, 1)
        assert (july.used, july.remaining) == (0, 2)

    def test_suggest_category_delegates_to_session(self):
        audit = InMemoryAuditStorage()
        flow = SummaryFlow(
            InMemoryQuotaStorage(),
            summary_agent=FakeSummaryAgent(),
            suggestion_session=FakeSuggestionSession(Category.SAUDE),
            audit_logger=AuditLogger(audit),
            monthly_limit=2,
        )

        assert asyncio.run(flow.suggest_category("Farmácia")) == Category.SAUDE
        assert AuditEventType.CATEGORY_SUGGESTED in event_types(audit)

    def test_usage_when_store_unreachable(self):
        """Test that usage reports None instead of raising."""
        flow = summary_flow(quota_storage=UnreachableQuotaStorage())
        assert asyncio.run(flow.usage("u1", now=JUNE)) is None

    def test_quota_read_failure_fails_gracefully(self):
        audit = InMemoryAuditStorage()
        agent = FakeSummaryAgent()
        flow = summary_flow(agent=agent, quota_storage=UnreachableQuotaStorage(), audit_storage=audit)

        outcome = asyncio.run(flow.generate("u1", BASIC, now=JUNE))

        assert outcome.status == SummaryStatus.FAILED
        assert agent.calls == []
        assert AuditEventType.SYSTEM_ERROR in event_types(audit)

    def test_corrupted_usage_row_fails_gracefully(self):
        """Test a hand-edited usage row in Sheets ends as a failed outcome."""
        agent = FakeSummaryAgent()
        flow = summary_flow(agent=agent, quota_storage=GoogleSheetsQuotaStorage(CorruptQuotaSheetClient()))

        outcome = asyncio.run(flow.generate("u1", BASIC, now=JUNE))

        assert outcome.status == SummaryStatus.FAILED
        assert agent.calls == []
        assert asyncio.run(flow.usage("u1", now=JUNE)) is None

    def test_suggestion_sessions_are_independent(self):
        """Test that one form typing never discards another form's suggestion."""
        flow = SummaryFlow(
            InMemoryQuotaStorage(),
            summary_agent=FakeSummaryAgent(),
            audit_logger=AuditLogger(),
            monthly_limit=2,
            category_agent=SlowCategoryAgent(),
        )
        first = flow.new_suggestion_session()
        second = flow.new_suggestion_session()

        async def two_forms():
            a = asyncio.create_task(flow.suggest_category("Farmácia", session=first))
            await asyncio.sleep(0)
            b = asyncio.create_task(flow.suggest_category("Uber", session=second))
            return await a, await b

        assert first is not second
        assert asyncio.run(two_forms()) == (Category.SAUDE, Category.TRANSPORTE)


class TestTransactionFlow:
    """Tests for validated transaction changes."""

    def setup_method(self):
        self.storage = InMemoryTransactionStorage()
        self.audit = InMemoryAuditStorage()
        self.flow = TransactionFlow(self.storage, audit_logger=AuditLogger(self.audit))

    def test_add_valid(self):
        result = asyncio.run(self.flow.add(
            "u1",
            TransactionInput(type="expense", name="Mercado", amount="120.50", category="Alimentação"),
        ))

        assert result.ok
        assert result.transaction.id
        assert len(asyncio.run(self.storage.list_transactions("u1"))) == 1
        assert AuditEventType.TRANSACTION_CREATED in event_types(self.audit)

    def test_add_invalid_is_not_stored(self):
        result = asyncio.run(self.flow.add(
            "u1",
            TransactionInput(type="expense", name="M", amount="-1", category="Renda"),
        ))

        assert not result.ok
        assert result.validation.error_count == 3
        assert asyncio.run(self.storage.list_transactions("u1")) == []
        assert AuditEventType.VALIDATION_FAILED in event_types(self.audit)

    def test_overlong_name_is_reported_inline(self):
        """Test that a 201-character name comes back as a validation issue on add and edit."""
        long_name = "x" * 201
        result = asyncio.run(self.flow.add(
            "u1",
            TransactionInput(type="expense", name=long_name, amount="10", category="Outros"),
        ))

        assert not result.ok
        assert result.validation.messages_for("name")
        assert asyncio.run(self.storage.list_transactions("u1")) == []

        added = asyncio.run(self.flow.add(
            "u1",
            TransactionInput(type="expense", name="Mercado", amount="10", category="Outros"),
        )).transaction
        edited = asyncio.run(self.flow.edit(
            "u1",
            added.id,
            TransactionInput(type="expense", name=long_name, amount="10", category="Outros"),
        ))

        assert not edited.ok
        assert edited.validation.messages_for("name")
        assert asyncio.run(self.storage.get_transaction("u1", added.id)).name == "Mercado"

    def test_edit_keeps_date_and_changes_type(self):
        """Test switching an expense to income, which forces Renda."""
        added = asyncio.run(self.flow.add(
            "u1",
            TransactionInput(type="expense", name="Freela", amount=800, category="Outros", date=JUNE),
        )).transaction

        result = asyncio.run(self.flow.edit(
            "u1",
            added.id,
            TransactionInput(type="income", name="Freela", amount=800),
        ))

        assert result.ok
        assert result.transaction.category == Category.RENDA
        assert result.transaction.date == JUNE
        assert AuditEventType.TRANSACTION_UPDATED in event_types(self.audit)

    def test_edit_unknown(self):
        result = asyncio.run(self.flow.edit(
            "u1",
            "missing",
            TransactionInput(type="income", name="Salário", amount=800),
        ))
        assert not result.ok

    def test_delete(self):
        added = asyncio.run(self.flow.add(
            "u1",
            TransactionInput(type="income", name="Salário", amount=800),
        )).transaction

        assert asyncio.run(self.flow.delete("u1", added.id)).ok
        assert not asyncio.run(self.flow.delete("u1", added.id)).ok

    def test_storage_failure_gives_generic_message(self):
        flow = TransactionFlow(BrokenTransactionStorage(), audit_logger=AuditLogger(self.audit))

        result = asyncio.run(flow.add(
            "u1",
            TransactionInput(type="income", name="Salário", amount=800),
        ))

        assert not result.ok
        assert result.message == GENERIC_ERROR_MESSAGE
        assert AuditEventType.SYSTEM_ERROR in event_types(self.audit)


class TestDashboardFlow:
    """Tests for dashboard recomputation."""

    def test_snapshot_figures(self):
        snapshot = DashboardFlow(InMemoryTransactionStorage()).snapshot(BASIC, savings_goal=1000)

        assert snapshot.totals.balance == Decimal("500")
        assert snapshot.by_category == {
            Category.MORADIA: Decimal("300"),
            Category.ALIMENTACAO: Decimal("200"),
        }
        assert snapshot.ranked_categories[0][0] == Category.MORADIA
        assert [p.month_key for p in snapshot.monthly_series] == ["2024-06"]
        assert snapshot.savings_progress == Decimal("50")

    def test_snapshot_respects_range(self):
        window = DateRange(start=date(2024, 6, 5), end=date(2024, 6, 5))
        snapshot = DashboardFlow(InMemoryTransactionStorage()).snapshot(BASIC, window)

        assert [t.name for t in snapshot.transactions] == ["Aluguel"]
        assert snapshot.totals.balance == Decimal("-300")

    def test_no_progress_without_goal(self):
        snapshot = DashboardFlow(InMemoryTransactionStorage()).snapshot(BASIC)
        assert snapshot.savings_progress is None

    def test_empty_snapshot(self):
        snapshot = DashboardFlow(InMemoryTransactionStorage()).snapshot([])
        assert snapshot.totals.income == 0
        assert snapshot.by_category == {}
        assert snapshot.monthly_series == []

    def test_watch_recomputes_on_every_change(self):
        """Test that the dashboard follows adds, edits and deletes."""
        storage = InMemoryTransactionStorage()
        flow = TransactionFlow(storage)
        snapshots = []
        subscription = DashboardFlow(storage).watch("u1", snapshots.append)

        added = asyncio.run(flow.add(
            "u1",
            TransactionInput(type="income", name="Salário", amount=1000),
        )).transaction
        asyncio.run(flow.edit("u1", added.id, TransactionInput(type="income", name="Salário", amount=1500)))
        asyncio.run(flow.delete("u1", added.id))

        assert [s.totals.income for s in snapshots] == [0, Decimal("1000"), Decimal("1500"), 0]

        subscription.unsubscribe()
        asyncio.run(flow.add("u1", TransactionInput(type="income", name="Bônus", amount=10)))
        assert len(snapshots) == 4

    def test_load(self):
        storage = InMemoryTransactionStorage()
        for item in BASIC:
            asyncio.run(storage.add_transaction("u1", item))

        snapshot = asyncio.run(DashboardFlow(storage).load("u1"))
        assert snapshot.totals.expenses == Decimal("500")


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_in_memory_components(self):
        components = create_app_components(use_storage=False)

        assert not components.uses_sheets
        assert isinstance(components.transaction_storage, InMemoryTransactionStorage)
        assert components.summary_flow.monthly_limit == 2

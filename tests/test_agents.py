"""Tests for the Gemini-backed agents and debounced suggestions (no real API calls)."""

import asyncio
import json
import pytest

from ecodin.agents import (
    AIServiceError,
    CategoryAgent,
    CategorySuggestionSession,
    SummaryAgent,
)
from ecodin.models.transaction import Category


class FakeResponse:
    def __init__(self, text: str):
        self.text = text


class FakeModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(self, text: str = "", error: Exception = None):
        self.text = text
        self.error = error
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return FakeResponse(self.text)


class FakeCategoryAgent:
    """Returns canned categories, optionally after a delay per name."""

    def __init__(self, answers: dict, delays: dict = None):
        self.answers = answers
        self.delays = delays or {}
        self.calls = []

    async def suggest_category(self, transaction_name):
        self.calls.append(transaction_name)
        await asyncio.sleep(self.delays.get(transaction_name, 0))
        return self.answers.get(transaction_name)


class TestSummaryAgent:
    """Tests for SummaryAgent."""

    def test_parses_structured_response(self):
        payload = {"summary": "Você gastou metade da renda.", "suggestions": ["Cozinhe mais", "Use transporte público"]}
        model = FakeModel(text=json.dumps(payload, ensure_ascii=False))
        agent = SummaryAgent(model=model)

        result = asyncio.run(agent.request_summary(1000, {"Moradia": 300.0}, savings_goal=200))

        assert result.summary == "Você gastou metade da renda."
        assert result.suggestions == ["Cozinhe mais", "Use transporte público"]

    def test_tolerates_text_around_json(self):
        model = FakeModel(text='Claro!\n```json\n{"summary": "Ok", "suggestions": []}\n```')
        result = asyncio.run(SummaryAgent(model=model).request_summary(100, {}))
        assert result.summary == "Ok"

    def test_prompt_contents(self):
        """Test that the prompt lists income, each category and the goal."""
        agent = SummaryAgent(model=FakeModel())
        prompt = agent.build_prompt(1000, {"Moradia": 300, "Alimentação": 200}, savings_goal=150)

        assert "Renda: 1000.00" in prompt
        assert "- Moradia: 300.00" in prompt
        assert "- Alimentação: 200.00" in prompt
        assert "Meta de economia: 150.00" in prompt
        assert "Forneça a resposta em português." in prompt

    def test_prompt_without_goal(self):
        prompt = SummaryAgent(model=FakeModel()).build_prompt(1000, {})
        assert "Meta de economia: não definida" in prompt

    def test_transport_failure_raises(self):
        agent = SummaryAgent(model=FakeModel(error=RuntimeError("503")))
        with pytest.raises(AIServiceError):
            asyncio.run(agent.request_summary(1000, {"Moradia": 300.0}))

    def test_malformed_output_raises(self):
        for text in ("sem json aqui", '{"suggestions": []}', '{"summary": ""}'):
            agent = SummaryAgent(model=FakeModel(text=text))
            with pytest.raises(AIServiceError):
                asyncio.run(agent.request_summary(1000, {}))


class TestCategoryAgent:
    """Tests for CategoryAgent."""

    def test_suggests_category(self):
        model = FakeModel(text='{"category": "Transporte"}')
        agent = CategoryAgent(model=model)

        assert asyncio.run(agent.suggest_category("Uber para o trabalho")) == Category.TRANSPORTE
        assert "Transaction Name: Uber para o trabalho" in model.prompts[0]

    def test_prompt_lists_expense_categories_only(self):
        prompt = CategoryAgent(model=FakeModel()).build_prompt("Mercado")
        assert "- Alimentação" in prompt
        assert "- Renda" not in prompt

    def test_short_names_skip_the_call(self):
        """Test that names under three characters never reach the model."""
        model = FakeModel(text='{"category": "Outros"}')
        agent = CategoryAgent(model=model)

        assert asyncio.run(agent.suggest_category("  ab ")) is None
        assert asyncio.run(agent.suggest_category("")) is None
        assert model.prompts == []

    def test_failures_return_none(self):
        cases = [
            FakeModel(error=RuntimeError("timeout")),
            FakeModel(text="não sei"),
            FakeModel(text='{"category": "Viagens"}'),
            FakeModel(text='{"category": "Renda"}'),
        ]
        for model in cases:
            assert asyncio.run(CategoryAgent(model=model).suggest_category("Passagem aérea")) is None


class TestCategorySuggestionSession:
    """Tests for debounce and stale-response discarding."""

    def test_single_request_applies(self):
        agent = FakeCategoryAgent({"Mercado": Category.ALIMENTACAO})
        session = CategorySuggestionSession(agent, debounce_seconds=0)

        assert asyncio.run(session.request("Mercado")) == Category.ALIMENTACAO
        assert session.latest == Category.ALIMENTACAO

    def test_debounce_drops_superseded_keystrokes(self):
        """Test that only the last request in a burst reaches the agent."""
        agent = FakeCategoryAgent({"Merc": Category.OUTROS, "Mercado": Category.ALIMENTACAO})
        session = CategorySuggestionSession(agent, debounce_seconds=0.01)

        async def burst():
            first = asyncio.create_task(session.request("Merc"))
            await asyncio.sleep(0)
            second = asyncio.create_task(session.request("Mercado"))
            return await first, await second

        first, second = asyncio.run(burst())

        assert first is None
        assert second == Category.ALIMENTACAO
        assert agent.calls == ["Mercado"]
        assert session.latest == Category.ALIMENTACAO

    def test_late_response_is_discarded(self):
        """Test that a slow answer to an older request never overwrites a newer one."""
        agent = FakeCategoryAgent(
            {"Uber": Category.TRANSPORTE, "Uber Eats": Category.ALIMENTACAO},
            delays={"Uber": 0.05},
        )
        session = CategorySuggestionSession(agent, debounce_seconds=0)

        async def race():
            slow = asyncio.create_task(session.request("Uber"))
            await asyncio.sleep(0.01)
            fast = await session.request("Uber Eats")
            return await slow, fast

        slow, fast = asyncio.run(race())

        assert slow is None
        assert fast == Category.ALIMENTACAO
        assert session.latest == Category.ALIMENTACAO

    def test_none_keeps_previous_suggestion(self):
        agent = FakeCategoryAgent({"Mercado": Category.ALIMENTACAO})
        session = CategorySuggestionSession(agent, debounce_seconds=0)

        asyncio.run(session.request("Mercado"))
        assert asyncio.run(session.request("xyz")) is None
        assert session.latest == Category.ALIMENTACAO

    def test_reset_clears_latest(self):
        agent = FakeCategoryAgent({"Mercado": Category.ALIMENTACAO})
        session = CategorySuggestionSession(agent, debounce_seconds=0)
        asyncio.run(session.request("Mercado"))

        session.reset()
        assert session.latest is None

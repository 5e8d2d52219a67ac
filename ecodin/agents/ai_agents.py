"""
AI Agents for Ecodin

DESIGN DECISION: Gemini is asked for JSON and the answer is parsed into
pydantic models, so the rest of the app never handles free-form model text.

BOUNDARIES:

1. SUMMARY AGENT:
   - CAN: Summarize spending habits from figures we computed
   - CAN: Suggest ways to save, taking the savings goal into account
   - CANNOT: See individual transactions, only per-category totals
   - MUST: Raise AIServiceError instead of returning partial output

2. CATEGORY AGENT:
   - CAN: Suggest one expense category for a transaction name
   - CANNOT: Choose the income category
   - MUST: Return None when unsure, never raise

Quota accounting happens in the summary flow, not here.
"""

import json
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

import google.generativeai as genai
import structlog
from pydantic import ValidationError

from ecodin.config import get_settings
from ecodin.models.summary import MonthlySummary
from ecodin.models.transaction import EXPENSE_CATEGORIES, Category, parse_expense_category

logger = structlog.get_logger(__name__)

Number = Union[Decimal, float, int]


class AIServiceError(Exception):
    """The AI service failed or returned something we could not use."""
    pass


def _extract_json(text: str) -> dict:
    """Pull the first JSON object out of a model response."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ValueError("No JSON object in response")
    data = json.loads(text[start:end])
    if not isinstance(data, dict):
        raise ValueError("Response JSON is not an object")
    return data


def _format_amount(value: Number) -> str:
    return f"{Decimal(str(value)):.2f}"


class SummaryAgent:
    """
    Requests the monthly spending summary.

    RESPONSIBILITIES:
    - Build the Portuguese prompt from income, expenses and the goal
    - Parse the answer into a MonthlySummary
    """

    def __init__(self, model: Optional[Any] = None):
        """
        Args:
            model: Object exposing generate_content_async(prompt).
                   If None, a Gemini model is configured from settings.
        """
        if model is None:
            self._settings = get_settings().gemini
            self._configure_genai()
        else:
            self._model = model

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            }
        )

    def build_prompt(
        self,
        income: Number,
        expenses_by_category: Mapping[str, Number],
        savings_goal: Optional[Number] = None,
    ) -> str:
        expense_lines = "\n".join(
            f"- {category}: {_format_amount(amount)}"
            for category, amount in expenses_by_category.items()
        ) or "- (nenhuma)"
        goal_line = _format_amount(savings_goal) if savings_goal is not None else "não definida"

        return f"""Você é um consultor financeiro especializado em ajudar as pessoas a entender e melhorar seus hábitos de gastos mensais.

Com base nas informações financeiras fornecidas, sua tarefa é:
1. Gerar um resumo conciso e analítico dos hábitos de gastos do usuário.
2. Identificar as principais áreas de gastos e compará-las com a renda.
3. Fornecer uma lista de sugestões práticas e acionáveis para ajudar o usuário a economizar dinheiro.
4. Se uma meta de economia foi definida, leve-a em consideração ao fazer suas recomendações.

Forneça a resposta em português.

Renda: {_format_amount(income)}
Despesas:
{expense_lines}
Meta de economia: {goal_line}

Responda APENAS com um objeto JSON no formato:
{{"summary": "resumo", "suggestions": ["sugestão 1", "sugestão 2"]}}"""

    async def request_summary(
        self,
        income: Number,
        expenses_by_category: Mapping[str, Number],
        savings_goal: Optional[Number] = None,
    ) -> MonthlySummary:
        """
        Ask the model for a summary and savings suggestions.

        Raises:
            AIServiceError: On transport failure or malformed output
        """
        prompt = self.build_prompt(income, expenses_by_category, savings_goal)

        try:
            response = await self._model.generate_content_async(prompt)
            text = response.text.strip()
        except Exception as e:
            logger.error("summary_request_failed", error=str(e))
            raise AIServiceError(f"Summary request failed: {e}") from e

        try:
            return MonthlySummary.model_validate(_extract_json(text))
        except (ValueError, ValidationError) as e:
            logger.error("summary_response_invalid", error=str(e))
            raise AIServiceError(f"Malformed summary response: {e}") from e


class CategoryAgent:
    """
    Suggests an expense category from a transaction name.

    Any failure degrades to None: the user simply picks the category.
    """

    def __init__(self, model: Optional[Any] = None):
        self._min_length = get_settings().app.category_suggestion_min_length
        if model is None:
            self._settings = get_settings().gemini
            self._configure_genai()
        else:
            self._model = model

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": 0.1,  # Low temperature for consistency
                "max_output_tokens": 64,
                "response_mime_type": "application/json",
            }
        )

    @property
    def min_length(self) -> int:
        return self._min_length

    def build_prompt(self, transaction_name: str) -> str:
        categories = "\n".join(f"- {category.value}" for category in EXPENSE_CATEGORIES)

        return f"""You are a financial assistant. Based on the transaction name, suggest the most appropriate category from the list below.

Transaction Name: {transaction_name}

Categories:
{categories}

Respond with ONLY a JSON object: {{"category": "<one of the categories above>"}}"""

    async def suggest_category(self, transaction_name: str) -> Optional[Category]:
        name = (transaction_name or "").strip()
        if len(name) < self._min_length:
            return None

        try:
            response = await self._model.generate_content_async(self.build_prompt(name))
            data = _extract_json(response.text.strip())
        except Exception as e:
            logger.warning("category_suggestion_failed", error=str(e))
            return None

        category = parse_expense_category(data.get("category"))
        if category is None:
            logger.info("category_suggestion_unrecognized", raw=str(data.get("category")))
        return category

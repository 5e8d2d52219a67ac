"""
Debounced category suggestions.

The form asks for a suggestion while the user is still typing. Each
request waits for the debounce interval and then asks the agent; a
response is applied only if no newer request was made in the meantime.
"""

import asyncio
from typing import Optional

import structlog

from ecodin.agents.ai_agents import CategoryAgent
from ecodin.config import get_settings
from ecodin.models.transaction import Category

logger = structlog.get_logger(__name__)


class CategorySuggestionSession:
    """
    One session per form being edited.

    Stale responses are discarded by comparing a generation counter
    captured at request time with the current one.
    """

    def __init__(
        self,
        agent: CategoryAgent,
        debounce_seconds: Optional[float] = None,
    ):
        if debounce_seconds is None:
            debounce_seconds = get_settings().app.suggestion_debounce_seconds
        self._agent = agent
        self._debounce_seconds = debounce_seconds
        self._generation = 0
        self._latest: Optional[Category] = None

    @property
    def latest(self) -> Optional[Category]:
        """Last suggestion that was applied."""
        return self._latest

    @property
    def generation(self) -> int:
        return self._generation

    def reset(self) -> None:
        """Forget the current suggestion and invalidate in-flight requests."""
        self._generation += 1
        self._latest = None

    async def request(self, transaction_name: str) -> Optional[Category]:
        """
        Ask for a suggestion after the debounce interval.

        Returns the applied category, or None when the request was
        superseded or the agent had nothing to suggest.
        """
        self._generation += 1
        generation = self._generation

        if self._debounce_seconds > 0:
            await asyncio.sleep(self._debounce_seconds)
        if generation != self._generation:
            return None

        suggestion = await self._agent.suggest_category(transaction_name)
        if generation != self._generation:
            logger.debug("category_suggestion_discarded", generation=generation)
            return None

        if suggestion is not None:
            self._latest = suggestion
        return suggestion

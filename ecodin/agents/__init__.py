"""AI Agents package."""

from ecodin.agents.ai_agents import AIServiceError, CategoryAgent, SummaryAgent
from ecodin.agents.suggestions import CategorySuggestionSession

__all__ = [
    "AIServiceError",
    "CategoryAgent",
    "CategorySuggestionSession",
    "SummaryAgent",
]

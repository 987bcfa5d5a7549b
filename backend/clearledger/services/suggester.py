"""
External category suggester.

The suggester is an optional capability: when no credential is configured
``build_suggester`` returns ``None`` and categorization stays rule-only.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple

from clearledger.ai.client import AIClient
from clearledger.ai.prompts import CATEGORIZATION_SYSTEM, CATEGORIZATION_USER
from clearledger.config import Settings
from clearledger.money import from_cents

logger = logging.getLogger(__name__)

# (category name, category type)
CategoryChoice = Tuple[str, str]
# (payee, category name)
HistoryItem = Tuple[str, str]


@dataclass
class Suggestion:
    category_name: str
    confidence: float


class CategorySuggester(Protocol):
    async def suggest(
        self,
        payee: str,
        description: Optional[str],
        amount_cents: int,
        categories: Sequence[CategoryChoice],
        history: Sequence[HistoryItem],
    ) -> Optional[Suggestion]:
        ...


class LLMCategorySuggester:
    """Asks the configured LLM to pick one of the existing category names."""

    def __init__(self, client: AIClient, timeout_seconds: float = 20.0):
        self.client = client
        self.timeout_seconds = timeout_seconds

    async def suggest(
        self,
        payee: str,
        description: Optional[str],
        amount_cents: int,
        categories: Sequence[CategoryChoice],
        history: Sequence[HistoryItem],
    ) -> Optional[Suggestion]:
        category_lines = "\n".join(f"- {name} ({category_type})" for name, category_type in categories)
        if history:
            history_lines = "\n".join(f'- "{p}" -> {c}' for p, c in list(history)[:20])
        else:
            history_lines = "No history yet."

        system_prompt = CATEGORIZATION_SYSTEM.format(categories=category_lines, history=history_lines)
        user_prompt = CATEGORIZATION_USER.format(
            payee=payee,
            description=description or "N/A",
            amount=from_cents(abs(amount_cents)),
            direction="income/credit" if amount_cents >= 0 else "expense/debit",
        )

        try:
            result = await asyncio.wait_for(
                self.client.complete_json(
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    temperature=0.1,
                    max_tokens=200
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Category suggestion timed out for payee {payee!r}")
            return None
        except Exception as e:
            logger.warning(f"Category suggestion failed for payee {payee!r}: {e}")
            return None

        name = result.get("category_name") if isinstance(result, dict) else None
        if not name:
            return None
        try:
            confidence = float(result.get("confidence", 0))
        except (TypeError, ValueError):
            confidence = 0.0
        return Suggestion(category_name=str(name), confidence=max(0.0, min(confidence, 1.0)))


def build_suggester(config: Settings) -> Optional[CategorySuggester]:
    """Resolve the suggester capability once from settings."""
    if not config.ai_auto_categorize:
        return None
    client = AIClient(config)
    if not client.has_credentials:
        logger.info("No AI credentials configured; categorization is rule-only")
        return None
    return LLMCategorySuggester(client, timeout_seconds=config.suggester_timeout_seconds)


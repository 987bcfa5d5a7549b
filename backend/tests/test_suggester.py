"""Tests for the LLM-backed suggester and extractor adapters."""

import asyncio

from clearledger.config import Settings
from clearledger.services.extraction_service import LLMStatementExtractor, build_extractor
from clearledger.services.suggester import LLMCategorySuggester, Suggestion, build_suggester

CATEGORIES = [("Office Supplies", "expense"), ("Sales", "income")]


class FakeClient:
    """Stands in for AIClient.complete_json."""

    def __init__(self, result=None, error=None, delay=0.0):
        self.result = result
        self.error = error
        self.delay = delay
        self.prompts = []

    async def complete_json(self, system_prompt, user_prompt, temperature=0.1, max_tokens=1000):
        self.prompts.append((system_prompt, user_prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.result


def _suggest(client, timeout=5.0, history=()):
    suggester = LLMCategorySuggester(client, timeout_seconds=timeout)
    return asyncio.run(suggester.suggest("Staples", "STAPLES #1234", -5000, CATEGORIES, list(history)))


class TestLLMCategorySuggester:
    """Test the category suggester adapter."""

    def test_returns_suggestion(self):
        client = FakeClient({"category_name": "Office Supplies", "confidence": 0.82})
        assert _suggest(client) == Suggestion("Office Supplies", 0.82)

    def test_prompt_lists_categories_and_history(self):
        client = FakeClient({"category_name": "Office Supplies", "confidence": 0.5})
        _suggest(client, history=[("Staples", "Office Supplies")])

        system_prompt, user_prompt = client.prompts[0]
        assert "- Office Supplies (expense)" in system_prompt
        assert '"Staples" -> Office Supplies' in system_prompt
        assert "50.00" in user_prompt
        assert "expense/debit" in user_prompt

    def test_confidence_is_clamped(self):
        client = FakeClient({"category_name": "Sales", "confidence": 1.7})
        assert _suggest(client).confidence == 1.0

        client = FakeClient({"category_name": "Sales", "confidence": "high"})
        assert _suggest(client).confidence == 0.0

    def test_missing_category_is_no_suggestion(self):
        assert _suggest(FakeClient({"confidence": 0.9})) is None
        assert _suggest(FakeClient(["not", "a", "dict"])) is None

    def test_provider_error_is_no_suggestion(self):
        assert _suggest(FakeClient(error=RuntimeError("rate limited"))) is None

    def test_timeout_is_no_suggestion(self):
        client = FakeClient({"category_name": "Sales", "confidence": 0.9}, delay=0.5)
        assert _suggest(client, timeout=0.01) is None


class TestLLMStatementExtractor:
    """Test the statement extraction adapter."""

    def test_returns_payload(self):
        client = FakeClient({"transactions": []})
        extractor = LLMStatementExtractor(client)
        assert asyncio.run(extractor.extract("STATEMENT TEXT", "checking")) == {"transactions": []}
        assert "STATEMENT TEXT" in client.prompts[0][1]

    def test_error_returns_none(self):
        extractor = LLMStatementExtractor(FakeClient(error=ValueError("bad json")))
        assert asyncio.run(extractor.extract("STATEMENT TEXT", "checking")) is None


class TestBuild:
    """Test capability resolution from settings."""

    def test_no_credentials_means_rule_only(self):
        config = Settings(ai_provider="openai", openai_api_key=None, ai_auto_categorize=True)
        assert build_suggester(config) is None

    def test_disabled_by_flag(self):
        config = Settings(ai_provider="openai", openai_api_key="sk-test", ai_auto_categorize=False)
        assert build_suggester(config) is None

    def test_configured_provider(self):
        config = Settings(
            ai_provider="openai",
            openai_api_key="sk-test",
            ai_auto_categorize=True,
            suggester_timeout_seconds=3.0,
        )
        suggester = build_suggester(config)
        assert isinstance(suggester, LLMCategorySuggester)
        assert suggester.timeout_seconds == 3.0

    def test_extractor_follows_its_own_flag(self):
        config = Settings(ai_provider="openai", openai_api_key="sk-test", ai_extract_statements=False)
        assert build_extractor(config) is None
        config = Settings(ai_provider="openai", openai_api_key="sk-test", ai_extract_statements=True)
        assert isinstance(build_extractor(config), LLMStatementExtractor)

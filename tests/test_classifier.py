"""
Unit tests for article classification.

Keyword rules are checked directly; the AI classifier runs against a mocked
LLMClient so fallback behaviour can be exercised without network access.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from app.core.llm_client import LLMResponse
from app.news.classifier import (
    AIClassifier,
    Classification,
    KEYWORD_RULES,
    KeywordClassifier,
    build_classifier,
)


def _llm_returning(content: str) -> MagicMock:
    llm = MagicMock()
    llm.complete = AsyncMock(return_value=LLMResponse(
        content=content,
        input_tokens=40,
        output_tokens=20,
        total_tokens=60,
        model="gpt-4o-mini",
        cost_usd=0.0,
    ))
    return llm


@pytest.mark.unit
class TestKeywordClassifier:

    @pytest.mark.parametrize("text,category,sentiment", [
        ("Illegal logging racket busted", "deforestation", "negative"),
        ("Tree felling for highway halted", "deforestation", "negative"),
        ("Blaze engulfs Similipal reserve", "fire", "negative"),
        ("Tiger cubs spotted in Tadoba", "wildlife", "neutral"),
        ("Elephant poaching gang arrested", "wildlife", "negative"),
        ("Ministry notifies new wetland rules", "policy", "neutral"),
        ("Villagers plant 10,000 saplings", "conservation", "positive"),
        ("Monsoon arrives early this year", "conservation", "neutral"),
    ])
    def test_rules(self, text, category, sentiment):
        result = KeywordClassifier().classify_text(text)
        assert result == Classification(category=category, sentiment=sentiment)

    def test_rule_order(self):
        assert [rule.name for rule in KEYWORD_RULES] == [
            "deforestation", "fire", "wildlife", "policy", "conservation",
        ]

    def test_first_match_wins(self):
        # Mentions fire and wildlife: fire is checked first
        result = KeywordClassifier().classify_text("Wildlife flee forest fire")
        assert result.category == "fire"

    def test_kill_marks_wildlife_negative(self):
        result = KeywordClassifier().classify_text("Leopard killed by speeding truck in wildlife zone")
        assert result.category == "wildlife"
        assert result.sentiment == "negative"

    @pytest.mark.asyncio
    async def test_classify_joins_title_and_description(self):
        result = await KeywordClassifier().classify("Sanctuary update", "A tiger was sighted")
        assert result.category == "wildlife"
        assert result.summary is None

    @pytest.mark.asyncio
    async def test_classify_handles_missing_description(self):
        result = await KeywordClassifier().classify("Wildfire season begins", None)
        assert result.category == "fire"


class TestAIClassifier:

    @pytest.mark.asyncio
    async def test_uses_model_output(self):
        llm = _llm_returning(
            '{"category": "policy", "sentiment": "positive", "summary": "New forest act passed"}'
        )
        classifier = AIClassifier(llm=llm, fallback=KeywordClassifier())

        result = await classifier.classify("Parliament passes forest bill", "Details...")

        assert result == Classification("policy", "positive", "New forest act passed")
        kwargs = llm.complete.call_args.kwargs
        assert "Title: Parliament passes forest bill" in kwargs["prompt"]
        assert "deforestation|fire|conservation|wildlife|policy" in kwargs["system_prompt"]
        assert kwargs["json_mode"] is True

    @pytest.mark.asyncio
    async def test_accepts_fenced_json(self):
        llm = _llm_returning('```json\n{"category": "fire", "sentiment": "negative", "summary": "x"}\n```')
        result = await AIClassifier(llm, KeywordClassifier()).classify("t", "d")
        assert result.category == "fire"

    @pytest.mark.asyncio
    async def test_falls_back_on_provider_error(self):
        llm = MagicMock()
        llm.complete = AsyncMock(side_effect=Exception("HTTP 503"))
        classifier = AIClassifier(llm=llm, fallback=KeywordClassifier())

        result = await classifier.classify("Forest fire near Dehradun", "")

        assert result == Classification("fire", "negative")

    @pytest.mark.asyncio
    async def test_falls_back_on_non_json(self):
        llm = _llm_returning("This article is about fires.")
        result = await AIClassifier(llm, KeywordClassifier()).classify("Tiger reserve expands", "")
        assert result == Classification("wildlife", "neutral")

    @pytest.mark.asyncio
    async def test_falls_back_on_value_outside_enum(self):
        llm = _llm_returning('{"category": "climate", "sentiment": "negative", "summary": "x"}')
        result = await AIClassifier(llm, KeywordClassifier()).classify("Saplings planted", "")
        assert result == Classification("conservation", "positive")

    @pytest.mark.asyncio
    async def test_close_releases_llm_client(self):
        llm = _llm_returning("{}")
        llm.close = AsyncMock()

        await AIClassifier(llm, KeywordClassifier()).close()

        llm.close.assert_awaited_once()


@pytest.mark.unit
class TestBuildClassifier:

    def test_keyword_without_openai_key(self, make_settings):
        assert isinstance(build_classifier(make_settings()), KeywordClassifier)

    def test_ai_with_openai_key(self, make_settings):
        classifier = build_classifier(make_settings(openai_api_key="sk-test"))
        assert isinstance(classifier, AIClassifier)
        assert classifier.llm.model == "gpt-4o-mini"
        assert isinstance(classifier.fallback, KeywordClassifier)

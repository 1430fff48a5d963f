"""
Article classification (category + sentiment).

Two strategies behind one interface:
- KeywordClassifier: ordered keyword rules, deterministic, always available
- AIClassifier: one chat completion with a strict JSON contract; any failure
  (HTTP error, network error, non-JSON or out-of-range output) is logged and
  answered by the keyword classifier it wraps

build_classifier() picks the AI strategy only when an OpenAI key is set.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

from app.core.config import Settings
from app.core.llm_client import LLMClient
from app.core.models import NewsCategory, Sentiment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Classification:
    category: str
    sentiment: str
    summary: Optional[str] = None


@dataclass(frozen=True)
class KeywordRule:
    """
    One step of the keyword chain.

    keywords: any substring match selects the rule
    negative_markers: when set, sentiment is negative if any marker is present
        and the rule's own sentiment otherwise
    """
    name: str
    keywords: Tuple[str, ...]
    category: NewsCategory
    sentiment: Sentiment
    negative_markers: Tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)

    def apply(self, text: str) -> Classification:
        sentiment = self.sentiment
        if self.negative_markers and any(m in text for m in self.negative_markers):
            sentiment = Sentiment.NEGATIVE
        return Classification(category=self.category.value, sentiment=sentiment.value)


# Evaluated in order, first match wins. Reordering changes results: an article
# about a "wildlife fire" is a fire story because the fire rule comes first.
KEYWORD_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(
        name="deforestation",
        keywords=("deforest", "felling", "illegal logging"),
        category=NewsCategory.DEFORESTATION,
        sentiment=Sentiment.NEGATIVE,
    ),
    KeywordRule(
        name="fire",
        keywords=("fire", "blaze", "wildfire"),
        category=NewsCategory.FIRE,
        sentiment=Sentiment.NEGATIVE,
    ),
    KeywordRule(
        name="wildlife",
        keywords=("wildlife", "tiger", "elephant", "poach"),
        category=NewsCategory.WILDLIFE,
        sentiment=Sentiment.NEUTRAL,
        negative_markers=("poach", "kill"),
    ),
    KeywordRule(
        name="policy",
        keywords=("policy", "government", "ministry", "act", "law"),
        category=NewsCategory.POLICY,
        sentiment=Sentiment.NEUTRAL,
    ),
    KeywordRule(
        name="conservation",
        keywords=("plant", "green", "conserv", "restore"),
        category=NewsCategory.CONSERVATION,
        sentiment=Sentiment.POSITIVE,
    ),
)

DEFAULT_CLASSIFICATION = Classification(
    category=NewsCategory.CONSERVATION.value,
    sentiment=Sentiment.NEUTRAL.value,
)

CATEGORIZE_SYSTEM_PROMPT = (
    "Categorize this forest/environment news article. Return JSON: "
    '{"category":"deforestation|fire|conservation|wildlife|policy",'
    '"sentiment":"positive|negative|neutral","summary":"one line summary"}'
)

_CATEGORIES = {c.value for c in NewsCategory}
_SENTIMENTS = {s.value for s in Sentiment}


class Classifier(ABC):
    """Determines category and sentiment for a news item."""

    @abstractmethod
    async def classify(self, title: str, description: str) -> Classification:
        ...

    async def close(self) -> None:
        """Release any client the strategy holds."""


class KeywordClassifier(Classifier):
    """Deterministic classification from KEYWORD_RULES."""

    def __init__(self, rules: Tuple[KeywordRule, ...] = KEYWORD_RULES):
        self.rules = rules

    def classify_text(self, text: str) -> Classification:
        lower = text.lower()
        for rule in self.rules:
            if rule.matches(lower):
                return rule.apply(lower)
        return DEFAULT_CLASSIFICATION

    async def classify(self, title: str, description: str) -> Classification:
        return self.classify_text(f"{title or ''} {description or ''}")


class AIClassifier(Classifier):
    """Chat-model classification that degrades to a keyword classifier."""

    def __init__(self, llm: LLMClient, fallback: KeywordClassifier):
        self.llm = llm
        self.fallback = fallback

    async def close(self) -> None:
        await self.llm.close()

    async def classify(self, title: str, description: str) -> Classification:
        try:
            response = await self.llm.complete(
                prompt=f"Title: {title or ''}\nDescription: {description or ''}",
                system_prompt=CATEGORIZE_SYSTEM_PROMPT,
                json_mode=True,
            )
        except Exception as e:
            logger.warning(f"AI categorization failed, falling back to keywords: {e}")
            return await self.fallback.classify(title, description)

        result = _validate(response.parse_json())
        if result is None:
            logger.warning(
                f"AI categorization returned unusable output, falling back to keywords: "
                f"{response.content[:200]!r}"
            )
            return await self.fallback.classify(title, description)
        return result


def _validate(data: Optional[dict]) -> Optional[Classification]:
    """Accept the model output only if it honours the enumerated contract."""
    if not data:
        return None
    category = str(data.get("category", "")).strip().lower()
    sentiment = str(data.get("sentiment", "")).strip().lower()
    if category not in _CATEGORIES or sentiment not in _SENTIMENTS:
        return None
    summary = data.get("summary")
    return Classification(
        category=category,
        sentiment=sentiment,
        summary=str(summary) if summary else None,
    )


def build_classifier(settings: Settings, llm: Optional[LLMClient] = None) -> Classifier:
    """
    Select the classification strategy from the configured credentials.

    Args:
        settings: Application settings
        llm: Pre-built client (tests); built from settings when omitted
    """
    keyword = KeywordClassifier()
    if not settings.ai_classification_enabled:
        logger.info("OPENAI_API_KEY not set, using keyword classification")
        return keyword

    llm = llm or LLMClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        max_tokens=100,
        temperature=0.1,
        max_retries=1,
    )
    return AIClassifier(llm=llm, fallback=keyword)

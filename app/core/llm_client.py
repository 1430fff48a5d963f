"""
Async client for OpenAI-compatible chat completions.

One class serves both model integrations: article categorization talks to
OpenAI, photo verification talks to OpenRouter (base_url and headers
differ). Responses carry token usage and an estimated cost, and
LLMResponse.parse_json() tolerates the markdown fences models like to add.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


# USD per 1M tokens
MODEL_PRICING = {
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "google/gemini-2.0-flash-001": {"input": 0.10, "output": 0.40},
}

_FENCE_RE = re.compile(r"```json\n?|\n?```")


def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` fences a model may wrap around a JSON payload."""
    return _FENCE_RE.sub("", text).strip()


def build_messages(
    prompt: str,
    system_prompt: Optional[str] = None,
    image_url: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Chat messages for one prompt; with image_url the user turn is text + image parts."""
    messages: List[Dict[str, Any]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})

    user_content: Any = prompt
    if image_url:
        user_content = [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": image_url}},
        ]
    messages.append({"role": "user", "content": user_content})
    return messages


@dataclass
class LLMResponse:
    """Model output plus usage accounting."""

    content: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    model: str
    cost_usd: float
    raw_response: Any = None

    def parse_json(self) -> Optional[Dict]:
        """The content as a JSON object, or None if it is not one."""
        try:
            data = json.loads(strip_code_fences(self.content))
        except json.JSONDecodeError as e:
            logger.warning(f"Model output is not valid JSON: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Model output is JSON but not an object: {type(data).__name__}")
            return None
        return data


class LLMClient:
    """
    Chat completion client with retries and usage tracking.

    The AsyncOpenAI client is created on first use with its own retries
    disabled; complete() retries max_retries times with exponential backoff.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        max_tokens: int = 500,
        temperature: float = 0.1,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        default_headers: Optional[Dict[str, str]] = None,
    ):
        """
        Args:
            api_key: Provider API key
            model: Model name as the provider knows it
            base_url: OpenAI-compatible endpoint (None = api.openai.com)
            max_tokens: Response token cap
            temperature: Sampling temperature
            max_retries: Attempts per completion, including the first
            retry_delay: Base delay for the exponential backoff
            default_headers: Extra headers on every request (OpenRouter attribution)
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.default_headers = default_headers

        self._client: Optional[AsyncOpenAI] = None
        self._total_tokens_used = 0
        self._total_cost_usd = 0.0

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    @property
    def total_tokens_used(self) -> int:
        return self._total_tokens_used

    @property
    def total_cost_usd(self) -> float:
        return self._total_cost_usd

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                default_headers=self.default_headers,
                max_retries=0,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying AsyncOpenAI client and its connection pool."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _calculate_cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """Estimated USD cost; models missing from MODEL_PRICING cost 0."""
        pricing = MODEL_PRICING.get(model)
        if pricing is None:
            return 0.0
        return (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        json_mode: bool = False,
        image_url: Optional[str] = None,
    ) -> LLMResponse:
        """
        Run one chat completion.

        Args:
            prompt: User message
            system_prompt: Optional system message
            json_mode: Ask for response_format json_object
            image_url: Image attached to the user message (vision models)

        Raises:
            ValueError: No API key configured
            Exception: The provider's last error once retries are exhausted
        """
        if not self.is_available:
            raise ValueError("LLM client not available. Check that the API key is set.")

        request: Dict[str, Any] = {
            "model": self.model,
            "messages": build_messages(prompt, system_prompt, image_url),
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        client = self._get_client()
        for attempt in range(1, self.max_retries + 1):
            try:
                raw = await client.chat.completions.create(**request)
            except Exception as e:
                logger.warning(f"LLM request failed ({attempt}/{self.max_retries}): {e}")
                if attempt == self.max_retries:
                    raise
                await asyncio.sleep(self.retry_delay * (2 ** (attempt - 1)))
                continue

            response = self._to_response(raw)
            self._total_tokens_used += response.total_tokens
            self._total_cost_usd += response.cost_usd
            return response

    def _to_response(self, raw: Any) -> LLMResponse:
        content = (raw.choices[0].message.content or "") if raw.choices else ""
        usage = raw.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0
        return LLMResponse(
            content=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            model=raw.model or self.model,
            cost_usd=self._calculate_cost(self.model, input_tokens, output_tokens),
            raw_response=raw,
        )

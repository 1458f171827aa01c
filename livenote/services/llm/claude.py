"""
Claude LLM provider.

Talks to the Claude API through ``anthropic.AsyncAnthropic``. SDK errors are
mapped onto ``ConnectionError`` / ``TimeoutError`` so the retry policy and
upstream callers do not depend on SDK exception types.
"""

import asyncio
import logging

from anthropic import (
    APIConnectionError,
    APITimeoutError,
    AsyncAnthropic,
    RateLimitError,
)
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from livenote.core.config import get_settings
from livenote.services.llm.base import SUMMARY_SYSTEM_PROMPT, BaseLLM, build_summary_prompt

logger = logging.getLogger(__name__)


class ClaudeLLM(BaseLLM):
    """Claude provider with a concurrency cap and retries on transient errors."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int = 2048,
        temperature: float = 0.7,
        max_concurrent: int = 2,
    ) -> None:
        settings = get_settings()
        self._model = model or settings.claude_model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._client = AsyncAnthropic(api_key=api_key or settings.claude_api_key)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=16),
        retry=retry_if_exception_type((ConnectionError, TimeoutError)),
        reraise=True,
    )
    async def _call_api(
        self,
        user_prompt: str,
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        request: dict = {
            "model": self._model,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": self._temperature if temperature is None else temperature,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if system:
            request["system"] = system

        async with self._semaphore:
            try:
                response = await self._client.messages.create(**request)
            except APITimeoutError as exc:
                logger.warning("Claude API timeout: %s", exc)
                raise TimeoutError(f"Claude API request timed out: {exc}") from exc
            except (APIConnectionError, RateLimitError) as exc:
                logger.warning("Claude API unavailable: %s", exc)
                raise ConnectionError(f"Claude API unavailable: {exc}") from exc
            except Exception as exc:
                logger.error("Unexpected Claude API error: %s", exc)
                raise RuntimeError(f"Claude API error: {exc}") from exc

        return "".join(
            getattr(part, "text", "") for part in response.content
        )

    async def generate(self, prompt: str, **kwargs) -> str:
        return await self._call_api(
            user_prompt=prompt,
            system=kwargs.get("system"),
            temperature=kwargs.get("temperature"),
            max_tokens=kwargs.get("max_tokens"),
        )

    async def summarize(self, text: str, **kwargs) -> str:
        return await self._call_api(
            user_prompt=build_summary_prompt(text, kwargs.get("title")),
            system=SUMMARY_SYSTEM_PROMPT,
            temperature=kwargs.get("temperature", 0.3),
            max_tokens=kwargs.get("max_tokens"),
        )

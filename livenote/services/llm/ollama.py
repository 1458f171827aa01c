"""
Ollama LLM provider.

Uses ``ollama.AsyncClient`` against a locally running Ollama server, so
documents can be summarized without sending them to a hosted API.
"""

import logging

from ollama import AsyncClient, ResponseError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from livenote.core.config import get_settings
from livenote.services.llm.base import SUMMARY_SYSTEM_PROMPT, BaseLLM, build_summary_prompt

logger = logging.getLogger(__name__)


class OllamaLLM(BaseLLM):
    """Local Ollama provider; retries connection failures with backoff.

    Args:
        base_url: Ollama server URL (falls back to settings).
        model: Model name, e.g. "llama3.2".
        temperature: Default sampling temperature.
    """

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        temperature: float = 0.7,
    ) -> None:
        settings = get_settings()
        self._base_url = base_url or settings.ollama_base_url
        self._model = model or settings.ollama_model
        self._temperature = temperature
        self._client = AsyncClient(host=self._base_url)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=16),
        retry=retry_if_exception_type((ConnectionError, TimeoutError)),
        reraise=True,
    )
    async def _chat(
        self,
        messages: list[dict[str, str]],
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> str:
        options = {"temperature": self._temperature if temperature is None else temperature}
        try:
            response = await self._client.chat(
                model=self._model,
                messages=messages,
                options=options,
                format="json" if json_mode else "",
            )
        except (ConnectionError, TimeoutError) as exc:
            logger.warning("Ollama unreachable at %s: %s", self._base_url, exc)
            raise
        except ResponseError as exc:
            logger.error("Ollama response error: %s", exc)
            raise RuntimeError(f"Ollama error: {exc}") from exc
        except Exception as exc:
            logger.error("Unexpected Ollama error: %s", exc)
            raise RuntimeError(f"Ollama error: {exc}") from exc
        return response.message.content

    async def generate(self, prompt: str, **kwargs) -> str:
        messages: list[dict[str, str]] = []
        if kwargs.get("system"):
            messages.append({"role": "system", "content": kwargs["system"]})
        messages.append({"role": "user", "content": prompt})
        return await self._chat(messages, temperature=kwargs.get("temperature"))

    async def summarize(self, text: str, **kwargs) -> str:
        messages = [
            {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
            {"role": "user", "content": build_summary_prompt(text, kwargs.get("title"))},
        ]
        return await self._chat(
            messages, temperature=kwargs.get("temperature", 0.3), json_mode=True
        )

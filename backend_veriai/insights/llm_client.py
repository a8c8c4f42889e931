"""
Language Model Service client.

One deterministic chat completion per call (temperature 0, JSON object
response format). Every failure surfaces as LanguageModelError; the
synthesizer turns that into the fallback path.
"""

from __future__ import annotations

from typing import Protocol

import openai

from backend_veriai.core.exceptions import LanguageModelError
from backend_veriai.veriai_logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_TOKENS = 1500


class LanguageModel(Protocol):
    async def complete(self, system_prompt: str, user_prompt: str) -> str: ...


class OpenAIChatModel:
    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        timeout_sec: float = 60.0,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        if not api_key and client is None:
            raise ValueError("api_key must be non-empty")
        self._model = model
        self._max_tokens = max_tokens
        # Retries stay off: a failed call goes straight to the fallback
        self._client = client or openai.AsyncOpenAI(api_key=api_key, timeout=timeout_sec, max_retries=0)

    @property
    def model(self) -> str:
        return self._model

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=0,
                max_tokens=self._max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            logger.warning("llm_call_failed", model=self._model, error=str(e))
            raise LanguageModelError(f"{type(e).__name__}: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.warning("llm_empty_response", model=self._model)
            raise LanguageModelError("empty response from language model")
        logger.info("llm_response_received", model=self._model, chars=len(content))
        return content

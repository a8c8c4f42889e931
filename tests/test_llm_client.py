"""
Tests for the OpenAI chat client wrapper with a fake AsyncOpenAI client.
"""

from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

from backend_veriai.core.exceptions import LanguageModelError
from backend_veriai.insights.llm_client import OpenAIChatModel


class _FakeCompletions:
    def __init__(self, content: str | None = None, error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.kwargs: dict = {}

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions: _FakeCompletions) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


@pytest.mark.asyncio
async def test_complete_sends_deterministic_json_request():
    completions = _FakeCompletions(content='{"veracity": "MATCH"}')
    model = OpenAIChatModel("", "gpt-test", client=_client(completions))
    assert await model.complete("system", "user") == '{"veracity": "MATCH"}'
    assert completions.kwargs["model"] == "gpt-test"
    assert completions.kwargs["temperature"] == 0
    assert completions.kwargs["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in completions.kwargs["messages"]] == ["system", "user"]


@pytest.mark.asyncio
async def test_api_error_becomes_language_model_error():
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
    model = OpenAIChatModel("", "gpt-test", client=_client(_FakeCompletions(error=error)))
    with pytest.raises(LanguageModelError, match="APIConnectionError"):
        await model.complete("system", "user")


@pytest.mark.asyncio
async def test_empty_content_is_an_error():
    model = OpenAIChatModel("", "gpt-test", client=_client(_FakeCompletions(content="")))
    with pytest.raises(LanguageModelError):
        await model.complete("system", "user")


def test_api_key_required_without_client():
    with pytest.raises(ValueError):
        OpenAIChatModel("", "gpt-test")

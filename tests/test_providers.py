"""Tests for thinktank/providers with the SDK clients replaced. No real API calls."""

import asyncio
from dataclasses import replace
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from thinktank.providers.anthropic import AnthropicProvider
from thinktank.providers.base import ProviderError
from thinktank.providers.openai_provider import OpenAIProvider, chat_messages
from thinktank.providers.perplexity import PerplexityProvider


@pytest.fixture
def api_key(monkeypatch, sample_model_config):
    monkeypatch.setenv(sample_model_config.api_key_env, "sk-test")


def _chat_response(content, citations=None):
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=42),
    )
    if citations is not None:
        response.citations = citations
    return response


def _with_chat_client(provider, response=None, side_effect=None):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response, side_effect=side_effect)
    provider._client = client
    return client


def test_missing_api_key_raises(monkeypatch, sample_model_config):
    monkeypatch.delenv(sample_model_config.api_key_env, raising=False)
    with pytest.raises(ProviderError, match="Missing API key"):
        OpenAIProvider(sample_model_config)


def test_chat_messages_puts_system_first():
    assert chat_messages("hi", "persona") == [
        {"role": "system", "content": "persona"},
        {"role": "user", "content": "hi"},
    ]
    assert chat_messages("hi", "") == [{"role": "user", "content": "hi"}]


async def test_openai_generate(api_key, sample_model_config):
    provider = OpenAIProvider(sample_model_config)
    client = _with_chat_client(provider, _chat_response("An answer"))

    response = await provider.generate("Question", "Persona")

    assert response.content == "An answer"
    assert response.provider == "mock"
    assert response.model == "mock-model"
    assert response.token_count == 42
    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["messages"][0] == {"role": "system", "content": "Persona"}
    assert kwargs["temperature"] == 0.7


async def test_empty_content_raises(api_key, sample_model_config):
    provider = OpenAIProvider(sample_model_config)
    _with_chat_client(provider, _chat_response(""))
    with pytest.raises(ProviderError, match="Empty response content"):
        await provider.generate("Question")


async def test_sdk_errors_are_wrapped(api_key, sample_model_config):
    provider = OpenAIProvider(sample_model_config)
    _with_chat_client(provider, side_effect=RuntimeError("connection reset"))
    with pytest.raises(ProviderError, match="API call failed: connection reset"):
        await provider.generate("Question")


async def test_request_deadline(api_key, sample_model_config):
    provider = OpenAIProvider(replace(sample_model_config, timeout_sec=0.01))

    async def hang(**kwargs):
        await asyncio.sleep(9999)

    _with_chat_client(provider, side_effect=hang)
    with pytest.raises(ProviderError, match="timed out"):
        await provider.generate("Question")


def test_perplexity_requires_base_url(api_key, sample_model_config):
    with pytest.raises(ProviderError, match="base_url"):
        PerplexityProvider(sample_model_config)


async def test_perplexity_appends_citations(api_key, sample_model_config):
    config = replace(sample_model_config, base_url="https://api.perplexity.ai")
    provider = PerplexityProvider(config)
    urls = [f"https://example.com/{i}" for i in range(7)]
    client = _with_chat_client(provider, _chat_response("Mostly true.", citations=urls))

    response = await provider.generate("Check this")

    assert response.content.startswith("Mostly true.\n\nSOURCES:\n- https://example.com/0")
    assert response.content.count("- https://example.com/") == 5
    assert client.chat.completions.create.await_args.kwargs["temperature"] == 0.2


async def test_anthropic_joins_text_blocks(api_key, sample_model_config):
    provider = AnthropicProvider(sample_model_config)
    client = MagicMock()
    client.messages.create = AsyncMock(
        return_value=SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="First"),
                SimpleNamespace(type="tool_use", text=""),
                SimpleNamespace(type="text", text="Second"),
            ],
            usage=SimpleNamespace(input_tokens=3, output_tokens=4),
        )
    )
    provider._client = client

    response = await provider.generate("Question", "Persona")

    assert response.content == "First\nSecond"
    assert response.token_count == 7
    assert client.messages.create.await_args.kwargs["system"] == "Persona"


async def test_anthropic_without_text_raises(api_key, sample_model_config):
    provider = AnthropicProvider(sample_model_config)
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=SimpleNamespace(content=[], usage=None))
    provider._client = client
    with pytest.raises(ProviderError, match="No text blocks"):
        await provider.generate("Question")

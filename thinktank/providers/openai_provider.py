"""OpenAI provider using openai SDK with native async.

Also the base for OpenAI-compatible endpoints (``base_url`` in settings.yaml).
"""

from typing import Any

from openai import AsyncOpenAI

from thinktank.providers.base import ProviderError, SdkProvider


def chat_messages(prompt: str, system_prompt: str) -> list[dict[str, str]]:
    messages = [{"role": "system", "content": system_prompt}] if system_prompt else []
    messages.append({"role": "user", "content": prompt})
    return messages


class OpenAIProvider(SdkProvider):
    """OpenAI provider via openai SDK."""

    label = "OpenAI"

    def _make_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=self._config.base_url)

    def _content(self, response: Any, text: str) -> str:
        return text

    async def _complete(self, prompt: str, system_prompt: str) -> tuple[str, int | None]:
        response = await self._client.chat.completions.create(
            model=self._config.model,
            messages=chat_messages(prompt, system_prompt),
            max_tokens=self._config.max_tokens,
            temperature=self.temperature,
        )
        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content")
        token_count = response.usage.total_tokens if response.usage else None
        return self._content(response, choice.message.content), token_count

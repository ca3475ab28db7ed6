"""Anthropic Claude provider using anthropic SDK with native async."""

import anthropic as anthropic_sdk

from thinktank.providers.base import ProviderError, SdkProvider


class AnthropicProvider(SdkProvider):
    """Anthropic Claude provider via anthropic SDK."""

    label = "Anthropic"

    def _make_client(self, api_key: str) -> anthropic_sdk.AsyncAnthropic:
        return anthropic_sdk.AsyncAnthropic(api_key=api_key)

    async def _complete(self, prompt: str, system_prompt: str) -> tuple[str, int | None]:
        # the persona goes in the top-level system field, not as a message
        extra = {"system": system_prompt} if system_prompt else {}
        response = await self._client.messages.create(
            model=self._config.model,
            max_tokens=self._config.max_tokens,
            temperature=self.temperature,
            messages=[{"role": "user", "content": prompt}],
            **extra,
        )
        text_blocks = [b.text for b in (response.content or []) if b.type == "text"]
        if not text_blocks:
            raise ProviderError(self._config.name, "No text blocks in response")

        usage = response.usage
        token_count = usage.input_tokens + usage.output_tokens if usage else None
        return "\n".join(text_blocks), token_count

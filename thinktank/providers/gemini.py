"""Gemini provider using google-genai SDK with native async."""

from google import genai
from google.genai import types as genai_types

from thinktank.providers.base import ProviderError, SdkProvider


class GeminiProvider(SdkProvider):
    """Google Gemini provider via google-genai SDK."""

    label = "Gemini"

    def _make_client(self, api_key: str) -> genai.Client:
        return genai.Client(api_key=api_key)

    async def _complete(self, prompt: str, system_prompt: str) -> tuple[str, int | None]:
        response = await self._client.aio.models.generate_content(
            model=self._config.model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                max_output_tokens=self._config.max_tokens,
                system_instruction=system_prompt or None,
                temperature=self.temperature,
            ),
        )
        if not response.text:
            raise ProviderError(self._config.name, "Empty response text")
        metadata = response.usage_metadata
        return response.text, metadata.total_token_count if metadata else None

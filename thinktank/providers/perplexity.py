"""Perplexity provider using openai SDK (OpenAI-compatible API).

Perplexity answers with live web search; its citation URLs are appended to
the content so the analyst's fact checks carry their sources.
"""

import logging
from typing import Any

from config.config_loader import ModelConfig
from thinktank.providers.base import ProviderError
from thinktank.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

_MAX_CITATIONS = 5


class PerplexityProvider(OpenAIProvider):
    """Perplexity search-backed provider via OpenAI-compatible API."""

    label = "Perplexity"
    temperature = 0.2

    def __init__(self, config: ModelConfig) -> None:
        if not config.base_url:
            raise ProviderError(config.name, "base_url is required for Perplexity provider")
        super().__init__(config)

    def _content(self, response: Any, text: str) -> str:
        # citations is a Perplexity extension field, not part of the OpenAI schema
        citations = list(getattr(response, "citations", None) or [])[:_MAX_CITATIONS]
        logger.debug("Perplexity returned %d citations", len(citations))
        if not citations:
            return text
        return text + "\n\nSOURCES:\n" + "\n".join(f"- {url}" for url in citations)

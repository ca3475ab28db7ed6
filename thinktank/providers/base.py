"""Abstract base for all AI model providers."""

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Any

from config.config_loader import ModelConfig
from thinktank.models import ModelResponse

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'openai', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def generate(self, prompt: str, system_prompt: str = "") -> ModelResponse:
        """Generate a response for the given prompt.

        Args:
            prompt: The user-turn prompt text.
            system_prompt: Role persona plus session context.

        Returns:
            ModelResponse dataclass with content and metadata.

        Raises:
            ProviderError: On API failure, timeout, or invalid response.
        """
        ...


class SdkProvider(AIProvider):
    """Provider backed by a vendor SDK client.

    Subclasses build the client and issue one completion request; key lookup,
    the per-request deadline, timing and error wrapping live here.
    """

    label = "Provider"
    temperature = 0.7

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = self._make_client(api_key)

    @abstractmethod
    def _make_client(self, api_key: str) -> Any: ...

    @abstractmethod
    async def _complete(self, prompt: str, system_prompt: str) -> tuple[str, int | None]:
        """Return (content, token_count). Raise ProviderError for unusable replies."""
        ...

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate(self, prompt: str, system_prompt: str = "") -> ModelResponse:
        start = time.monotonic()
        try:
            content, token_count = await asyncio.wait_for(
                self._complete(prompt, system_prompt), timeout=self._config.timeout_sec
            )
        except ProviderError:
            raise
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start
        logger.info("%s %s: %.2fs, %s tokens", self.label, self._config.model, latency, token_count)

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            content=content,
            latency_sec=latency,
            token_count=token_count,
        )

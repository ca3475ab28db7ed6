"""Unit tests for thinktank/healthcheck.py, no real API calls."""

import asyncio
from unittest.mock import AsyncMock

import thinktank.healthcheck as hc
from thinktank.healthcheck import displaced_roles, run_health_checks
from thinktank.providers.base import ProviderError

from tests.conftest import MockProvider, make_response


async def test_all_providers_pass():
    """All providers succeed -> all marked ok, no errors."""
    providers = {
        "claude": MockProvider("claude", "OK"),
        "perplexity": MockProvider("perplexity", "OK"),
    }

    results = await run_health_checks(providers)

    assert results["claude"] == (True, "")
    assert results["perplexity"] == (True, "")


async def test_one_provider_fails():
    """A provider that raises returns ok=False with the error message."""
    providers = {
        "claude": MockProvider("claude", "OK"),
        "perplexity": MockProvider("perplexity"),
    }
    providers["perplexity"].generate = AsyncMock(side_effect=ProviderError("perplexity", "401 Unauthorized"))

    results = await run_health_checks(providers)

    assert results["claude"] == (True, "")
    ok, err = results["perplexity"]
    assert ok is False
    assert "401" in err


async def test_empty_reply_is_a_failure():
    providers = {"openai": MockProvider("openai")}
    providers["openai"].generate = AsyncMock(return_value=make_response("  ", "openai"))

    results = await run_health_checks(providers)

    assert results["openai"] == (False, "Empty response")


async def test_empty_providers():
    """Empty provider dict returns empty results."""
    assert await run_health_checks({}) == {}


async def test_timeout_counts_as_failure(monkeypatch):
    """A provider that hangs past the timeout is marked as failed."""
    providers = {"slow": MockProvider("slow")}

    async def hang(*args, **kwargs):
        await asyncio.sleep(9999)

    providers["slow"].generate = AsyncMock(side_effect=hang)
    monkeypatch.setattr(hc, "_TIMEOUT_SEC", 0.05)

    results = await run_health_checks(providers)

    ok, err = results["slow"]
    assert ok is False
    assert "No response" in err


def test_displaced_roles_lists_roles_on_failed_models():
    agents = {"proponent": "openai", "opponent": "claude", "analyst": "perplexity"}
    assert displaced_roles(agents, {"openai", "claude"}) == {"analyst": "perplexity"}
    assert displaced_roles(agents, {"openai", "claude", "perplexity"}) == {}

"""Tests for thinktank/agents.py."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from config.config_loader import GenerationConfig
from thinktank.agents import Agent, AgentTeam, build_team
from thinktank.errors import GenerationFailure
from thinktank.models import AgentContext, SolutionBrief
from thinktank.providers.base import ProviderError
from thinktank.ratelimit import RateLimiter
from tests.conftest import MockProvider, make_response


def _context(**kwargs) -> AgentContext:
    return AgentContext(session_id="s1", phase=4, **kwargs)


def _agent(provider, fallback=None, max_retries=2, backoff_sec=0.0, timeout=5.0, **kwargs) -> Agent:
    return Agent(
        role="proponent",
        persona="You are the PROPONENT.",
        provider=provider,
        generation=GenerationConfig(max_retries=max_retries, backoff_sec=backoff_sec, call_timeout_sec=timeout),
        fallback=fallback,
        **kwargs,
    )


async def test_respond_returns_provider_content():
    provider = MockProvider("openai", "A strong case.")
    assert await _agent(provider).respond("Make the case", _context()) == "A strong case."
    provider.generate.assert_awaited_once()


def test_system_prompt_includes_persona_problem_solutions_and_phase():
    agent = _agent(MockProvider())
    context = _context(
        problem_statement="Churn is rising",
        solutions=[SolutionBrief(id="x", title="Loyalty plan", description="Reward long-term users")],
    )
    prompt = agent.build_system_prompt(context)
    assert prompt.startswith("You are the PROPONENT.")
    assert "PROBLEM STATEMENT: Churn is rising" in prompt
    assert "- Loyalty plan: Reward long-term users" in prompt
    assert "CURRENT PHASE: Debate & Rebuttal" in prompt


async def test_retries_then_succeeds():
    provider = MockProvider("openai")
    provider.generate = AsyncMock(side_effect=[ProviderError("openai", "500"), make_response("Recovered")])
    assert await _agent(provider).respond("p", _context()) == "Recovered"
    assert provider.generate.await_count == 2


async def test_backoff_grows_linearly():
    provider = MockProvider("openai")
    provider.generate = AsyncMock(side_effect=ProviderError("openai", "down"))
    sleep = AsyncMock()
    agent = _agent(provider, max_retries=2, backoff_sec=1.5, sleep=sleep)
    with pytest.raises(GenerationFailure):
        await agent.respond("p", _context())
    assert [c.args[0] for c in sleep.await_args_list] == [1.5, 3.0]


async def test_falls_back_after_primary_exhausted():
    primary = MockProvider("openai")
    primary.generate = AsyncMock(side_effect=ProviderError("openai", "down"))
    fallback = MockProvider("claude", "From fallback")
    result = await _agent(primary, fallback=fallback, max_retries=1).respond("p", _context())
    assert result == "From fallback"
    assert primary.generate.await_count == 2
    fallback.generate.assert_awaited_once()


async def test_generation_failure_reports_attempts():
    primary = MockProvider("openai")
    primary.generate = AsyncMock(side_effect=ProviderError("openai", "down"))
    fallback = MockProvider("claude")
    fallback.generate = AsyncMock(side_effect=ProviderError("claude", "also down"))
    with pytest.raises(GenerationFailure) as exc_info:
        await _agent(primary, fallback=fallback, max_retries=1).respond("p", _context())
    assert exc_info.value.role == "proponent"
    assert exc_info.value.attempts == 3
    assert "also down" in exc_info.value.reason


async def test_empty_content_counts_as_failure():
    provider = MockProvider("openai", "   ")
    with pytest.raises(GenerationFailure) as exc_info:
        await _agent(provider, max_retries=0).respond("p", _context())
    assert "Empty response" in exc_info.value.reason


async def test_slow_provider_hits_call_deadline():
    provider = MockProvider("openai")

    async def slow(prompt, system_prompt=""):
        await asyncio.sleep(5)
        return make_response("too late")

    provider.generate = AsyncMock(side_effect=slow)
    with pytest.raises(GenerationFailure) as exc_info:
        await _agent(provider, max_retries=0, timeout=0.01).respond("p", _context())
    assert "No response within" in exc_info.value.reason


async def test_unexpected_exception_is_wrapped():
    provider = MockProvider("openai")
    provider.generate = AsyncMock(side_effect=RuntimeError("socket closed"))
    with pytest.raises(GenerationFailure) as exc_info:
        await _agent(provider, max_retries=0).respond("p", _context())
    assert "socket closed" in exc_info.value.reason


async def test_rate_limiter_is_acquired_per_call():
    class RecordingLimiter(RateLimiter):
        def __init__(self):
            self.keys = []

        async def acquire(self, key):
            self.keys.append(key)

    limiter = RecordingLimiter()
    await _agent(MockProvider(), rate_limiter=limiter).respond("p", _context())
    assert limiter.keys == ["proponent"]


def test_build_team_uses_configured_providers(sample_app_config):
    provider = MockProvider("mock")
    team = build_team(sample_app_config, {"mock": provider})
    assert team.proponent.provider is provider
    assert team.analyst.role == "analyst"
    assert team.providers() == {"mock": provider}


def test_build_team_substitutes_missing_provider(sample_app_config):
    sample_app_config.agents["analyst"] = "perplexity"
    other = MockProvider("other")
    team = build_team(sample_app_config, {"other": other})
    assert team.analyst.provider is other


def test_build_team_without_providers_raises(sample_app_config):
    with pytest.raises(ValueError):
        build_team(sample_app_config, {})


def test_team_requires_every_role(sample_prompts_config):
    with pytest.raises(ValueError, match="missing roles"):
        AgentTeam({"proponent": _agent(MockProvider())}, sample_prompts_config)


async def test_team_renders_role_prompts(team, mock_provider):
    solution = SolutionBrief(id="s", title="Remote-first", description="Default to remote")
    await team.rebut_proponent("Costs are high", solution, _context())
    prompt = mock_provider.generate.await_args.args[0]
    assert prompt == "REBUT_PROPONENT Costs are high || Remote-first: Default to remote"

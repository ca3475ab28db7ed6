"""Shared pytest fixtures."""

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AGENT_ROLES,
    AppConfig,
    DefaultsConfig,
    EvidenceConfig,
    GenerationConfig,
    ModelConfig,
    PromptsConfig,
)
from thinktank.agents import AgentTeam, build_team
from thinktank.debate import DebateEngine, build_engine
from thinktank.models import ModelResponse, Problem, Solution, WorkflowSession
from thinktank.providers.base import AIProvider
from thinktank.store.sqlite import SqliteDebateStore

# Each template opens with a marker so scripted providers can tell the turns apart.
TEST_TEMPLATES = {
    "facilitate": "FACILITATE {phase_intro}",
    "refine_problem": "REFINE {problem}",
    "generate_solutions": "SOLUTIONS {count} for {problem}",
    "advocate": "ADVOCATE {solution}",
    "rebut_opponent": "REBUT_OPPONENT {argument} || {solution}",
    "challenge": "CHALLENGE {solution}",
    "rebut_proponent": "REBUT_PROPONENT {argument} || {solution}",
    "fact_check": "FACT_CHECK {claim}",
    "round_summary": "ROUND_SUMMARY {round}: {proponent} vs {opponent}",
    "debate_summary": "DEBATE_SUMMARY {history}",
}

SCRIPTED_REPLIES = {
    "FACILITATE": "Welcome to the workshop. Let's keep the discussion focused.",
    "REFINE": "Refined: how do distributed teams keep shared context across time zones?",
    "SOLUTIONS": (
        "1. TITLE: Async Handbook\n"
        "SUMMARY: Write everything down in a shared handbook\n"
        "APPROACH: Templates and weekly review\n"
        "IMPACT: Fewer repeated questions\n"
        "2. TITLE: Overlap Hours\n"
        "SUMMARY: Two fixed hours of overlap per day\n"
        "APPROACH: Calendar policy\n"
        "IMPACT: Faster decisions\n"
    ),
    "ADVOCATE": (
        "Studies show that remote-first teams ship features faster than co-located teams. "
        "We should adopt it."
    ),
    "CHALLENGE": (
        "Research indicates that onboarding suffers badly without shared office time. "
        "The risks are real."
    ),
    "REBUT_OPPONENT": "The opposition overstates onboarding costs; structured mentoring fixes them.",
    "REBUT_PROPONENT": "Mentoring programs are expensive and rarely sustained over time.",
    "FACT_CHECK": "The claim is partially supported by surveys. CONFIDENCE LEVEL: 60%",
    "ROUND_SUMMARY": "Both sides traded points on productivity and onboarding.",
    "DEBATE_SUMMARY": (
        "Overall the debate was balanced.\n\n"
        "Key Findings\n"
        "- Remote work helps delivery speed\n"
        "- Onboarding needs deliberate support\n\n"
        "Recommendations\n"
        "- Pilot the handbook with one team\n\n"
        "Next Steps\n"
        "- Schedule a review in one month\n"
    ),
}


def make_response(content: str, provider: str = "mock") -> ModelResponse:
    return ModelResponse(
        provider=provider,
        model="mock-model",
        content=content,
        latency_sec=0.1,
        token_count=10,
    )


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=make_response(response_content, provider_name)
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(self, prompt: str, system_prompt: str = "") -> ModelResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return make_response(self._response_content, self._name)


def scripted_provider(overrides: dict[str, object] | None = None, provider_name: str = "mock") -> MockProvider:
    """MockProvider answering by prompt marker.

    An override value that is an exception instance is raised instead of
    answered, which lets a test fail one kind of turn only.
    """
    replies: dict[str, object] = {**SCRIPTED_REPLIES, **(overrides or {})}
    provider = MockProvider(provider_name)

    async def answer(prompt: str, system_prompt: str = "") -> ModelResponse:
        marker = prompt.split(" ", 1)[0]
        reply = replies.get(marker, "Generic reply")
        if isinstance(reply, BaseException):
            raise reply
        return make_response(str(reply), provider_name)

    provider.generate = AsyncMock(side_effect=answer)  # type: ignore[assignment]
    return provider


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="mock",
        sdk="test",
        model="mock-model",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        templates=dict(TEST_TEMPLATES),
        personas={role: f"You are the {role.upper()} agent." for role in AGENT_ROLES},
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        rounds=2,
        max_rounds=4,
        db_path=tmp_path / "thinktank.db",
        output_dir=tmp_path / "output",
        solutions_per_problem=2,
    )


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
    sample_model_config: ModelConfig,
) -> AppConfig:
    return AppConfig(
        defaults=sample_defaults_config,
        models={"mock": sample_model_config},
        prompts=sample_prompts_config,
        agents={role: "mock" for role in AGENT_ROLES},
        generation=GenerationConfig(max_retries=1, backoff_sec=0.0, call_timeout_sec=5.0),
        evidence=EvidenceConfig(),
        available_providers={"mock"},
    )


@pytest.fixture
def store() -> Iterator[SqliteDebateStore]:
    db = SqliteDebateStore(":memory:")
    yield db
    db.close()


@dataclass
class Seed:
    session: WorkflowSession
    problem: Problem
    solution: Solution


@pytest.fixture
def seeded(store: SqliteDebateStore) -> Seed:
    """A session with one approved problem and one solution."""
    session = store.create_session("Remote work policy")
    problem = store.create_problem(session.id, "Teams lose context across time zones", "approved")
    solution = store.create_solution(
        session.id, problem.id, "Remote-first", "Make remote the default way of working"
    )
    return Seed(session=session, problem=problem, solution=solution)


@pytest.fixture
def mock_provider() -> MockProvider:
    return scripted_provider()


@pytest.fixture
def team(sample_app_config: AppConfig, mock_provider: MockProvider) -> AgentTeam:
    return build_team(sample_app_config, {"mock": mock_provider})


@pytest.fixture
def engine(store: SqliteDebateStore, team: AgentTeam, sample_app_config: AppConfig) -> DebateEngine:
    return build_engine(store, team, sample_app_config)

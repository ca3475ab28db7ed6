"""Integration tests: real API calls, no mocks. Requires .env with 1+ API keys."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

load_dotenv()

# Skip entire module if no API key is set
_AVAILABLE_KEYS = [
    k for k in ["ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY", "PERPLEXITY_API_KEY"]
    if os.environ.get(k, "").strip()
]
pytestmark = pytest.mark.integration

if not _AVAILABLE_KEYS:
    pytestmark = pytest.mark.skip(reason="Need at least one provider API key")


async def test_one_round_debate_against_real_providers(tmp_path: Path):
    """Run a real 1-round debate with available providers, verify the stored result."""
    from config.config_loader import load_config
    from thinktank.agents import build_team
    from thinktank.cli import _build_all_providers
    from thinktank.debate import build_engine
    from thinktank.output import save_to_file
    from thinktank.store.sqlite import SqliteDebateStore

    config = load_config()
    providers = _build_all_providers(config)
    assert providers, "No providers could be built"

    store = SqliteDebateStore(tmp_path / "integration.db")
    try:
        session = store.create_session("Repository layout")
        problem = store.create_problem(
            session.id,
            "Should a small team use a monorepo or separate repos for Python microservices?",
            "approved",
        )
        solution = store.create_solution(
            session.id, problem.id, "Monorepo", "Keep every service in one repository with shared tooling"
        )
        engine = build_engine(store, build_team(config, providers), config)

        debate = await engine.start_debate(session.id, solution.id, 1)

        assert debate.status == "completed"
        assert len(debate.rounds) == 1
        assert debate.rounds[0].completed
        for argument in debate.rounds[0].arguments:
            assert argument.content, f"Empty {argument.role} argument"
        assert debate.winning_position in ("proponent", "opponent", "draw")

        saved = save_to_file(debate, tmp_path / "output", solution.title)
        content = saved.read_text(encoding="utf-8")
        assert "Think Tank Debate" in content
        assert "## Round 1" in content
    finally:
        store.close()

"""Tests for thinktank/evidence.py."""

from config.config_loader import EvidenceConfig
from thinktank.evidence import AnalystEvidenceGatherer, parse_confidence
from thinktank.models import AgentContext
from thinktank.providers.base import ProviderError
from tests.conftest import scripted_provider
from thinktank.agents import build_team


def test_parse_confidence():
    assert parse_confidence("Mostly true.\nCONFIDENCE LEVEL: 85%", 75) == 85
    assert parse_confidence("confidence level:40 %", 75) == 40
    assert parse_confidence("No explicit level", 75) == 75
    assert parse_confidence("CONFIDENCE LEVEL: 250%", 75) == 100


async def test_gather_builds_evidence_per_claim(team):
    gatherer = AnalystEvidenceGatherer(team, EvidenceConfig(default_relevance=80))
    gathered = await gatherer.gather(["Claim one is long enough", "Claim two"], AgentContext("s", 5))
    assert [g.claim for g in gathered] == ["Claim one is long enough", "Claim two"]
    assert all(g.confidence == 60 for g in gathered)
    assert all(g.relevance_score == 80 for g in gathered)


async def test_gather_truncates_snippet(sample_app_config):
    provider = scripted_provider({"FACT_CHECK": "x" * 900})
    team = build_team(sample_app_config, {"mock": provider})
    gathered = await AnalystEvidenceGatherer(team, EvidenceConfig(snippet_chars=500)).gather(
        ["A claim"], AgentContext("s", 5)
    )
    assert len(gathered[0].snippet) == 500
    assert gathered[0].confidence == 75


async def test_gather_skips_claims_that_fail(sample_app_config):
    provider = scripted_provider({"FACT_CHECK": ProviderError("mock", "quota exceeded")})
    team = build_team(sample_app_config, {"mock": provider})
    gathered = await AnalystEvidenceGatherer(team, EvidenceConfig()).gather(["A claim"], AgentContext("s", 5))
    assert gathered == []


async def test_gather_without_claims_makes_no_calls(team, mock_provider):
    assert await AnalystEvidenceGatherer(team, EvidenceConfig()).gather([], AgentContext("s", 5)) == []
    mock_provider.generate.assert_not_awaited()

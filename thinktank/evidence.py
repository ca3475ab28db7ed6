"""Evidence gathering: fact-check candidate claims through the analyst agent."""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence

from config.config_loader import EvidenceConfig
from thinktank.agents import AgentTeam
from thinktank.errors import GenerationFailure
from thinktank.models import AgentContext, GatheredEvidence

logger = logging.getLogger(__name__)

_CONFIDENCE_PATTERN = re.compile(r"CONFIDENCE\s+LEVEL:\s*(\d{1,3})\s*%", re.IGNORECASE)


def parse_confidence(text: str, default: int) -> int:
    """Confidence stated as ``CONFIDENCE LEVEL: NN%``, clamped to 0-100."""
    match = _CONFIDENCE_PATTERN.search(text)
    if match is None:
        return default
    return max(0, min(100, int(match.group(1))))


class EvidenceGatherer(ABC):
    @abstractmethod
    async def gather(self, claims: Sequence[str], context: AgentContext) -> list[GatheredEvidence]:
        """Evidence for as many claims as could be checked. Never raises on generation failure."""
        ...


class AnalystEvidenceGatherer(EvidenceGatherer):
    """Asks the analyst agent to fact-check each claim concurrently."""

    def __init__(self, team: AgentTeam, config: EvidenceConfig) -> None:
        self._team = team
        self._config = config

    async def _check(self, claim: str, context: AgentContext) -> GatheredEvidence | None:
        try:
            analysis = await self._team.fact_check(claim, context)
        except GenerationFailure as exc:
            logger.warning("Fact check skipped for claim %r: %s", claim[:60], exc)
            return None
        return GatheredEvidence(
            claim=claim,
            snippet=analysis[: self._config.snippet_chars],
            confidence=parse_confidence(analysis, self._config.default_confidence),
            relevance_score=self._config.default_relevance,
        )

    async def gather(self, claims: Sequence[str], context: AgentContext) -> list[GatheredEvidence]:
        if not claims:
            return []
        results = await asyncio.gather(*(self._check(c, context) for c in claims))
        gathered = [r for r in results if r is not None]
        logger.info("Gathered evidence for %d/%d claims", len(gathered), len(claims))
        return gathered

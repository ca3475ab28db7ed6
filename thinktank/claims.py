"""Claim extraction strategies: pick sentences worth fact-checking."""

import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence

from thinktank.models import Argument

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_MATCH_PREFIX_CHARS = 30

DEFAULT_HEDGE_PHRASES = (
    "studies show",
    "research indicates",
    "data suggests",
    "proven",
    "evidence",
)


class ClaimExtractor(ABC):
    """Strategy that turns argument text into candidate factual claims."""

    @abstractmethod
    def extract(self, texts: Iterable[str]) -> list[str]:
        """Return candidate claims, best first, at most the strategy's limit."""
        ...


class HedgePhraseExtractor(ClaimExtractor):
    """Sentences above a minimum length that contain an evidentiary phrase."""

    def __init__(
        self,
        phrases: Sequence[str] = DEFAULT_HEDGE_PHRASES,
        min_length: int = 30,
        max_claims: int = 3,
    ) -> None:
        self._phrases = tuple(p.lower() for p in phrases)
        self._min_length = min_length
        self._max_claims = max_claims

    def extract(self, texts: Iterable[str]) -> list[str]:
        claims: list[str] = []
        for text in texts:
            for sentence in _SENTENCE_SPLIT.split(text):
                sentence = sentence.strip()
                if len(sentence) <= self._min_length:
                    continue
                lowered = sentence.lower()
                if any(p in lowered for p in self._phrases) and sentence not in claims:
                    claims.append(sentence)
                if len(claims) >= self._max_claims:
                    return claims
        return claims


def match_argument(arguments: Sequence[Argument], claim: str) -> Argument | None:
    """First argument whose text contains the claim's opening substring."""
    prefix = claim.lower()[:_MATCH_PREFIX_CHARS]
    if not prefix:
        return None
    return next((a for a in arguments if prefix in a.content.lower()), None)

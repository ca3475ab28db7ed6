"""Argument strength model, consensus evaluation and winner determination.

Every derived number in a DebateSession comes from these functions, whether
the session is being built live or rebuilt from the store.

Strength composes additively: the vote ratio sets the base score and each
distinct piece of linked evidence adds its bounded boost on top. Because
boosts are never negative, applying them one at a time with a cap at 10
gives the same result as applying their sum once.
"""

from collections.abc import Iterable, Sequence

from thinktank.models import (
    NEUTRAL_SCORE,
    Argument,
    ConsensusLevel,
    EvidenceRecord,
    Round,
    WinningPosition,
)

MIN_SCORE = 0.0
MAX_SCORE = 10.0
MAX_EVIDENCE_BOOST = 3.0

# Round consensus thresholds
_MIN_ROUND_VOTES = 5
_HIGH_ROUND_MEAN = 7.0

# Session consensus thresholds (fraction of high-consensus rounds)
_HIGH_FRACTION = 0.6
_MODERATE_FRACTION = 0.3

_DRAW_MARGIN = 5.0


def clamp_score(score: float) -> float:
    return max(MIN_SCORE, min(MAX_SCORE, score))


def vote_score(upvotes: int, downvotes: int) -> float:
    """Base score from the vote ratio; neutral when nobody has voted."""
    total = upvotes + downvotes
    if total <= 0:
        return NEUTRAL_SCORE
    return clamp_score((upvotes / total) * 10)


def evidence_boost(confidence: float, relevance_score: float) -> float:
    """Boost for one evidence item: up to 2 for confidence, 1 for relevance."""
    boost = (confidence / 100) * 2 + (relevance_score / 100) * 1
    return max(0.0, min(MAX_EVIDENCE_BOOST, boost))


def strength_score(upvotes: int, downvotes: int, boosts: Iterable[float] = ()) -> float:
    return clamp_score(vote_score(upvotes, downvotes) + sum(boosts))


def argument_strength(upvotes: int, downvotes: int, evidence: Iterable[EvidenceRecord]) -> float:
    return strength_score(
        upvotes,
        downvotes,
        (evidence_boost(e.confidence, e.relevance_score) for e in evidence),
    )


def consensus_shift(score: float) -> float:
    return abs(score - NEUTRAL_SCORE)


def round_consensus(arguments: Sequence[Argument]) -> ConsensusLevel:
    """low under 5 total votes; high when mean strength exceeds 7."""
    if not arguments:
        return "low"
    total_votes = sum(a.upvotes + a.downvotes for a in arguments)
    if total_votes < _MIN_ROUND_VOTES:
        return "low"
    mean_score = sum(a.strength_score for a in arguments) / len(arguments)
    if mean_score > _HIGH_ROUND_MEAN:
        return "high"
    return "moderate"


def session_consensus(rounds: Sequence[Round]) -> ConsensusLevel:
    if not rounds:
        return "low"
    high_fraction = sum(1 for r in rounds if r.consensus_level == "high") / len(rounds)
    if high_fraction > _HIGH_FRACTION:
        return "high"
    if high_fraction > _MODERATE_FRACTION:
        return "moderate"
    return "low"


def role_totals(rounds: Sequence[Round]) -> tuple[float, float]:
    """Sum of strength + net votes per role. Returns (proponent, opponent)."""
    totals = {"proponent": 0.0, "opponent": 0.0}
    for rnd in rounds:
        for arg in rnd.arguments:
            totals[arg.role] += arg.strength_score + arg.upvotes - arg.downvotes
    return totals["proponent"], totals["opponent"]


def decide_winner(proponent_total: float, opponent_total: float) -> WinningPosition:
    if abs(proponent_total - opponent_total) < _DRAW_MARGIN:
        return "draw"
    return "proponent" if proponent_total > opponent_total else "opponent"


def determine_winner(rounds: Sequence[Round], round_count: int) -> WinningPosition | None:
    """Winner once all configured rounds are complete, else None."""
    completed = [r for r in rounds if r.completed]
    if round_count <= 0 or len(completed) < round_count or len(completed) != len(rounds):
        return None
    return decide_winner(*role_totals(rounds))

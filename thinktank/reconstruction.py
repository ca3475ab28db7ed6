"""Rebuild a DebateSession from stored arguments, votes, evidence and summaries.

The store is the only source of truth; every DebateSession handed to a
caller, live or historical, comes out of ``reconstruct``. Nothing here
writes to the store, so two calls without writes in between return equal
results.
"""

import logging
from collections.abc import Sequence

from thinktank import scoring
from thinktank.errors import NotFoundError
from thinktank.models import (
    ROLES,
    Argument,
    ArgumentRecord,
    ConsensusLevel,
    DebateSession,
    EvidenceRecord,
    Round,
)
from thinktank.store.base import DebateStore

logger = logging.getLogger(__name__)


def fallback_round_summary(round_number: int, argument_count: int, consensus: ConsensusLevel) -> str:
    return (
        f"Round {round_number}: Debate between proponent and opponent with "
        f"{argument_count} arguments. Consensus level: {consensus}."
    )


def derive_argument(record: ArgumentRecord, evidence: Sequence[EvidenceRecord]) -> Argument:
    """Derived view of one stored argument. Evidence ids are de-duplicated."""
    unique: dict[str, EvidenceRecord] = {}
    for item in evidence:
        unique.setdefault(item.id, item)
    return Argument(
        id=record.id,
        role=record.role,
        round_number=record.round_number,
        content=record.content,
        evidence_ids=sorted(unique),
        strength_score=scoring.argument_strength(record.upvotes, record.downvotes, unique.values()),
        upvotes=record.upvotes,
        downvotes=record.downvotes,
        rebuttal_to=record.rebuttal_to,
        degraded=record.degraded,
        created_at=record.created_at,
    )


def build_round(
    number: int,
    solution_id: str,
    arguments: list[Argument],
    stored_summary: str | None = None,
    summary_degraded: bool = False,
) -> Round:
    ordered = sorted(arguments, key=lambda a: ROLES.index(a.role))
    consensus = scoring.round_consensus(ordered)
    completed = all(any(a.role == role for a in ordered) for role in ROLES)
    summary = stored_summary or fallback_round_summary(number, len(ordered), consensus)
    return Round(
        number=number,
        solution_id=solution_id,
        arguments=ordered,
        summary=summary,
        consensus_level=consensus,
        completed=completed,
        degraded=summary_degraded or any(a.degraded for a in ordered),
    )


def reconstruct(store: DebateStore, session_id: str, solution_id: str | None = None) -> DebateSession:
    """Derive the full debate view for a session's solution.

    With no ``solution_id`` the most recently started debate of the session
    is used.

    Raises:
        NotFoundError: unknown session, or the session has no such debate.
    """
    if store.get_session(session_id) is None:
        raise NotFoundError("session", session_id)
    debate = store.get_debate(session_id, solution_id)
    if debate is None:
        raise NotFoundError("debate", f"{session_id}/{solution_id or '*'}")

    records = store.read_arguments_by_session(session_id, debate.solution_id)
    evidence_by_argument: dict[str, list[EvidenceRecord]] = {}
    for item in store.read_evidence_by_session(session_id):
        if item.argument_id is not None:
            evidence_by_argument.setdefault(item.argument_id, []).append(item)
    summaries = {s.round_number: s for s in store.read_round_summaries(session_id, debate.solution_id)}

    grouped: dict[int, list[Argument]] = {}
    voters: set[str] = set()
    for record in records:
        argument = derive_argument(record, evidence_by_argument.get(record.id, []))
        grouped.setdefault(record.round_number, []).append(argument)
        if record.upvotes or record.downvotes:
            voters.update(v.user_id for v in store.read_votes_by_argument(record.id))

    rounds: list[Round] = []
    warnings: list[str] = []
    for number in sorted(grouped):
        stored = summaries.get(number)
        rnd = build_round(
            number,
            debate.solution_id,
            grouped[number],
            stored_summary=stored.summary if stored else None,
            summary_degraded=stored.degraded if stored else False,
        )
        if rnd.degraded:
            warnings.append(f"Round {number} contains fallback content and can be re-generated")
        if not rnd.completed:
            warnings.append(f"Round {number} is missing an argument")
        rounds.append(rnd)

    session = DebateSession(
        session_id=session_id,
        solution_id=debate.solution_id,
        rounds=rounds,
        overall_consensus=scoring.session_consensus(rounds),
        winning_position=scoring.determine_winner(rounds, debate.round_count),
        total_votes=sum(a.total_votes for r in rounds for a in r.arguments),
        participant_count=len(voters),
        status=debate.status,
        round_count=debate.round_count,
        warnings=warnings,
    )
    logger.debug(
        "Reconstructed %s/%s: %d rounds, consensus=%s, winner=%s",
        session_id,
        debate.solution_id,
        len(rounds),
        session.overall_consensus,
        session.winning_position,
    )
    return session

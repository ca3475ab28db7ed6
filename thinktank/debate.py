"""Debate orchestration: round conductor, voting and evidence attachment."""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable

from config.config_loader import AppConfig, EvidenceConfig
from thinktank import scoring
from thinktank.agents import AgentTeam
from thinktank.claims import DEFAULT_HEDGE_PHRASES, ClaimExtractor, HedgePhraseExtractor, match_argument
from thinktank.errors import GenerationFailure, NotFoundError, ValidationError
from thinktank.evidence import AnalystEvidenceGatherer, EvidenceGatherer
from thinktank.models import (
    VOTE_TYPES,
    AgentContext,
    Argument,
    ArgumentRecord,
    DebateSession,
    EvidenceAttachment,
    EvidenceRecord,
    Role,
    Round,
    RoundSummaryRecord,
    SolutionBrief,
    VoteResult,
)
from thinktank.phases import Phase
from thinktank.reconstruction import build_round, derive_argument, fallback_round_summary, reconstruct
from thinktank.store.base import DebateStore

logger = logging.getLogger(__name__)

_PLACEHOLDER = (
    "[Placeholder] The {role} argument for round {round} could not be generated. "
    "It is kept so the round stays complete and can be re-generated later."
)


def placeholder_argument(role: Role, round_number: int) -> str:
    return _PLACEHOLDER.format(role=role, round=round_number)


def attach_to_argument(store: DebateStore, argument_id: str, evidence_id: str) -> EvidenceAttachment:
    """Link evidence once and report the boost it contributed.

    A repeat attach of the same pair changes nothing and reports a zero boost.
    """
    evidence, newly_linked = store.link_evidence(argument_id, evidence_id)
    record = store.get_argument(argument_id)
    if record is None:
        raise NotFoundError("argument", argument_id)
    score = scoring.argument_strength(
        record.upvotes, record.downvotes, store.read_evidence_by_argument(argument_id)
    )
    boost = scoring.evidence_boost(evidence.confidence, evidence.relevance_score) if newly_linked else 0.0
    if newly_linked:
        logger.info("Evidence %s attached to argument %s (+%.2f)", evidence_id, argument_id, boost)
    else:
        logger.debug("Evidence %s already attached to argument %s", evidence_id, argument_id)
    return EvidenceAttachment(
        argument_id=argument_id,
        evidence_id=evidence_id,
        strength_boost=boost,
        new_score=score,
        already_attached=not newly_linked,
    )


def _latest_opponent(prior_rounds: list[Round]) -> Argument | None:
    for rnd in reversed(prior_rounds):
        argument = rnd.argument_for("opponent")
        if argument is not None:
            return argument
    return None


class RoundConductor:
    """Runs one debate round end to end and returns it as stored."""

    def __init__(
        self,
        store: DebateStore,
        team: AgentTeam,
        gatherer: EvidenceGatherer,
        extractor: ClaimExtractor,
        max_gathered: int = 2,
    ) -> None:
        self._store = store
        self._team = team
        self._gatherer = gatherer
        self._extractor = extractor
        self._max_gathered = max_gathered

    async def _generate(self, role: Role, round_number: int, call: Awaitable[str]) -> tuple[str, bool]:
        """Returns (text, degraded)."""
        try:
            return await call, False
        except GenerationFailure as exc:
            logger.warning(
                "Round %d %s argument degraded to placeholder, flagged for re-run: %s",
                round_number,
                role,
                exc,
            )
            return placeholder_argument(role, round_number), True

    async def conduct_round(
        self,
        session_id: str,
        round_number: int,
        solution: SolutionBrief,
        prior_rounds: list[Round],
        context: AgentContext,
    ) -> Round:
        """Generate, persist, fact-check and summarise one round.

        Both arguments are written in a single transaction after both texts
        exist, so a round cancelled during generation leaves no trace.
        """
        target = _latest_opponent(prior_rounds) if round_number > 1 else None
        if target is None:
            proponent_call = self._team.advocate(solution, context)
        else:
            proponent_call = self._team.rebut_opponent(target.content, solution, context)
        proponent_text, proponent_degraded = await self._generate("proponent", round_number, proponent_call)

        if round_number == 1:
            opponent_call = self._team.challenge(solution, context)
        else:
            opponent_call = self._team.rebut_proponent(proponent_text, solution, context)
        opponent_text, opponent_degraded = await self._generate("opponent", round_number, opponent_call)

        proponent = ArgumentRecord(
            id=str(uuid.uuid4()),
            session_id=session_id,
            solution_id=solution.id,
            role="proponent",
            round_number=round_number,
            content=proponent_text,
            rebuttal_to=target.id if target else None,
            degraded=proponent_degraded,
        )
        opponent = ArgumentRecord(
            id=str(uuid.uuid4()),
            session_id=session_id,
            solution_id=solution.id,
            role="opponent",
            round_number=round_number,
            content=opponent_text,
            rebuttal_to=proponent.id,
            degraded=opponent_degraded,
        )
        self._store.create_arguments([proponent, opponent])
        logger.info("Round %d arguments persisted for solution %s", round_number, solution.id)

        await self._attach_evidence(session_id, [proponent, opponent], context)

        arguments = self._refresh(solution.id, session_id, round_number)
        consensus = scoring.round_consensus(arguments)
        summary, summary_degraded = await self._summarize(
            round_number, proponent, opponent, arguments, consensus, context
        )
        self._store.save_round_summary(
            RoundSummaryRecord(
                session_id=session_id,
                solution_id=solution.id,
                round_number=round_number,
                summary=summary,
                degraded=summary_degraded,
            )
        )
        rnd = build_round(round_number, solution.id, arguments, summary, summary_degraded)
        logger.info(
            "Round %d complete: consensus=%s degraded=%s", round_number, rnd.consensus_level, rnd.degraded
        )
        return rnd

    async def _attach_evidence(
        self, session_id: str, records: list[ArgumentRecord], context: AgentContext
    ) -> None:
        usable = [r for r in records if not r.degraded]
        claims = self._extractor.extract(r.content for r in usable)[: self._max_gathered]
        if not claims:
            return
        gathered = await self._gatherer.gather(claims, context)
        candidates = [derive_argument(r, []) for r in usable]
        for item in gathered:
            target = match_argument(candidates, item.claim)
            if target is None:
                logger.debug("No argument matches claim %r, discarding evidence", item.claim[:60])
                continue
            evidence = self._store.create_evidence(
                EvidenceRecord(
                    id=str(uuid.uuid4()),
                    session_id=session_id,
                    claim=item.claim,
                    snippet=item.snippet,
                    confidence=item.confidence,
                    relevance_score=item.relevance_score,
                )
            )
            attach_to_argument(self._store, target.id, evidence.id)

    def _refresh(self, solution_id: str, session_id: str, round_number: int) -> list[Argument]:
        records = [
            r
            for r in self._store.read_arguments_by_session(session_id, solution_id)
            if r.round_number == round_number
        ]
        return [derive_argument(r, self._store.read_evidence_by_argument(r.id)) for r in records]

    async def _summarize(
        self,
        round_number: int,
        proponent: ArgumentRecord,
        opponent: ArgumentRecord,
        arguments: list[Argument],
        consensus: str,
        context: AgentContext,
    ) -> tuple[str, bool]:
        try:
            summary = await self._team.summarize_round(round_number, proponent.content, opponent.content, context)
            return summary, False
        except GenerationFailure as exc:
            logger.warning("Round %d summary fell back to template: %s", round_number, exc)
            return fallback_round_summary(round_number, len(arguments), consensus), True


class DebateEngine:
    """Request/response surface over the store: debates, votes and evidence."""

    def __init__(
        self, store: DebateStore, conductor: RoundConductor | None = None, max_rounds: int = 6
    ) -> None:
        self._store = store
        self._conductor = conductor
        self._max_rounds = max_rounds

    @property
    def store(self) -> DebateStore:
        return self._store

    def _debate_context(self, session_id: str, solution: SolutionBrief) -> AgentContext:
        problems = self._store.list_problems(session_id)
        approved = [p for p in problems if p.status == "approved"]
        chosen = (approved or problems or [None])[-1]
        return AgentContext(
            session_id=session_id,
            phase=int(Phase.DEBATE),
            problem_statement=chosen.statement if chosen else None,
            solutions=[solution],
        )

    async def start_debate(
        self,
        session_id: str,
        solution_id: str,
        round_count: int,
        on_round_complete: Callable[[Round], None] | None = None,
    ) -> DebateSession:
        """Run (or resume) the debate for one solution.

        Rounds already committed for this solution are kept and the debate
        continues after the last of them. On cancellation the debate is
        marked paused and the cancellation propagates.

        Raises:
            ValidationError: round_count outside 1..max_rounds, or fewer than
                the rounds already committed.
            NotFoundError: unknown session or solution.
        """
        if isinstance(round_count, bool) or not isinstance(round_count, int):
            raise ValidationError(f"round_count must be an integer, got {round_count!r}")
        if not 1 <= round_count <= self._max_rounds:
            raise ValidationError(f"round_count must be between 1 and {self._max_rounds}, got {round_count}")
        if self._conductor is None:
            raise ValidationError("No round conductor configured; debates need generation providers")
        if self._store.get_session(session_id) is None:
            raise NotFoundError("session", session_id)
        solution = self._store.get_solution(solution_id)
        if solution is None or solution.session_id != session_id:
            raise NotFoundError("solution", solution_id)

        brief = SolutionBrief(id=solution.id, title=solution.title, description=solution.objective)
        context = self._debate_context(session_id, brief)

        existing = self._store.get_debate(session_id, solution_id)
        prior_rounds: list[Round] = []
        if existing is not None:
            prior_rounds = [r for r in reconstruct(self._store, session_id, solution_id).rounds if r.completed]
            if len(prior_rounds) > round_count:
                raise ValidationError(
                    f"Debate already has {len(prior_rounds)} rounds, cannot shrink to {round_count}"
                )
        self._store.upsert_debate(session_id, solution_id, round_count)

        start = len(prior_rounds) + 1
        if start > 1:
            logger.info("Resuming debate %s/%s at round %d", session_id, solution_id, start)
        else:
            logger.info("Starting %d-round debate %s/%s", round_count, session_id, solution_id)

        try:
            for round_number in range(start, round_count + 1):
                rnd = await self._conductor.conduct_round(session_id, round_number, brief, prior_rounds, context)
                prior_rounds.append(rnd)
                if on_round_complete:
                    on_round_complete(rnd)
        except asyncio.CancelledError:
            self._store.set_debate_status(session_id, solution_id, "paused")
            logger.warning(
                "Debate %s/%s paused after %d committed rounds", session_id, solution_id, len(prior_rounds)
            )
            raise

        self._store.set_debate_status(session_id, solution_id, "completed")
        return reconstruct(self._store, session_id, solution_id)

    def vote(self, argument_id: str, vote_type: str, user_id: str) -> VoteResult:
        """Apply one user's vote and return the argument's new strength.

        Raises:
            ValidationError: unknown vote type or empty user id.
            NotFoundError: unknown argument.
            DuplicateVoteError: the user already voted on this argument.
        """
        if vote_type not in VOTE_TYPES:
            raise ValidationError(f"vote_type must be one of {', '.join(VOTE_TYPES)}, got {vote_type!r}")
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("user_id must be a non-empty string")
        if not argument_id:
            raise ValidationError("argument_id is required")

        record = self._store.record_vote(user_id, argument_id, vote_type)
        score = scoring.argument_strength(
            record.upvotes, record.downvotes, self._store.read_evidence_by_argument(argument_id)
        )
        logger.info(
            "Vote %s on %s by %s: %d up / %d down, score %.2f",
            vote_type,
            argument_id,
            user_id,
            record.upvotes,
            record.downvotes,
            score,
        )
        return VoteResult(
            argument_id=argument_id,
            vote_type=vote_type,
            user_id=user_id,
            new_score=score,
            consensus_shift=scoring.consensus_shift(score),
        )

    def attach_evidence(self, argument_id: str, evidence_id: str) -> EvidenceAttachment:
        if not argument_id or not evidence_id:
            raise ValidationError("argument_id and evidence_id are required")
        return attach_to_argument(self._store, argument_id, evidence_id)

    def record_evidence(
        self,
        session_id: str,
        claim: str,
        snippet: str,
        confidence: int,
        relevance_score: int,
        gathered_by: str = "analyst_agent",
    ) -> EvidenceRecord:
        """Persist a free-standing evidence item, not yet linked to any argument."""
        for label, value in (("confidence", confidence), ("relevance_score", relevance_score)):
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
                raise ValidationError(f"{label} must be an integer between 0 and 100, got {value!r}")
        if not claim.strip():
            raise ValidationError("claim must not be empty")
        if self._store.get_session(session_id) is None:
            raise NotFoundError("session", session_id)
        return self._store.create_evidence(
            EvidenceRecord(
                id=str(uuid.uuid4()),
                session_id=session_id,
                claim=claim,
                snippet=snippet,
                confidence=confidence,
                relevance_score=relevance_score,
                gathered_by=gathered_by,
            )
        )

    def get_debate_session(self, session_id: str, solution_id: str | None = None) -> DebateSession:
        return reconstruct(self._store, session_id, solution_id)


def build_engine(store: DebateStore, team: AgentTeam, config: AppConfig) -> DebateEngine:
    evidence_cfg: EvidenceConfig = config.evidence
    extractor = HedgePhraseExtractor(
        phrases=evidence_cfg.hedge_phrases or DEFAULT_HEDGE_PHRASES,
        min_length=evidence_cfg.min_sentence_length,
        max_claims=evidence_cfg.max_claims,
    )
    conductor = RoundConductor(
        store,
        team,
        AnalystEvidenceGatherer(team, evidence_cfg),
        extractor,
        max_gathered=evidence_cfg.max_gathered,
    )
    return DebateEngine(store, conductor, max_rounds=config.defaults.max_rounds)

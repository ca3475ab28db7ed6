"""Per-phase work for the six-phase workshop.

``process_phase`` runs whatever the session's current phase needs and
reports it; it never advances the session. Callers advance explicitly
with ``complete_phase`` once they accept the result.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable

from config.config_loader import AppConfig
from thinktank.agents import AgentTeam
from thinktank.claims import ClaimExtractor
from thinktank.debate import DebateEngine
from thinktank.errors import GenerationFailure, NotFoundError, ThinkTankError, ValidationError
from thinktank.evidence import EvidenceGatherer
from thinktank.models import AgentContext, PhaseResult, Problem, SolutionBrief, Summary, WorkflowSession
from thinktank.phases import Phase, complete_phase
from thinktank.solutions import parse_solutions, summary_sections
from thinktank.store.base import DebateStore

logger = logging.getLogger(__name__)


def get_session(store: DebateStore, session_id: str) -> WorkflowSession:
    session = store.get_session(session_id)
    if session is None:
        raise NotFoundError("session", session_id)
    return session


def submit_problem(store: DebateStore, session_id: str, statement: str, approved: bool = True) -> Problem:
    """Record a user-supplied problem statement for the session."""
    if not statement.strip():
        raise ValidationError("Problem statement must not be empty")
    get_session(store, session_id)
    return store.create_problem(session_id, statement.strip(), "approved" if approved else "pending")


def create_session(store: DebateStore, title: str, problem: str | None = None) -> WorkflowSession:
    if not title.strip():
        raise ValidationError("Session title must not be empty")
    session = store.create_session(title.strip())
    if problem:
        submit_problem(store, session.id, problem)
    logger.info("Created session %s: %s", session.id, session.title)
    return session


def advance_session(store: DebateStore, session_id: str, phase: int) -> WorkflowSession:
    """Leave ``phase`` and move to the next one.

    Raises:
        NotFoundError: unknown session.
        InvalidPhaseTransitionError: phase is not the current one, or out of range.
    """
    session = complete_phase(get_session(store, session_id), phase)
    store.update_session(session)
    logger.info(
        "Session %s completed phase %d (now phase %d, %s)",
        session_id,
        phase,
        session.current_phase,
        session.status,
    )
    return session


class PhaseOrchestrator:
    def __init__(
        self,
        store: DebateStore,
        team: AgentTeam,
        engine: DebateEngine,
        gatherer: EvidenceGatherer,
        extractor: ClaimExtractor,
        config: AppConfig,
    ) -> None:
        self._store = store
        self._team = team
        self._engine = engine
        self._gatherer = gatherer
        self._extractor = extractor
        self._config = config

    def _session(self, session_id: str) -> WorkflowSession:
        return get_session(self._store, session_id)

    def complete_phase(self, session_id: str, phase: int) -> WorkflowSession:
        return advance_session(self._store, session_id, phase)

    def _approved_problem(self, session_id: str) -> Problem | None:
        approved = [p for p in self._store.list_problems(session_id) if p.status == "approved"]
        return approved[-1] if approved else None

    def build_context(self, session_id: str, phase: Phase) -> AgentContext:
        problem = self._approved_problem(session_id)
        solutions = [
            SolutionBrief(id=s.id, title=s.title, description=s.objective)
            for s in self._store.list_solutions(session_id)
        ]
        history = [
            f"{a.role.upper()} (round {a.round_number}): {a.content}"
            for a in self._store.read_arguments_by_session(session_id)
        ]
        return AgentContext(
            session_id=session_id,
            phase=int(phase),
            problem_statement=problem.statement if problem else None,
            solutions=solutions,
            debate_history=history,
        )

    async def _best_effort(self, call: Awaitable[str], result: PhaseResult, label: str) -> str | None:
        try:
            text = await call
        except GenerationFailure as exc:
            logger.warning("Phase %d %s unavailable: %s", result.phase, label, exc)
            result.warnings.append(f"{label} unavailable: {exc.reason}")
            return None
        result.messages.append(text)
        return text

    # --- phase work ---

    async def process_phase(self, session_id: str, rounds: int | None = None) -> PhaseResult:
        """Run the current phase's work. ``rounds`` only applies to the debate phase.

        Raises:
            NotFoundError: unknown session.
            ValidationError: session completed, or the phase's inputs are missing.
        """
        session = self._session(session_id)
        if session.status == "completed":
            raise ValidationError(f"Session {session_id} is already completed")
        phase = Phase(session.current_phase)
        context = self.build_context(session_id, phase)
        result = PhaseResult(phase=int(phase))
        logger.info("Processing phase %d (%s) for session %s", phase, phase.name.lower(), session_id)

        if phase is Phase.DEBATE:
            if rounds is None:
                rounds = self._config.defaults.rounds
            await self._debate(session_id, context, result, rounds)
        else:
            handlers = {
                Phase.SETUP: self._setup,
                Phase.PROBLEM: self._problem,
                Phase.SOLUTION_GENERATION: self._solutions,
                Phase.EVIDENCE: self._evidence,
                Phase.SUMMARY: self._summary,
            }
            await handlers[phase](session_id, context, result)
        return result

    async def _setup(self, session_id: str, context: AgentContext, result: PhaseResult) -> None:
        await self._best_effort(self._team.facilitate(Phase.SETUP, context), result, "Facilitation")
        result.next_actions = ["Define the problem statement", "Set goals and constraints"]
        result.phase_complete = True

    async def _problem(self, session_id: str, context: AgentContext, result: PhaseResult) -> None:
        await self._best_effort(self._team.facilitate(Phase.PROBLEM, context), result, "Facilitation")
        problem = self._approved_problem(session_id)
        if problem is None:
            result.next_actions = ["Submit and approve a problem statement"]
            return
        await self._best_effort(
            self._team.refine_problem(problem.statement, context), result, "Problem refinement"
        )
        result.data["problem_id"] = problem.id
        result.next_actions = ["Review the refined problem", "Proceed to solution generation"]
        result.phase_complete = True

    async def _solutions(self, session_id: str, context: AgentContext, result: PhaseResult) -> None:
        problem = self._approved_problem(session_id)
        if problem is None:
            raise ValidationError("An approved problem statement is required before generating solutions")
        await self._best_effort(
            self._team.facilitate(Phase.SOLUTION_GENERATION, context), result, "Facilitation"
        )
        count = self._config.defaults.solutions_per_problem
        text = await self._best_effort(
            self._team.generate_solutions(problem.statement, count, context), result, "Solution generation"
        )
        if text is None:
            result.next_actions = ["Retry solution generation"]
            return

        created = [
            self._store.create_solution(
                session_id, problem.id, draft.title, draft.objective, draft.approach, draft.impact
            )
            for draft in parse_solutions(text, limit=count)
        ]
        logger.info("Stored %d solutions for session %s", len(created), session_id)
        result.data["solution_ids"] = [s.id for s in created]
        result.next_actions = ["Review the generated solutions", "Begin the debate"]
        result.phase_complete = bool(created)

    async def _debate(self, session_id: str, context: AgentContext, result: PhaseResult, rounds: int) -> None:
        solutions = self._store.list_solutions(session_id)
        if not solutions:
            raise ValidationError("At least one solution is required before the debate phase")
        await self._best_effort(self._team.facilitate(Phase.DEBATE, context), result, "Facilitation")

        outcomes = await asyncio.gather(
            *(self._engine.start_debate(session_id, s.id, rounds) for s in solutions),
            return_exceptions=True,
        )
        errors = [o for o in outcomes if isinstance(o, ThinkTankError)]
        if len(errors) == len(outcomes):
            raise errors[0]
        debates = []
        failed: list[str] = []
        for solution, outcome in zip(solutions, outcomes):
            if isinstance(outcome, ThinkTankError):
                logger.error("Debate for solution %s failed: %s", solution.id, outcome)
                result.warnings.append(f"{solution.id}: debate failed: {outcome}")
                failed.append(solution.id)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                debates.append(outcome)
                result.warnings.extend(f"{outcome.solution_id}: {w}" for w in outcome.warnings)
        result.data["debates"] = {d.solution_id: d for d in debates}
        result.data["failed_solution_ids"] = failed

        refreshed = self.build_context(session_id, Phase.DEBATE)
        await self._best_effort(
            self._team.summarize_debate(refreshed.debate_history, refreshed), result, "Debate summary"
        )
        if failed:
            result.next_actions = ["Retry the failed debates"]
            return
        result.next_actions = ["Vote on the arguments", "Gather evidence"]
        result.phase_complete = True

    async def _evidence(self, session_id: str, context: AgentContext, result: PhaseResult) -> None:
        await self._best_effort(self._team.facilitate(Phase.EVIDENCE, context), result, "Facilitation")
        # Rounds already fact-check and link their own claims; evidence found
        # here is recorded for the session only and never changes a score.
        contents = [r.content for r in self._store.read_arguments_by_session(session_id) if not r.degraded]
        claims = self._extractor.extract(contents)
        gathered = await self._gatherer.gather(claims, context)

        recorded: list[str] = []
        for item in gathered:
            evidence = self._engine.record_evidence(
                session_id, item.claim, item.snippet, item.confidence, item.relevance_score
            )
            recorded.append(evidence.id)
            result.messages.append(f"Evidence for: {item.claim}\n\n{item.snippet}")

        result.data["evidence_ids"] = recorded
        result.next_actions = ["Review evidence and findings", "Generate final summary"]
        result.phase_complete = True

    async def _summary(self, session_id: str, context: AgentContext, result: PhaseResult) -> None:
        await self._best_effort(self._team.facilitate(Phase.SUMMARY, context), result, "Facilitation")
        text = await self._best_effort(
            self._team.summarize_debate(context.debate_history, context), result, "Final summary"
        )
        if text is None:
            result.next_actions = ["Retry the final summary"]
            return

        findings, recommendations, next_steps = summary_sections(text)
        summary = self._store.create_summary(
            Summary(
                id=str(uuid.uuid4()),
                session_id=session_id,
                moderator_insights=text,
                key_findings=findings,
                recommendations=recommendations,
                next_steps=next_steps,
            )
        )
        result.data["summary_id"] = summary.id
        result.next_actions = ["Review final recommendations", "Plan implementation next steps"]
        result.phase_complete = True

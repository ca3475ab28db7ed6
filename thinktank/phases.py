"""Six-phase workshop state machine.

Setup -> Problem -> SolutionGeneration -> Debate -> Evidence -> Summary.
A phase is left only by completing it, one step at a time, in order.
"""

from dataclasses import replace
from enum import IntEnum

from thinktank.errors import InvalidPhaseTransitionError
from thinktank.models import WorkflowSession


class Phase(IntEnum):
    SETUP = 1
    PROBLEM = 2
    SOLUTION_GENERATION = 3
    DEBATE = 4
    EVIDENCE = 5
    SUMMARY = 6

    def is_terminal(self) -> bool:
        return self is Phase.SUMMARY

    def next_phase(self) -> "Phase | None":
        return PHASE_TRANSITIONS[self]

    @property
    def description(self) -> str:
        return PHASE_DESCRIPTIONS[self]


PHASE_TRANSITIONS: dict[Phase, Phase | None] = {
    Phase.SETUP: Phase.PROBLEM,
    Phase.PROBLEM: Phase.SOLUTION_GENERATION,
    Phase.SOLUTION_GENERATION: Phase.DEBATE,
    Phase.DEBATE: Phase.EVIDENCE,
    Phase.EVIDENCE: Phase.SUMMARY,
    Phase.SUMMARY: None,  # Terminal
}

PHASE_DESCRIPTIONS: dict[Phase, str] = {
    Phase.SETUP: "Session Setup - Establishing session parameters and participant roles",
    Phase.PROBLEM: "Problem Statement - Defining and refining the core problem to solve",
    Phase.SOLUTION_GENERATION: "Solution Generation - Creating and evaluating potential solutions",
    Phase.DEBATE: "Debate & Rebuttal - Structured argumentation between different perspectives",
    Phase.EVIDENCE: "Analysis & Evidence - Gathering facts and data to support arguments",
    Phase.SUMMARY: "Summary & Next Steps - Synthesizing conclusions and planning follow-up actions",
}

PHASE_INTROS: dict[Phase, str] = {
    Phase.SETUP: (
        "Welcome to this AI Think Tank session! Let's establish our session parameters. "
        "Please share the problem you'd like to explore and any specific goals or constraints."
    ),
    Phase.PROBLEM: (
        "Now let's clearly define our problem statement. Help ensure it's specific, "
        "actionable, and well-scoped for productive solution generation."
    ),
    Phase.SOLUTION_GENERATION: (
        "Time for solution generation! Coordinate with the Solution Agent to develop "
        "multiple innovative approaches to this problem."
    ),
    Phase.DEBATE: (
        "Let's begin structured debate. The Proponent and Opponent agents will examine each "
        "solution critically to identify strengths and address potential concerns."
    ),
    Phase.EVIDENCE: (
        "Now we'll gather evidence and analysis. The Analyst will research supporting data "
        "to help us make informed decisions about our solutions."
    ),
    Phase.SUMMARY: (
        "Let's synthesize our findings into a comprehensive summary with concrete next steps "
        "and implementation recommendations."
    ),
}


def complete_phase(session: WorkflowSession, phase: int) -> WorkflowSession:
    """Return the session after completing ``phase``; the input is not mutated.

    Raises:
        InvalidPhaseTransitionError: phase outside 1-6, not the current
            phase, or the session is already completed.
    """
    if not 1 <= phase <= len(Phase):
        raise InvalidPhaseTransitionError(session.current_phase, phase, "phase must be between 1 and 6")
    if session.status == "completed":
        raise InvalidPhaseTransitionError(session.current_phase, phase, "session already completed")
    current = Phase(session.current_phase)
    if phase != current:
        raise InvalidPhaseTransitionError(
            session.current_phase, phase, "phases must be completed in order, one at a time"
        )

    completed = session.completed_phases | {int(current)}
    following = current.next_phase()
    if following is None:
        return replace(session, completed_phases=completed, status="completed")
    return replace(session, current_phase=int(following), completed_phases=completed, status="in_progress")

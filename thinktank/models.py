"""Pure dataclasses for the think-tank debate pipeline. No logic, no deps."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

Role = Literal["proponent", "opponent"]
VoteType = Literal["up", "down"]
ConsensusLevel = Literal["low", "moderate", "high"]
WinningPosition = Literal["proponent", "opponent", "draw"]
DebateStatus = Literal["active", "completed", "paused"]
SessionStatus = Literal["draft", "in_progress", "completed"]

ROLES: tuple[Role, ...] = ("proponent", "opponent")
VOTE_TYPES: tuple[VoteType, ...] = ("up", "down")

NEUTRAL_SCORE = 5.0


@dataclass
class ModelResponse:
    provider: str          # "openai", "claude", "gemini", "perplexity"
    model: str             # actual model string used
    content: str
    latency_sec: float
    token_count: int | None


# --- Persisted record shapes -------------------------------------------------


@dataclass
class ArgumentRecord:
    id: str
    session_id: str
    solution_id: str
    role: Role
    round_number: int
    content: str
    rebuttal_to: str | None = None
    upvotes: int = 0
    downvotes: int = 0
    evidence_attached: bool = False
    degraded: bool = False
    created_at: str = ""


@dataclass
class EvidenceRecord:
    id: str
    session_id: str
    claim: str
    snippet: str
    confidence: int        # 0-100
    relevance_score: int   # 0-100
    argument_id: str | None = None
    source: str = "ai_analysis"
    gathered_by: str = "analyst_agent"
    created_at: str = ""


@dataclass
class Vote:
    user_id: str
    argument_id: str
    vote_type: VoteType
    created_at: str = ""


@dataclass
class RoundSummaryRecord:
    session_id: str
    solution_id: str
    round_number: int
    summary: str
    degraded: bool = False


@dataclass
class DebateRecord:
    session_id: str
    solution_id: str
    round_count: int
    status: DebateStatus = "active"
    created_at: str = ""


# --- Derived debate view -----------------------------------------------------


@dataclass
class Argument:
    id: str
    role: Role
    round_number: int
    content: str
    evidence_ids: list[str] = field(default_factory=list)
    strength_score: float = NEUTRAL_SCORE
    upvotes: int = 0
    downvotes: int = 0
    rebuttal_to: str | None = None
    degraded: bool = False
    created_at: str = ""

    @property
    def total_votes(self) -> int:
        return self.upvotes + self.downvotes


@dataclass
class Round:
    number: int
    solution_id: str
    arguments: list[Argument] = field(default_factory=list)
    summary: str = ""
    consensus_level: ConsensusLevel = "low"
    completed: bool = False
    degraded: bool = False

    def argument_for(self, role: Role) -> Argument | None:
        return next((a for a in self.arguments if a.role == role), None)


@dataclass
class DebateSession:
    session_id: str
    solution_id: str
    rounds: list[Round]
    overall_consensus: ConsensusLevel
    winning_position: WinningPosition | None
    total_votes: int
    participant_count: int
    status: DebateStatus
    round_count: int
    warnings: list[str] = field(default_factory=list)


@dataclass
class VoteResult:
    argument_id: str
    vote_type: VoteType
    user_id: str
    new_score: float
    consensus_shift: float   # distance of new_score from neutral


@dataclass
class EvidenceAttachment:
    argument_id: str
    evidence_id: str
    strength_boost: float    # 0.0 when the evidence was already attached
    new_score: float
    already_attached: bool = False


# --- Outer workflow ----------------------------------------------------------


@dataclass
class WorkflowSession:
    id: str
    title: str
    current_phase: int = 1
    completed_phases: set[int] = field(default_factory=set)
    status: SessionStatus = "draft"
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Problem:
    id: str
    session_id: str
    statement: str
    status: str = "pending"  # pending, approved, rejected
    created_at: str = ""


@dataclass
class Solution:
    id: str
    session_id: str
    problem_id: str
    title: str
    objective: str
    approach: str = ""
    impact: str = ""
    generated_by: str = "solution_agent"
    created_at: str = ""


@dataclass
class Summary:
    id: str
    session_id: str
    moderator_insights: str
    key_findings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    next_steps: list[str] = field(default_factory=list)
    outcome: str = "pending"
    created_at: str = ""


@dataclass
class SolutionBrief:
    id: str
    title: str
    description: str

    def describe(self) -> str:
        return f"{self.title}: {self.description}"


@dataclass
class AgentContext:
    session_id: str
    phase: int
    problem_statement: str | None = None
    solutions: list[SolutionBrief] = field(default_factory=list)
    debate_history: list[str] = field(default_factory=list)


@dataclass
class GatheredEvidence:
    claim: str
    snippet: str
    confidence: int
    relevance_score: int


@dataclass
class PhaseResult:
    phase: int
    messages: list[str] = field(default_factory=list)
    next_actions: list[str] = field(default_factory=list)
    phase_complete: bool = False
    data: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def utcnow() -> str:
    """ISO timestamp used for every created_at/updated_at column."""
    return datetime.now().isoformat(timespec="microseconds")

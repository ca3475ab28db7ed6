"""Abstract base for the persistent debate store."""

from abc import ABC, abstractmethod

from thinktank.models import (
    ArgumentRecord,
    DebateRecord,
    DebateStatus,
    EvidenceRecord,
    Problem,
    RoundSummaryRecord,
    Solution,
    Summary,
    Vote,
    VoteType,
    WorkflowSession,
)


class DebateStore(ABC):
    """Single source of truth for sessions, arguments, votes and evidence.

    Implementations must make record_vote, link_evidence and
    create_arguments indivisible: either every row they touch changes or
    none does. Concurrent callers on the same argument must never lose an
    update or let one user vote twice.
    """

    # --- workflow sessions ---

    @abstractmethod
    def create_session(self, title: str) -> WorkflowSession: ...

    @abstractmethod
    def get_session(self, session_id: str) -> WorkflowSession | None: ...

    @abstractmethod
    def update_session(self, session: WorkflowSession) -> WorkflowSession:
        """Persist phase/status fields. Raises NotFoundError for unknown ids."""
        ...

    # --- problems & solutions ---

    @abstractmethod
    def create_problem(self, session_id: str, statement: str, status: str = "pending") -> Problem: ...

    @abstractmethod
    def set_problem_status(self, problem_id: str, status: str) -> Problem: ...

    @abstractmethod
    def list_problems(self, session_id: str) -> list[Problem]: ...

    @abstractmethod
    def create_solution(
        self,
        session_id: str,
        problem_id: str,
        title: str,
        objective: str,
        approach: str = "",
        impact: str = "",
    ) -> Solution: ...

    @abstractmethod
    def get_solution(self, solution_id: str) -> Solution | None: ...

    @abstractmethod
    def list_solutions(self, session_id: str) -> list[Solution]: ...

    # --- debates ---

    @abstractmethod
    def upsert_debate(self, session_id: str, solution_id: str, round_count: int) -> DebateRecord:
        """Create or re-activate the debate for (session, solution)."""
        ...

    @abstractmethod
    def get_debate(self, session_id: str, solution_id: str | None = None) -> DebateRecord | None:
        """Debate for the solution, or the most recently started one."""
        ...

    @abstractmethod
    def set_debate_status(self, session_id: str, solution_id: str, status: DebateStatus) -> None: ...

    # --- arguments ---

    @abstractmethod
    def create_argument(self, record: ArgumentRecord) -> ArgumentRecord: ...

    @abstractmethod
    def create_arguments(self, records: list[ArgumentRecord]) -> list[ArgumentRecord]:
        """Insert several arguments in one transaction."""
        ...

    @abstractmethod
    def get_argument(self, argument_id: str) -> ArgumentRecord | None: ...

    @abstractmethod
    def read_arguments_by_session(
        self, session_id: str, solution_id: str | None = None
    ) -> list[ArgumentRecord]:
        """Arguments ordered by round, then proponent before opponent."""
        ...

    # --- votes ---

    @abstractmethod
    def record_vote(self, user_id: str, argument_id: str, vote_type: VoteType) -> ArgumentRecord:
        """Insert the vote and bump the matching counter atomically.

        Raises:
            NotFoundError: unknown argument.
            DuplicateVoteError: the user already voted on this argument.
        """
        ...

    @abstractmethod
    def read_votes_by_argument(self, argument_id: str) -> list[Vote]: ...

    # --- evidence ---

    @abstractmethod
    def create_evidence(self, record: EvidenceRecord) -> EvidenceRecord: ...

    @abstractmethod
    def get_evidence(self, evidence_id: str) -> EvidenceRecord | None: ...

    @abstractmethod
    def link_evidence(self, argument_id: str, evidence_id: str) -> tuple[EvidenceRecord, bool]:
        """Link evidence to an argument. Returns (evidence, newly_linked).

        Raises:
            NotFoundError: unknown argument or evidence.
            ValidationError: evidence already supports a different argument,
                or belongs to another session.
        """
        ...

    @abstractmethod
    def read_evidence_by_session(self, session_id: str) -> list[EvidenceRecord]: ...

    @abstractmethod
    def read_evidence_by_argument(self, argument_id: str) -> list[EvidenceRecord]: ...

    # --- summaries ---

    @abstractmethod
    def save_round_summary(self, record: RoundSummaryRecord) -> None: ...

    @abstractmethod
    def read_round_summaries(self, session_id: str, solution_id: str) -> list[RoundSummaryRecord]: ...

    @abstractmethod
    def create_summary(self, summary: Summary) -> Summary: ...

    @abstractmethod
    def get_summary(self, session_id: str) -> Summary | None: ...

    def close(self) -> None:
        """Release underlying resources. Default is a no-op."""

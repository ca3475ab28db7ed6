"""SQLite implementation of DebateStore.

One connection guarded by a re-entrant lock; writes that must be
indivisible run inside ``BEGIN IMMEDIATE`` so the write lock is taken
before the duplicate check, not after it.
"""

import json
import logging
import sqlite3
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from thinktank.errors import DuplicateVoteError, NotFoundError, StoreError, ValidationError
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
    utcnow,
)
from thinktank.store.base import DebateStore

logger = logging.getLogger(__name__)

_BUSY_TIMEOUT_SECONDS = 30.0  # SQLite busy timeout for concurrent access

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    current_phase INTEGER NOT NULL DEFAULT 1,
    completed_phases TEXT NOT NULL DEFAULT '[]',
    status TEXT NOT NULL DEFAULT 'draft',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS problems (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id),
    statement TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS solutions (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id),
    problem_id TEXT NOT NULL REFERENCES problems(id),
    title TEXT NOT NULL,
    objective TEXT NOT NULL,
    approach TEXT NOT NULL DEFAULT '',
    impact TEXT NOT NULL DEFAULT '',
    generated_by TEXT NOT NULL DEFAULT 'solution_agent',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS debates (
    session_id TEXT NOT NULL REFERENCES sessions(id),
    solution_id TEXT NOT NULL REFERENCES solutions(id),
    round_count INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL,
    PRIMARY KEY (session_id, solution_id)
);

CREATE TABLE IF NOT EXISTS arguments (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id),
    solution_id TEXT NOT NULL REFERENCES solutions(id),
    role TEXT NOT NULL CHECK (role IN ('proponent', 'opponent')),
    round_number INTEGER NOT NULL CHECK (round_number >= 1),
    content TEXT NOT NULL,
    rebuttal_to TEXT,
    upvotes INTEGER NOT NULL DEFAULT 0 CHECK (upvotes >= 0),
    downvotes INTEGER NOT NULL DEFAULT 0 CHECK (downvotes >= 0),
    evidence_attached INTEGER NOT NULL DEFAULT 0,
    degraded INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    UNIQUE (session_id, solution_id, round_number, role)
);

CREATE TABLE IF NOT EXISTS votes (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    argument_id TEXT NOT NULL REFERENCES arguments(id),
    vote_type TEXT NOT NULL CHECK (vote_type IN ('up', 'down')),
    created_at TEXT NOT NULL,
    UNIQUE (user_id, argument_id)
);

CREATE TABLE IF NOT EXISTS evidence (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id),
    argument_id TEXT REFERENCES arguments(id),
    claim TEXT NOT NULL,
    snippet TEXT NOT NULL,
    confidence INTEGER NOT NULL CHECK (confidence BETWEEN 0 AND 100),
    relevance_score INTEGER NOT NULL CHECK (relevance_score BETWEEN 0 AND 100),
    source TEXT NOT NULL DEFAULT 'ai_analysis',
    gathered_by TEXT NOT NULL DEFAULT 'analyst_agent',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS round_summaries (
    session_id TEXT NOT NULL,
    solution_id TEXT NOT NULL,
    round_number INTEGER NOT NULL,
    summary TEXT NOT NULL,
    degraded INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (session_id, solution_id, round_number)
);

CREATE TABLE IF NOT EXISTS summaries (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id),
    moderator_insights TEXT NOT NULL,
    sections TEXT NOT NULL,
    outcome TEXT NOT NULL DEFAULT 'pending',
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_arguments_session ON arguments(session_id, solution_id, round_number);
CREATE INDEX IF NOT EXISTS idx_evidence_session ON evidence(session_id);
CREATE INDEX IF NOT EXISTS idx_evidence_argument ON evidence(argument_id);
"""

_ARGUMENT_ORDER = "round_number, CASE role WHEN 'proponent' THEN 0 ELSE 1 END, created_at, id"


def _new_id() -> str:
    return str(uuid.uuid4())


def _session_from_row(row: sqlite3.Row) -> WorkflowSession:
    return WorkflowSession(
        id=row["id"],
        title=row["title"],
        current_phase=row["current_phase"],
        completed_phases=set(json.loads(row["completed_phases"])),
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _argument_from_row(row: sqlite3.Row) -> ArgumentRecord:
    return ArgumentRecord(
        id=row["id"],
        session_id=row["session_id"],
        solution_id=row["solution_id"],
        role=row["role"],
        round_number=row["round_number"],
        content=row["content"],
        rebuttal_to=row["rebuttal_to"],
        upvotes=row["upvotes"],
        downvotes=row["downvotes"],
        evidence_attached=bool(row["evidence_attached"]),
        degraded=bool(row["degraded"]),
        created_at=row["created_at"],
    )


def _evidence_from_row(row: sqlite3.Row) -> EvidenceRecord:
    return EvidenceRecord(
        id=row["id"],
        session_id=row["session_id"],
        argument_id=row["argument_id"],
        claim=row["claim"],
        snippet=row["snippet"],
        confidence=row["confidence"],
        relevance_score=row["relevance_score"],
        source=row["source"],
        gathered_by=row["gathered_by"],
        created_at=row["created_at"],
    )


def _problem_from_row(row: sqlite3.Row) -> Problem:
    return Problem(
        id=row["id"],
        session_id=row["session_id"],
        statement=row["statement"],
        status=row["status"],
        created_at=row["created_at"],
    )


def _solution_from_row(row: sqlite3.Row) -> Solution:
    return Solution(
        id=row["id"],
        session_id=row["session_id"],
        problem_id=row["problem_id"],
        title=row["title"],
        objective=row["objective"],
        approach=row["approach"],
        impact=row["impact"],
        generated_by=row["generated_by"],
        created_at=row["created_at"],
    )


def _debate_from_row(row: sqlite3.Row) -> DebateRecord:
    return DebateRecord(
        session_id=row["session_id"],
        solution_id=row["solution_id"],
        round_count=row["round_count"],
        status=row["status"],
        created_at=row["created_at"],
    )


class SqliteDebateStore(DebateStore):
    """DebateStore backed by a single SQLite database file (or ':memory:')."""

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(
                self._db_path,
                timeout=_BUSY_TIMEOUT_SECONDS,
                isolation_level=None,  # explicit BEGIN/COMMIT below
                check_same_thread=False,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys=ON;")
            if self._db_path != ":memory:":
                # WAL mode for better concurrent write performance
                self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise StoreError(f"Could not open debate store at {self._db_path}: {exc}") from exc
        logger.debug("Debate store ready: %s", self._db_path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise StoreError(f"Could not begin transaction: {exc}") from exc
            try:
                yield self._conn
            except sqlite3.IntegrityError:
                self._conn.execute("ROLLBACK")
                raise
            except sqlite3.Error as exc:
                self._conn.execute("ROLLBACK")
                raise StoreError(str(exc)) from exc
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._conn.execute("COMMIT")

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(str(exc)) from exc

    def _fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        rows = self._fetchall(sql, params)
        return rows[0] if rows else None

    # --- workflow sessions ---

    def create_session(self, title: str) -> WorkflowSession:
        now = utcnow()
        session = WorkflowSession(id=_new_id(), title=title, created_at=now, updated_at=now)
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO sessions (id, title, current_phase, completed_phases, status, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (session.id, title, session.current_phase, "[]", session.status, now, now),
            )
        return session

    def get_session(self, session_id: str) -> WorkflowSession | None:
        row = self._fetchone("SELECT * FROM sessions WHERE id = ?", (session_id,))
        return _session_from_row(row) if row else None

    def update_session(self, session: WorkflowSession) -> WorkflowSession:
        session.updated_at = utcnow()
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE sessions SET current_phase = ?, completed_phases = ?, status = ?, updated_at = ? "
                "WHERE id = ?",
                (
                    session.current_phase,
                    json.dumps(sorted(session.completed_phases)),
                    session.status,
                    session.updated_at,
                    session.id,
                ),
            )
            if cur.rowcount == 0:
                raise NotFoundError("session", session.id)
        return session

    # --- problems & solutions ---

    def create_problem(self, session_id: str, statement: str, status: str = "pending") -> Problem:
        problem = Problem(id=_new_id(), session_id=session_id, statement=statement, status=status, created_at=utcnow())
        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO problems (id, session_id, statement, status, created_at) VALUES (?, ?, ?, ?, ?)",
                    (problem.id, session_id, statement, status, problem.created_at),
                )
        except sqlite3.IntegrityError as exc:
            raise NotFoundError("session", session_id) from exc
        return problem

    def set_problem_status(self, problem_id: str, status: str) -> Problem:
        with self._transaction() as conn:
            cur = conn.execute("UPDATE problems SET status = ? WHERE id = ?", (status, problem_id))
            if cur.rowcount == 0:
                raise NotFoundError("problem", problem_id)
            row = conn.execute("SELECT * FROM problems WHERE id = ?", (problem_id,)).fetchone()
        return _problem_from_row(row)

    def list_problems(self, session_id: str) -> list[Problem]:
        rows = self._fetchall(
            "SELECT * FROM problems WHERE session_id = ? ORDER BY created_at, id", (session_id,)
        )
        return [_problem_from_row(r) for r in rows]

    def create_solution(
        self,
        session_id: str,
        problem_id: str,
        title: str,
        objective: str,
        approach: str = "",
        impact: str = "",
    ) -> Solution:
        solution = Solution(
            id=_new_id(),
            session_id=session_id,
            problem_id=problem_id,
            title=title,
            objective=objective,
            approach=approach,
            impact=impact,
            created_at=utcnow(),
        )
        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO solutions (id, session_id, problem_id, title, objective, approach, impact, "
                    "generated_by, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        solution.id,
                        session_id,
                        problem_id,
                        title,
                        objective,
                        approach,
                        impact,
                        solution.generated_by,
                        solution.created_at,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise NotFoundError("session or problem", f"{session_id}/{problem_id}") from exc
        return solution

    def get_solution(self, solution_id: str) -> Solution | None:
        row = self._fetchone("SELECT * FROM solutions WHERE id = ?", (solution_id,))
        return _solution_from_row(row) if row else None

    def list_solutions(self, session_id: str) -> list[Solution]:
        rows = self._fetchall(
            "SELECT * FROM solutions WHERE session_id = ? ORDER BY created_at, id", (session_id,)
        )
        return [_solution_from_row(r) for r in rows]

    # --- debates ---

    def upsert_debate(self, session_id: str, solution_id: str, round_count: int) -> DebateRecord:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO debates (session_id, solution_id, round_count, status, created_at) "
                "VALUES (?, ?, ?, 'active', ?) "
                "ON CONFLICT (session_id, solution_id) DO UPDATE SET round_count = excluded.round_count, "
                "status = 'active'",
                (session_id, solution_id, round_count, utcnow()),
            )
            row = conn.execute(
                "SELECT * FROM debates WHERE session_id = ? AND solution_id = ?", (session_id, solution_id)
            ).fetchone()
        return _debate_from_row(row)

    def get_debate(self, session_id: str, solution_id: str | None = None) -> DebateRecord | None:
        if solution_id is not None:
            row = self._fetchone(
                "SELECT * FROM debates WHERE session_id = ? AND solution_id = ?", (session_id, solution_id)
            )
        else:
            row = self._fetchone(
                "SELECT * FROM debates WHERE session_id = ? ORDER BY created_at DESC, solution_id LIMIT 1",
                (session_id,),
            )
        return _debate_from_row(row) if row else None

    def set_debate_status(self, session_id: str, solution_id: str, status: DebateStatus) -> None:
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE debates SET status = ? WHERE session_id = ? AND solution_id = ?",
                (status, session_id, solution_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError("debate", f"{session_id}/{solution_id}")

    # --- arguments ---

    def _insert_argument(self, conn: sqlite3.Connection, record: ArgumentRecord) -> None:
        if not record.created_at:
            record.created_at = utcnow()
        conn.execute(
            "INSERT INTO arguments (id, session_id, solution_id, role, round_number, content, rebuttal_to, "
            "upvotes, downvotes, evidence_attached, degraded, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.session_id,
                record.solution_id,
                record.role,
                record.round_number,
                record.content,
                record.rebuttal_to,
                record.upvotes,
                record.downvotes,
                int(record.evidence_attached),
                int(record.degraded),
                record.created_at,
            ),
        )

    def create_argument(self, record: ArgumentRecord) -> ArgumentRecord:
        return self.create_arguments([record])[0]

    def create_arguments(self, records: list[ArgumentRecord]) -> list[ArgumentRecord]:
        try:
            with self._transaction() as conn:
                for record in records:
                    self._insert_argument(conn, record)
        except sqlite3.IntegrityError as exc:
            raise ValidationError(f"Could not persist arguments: {exc}") from exc
        return records

    def get_argument(self, argument_id: str) -> ArgumentRecord | None:
        row = self._fetchone("SELECT * FROM arguments WHERE id = ?", (argument_id,))
        return _argument_from_row(row) if row else None

    def read_arguments_by_session(
        self, session_id: str, solution_id: str | None = None
    ) -> list[ArgumentRecord]:
        if solution_id is None:
            rows = self._fetchall(
                f"SELECT * FROM arguments WHERE session_id = ? ORDER BY {_ARGUMENT_ORDER}", (session_id,)
            )
        else:
            rows = self._fetchall(
                f"SELECT * FROM arguments WHERE session_id = ? AND solution_id = ? ORDER BY {_ARGUMENT_ORDER}",
                (session_id, solution_id),
            )
        return [_argument_from_row(r) for r in rows]

    # --- votes ---

    def record_vote(self, user_id: str, argument_id: str, vote_type: VoteType) -> ArgumentRecord:
        counter = "upvotes" if vote_type == "up" else "downvotes"
        try:
            with self._transaction() as conn:
                if conn.execute("SELECT 1 FROM arguments WHERE id = ?", (argument_id,)).fetchone() is None:
                    raise NotFoundError("argument", argument_id)
                existing = conn.execute(
                    "SELECT 1 FROM votes WHERE user_id = ? AND argument_id = ?", (user_id, argument_id)
                ).fetchone()
                if existing is not None:
                    raise DuplicateVoteError(user_id, argument_id)
                conn.execute(
                    "INSERT INTO votes (id, user_id, argument_id, vote_type, created_at) VALUES (?, ?, ?, ?, ?)",
                    (_new_id(), user_id, argument_id, vote_type, utcnow()),
                )
                conn.execute(f"UPDATE arguments SET {counter} = {counter} + 1 WHERE id = ?", (argument_id,))
                row = conn.execute("SELECT * FROM arguments WHERE id = ?", (argument_id,)).fetchone()
        except sqlite3.IntegrityError as exc:
            # unique (user_id, argument_id) raced past the explicit check
            raise DuplicateVoteError(user_id, argument_id) from exc
        return _argument_from_row(row)

    def read_votes_by_argument(self, argument_id: str) -> list[Vote]:
        rows = self._fetchall(
            "SELECT * FROM votes WHERE argument_id = ? ORDER BY created_at, id", (argument_id,)
        )
        return [
            Vote(user_id=r["user_id"], argument_id=r["argument_id"], vote_type=r["vote_type"], created_at=r["created_at"])
            for r in rows
        ]

    # --- evidence ---

    def create_evidence(self, record: EvidenceRecord) -> EvidenceRecord:
        if not record.created_at:
            record.created_at = utcnow()
        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO evidence (id, session_id, argument_id, claim, snippet, confidence, "
                    "relevance_score, source, gathered_by, created_at) VALUES (?, ?, NULL, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        record.id,
                        record.session_id,
                        record.claim,
                        record.snippet,
                        record.confidence,
                        record.relevance_score,
                        record.source,
                        record.gathered_by,
                        record.created_at,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise ValidationError(f"Could not persist evidence: {exc}") from exc
        record.argument_id = None
        return record

    def get_evidence(self, evidence_id: str) -> EvidenceRecord | None:
        row = self._fetchone("SELECT * FROM evidence WHERE id = ?", (evidence_id,))
        return _evidence_from_row(row) if row else None

    def link_evidence(self, argument_id: str, evidence_id: str) -> tuple[EvidenceRecord, bool]:
        with self._transaction() as conn:
            owner = conn.execute("SELECT session_id FROM arguments WHERE id = ?", (argument_id,)).fetchone()
            if owner is None:
                raise NotFoundError("argument", argument_id)
            row = conn.execute("SELECT * FROM evidence WHERE id = ?", (evidence_id,)).fetchone()
            if row is None:
                raise NotFoundError("evidence", evidence_id)
            evidence = _evidence_from_row(row)
            if evidence.session_id != owner["session_id"]:
                raise ValidationError(
                    f"Evidence {evidence_id} belongs to session {evidence.session_id}, "
                    f"argument {argument_id} to session {owner['session_id']}"
                )
            if evidence.argument_id == argument_id:
                return evidence, False
            if evidence.argument_id is not None:
                raise ValidationError(
                    f"Evidence {evidence_id} already supports argument {evidence.argument_id}"
                )
            conn.execute("UPDATE evidence SET argument_id = ? WHERE id = ?", (argument_id, evidence_id))
            conn.execute("UPDATE arguments SET evidence_attached = 1 WHERE id = ?", (argument_id,))
        evidence.argument_id = argument_id
        return evidence, True

    def read_evidence_by_session(self, session_id: str) -> list[EvidenceRecord]:
        rows = self._fetchall(
            "SELECT * FROM evidence WHERE session_id = ? ORDER BY created_at, id", (session_id,)
        )
        return [_evidence_from_row(r) for r in rows]

    def read_evidence_by_argument(self, argument_id: str) -> list[EvidenceRecord]:
        rows = self._fetchall(
            "SELECT * FROM evidence WHERE argument_id = ? ORDER BY created_at, id", (argument_id,)
        )
        return [_evidence_from_row(r) for r in rows]

    # --- summaries ---

    def save_round_summary(self, record: RoundSummaryRecord) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO round_summaries (session_id, solution_id, round_number, summary, degraded) "
                "VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT (session_id, solution_id, round_number) DO UPDATE SET "
                "summary = excluded.summary, degraded = excluded.degraded",
                (record.session_id, record.solution_id, record.round_number, record.summary, int(record.degraded)),
            )

    def read_round_summaries(self, session_id: str, solution_id: str) -> list[RoundSummaryRecord]:
        rows = self._fetchall(
            "SELECT * FROM round_summaries WHERE session_id = ? AND solution_id = ? ORDER BY round_number",
            (session_id, solution_id),
        )
        return [
            RoundSummaryRecord(
                session_id=r["session_id"],
                solution_id=r["solution_id"],
                round_number=r["round_number"],
                summary=r["summary"],
                degraded=bool(r["degraded"]),
            )
            for r in rows
        ]

    def create_summary(self, summary: Summary) -> Summary:
        if not summary.created_at:
            summary.created_at = utcnow()
        sections = {
            "key_findings": summary.key_findings,
            "recommendations": summary.recommendations,
            "next_steps": summary.next_steps,
        }
        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO summaries (id, session_id, moderator_insights, sections, outcome, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        summary.id,
                        summary.session_id,
                        summary.moderator_insights,
                        json.dumps(sections),
                        summary.outcome,
                        summary.created_at,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise NotFoundError("session", summary.session_id) from exc
        return summary

    def get_summary(self, session_id: str) -> Summary | None:
        row = self._fetchone(
            "SELECT * FROM summaries WHERE session_id = ? ORDER BY created_at DESC LIMIT 1", (session_id,)
        )
        if row is None:
            return None
        sections = json.loads(row["sections"])
        return Summary(
            id=row["id"],
            session_id=row["session_id"],
            moderator_insights=row["moderator_insights"],
            key_findings=list(sections.get("key_findings", [])),
            recommendations=list(sections.get("recommendations", [])),
            next_steps=list(sections.get("next_steps", [])),
            outcome=row["outcome"],
            created_at=row["created_at"],
        )

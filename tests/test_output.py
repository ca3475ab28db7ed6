"""Tests for thinktank/output.py."""

from pathlib import Path

import pytest

from thinktank.models import Argument, DebateSession, PhaseResult, Round, WorkflowSession
from thinktank.output import (
    _argument_stats,
    _preview,
    _slug,
    print_debate_session,
    print_phase_result,
    print_session_status,
    save_to_file,
)


def test_slug_basic():
    assert _slug("Should we go remote-first?") == "should-we-go-remote-first"


def test_slug_max_len():
    assert len(_slug("a" * 100)) <= 40


def test_slug_special_chars():
    result = _slug("API vs. SDK (2024)")
    assert "." not in result
    assert "(" not in result
    assert ")" not in result


def test_preview_truncates_words():
    assert _preview("one two three", words=2) == "one two..."
    assert _preview("one two", words=2) == "one two"


@pytest.fixture
def sample_debate() -> DebateSession:
    proponent = Argument(
        id="p1", role="proponent", round_number=1, content="Remote teams ship faster.",
        evidence_ids=["e1"], strength_score=7.0, upvotes=2,
    )
    opponent = Argument(
        id="o1", role="opponent", round_number=1, content="[Placeholder] missing.",
        degraded=True, rebuttal_to="p1",
    )
    rnd = Round(
        number=1,
        solution_id="sol-1",
        arguments=[proponent, opponent],
        summary="Round 1 summary",
        completed=True,
        degraded=True,
    )
    return DebateSession(
        session_id="sess-1",
        solution_id="sol-1",
        rounds=[rnd],
        overall_consensus="low",
        winning_position="draw",
        total_votes=2,
        participant_count=2,
        status="completed",
        round_count=1,
        warnings=["Round 1 contains fallback content and can be re-generated"],
    )


def test_argument_stats():
    argument = Argument(id="a", role="proponent", round_number=1, content="x", evidence_ids=["e"], degraded=True)
    assert _argument_stats(argument) == "score 5.0 | +0 / -0 | evidence 1 | placeholder"


def test_save_to_file_creates_file(tmp_path: Path, sample_debate: DebateSession):
    saved = save_to_file(sample_debate, tmp_path / "output", "Remote-first")
    assert saved.exists()
    assert saved.suffix == ".md"
    assert saved.name.endswith("_remote-first.md")


def test_save_to_file_creates_output_dir(tmp_path: Path, sample_debate: DebateSession):
    output_dir = tmp_path / "nested" / "output"
    assert not output_dir.exists()
    save_to_file(sample_debate, output_dir, "Remote-first")
    assert output_dir.exists()


def test_save_to_file_slug_override(tmp_path: Path, sample_debate: DebateSession):
    saved = save_to_file(sample_debate, tmp_path, "Remote-first", slug_override="custom")
    assert saved.name.endswith("_custom.md")


def test_save_to_file_content(tmp_path: Path, sample_debate: DebateSession):
    content = save_to_file(sample_debate, tmp_path, "Remote-first").read_text(encoding="utf-8")
    assert "# Think Tank Debate: Remote-first" in content
    assert "**Winner:** draw" in content
    assert "## Round 1" in content
    assert "### Proponent" in content
    assert "Remote teams ship faster." in content
    assert "**Round summary (low consensus):** Round 1 summary" in content
    assert "## Warnings" in content


def test_save_to_file_undecided_winner(tmp_path: Path, sample_debate: DebateSession):
    sample_debate.winning_position = None
    content = save_to_file(sample_debate, tmp_path, "Remote-first").read_text(encoding="utf-8")
    assert "**Winner:** undecided" in content


def test_print_functions_render(sample_debate: DebateSession, capsys):
    print_debate_session(sample_debate)
    print_phase_result(
        PhaseResult(phase=4, messages=["**Done**"], data={"debates": {"sol-1": sample_debate}}, phase_complete=True)
    )
    print_session_status(WorkflowSession(id="s", title="Remote", current_phase=2, completed_phases={1}), [])
    out = capsys.readouterr().out
    assert "Debate Outcome" in out
    assert "Winner: draw" in out
    assert "ready to advance" in out

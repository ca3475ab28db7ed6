"""Rich console output and markdown file save for debates and workshop phases."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from thinktank.models import Argument, DebateSession, PhaseResult, Round, Solution, WorkflowSession
from thinktank.phases import Phase

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_ROLE_STYLES = {"proponent": "green", "opponent": "red"}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _preview(text: str, words: int = 50) -> str:
    """Return first N words of a text."""
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _argument_stats(argument: Argument) -> str:
    stats = f"score {argument.strength_score:.1f} | +{argument.upvotes} / -{argument.downvotes}"
    if argument.evidence_ids:
        stats += f" | evidence {len(argument.evidence_ids)}"
    if argument.degraded:
        stats += " | placeholder"
    return stats


def print_round(rnd: Round) -> None:
    """Print one round's arguments and summary to the console."""
    label = f"[bold cyan]Round {rnd.number}[/bold cyan] (consensus: {rnd.consensus_level})"
    console.print(Rule(label))
    for argument in rnd.arguments:
        style = _ROLE_STYLES.get(argument.role, "dim")
        console.print(
            Panel(
                _preview(argument.content),
                title=f"[bold {style}]{argument.role.title()}[/bold {style}] {argument.id[:8]}",
                subtitle=_argument_stats(argument),
                border_style=style,
            )
        )
    console.print(Text(rnd.summary, style="dim"))


def print_debate_session(debate: DebateSession) -> None:
    """Print every round, then the consensus and winner line."""
    for rnd in debate.rounds:
        print_round(rnd)
    console.print(Rule("[bold green]Debate Outcome[/bold green]"))
    winner = debate.winning_position or "undecided"
    console.print(
        Text(
            f"Status: {debate.status} | "
            f"Rounds: {len(debate.rounds)}/{debate.round_count} | "
            f"Consensus: {debate.overall_consensus} | "
            f"Winner: {winner} | "
            f"Votes: {debate.total_votes} from {debate.participant_count} participants",
            style="bold",
        )
    )
    for warning in debate.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


def print_phase_result(result: PhaseResult) -> None:
    phase = Phase(result.phase)
    console.print(Rule(f"[bold cyan]Phase {result.phase}: {phase.name.replace('_', ' ').title()}[/bold cyan]"))
    for message in result.messages:
        console.print(Markdown(message))
    for debate in result.data.get("debates", {}).values():
        print_debate_session(debate)
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    if result.next_actions:
        console.print("[bold]Next:[/bold] " + "; ".join(result.next_actions))
    state = "[green]ready to advance[/green]" if result.phase_complete else "[yellow]not complete[/yellow]"
    console.print(f"Phase {result.phase} {state}")


def print_session_status(session: WorkflowSession, solutions: list[Solution]) -> None:
    table = Table(title=f"{session.title} ({session.id})")
    table.add_column("Phase")
    table.add_column("Description")
    table.add_column("State")
    for phase in Phase:
        if phase in session.completed_phases:
            state = "[green]done[/green]"
        elif phase == session.current_phase and session.status != "completed":
            state = "[cyan]current[/cyan]"
        else:
            state = "[dim]pending[/dim]"
        table.add_row(str(int(phase)), phase.description, state)
    console.print(table)
    console.print(f"Status: {session.status}")
    for solution in solutions:
        console.print(f"  [bold]{solution.id}[/bold] {solution.title}")


def save_to_file(
    debate: DebateSession,
    output_dir: Path,
    title: str,
    slug_override: str | None = None,
) -> Path:
    """Save the debate transcript as a markdown file.

    Args:
        debate: A reconstructed DebateSession.
        output_dir: Directory to save the file in.
        title: Heading text, usually the solution title.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the title.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(title)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    lines: list[str] = [
        f"# Think Tank Debate: {title[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Session:** {debate.session_id}",
        f"**Solution:** {debate.solution_id}",
        f"**Status:** {debate.status}",
        f"**Rounds:** {len(debate.rounds)}/{debate.round_count}",
        f"**Consensus:** {debate.overall_consensus}",
        f"**Winner:** {debate.winning_position or 'undecided'}",
        f"**Votes:** {debate.total_votes} ({debate.participant_count} participants)",
        "",
        "---",
        "",
    ]

    for rnd in debate.rounds:
        lines.append(f"## Round {rnd.number}")
        lines.append("")
        for argument in rnd.arguments:
            lines.append(f"### {argument.role.title()}")
            lines.append("")
            lines.append(argument.content)
            lines.append("")
            lines.append(f"*{_argument_stats(argument)}*")
            lines.append("")
        lines += [f"**Round summary ({rnd.consensus_level} consensus):** {rnd.summary}", ""]

    if debate.warnings:
        lines += ["## Warnings", ""]
        lines += [f"- {w}" for w in debate.warnings]
        lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Debate saved to: %s", filepath)
    return filepath

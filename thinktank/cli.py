"""Click CLI: sessions, phase work, debates, votes and evidence."""

import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from thinktank.agents import AgentTeam, build_team
from thinktank.claims import DEFAULT_HEDGE_PHRASES, HedgePhraseExtractor
from thinktank.debate import DebateEngine, build_engine
from thinktank.errors import ThinkTankError
from thinktank.evidence import AnalystEvidenceGatherer
from thinktank.healthcheck import displaced_roles, run_health_checks
from thinktank.models import Round
from thinktank.output import (
    print_debate_session,
    print_phase_result,
    print_session_status,
    save_to_file,
)
from thinktank.providers.anthropic import AnthropicProvider
from thinktank.providers.base import AIProvider
from thinktank.providers.gemini import GeminiProvider
from thinktank.providers.openai_provider import OpenAIProvider
from thinktank.providers.perplexity import PerplexityProvider
from thinktank.ratelimit import build_rate_limiter
from thinktank.store.sqlite import SqliteDebateStore
from thinktank.workflow import PhaseOrchestrator, advance_session, create_session, get_session

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

# Keyed by the ``sdk`` field of a model entry in settings.yaml
PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
    "perplexity": PerplexityProvider,
}


@dataclass
class CliState:
    config: AppConfig
    store: SqliteDebateStore
    skip_health_check: bool = False


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _fail(message: str, code: int = 1) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    sys.exit(code)


def _build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build all available providers. Returns dict keyed by name."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        provider_class = PROVIDER_CLASSES.get(model_cfg.sdk)
        if provider_class is None:
            logging.warning("Provider '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = provider_class(model_cfg)
        except Exception as exc:
            logging.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _check_and_filter_providers(
    all_providers: dict[str, AIProvider], agents: dict[str, str]
) -> dict[str, AIProvider]:
    """Run health checks, print results, and ask user what to do on failures.

    Returns the filtered dict of working providers. Exits if the user
    declines to continue or no providers pass.
    """
    console.print("\n[bold]Checking providers...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(run_health_checks(all_providers))

    failed_names: list[str] = []
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")
            failed_names.append(name)

    if not failed_names:
        console.print()
        return all_providers

    working = {n: p for n, p in all_providers.items() if n not in failed_names}
    if not working:
        _fail("No providers passed the health check.")

    console.print(f"\n[yellow]{len(failed_names)} provider(s) failed:[/yellow] {', '.join(failed_names)}")
    console.print(f"Working providers: {', '.join(sorted(working))}")
    for role, model in displaced_roles(agents, set(working)).items():
        console.print(f"  [yellow]{role}[/yellow] loses {model} and will use the fallback provider")
    if not click.confirm("Continue with working providers only?", default=True):
        sys.exit(0)

    console.print()
    return working


def _build_team(state: CliState) -> AgentTeam:
    providers = _build_all_providers(state.config)
    if not providers:
        _fail("No providers available. Check API keys in .env.")
    if not state.skip_health_check:
        providers = _check_and_filter_providers(providers, state.config.agents)
    return build_team(state.config, providers, build_rate_limiter(state.config.generation.rate_limit_per_minute))


def _orchestrator(state: CliState) -> PhaseOrchestrator:
    team = _build_team(state)
    engine = build_engine(state.store, team, state.config)
    evidence_cfg = state.config.evidence
    extractor = HedgePhraseExtractor(
        phrases=evidence_cfg.hedge_phrases or DEFAULT_HEDGE_PHRASES,
        min_length=evidence_cfg.min_sentence_length,
        max_claims=evidence_cfg.max_claims,
    )
    return PhaseOrchestrator(
        state.store,
        team,
        engine,
        AnalystEvidenceGatherer(team, evidence_cfg),
        extractor,
        state.config,
    )


def _offline_engine(state: CliState) -> DebateEngine:
    """Engine for votes and evidence links; never calls a provider."""
    return DebateEngine(state.store, max_rounds=state.config.defaults.max_rounds)


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Path to settings.yaml (default: bundled config)")
@click.option("--db", "db_path", default=None, help="SQLite database path (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check before generation")
@click.pass_context
def main(
    ctx: click.Context,
    verbose: bool,
    config_path: str | None,
    db_path: str | None,
    skip_health_check: bool,
) -> None:
    """Think Tank -- multi-agent structured debate workshop.

    \b
    Examples:
      thinktank new "Remote work policy" --problem "Teams lose context across time zones"
      thinktank run SESSION_ID --advance
      thinktank debate SESSION_ID SOLUTION_ID --rounds 2
      thinktank vote ARGUMENT_ID up --user alice
      thinktank show SESSION_ID --save
    """
    # Reconfigure stdout/stderr to UTF-8 on Windows so model responses containing
    # Unicode chars don't crash the ANSI render path.
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config(Path(config_path)) if config_path else load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    try:
        store = SqliteDebateStore(db_path or config.defaults.db_path)
    except ThinkTankError as exc:
        _fail(str(exc))
    ctx.obj = CliState(config=config, store=store, skip_health_check=skip_health_check)
    ctx.call_on_close(store.close)


@main.command()
@click.argument("title")
@click.option("--problem", default=None, help="Problem statement to approve for this session")
@click.pass_obj
def new(state: CliState, title: str, problem: str | None) -> None:
    """Create a workshop session."""
    try:
        session = create_session(state.store, title, problem)
    except ThinkTankError as exc:
        _fail(str(exc))
    console.print(f"Created session [bold]{session.id}[/bold]: {session.title}")


@main.command()
@click.argument("session_id")
@click.option("--rounds", default=None, type=int, help="Debate rounds per solution (default: from config)")
@click.option("--advance", is_flag=True, help="Complete the phase when its work succeeded")
@click.pass_obj
def run(state: CliState, session_id: str, rounds: int | None, advance: bool) -> None:
    """Run the work of the session's current phase."""
    orchestrator = _orchestrator(state)
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Running phase...", total=None)
            result = asyncio.run(orchestrator.process_phase(session_id, rounds=rounds))
        print_phase_result(result)
        if advance and result.phase_complete:
            session = orchestrator.complete_phase(session_id, result.phase)
            console.print(f"Advanced to phase {session.current_phase} ({session.status})")
    except ThinkTankError as exc:
        _fail(str(exc))
    except KeyboardInterrupt:
        _fail("Interrupted. Committed rounds are kept; re-run to resume.", code=130)


@main.command()
@click.argument("session_id")
@click.pass_obj
def advance(state: CliState, session_id: str) -> None:
    """Complete the current phase and move to the next one."""
    try:
        current = get_session(state.store, session_id)
        session = advance_session(state.store, session_id, current.current_phase)
    except ThinkTankError as exc:
        _fail(str(exc))
    console.print(f"Session {session.id}: phase {session.current_phase} ({session.status})")


@main.command()
@click.argument("session_id")
@click.argument("solution_id")
@click.option("--rounds", default=None, type=int, help="Number of debate rounds (default: from config)")
@click.pass_obj
def debate(state: CliState, session_id: str, solution_id: str, rounds: int | None) -> None:
    """Run or resume the debate for one solution."""
    effective_rounds = rounds if rounds is not None else state.config.defaults.rounds
    engine = build_engine(state.store, _build_team(state), state.config)

    console.print(f"\n[bold cyan]Think Tank[/bold cyan] -- {effective_rounds} rounds on solution {solution_id}\n")
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:

            def on_round_complete(rnd: Round) -> None:
                flag = " [yellow](fallback content)[/yellow]" if rnd.degraded else ""
                progress.print(f"[green]OK[/green] Round {rnd.number} complete{flag}")

            progress.add_task("Running debate rounds...", total=None)
            result = asyncio.run(
                engine.start_debate(session_id, solution_id, effective_rounds, on_round_complete=on_round_complete)
            )
    except ThinkTankError as exc:
        _fail(str(exc))
    except KeyboardInterrupt:
        _fail("Interrupted. The debate is paused; re-run to resume.", code=130)
    print_debate_session(result)


@main.command()
@click.argument("argument_id")
@click.argument("vote_type", type=click.Choice(["up", "down"]))
@click.option("--user", "user_id", required=True, help="Voting user id")
@click.pass_obj
def vote(state: CliState, argument_id: str, vote_type: str, user_id: str) -> None:
    """Vote an argument up or down (once per user)."""
    try:
        result = _offline_engine(state).vote(argument_id, vote_type, user_id)
    except ThinkTankError as exc:
        _fail(str(exc))
    console.print(
        f"Vote recorded: score {result.new_score:.2f} (shift {result.consensus_shift:.2f} from neutral)"
    )


@main.command()
@click.argument("argument_id")
@click.argument("evidence_id")
@click.pass_obj
def attach(state: CliState, argument_id: str, evidence_id: str) -> None:
    """Link stored evidence to an argument."""
    try:
        result = _offline_engine(state).attach_evidence(argument_id, evidence_id)
    except ThinkTankError as exc:
        _fail(str(exc))
    if result.already_attached:
        console.print(f"Evidence already attached; score {result.new_score:.2f}")
    else:
        console.print(f"Evidence attached: +{result.strength_boost:.2f}, score {result.new_score:.2f}")


@main.command()
@click.argument("session_id")
@click.option("--solution", "solution_id", default=None, help="Solution id (default: latest debate)")
@click.option("--save", is_flag=True, help="Also save the transcript as markdown")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.pass_obj
def show(state: CliState, session_id: str, solution_id: str | None, save: bool, output_path: str | None) -> None:
    """Show a debate rebuilt from the store."""
    try:
        result = _offline_engine(state).get_debate_session(session_id, solution_id)
    except ThinkTankError as exc:
        _fail(str(exc))
    print_debate_session(result)
    if save:
        solution = state.store.get_solution(result.solution_id)
        title = solution.title if solution else result.solution_id
        output_dir = Path(output_path) if output_path else state.config.defaults.output_dir
        saved_path = save_to_file(result, output_dir, title)
        console.print(f"\n[dim]Saved to: {saved_path}[/dim]")


@main.command()
@click.argument("session_id")
@click.pass_obj
def status(state: CliState, session_id: str) -> None:
    """Show the session's phase progress and solutions."""
    session = state.store.get_session(session_id)
    if session is None:
        _fail(f"session not found: {session_id}")
    print_session_status(session, state.store.list_solutions(session_id))


if __name__ == "__main__":
    main()

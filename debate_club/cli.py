"""Click CLI — config loading, debate setup, judging, rankings and export."""

import asyncio
import logging
import random
import sys
from dataclasses import dataclass
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from debate_club.debate import add_participant, create_debate, run_debate
from debate_club.dispatch import ModelDispatcher, ModelNotConfigured, ProviderNotImplemented
from debate_club.elo import EloRatings
from debate_club.formats import DEBATE_FORMATS, UnknownFormatError
from debate_club.healthcheck import run_health_checks
from debate_club.judge import PANEL_SIZE, JudgingError, judge_debate, judge_with_panel, record_user_judgment
from debate_club.models import Debate, Participant
from debate_club.output import (
    export_markdown,
    print_debate_list,
    print_formats,
    print_judgment,
    print_panel_result,
    print_rankings,
    print_transcript,
)
from debate_club.providers.base import ProviderError
from debate_club.storage import DebateStore

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

# Errors a command reports as a one-line failure instead of a traceback
_USER_ERRORS = (
    JudgingError,
    ProviderError,
    ModelNotConfigured,
    ProviderNotImplemented,
    UnknownFormatError,
    ValueError,
)


@dataclass
class Session:
    config: AppConfig
    dispatcher: ModelDispatcher
    store: DebateStore
    ratings: EloRatings


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    sys.exit(1)


def _available_models(session: Session, model_ids: list[str]) -> list[str]:
    """Models whose provider has a working client."""
    return [
        m for m in model_ids
        if session.dispatcher.get_model_info(m).provider in session.dispatcher.providers
    ]


def _load_debate(session: Session, debate_id: str) -> Debate:
    try:
        debate = session.store.load_debate(debate_id)
    except ValueError as exc:
        _fail(str(exc))
    if debate is None:
        _fail(f"Debate with ID {debate_id} not found")
    return debate


def _pick_judge_panel(
    judge_models: list[str],
    participants: list[Participant],
    size: int = PANEL_SIZE,
) -> list[str]:
    """Pick distinct judges, preferring models that did not debate.

    Falls back to participant models only when there are not enough
    non-participants.
    """
    participant_ids = {p.model_id for p in participants}
    outsiders = [m for m in judge_models if m not in participant_ids]
    insiders = [m for m in judge_models if m in participant_ids]
    if len(outsiders) + len(insiders) < size:
        raise ValueError(f"Need {size} distinct judge models, only {len(judge_models)} available")
    panel = random.sample(outsiders, min(size, len(outsiders)))
    panel += random.sample(insiders, size - len(panel))
    return panel


def _check_and_filter_models(session: Session, model_ids: list[str]) -> None:
    """Run health checks on the chosen models; ask whether to continue on failure."""
    console.print("\n[bold]Checking providers...[/bold]")
    results = asyncio.run(run_health_checks(session.dispatcher, model_ids))

    failed = []
    for model_id in sorted(results):
        ok, err = results[model_id]
        if ok:
            console.print(f"  [green]OK  [/green] {model_id}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {model_id}: {short_err}")
            failed.append(model_id)

    if failed and not click.confirm(
        "Continue anyway? Failed turns are recorded as errors in the transcript.", default=False
    ):
        sys.exit(0)
    console.print()


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--settings", "settings_path", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Path to settings.yaml (default: bundled config)")
@click.option("--data-dir", default=None, help="Override the data directory (default: from config)")
@click.pass_context
def main(ctx: click.Context, verbose: bool, settings_path: str | None, data_dir: str | None) -> None:
    """AI Debate Club -- structured debates between models, judged and ranked.

    \b
    Examples:
      python -m debate_club.cli formats
      python -m debate_club.cli new --topic "Remote work beats the office" --model1 gpt-4o --model2 claude-sonnet-3.7
      python -m debate_club.cli judge 1718000000000 --panel gpt-4o,claude-haiku-3.5,gemini-2.5-flash
      python -m debate_club.cli rankings
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config(Path(settings_path)) if settings_path else load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    store = DebateStore(Path(data_dir) if data_dir else config.defaults.data_dir)
    ctx.obj = Session(
        config=config,
        dispatcher=ModelDispatcher.from_config(config),
        store=store,
        ratings=EloRatings(store, config.ratings.default_rating, config.ratings.k_factor),
    )


@main.command()
def formats() -> None:
    """List all available debate formats."""
    print_formats(DEBATE_FORMATS)


@main.command()
@click.pass_obj
def models(session: Session) -> None:
    """List configured models and their capabilities."""
    for model_id, info in session.config.models.items():
        roles = [r for r, enabled in (("debater", info.debater), ("judge", info.judge)) if enabled]
        available = info.provider in session.dispatcher.providers
        status = "[green]available[/green]" if available else "[dim]no API key[/dim]"
        console.print(f"[yellow]{model_id}[/yellow] ({info.display_name}) via {info.provider}: {', '.join(roles)} {status}")


@main.command()
@click.pass_obj
def topics(session: Session) -> None:
    """List suggested debate topics."""
    for category in session.store.initialize_debate_topics():
        console.print(f"\n[bold]{category.category}[/bold]")
        for topic in category.topics:
            console.print(f"  - {topic}")


@main.command("new")
@click.option("--topic", default=None, help="Debate topic (prompted if omitted)")
@click.option("--format", "format_key", default=None, help="Debate format key (default: from config)")
@click.option("--model1", default=None, help="First debater model id")
@click.option("--model2", default=None, help="Second debater model id")
@click.option("--position1", default=None, help="Position of the first debater (default: from config)")
@click.option("--position2", default=None, help="Position of the second debater (default: from config)")
@click.option("--stream/--no-stream", default=None, help="Stream responses as they arrive")
@click.option("--judges", default=None, help=f"Comma-separated {PANEL_SIZE} judge model ids (default: random panel)")
@click.option("--judge", "judge_model", default=None, help="Use a single judge model instead of a panel")
@click.option("--no-judge", is_flag=True, help="Skip judging after the debate")
@click.option("--predict", is_flag=True, help="Record your own pick before the judges decide")
@click.option("--skip-health-check", is_flag=True, default=False, help="Skip the API connectivity check")
@click.pass_obj
def new_debate(
    session: Session,
    topic: str | None,
    format_key: str | None,
    model1: str | None,
    model2: str | None,
    position1: str | None,
    position2: str | None,
    stream: bool | None,
    judges: str | None,
    judge_model: str | None,
    no_judge: bool,
    predict: bool,
    skip_health_check: bool,
) -> None:
    """Start a new debate between two models, then judge it with a panel."""
    config = session.config
    debaters = _available_models(session, session.dispatcher.get_debater_models())
    if len(debaters) < 2:
        _fail("Need at least 2 debater models with API keys. Check .env.")

    if topic is None:
        topic = click.prompt("Debate topic")
    model1 = model1 or click.prompt("First debater", type=click.Choice(debaters))
    model2 = model2 or click.prompt("Second debater", type=click.Choice([m for m in debaters if m != model1]))
    position1 = position1 or config.defaults.positions[0]
    position2 = position2 or config.defaults.positions[1]
    use_stream = config.defaults.stream if stream is None else stream

    try:
        debate = create_debate(topic, format_key or config.defaults.format)
        add_participant(debate, session.dispatcher, model1, position1)
        add_participant(debate, session.dispatcher, model2, position2)
    except _USER_ERRORS as exc:
        _fail(str(exc))

    if not skip_health_check:
        _check_and_filter_models(session, [model1, model2])

    console.print(f"\n[bold cyan]AI Debate Club[/bold cyan] — {debate.format.name}, {len(debate.format.rounds)} rounds")
    console.print(f"Topic: [italic]{debate.topic}[/italic]")
    for p in debate.participants:
        console.print(f"{p.position}: [green]{p.display_name}[/green]")
    console.print()

    try:
        if use_stream:
            asyncio.run(
                run_debate(
                    debate, session.dispatcher, session.store, config.prompts,
                    on_progress=lambda msg: console.print(f"\n[blue]{msg}[/blue]"),
                    on_stream=lambda chunk: console.print(chunk, end="", markup=False, highlight=False),
                )
            )
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                TimeElapsedColumn(),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task("Running debate rounds...", total=None)
                asyncio.run(
                    run_debate(
                        debate, session.dispatcher, session.store, config.prompts,
                        on_progress=lambda msg: progress.update(task, description=msg),
                    )
                )
            print_transcript(debate)
    except _USER_ERRORS as exc:
        _fail(str(exc))

    failed_turns = sum(1 for h in debate.history if h.failed)
    console.print(f"\n[green]Debate completed![/green] ({failed_turns} failed turn(s))" if failed_turns
                  else "\n[green]Debate completed![/green]")

    if predict:
        choice = click.prompt(
            f"Who won? 1 = {debate.participants[0].display_name}, 2 = {debate.participants[1].display_name}",
            type=click.IntRange(1, 2),
        )
        reason = click.prompt("Why? (optional)", default="", show_default=False)
        record_user_judgment(session.store, debate, choice - 1, reason)

    if judge_model and not no_judge:
        _run_single_judge(session, debate, judge_model)
    elif not no_judge:
        judge_ids = [j.strip() for j in judges.split(",")] if judges else None
        _run_panel(session, debate, judge_ids)

    console.print(f"\n[bold]Debate saved with ID: {debate.id}[/bold]")
    console.print(f"[dim]Run 'python -m debate_club.cli view {debate.id}' to see the transcript[/dim]")


def _run_single_judge(session: Session, debate: Debate, judge_model: str) -> bool:
    try:
        with console.status("Judge is evaluating the debate..."):
            result = asyncio.run(
                judge_debate(
                    debate.id, judge_model, session.dispatcher, session.store, session.ratings,
                    session.config.prompts, rate_draws=session.config.ratings.rate_draws,
                )
            )
    except _USER_ERRORS as exc:
        console.print(f"[bold red]Judging failed:[/bold red] {exc}")
        logger.debug("Single-judge evaluation failed", exc_info=True)
        return False

    print_judgment(debate, result)
    return True


def _run_panel(session: Session, debate: Debate, judge_ids: list[str] | None) -> None:
    try:
        if judge_ids is None:
            available = _available_models(session, session.dispatcher.get_judge_models())
            judge_ids = _pick_judge_panel(available, debate.participants)
        console.print("\n[bold]Judging Panel:[/bold]")
        for i, judge_id in enumerate(judge_ids, start=1):
            console.print(f"{i}. {session.dispatcher.display_name(judge_id)}")

        with console.status("Panel of judges is evaluating the debate...") as status:
            result = asyncio.run(
                judge_with_panel(
                    debate.id, judge_ids, session.dispatcher, session.store, session.ratings,
                    session.config.prompts,
                    on_progress=lambda msg: status.update(msg),
                )
            )
    except _USER_ERRORS as exc:
        console.print(f"[bold red]Judging failed:[/bold red] {exc}")
        logger.debug("Panel judging failed", exc_info=True)
        return

    print_panel_result(result)
    judged = session.store.load_debate(debate.id)
    if judged and judged.user_judgment:
        correct = judged.user_judgment.winner.model_id == result.winner.model_id
        console.print(
            f"Your pick: {judged.user_judgment.winner.display_name} — "
            + ("[green]correct![/green]" if correct else "[yellow]different from the judges' decision.[/yellow]")
        )


@main.command("list")
@click.pass_obj
def list_debates(session: Session) -> None:
    """List all past debates."""
    debates = session.store.list_debates()
    if not debates:
        console.print("[yellow]No debates found[/yellow]")
        return
    print_debate_list(debates)


@main.command()
@click.argument("debate_id")
@click.option("--full-judgment", is_flag=True, help="Also print the judge's full evaluation")
@click.pass_obj
def view(session: Session, debate_id: str, full_judgment: bool) -> None:
    """View the transcript of a past debate."""
    debate = _load_debate(session, debate_id)
    print_transcript(debate)
    if debate.panel_judgment:
        print_panel_result(debate.panel_judgment.final_result)
    elif debate.judgment:
        print_judgment(debate, debate.judgment.result)
        if full_judgment:
            console.print(debate.judgment.response)


@main.command()
@click.argument("debate_id")
@click.option("--model", "judge_model", default=None, help="Single judge model id")
@click.option("--panel", default=None, help=f"Comma-separated {PANEL_SIZE} judge model ids")
@click.option("--yes", is_flag=True, help="Re-judge without asking")
@click.pass_obj
def judge(session: Session, debate_id: str, judge_model: str | None, panel: str | None, yes: bool) -> None:
    """Judge an existing debate with a single judge or a panel of 3."""
    debate = _load_debate(session, debate_id)
    if not debate.completed:
        _fail("Cannot judge an incomplete debate")

    if panel:
        _run_panel(session, debate, [j.strip() for j in panel.split(",")])
        return

    if debate.judgment and not yes and not click.confirm("This debate has already been judged. Re-judge it?", default=False):
        console.print("[yellow]Judging cancelled[/yellow]")
        return

    if judge_model is None:
        judges = _available_models(session, session.dispatcher.get_judge_models())
        judge_model = click.prompt("Judge model", type=click.Choice(judges))

    if not _run_single_judge(session, debate, judge_model):
        sys.exit(1)


@main.command()
@click.argument("debate_id")
@click.option("--winner", type=click.IntRange(1, 2), required=True, help="1 or 2, in participant order")
@click.option("--reason", default="", help="Why you think they won")
@click.pass_obj
def predict(session: Session, debate_id: str, winner: int, reason: str) -> None:
    """Record your own pick for a debate. Does not affect ratings."""
    debate = _load_debate(session, debate_id)
    pick = record_user_judgment(session.store, debate, winner - 1, reason)
    console.print(f"Recorded your pick: {pick.winner.display_name} ({pick.winner.position})")


@main.command()
@click.pass_obj
def rankings(session: Session) -> None:
    """View current ELO rankings of models."""
    table = session.ratings.get_rankings()
    if not table:
        console.print("[yellow]No ELO rankings available yet. Run some debates to see rankings.[/yellow]")
        return
    print_rankings(table, session.dispatcher)


@main.command()
@click.argument("debate_id")
@click.option("-o", "--output", "output_path", default=None, help="Output file path")
@click.pass_obj
def export(session: Session, debate_id: str, output_path: str | None) -> None:
    """Export a debate to Markdown."""
    debate = _load_debate(session, debate_id)
    saved = export_markdown(debate, session.dispatcher, Path(output_path) if output_path else None)
    console.print(f"\n[dim]Debate exported to: {saved}[/dim]")


if __name__ == "__main__":
    main()

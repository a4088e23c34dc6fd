"""Rich console output and markdown export for debate records."""

import logging
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from debate_club.dispatch import ModelDispatcher
from debate_club.models import Debate, DebateFormat, DebateSummary, DrawUpdate, JudgmentResult, PanelResult, RatingChange

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    import re
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _debate_date(debate: Debate) -> str:
    """Date encoded in the millisecond-timestamp id (UTC, deterministic)."""
    try:
        stamp = datetime.fromtimestamp(int(debate.id) / 1000, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return "unknown"
    return stamp.strftime("%Y-%m-%d")


def _signed(change: int) -> str:
    return f"+{change}" if change >= 0 else str(change)


def _rating_line(label: str, change: RatingChange) -> str:
    return f"{label}: {change.old_rating} → {change.new_rating} ({_signed(change.change)})"


def print_formats(formats: dict[str, DebateFormat]) -> None:
    console.print(Rule("[bold cyan]Available Debate Formats[/bold cyan]"))
    for key, fmt in formats.items():
        console.print(f"[yellow]{key}[/yellow]: {fmt.name}")
        console.print(f"  {fmt.description}", style="dim")
        console.print(f"  {len(fmt.rounds)} rounds: {', '.join(r.name for r in fmt.rounds)}")
        if fmt.style:
            console.print(f"  Style: {fmt.style}")


def print_debate_list(debates: list[DebateSummary]) -> None:
    table = Table(title=f"{len(debates)} debate(s)")
    table.add_column("ID", style="green")
    table.add_column("Topic")
    table.add_column("Format")
    table.add_column("Participants")
    table.add_column("Status")
    for d in debates:
        table.add_row(
            d.id,
            d.topic,
            d.format,
            " vs ".join(f"{p.display_name} ({p.position})" for p in d.participants),
            "[green]Completed[/green]" if d.completed else "[yellow]In progress[/yellow]",
        )
    console.print(table)


def print_transcript(debate: Debate) -> None:
    console.print(Rule(f"[bold cyan]{debate.topic}[/bold cyan]"))
    console.print(Text(f"Debate {debate.id} | Format: {debate.format.name}", style="dim"))
    for round_idx, round_spec in enumerate(debate.format.rounds):
        entries = [h for h in debate.history if h.round_index == round_idx]
        if not entries:
            continue
        console.print(Rule(f"Round {round_idx + 1}: {round_spec.name}"))
        for entry in entries:
            participant = next(p for p in debate.participants if p.model_id == entry.model_id)
            console.print(
                Panel(
                    Markdown(entry.response),
                    title=f"[bold]{participant.display_name}[/bold] ({participant.position})",
                    border_style="red" if entry.failed else "dim",
                )
            )


def print_judgment(debate: Debate, result: JudgmentResult) -> None:
    console.print(Rule("[bold green]Judgment[/bold green]"))
    if result.winner and result.loser:
        console.print(f"Winner: [green]{result.winner.display_name}[/green] ({result.winner.position})")
        if result.rating_update and not isinstance(result.rating_update, DrawUpdate):
            console.print(_rating_line(result.winner.display_name, result.rating_update.winner))
            console.print(_rating_line(result.loser.display_name, result.rating_update.loser))
    elif result.is_draw:
        console.print("[yellow]Result: Draw[/yellow]")
        if isinstance(result.rating_update, DrawUpdate):
            first, second = debate.participants
            console.print(_rating_line(first.display_name, result.rating_update.model1))
            console.print(_rating_line(second.display_name, result.rating_update.model2))
    else:
        console.print("[yellow]Result: Unable to determine a clear winner[/yellow]")


def print_panel_result(result: PanelResult) -> None:
    console.print(Rule("[bold green]Panel Judgment[/bold green]"))
    console.print(f"Winner: [green]{result.winner.display_name}[/green] ({result.winner.position})")
    console.print(f"Vote count: {result.vote_count[result.winner.model_id]} out of {len(result.judge_votes)} votes")
    console.print(f"Majority percentage: {result.majority_percentage:.2f}%")
    for i, vote in enumerate(result.judge_votes, start=1):
        console.print(
            f"  Judge {i}: {vote.judge_name} voted for {vote.selected_winner} ({vote.selected_winner_position})"
        )
    if result.rating_update:
        console.print(_rating_line(result.winner.display_name, result.rating_update.winner))
        console.print(_rating_line(result.loser.display_name, result.rating_update.loser))


def print_rankings(rankings: list[tuple[str, int]], dispatcher: ModelDispatcher) -> None:
    table = Table(title="Current ELO Rankings")
    table.add_column("#", justify="right")
    table.add_column("Model", style="green")
    table.add_column("Rating", justify="right")
    for i, (model_id, rating) in enumerate(rankings, start=1):
        table.add_row(str(i), dispatcher.display_name(model_id), str(rating))
    console.print(table)


def render_markdown(debate: Debate, dispatcher: ModelDispatcher) -> str:
    """Render a debate record as a markdown report. Same record, same output."""
    lines: list[str] = [
        f"# Debate: {debate.topic}",
        "",
        f"- **Format**: {debate.format.name}",
        f"- **Date**: {_debate_date(debate)}",
        "",
        "## Participants",
        "",
    ]
    lines += [f"- **{p.position}**: {p.display_name}" for p in debate.participants]
    lines += ["", "## Transcript", ""]

    for round_idx, round_spec in enumerate(debate.format.rounds):
        entries = [h for h in debate.history if h.round_index == round_idx]
        if not entries:
            continue
        lines += [f"### Round {round_idx + 1}: {round_spec.name}", ""]
        for entry in entries:
            participant = next(p for p in debate.participants if p.model_id == entry.model_id)
            lines += [f"#### {participant.display_name} ({participant.position})", "", entry.response, ""]

    if debate.user_judgment:
        winner = debate.user_judgment.winner
        lines += ["## User Judgment", "", f"User selected: **{winner.display_name} ({winner.position})**", ""]
        if debate.user_judgment.reason:
            lines += [f"Reasoning: {debate.user_judgment.reason}", ""]

    if debate.panel_judgment:
        final = debate.panel_judgment.final_result
        lines += [
            "## Panel Judgment",
            "",
            f"**Winner**: {final.winner.display_name} ({final.winner.position})",
            "",
            f"Vote count: {final.vote_count[final.winner.model_id]} out of {len(final.judge_votes)} votes",
            f"Majority percentage: {final.majority_percentage:.2f}%",
            "",
            "### Individual Judge Votes",
            "",
        ]
        lines += [
            f"- Judge {i} ({v.judge_name}): voted for {v.selected_winner} ({v.selected_winner_position})"
            for i, v in enumerate(final.judge_votes, start=1)
        ]
        lines += ["", "### Detailed Judgments", ""]
        for i, verdict in enumerate(debate.panel_judgment.judges, start=1):
            lines += [f"#### Judge {i}: {dispatcher.display_name(verdict.judge_model_id)}", "", verdict.response, ""]
    elif debate.judgment:
        result = debate.judgment.result
        lines += ["## Judgment", "", f"Judged by: **{dispatcher.display_name(debate.judgment.judge_model_id)}**", ""]
        if result.winner:
            lines += [f"**Winner**: {result.winner.display_name} ({result.winner.position})", ""]
        elif result.is_draw:
            lines += ["**Result**: Draw", ""]
        else:
            lines += ["**Result**: No clear winner", ""]
        lines += ["### Full Evaluation", "", debate.judgment.response, ""]

    return "\n".join(lines)


def export_markdown(debate: Debate, dispatcher: ModelDispatcher, output_path: Path | None = None) -> Path:
    """Write the markdown report. Defaults to ./debate-<id>-<slug>.md."""
    if output_path is None:
        output_path = Path(f"debate-{debate.id}-{_slug(debate.topic)}.md")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_markdown(debate, dispatcher), encoding="utf-8")
    logger.info("Debate exported to: %s", output_path)
    return output_path

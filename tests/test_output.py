"""Tests for debate_club/output.py."""

from pathlib import Path

import pytest

from debate_club.models import (
    JudgeVote,
    Judgment,
    JudgmentResult,
    PanelJudgment,
    PanelResult,
    UserJudgment,
)
from debate_club.output import _debate_date, _slug, export_markdown, render_markdown


def test_slug_basic():
    assert _slug("Cats are better than dogs?") == "cats-are-better-than-dogs"


def test_slug_max_len():
    assert len(_slug("a" * 100)) <= 40


def test_debate_date_from_id(completed_debate):
    assert _debate_date(completed_debate) == "2024-06-10"


def test_debate_date_non_numeric_id(completed_debate):
    completed_debate.id = "legacy"
    assert _debate_date(completed_debate) == "unknown"


@pytest.fixture
def panel_judged_debate(completed_debate):
    first, second = completed_debate.participants
    verdicts = [
        Judgment(judge_id, f"{judge_id} says the winner is {winner.position}.",
                     JudgmentResult(raw="", is_draw=False, winner=winner, loser=loser))
        for judge_id, winner, loser in (("judge-1", first, second), ("judge-2", first, second), ("judge-3", second, first))
    ]
    completed_debate.panel_judgment = PanelJudgment(
        judges=verdicts,
        final_result=PanelResult(
            vote_count={"model-a": 2, "model-b": 1},
            majority_percentage=200 / 3,
            judge_votes=[
                JudgeVote("judge-1", "Judge One", "Model A", "Pro"),
                JudgeVote("judge-2", "Judge Two", "Model A", "Pro"),
                JudgeVote("judge-3", "Judge Three", "Model B", "Con"),
            ],
            winner=first,
            loser=second,
        ),
    )
    return completed_debate


def test_render_markdown_transcript(completed_debate, dispatcher):
    content = render_markdown(completed_debate, dispatcher)
    assert content.startswith("# Debate: Cats are better than dogs")
    assert "- **Format**: Short Debate" in content
    assert "- **Pro**: Model A" in content
    assert "### Round 1: Opening Statement" in content
    assert "#### Model B (Con)" in content
    assert "Model B argues in Closing Statement." in content
    assert "Judgment" not in content


def test_render_markdown_is_deterministic(panel_judged_debate, dispatcher):
    assert render_markdown(panel_judged_debate, dispatcher) == render_markdown(panel_judged_debate, dispatcher)


def test_render_markdown_panel(panel_judged_debate, dispatcher):
    content = render_markdown(panel_judged_debate, dispatcher)
    assert "## Panel Judgment" in content
    assert "**Winner**: Model A (Pro)" in content
    assert "Vote count: 2 out of 3 votes" in content
    assert "Majority percentage: 66.67%" in content
    assert "- Judge 3 (Judge Three): voted for Model B (Con)" in content
    assert "#### Judge 1: Judge One" in content
    assert "judge-2 says the winner is Pro." in content


def test_render_markdown_single_judgment(completed_debate, dispatcher):
    completed_debate.judgment = Judgment(
        judge_model_id="judge-1",
        response="Full evaluation text. It is a draw.",
        result=JudgmentResult(raw="Full evaluation text. It is a draw.", is_draw=True),
    )
    content = render_markdown(completed_debate, dispatcher)
    assert "Judged by: **Judge One**" in content
    assert "**Result**: Draw" in content
    assert "Full evaluation text." in content


def test_render_markdown_user_judgment(completed_debate, dispatcher):
    completed_debate.user_judgment = UserJudgment(winner=completed_debate.participants[1], reason="Sharper rebuttals")
    content = render_markdown(completed_debate, dispatcher)
    assert "User selected: **Model B (Con)**" in content
    assert "Reasoning: Sharper rebuttals" in content


def test_export_markdown_default_name(completed_debate, dispatcher, tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    saved = export_markdown(completed_debate, dispatcher)
    assert saved.name == "debate-1718000000000-cats-are-better-than-dogs.md"
    assert (tmp_path / saved).exists()


def test_export_markdown_creates_parent_dir(completed_debate, dispatcher, tmp_path: Path):
    target = tmp_path / "nested" / "exports" / "debate.md"
    saved = export_markdown(completed_debate, dispatcher, target)
    assert saved == target
    assert target.read_text(encoding="utf-8") == render_markdown(completed_debate, dispatcher)

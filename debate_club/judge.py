"""Judging: rubric prompts, verdict parsing, panel aggregation, rating updates."""

import logging
import re
from collections.abc import Callable
from typing import Protocol

from config.config_loader import PromptsConfig
from debate_club.dispatch import ModelDispatcher
from debate_club.elo import EloRatings
from debate_club.models import (
    Debate,
    Judgment,
    JudgeVote,
    JudgmentResult,
    PanelJudgment,
    PanelResult,
    UserJudgment,
)
from debate_club.storage import DebateStore

logger = logging.getLogger(__name__)

PANEL_SIZE = 3
JUDGE_MAX_TOKENS = 3000

CRITERIA: tuple[tuple[str, str, float], ...] = (
    ("Argument Quality", "Strength, clarity, and logical soundness of the arguments presented", 0.35),
    ("Evidence Use", "Appropriate and effective use of evidence, data, and examples", 0.25),
    ("Rebuttal Effectiveness", "Success in addressing and countering opponent's arguments", 0.25),
    ("Presentation", "Clarity, persuasiveness, and overall quality of communication", 0.15),
)

# Phrase list and window size are part of the stored-verdict contract; keep as is.
WINNER_INDICATORS: tuple[str, ...] = (
    "winner is",
    "winner:",
    "wins the debate",
    "is the winner",
    "stronger case",
    "more convincing",
    "better arguments",
    "outperformed",
)
NEARBY_WINDOW = 50


class JudgingError(Exception):
    """Base for judgment failures; the transcript is left intact for re-judging."""


class InvalidJudgeError(JudgingError):
    def __init__(self, model_id: str) -> None:
        self.model_id = model_id
        super().__init__(f"Model {model_id} is not a valid judge")


class IndecisiveJudgeError(JudgingError):
    def __init__(self, model_id: str, judge_name: str) -> None:
        self.model_id = model_id
        super().__init__(f"Judge {judge_name} failed to select a definitive winner")


class PanelAggregationError(JudgingError):
    """Panel votes did not produce a single strict maximum."""


class VerdictParser(Protocol):
    def parse(self, response: str, debate: Debate, allow_draw: bool = True) -> JudgmentResult: ...


class KeywordVerdictParser:
    """Free-text verdict heuristic.

    Draw if "draw" or "tie" appears anywhere; otherwise the first winner
    phrase with a participant position inside the surrounding window decides.
    Panel judges are told draws are not permitted, so allow_draw=False skips
    the draw check.
    """

    def parse(self, response: str, debate: Debate, allow_draw: bool = True) -> JudgmentResult:
        lowered = response.lower()
        if allow_draw and ("draw" in lowered or "tie" in lowered):
            return JudgmentResult(raw=response, is_draw=True)

        first, second = debate.participants
        for indicator in WINNER_INDICATORS:
            for match in re.finditer(re.escape(indicator), response, re.IGNORECASE):
                pos = match.start()
                nearby = lowered[max(0, pos - NEARBY_WINDOW):pos + NEARBY_WINDOW]
                if first.position.lower() in nearby:
                    return JudgmentResult(raw=response, is_draw=False, winner=first, loser=second)
                if second.position.lower() in nearby:
                    return JudgmentResult(raw=response, is_draw=False, winner=second, loser=first)

        return JudgmentResult(raw=response, is_draw=False)


def _format_transcript(debate: Debate) -> str:
    """Format the history grouped by round, participants labeled A/B by array order."""
    labels = {p.model_id: "A" if i == 0 else "B" for i, p in enumerate(debate.participants)}
    parts: list[str] = []
    for round_idx, round_spec in enumerate(debate.format.rounds):
        entries = [h for h in debate.history if h.round_index == round_idx]
        if not entries:
            continue
        parts.append(f"### Round {round_idx + 1}: {round_spec.name}")
        for entry in entries:
            parts.append(f"#### Participant {labels.get(entry.model_id, '?')} ({entry.position}):\n\n{entry.response}")
    return "\n\n".join(parts)


def build_judging_prompt(debate: Debate, require_winner: bool = False) -> str:
    first, second = debate.participants
    lines = [
        "# Debate Evaluation",
        "",
        f'## Topic: "{debate.topic}"',
        "",
        "## Participants:",
        f"- Participant A ({first.position}): {first.display_name}",
        f"- Participant B ({second.position}): {second.display_name}",
        "",
        "## Evaluation Criteria:",
    ]
    lines += [f"- {name} ({round(weight * 100)}%): {description}" for name, description, weight in CRITERIA]
    lines += ["", "## Debate Transcript:", "", _format_transcript(debate), "", "## Judging Instructions:", ""]
    lines += [
        "1. Evaluate both participants according to the provided criteria.",
        "2. Score each participant on each criterion on a scale of 1-10.",
        "3. For each criterion, explain your reasoning for the scores.",
        "4. Calculate weighted total scores based on criteria weights.",
    ]
    if require_winner:
        lines += [
            "5. You MUST select a winner. Ties or draws are NOT permitted. "
            "If scores are very close, analyze deeper aspects to determine superiority.",
            '6. Clearly state your decision with "The winner is [Participant Name] ([Position])" '
            "at the end of your evaluation.",
            "7. Provide a summary of the key strengths and weaknesses of each participant.",
            "8. Format your response with clear sections and a final verdict.",
        ]
    else:
        lines += [
            "5. Determine a winner based on the higher total score, or declare a draw if scores are within 0.5 points.",
            "6. Provide a summary of the key strengths and weaknesses of each participant.",
            "7. Format your response with clear sections and a final verdict.",
        ]
    lines += ["", "Begin your evaluation now:"]
    return "\n".join(lines)


def _load_completed(store: DebateStore, debate_id: str) -> Debate:
    debate = store.load_debate(debate_id)
    if debate is None or not debate.completed:
        raise JudgingError("Cannot judge: debate not found or not completed")
    return debate


def _check_judge(dispatcher: ModelDispatcher, model_id: str) -> None:
    info = dispatcher.get_model_info(model_id)
    if info is None or not info.judge:
        raise InvalidJudgeError(model_id)


async def judge_debate(
    debate_id: str,
    judge_model_id: str,
    dispatcher: ModelDispatcher,
    store: DebateStore,
    ratings: EloRatings,
    prompts: PromptsConfig,
    parser: VerdictParser | None = None,
    rate_draws: bool = False,
) -> JudgmentResult:
    """Judge a completed debate with a single model and store the judgment.

    A definitive winner updates ratings; a draw does so only when rate_draws
    is set; an inconclusive verdict never does. Any previous judgment is
    replaced.

    Raises:
        JudgingError: Debate missing or not completed.
        InvalidJudgeError: Model is not judge-capable.
        ProviderError: Judge call failed after retries.
    """
    debate = _load_completed(store, debate_id)
    _check_judge(dispatcher, judge_model_id)
    parser = parser or KeywordVerdictParser()

    logger.info("Judging debate %s with %s", debate_id, judge_model_id)
    response = await dispatcher.generate_response(
        judge_model_id,
        build_judging_prompt(debate),
        system_prompt=prompts.judge_system,
        max_tokens=JUDGE_MAX_TOKENS,
    )
    result = parser.parse(response, debate)

    if result.winner and result.loser:
        result.rating_update = ratings.update_ratings(result.winner.model_id, result.loser.model_id)
    elif result.is_draw and rate_draws:
        first, second = debate.participants
        result.rating_update = ratings.update_ratings_with_draw(first.model_id, second.model_id)
    elif result.inconclusive:
        logger.warning("Judge %s gave no clear verdict for debate %s", judge_model_id, debate_id)

    debate.judgment = Judgment(judge_model_id=judge_model_id, response=response, result=result)
    store.save_debate(debate)
    return result


def aggregate_votes(verdicts: list[Judgment], debate: Debate, dispatcher: ModelDispatcher) -> PanelResult:
    """Majority vote over individual verdicts. Each verdict must name a winner."""
    vote_count: dict[str, int] = {}
    for verdict in verdicts:
        winner_id = verdict.result.winner.model_id
        vote_count[winner_id] = vote_count.get(winner_id, 0) + 1

    if len(vote_count) > 2:
        raise PanelAggregationError(f"Panel named {len(vote_count)} distinct winners: {sorted(vote_count)}")
    max_votes = max(vote_count.values())
    leaders = [model_id for model_id, votes in vote_count.items() if votes == max_votes]
    if len(leaders) != 1:
        raise PanelAggregationError(f"Panel vote tied between {sorted(leaders)}")

    winner = next(p for p in debate.participants if p.model_id == leaders[0])
    loser = next(p for p in debate.participants if p.model_id != leaders[0])

    judge_votes = [
        JudgeVote(
            judge_model_id=v.judge_model_id,
            judge_name=dispatcher.display_name(v.judge_model_id),
            selected_winner=v.result.winner.display_name,
            selected_winner_position=v.result.winner.position,
        )
        for v in verdicts
    ]
    return PanelResult(
        vote_count=vote_count,
        majority_percentage=max_votes / len(verdicts) * 100,
        judge_votes=judge_votes,
        winner=winner,
        loser=loser,
    )


async def judge_with_panel(
    debate_id: str,
    judge_model_ids: list[str],
    dispatcher: ModelDispatcher,
    store: DebateStore,
    ratings: EloRatings,
    prompts: PromptsConfig,
    on_progress: Callable[[str], None] | None = None,
    parser: VerdictParser | None = None,
) -> PanelResult:
    """Judge a completed debate with a panel of 3 distinct judges.

    Every judge must name a winner; ratings are updated once with the
    majority outcome.

    Raises:
        ValueError: Not exactly 3 distinct judges.
        InvalidJudgeError: A model is not judge-capable.
        IndecisiveJudgeError: A judge gave no definitive winner.
        PanelAggregationError: Votes produced no strict maximum.
    """
    if len(judge_model_ids) != PANEL_SIZE or len(set(judge_model_ids)) != PANEL_SIZE:
        raise ValueError(f"Exactly {PANEL_SIZE} distinct judge models are required for panel judgment")

    debate = _load_completed(store, debate_id)
    for model_id in judge_model_ids:
        _check_judge(dispatcher, model_id)
    parser = parser or KeywordVerdictParser()
    prompt = build_judging_prompt(debate, require_winner=True)

    verdicts: list[Judgment] = []
    for i, judge_id in enumerate(judge_model_ids, start=1):
        judge_name = dispatcher.display_name(judge_id)
        if on_progress:
            on_progress(f"Judge {i}/{PANEL_SIZE} ({judge_name}) is evaluating...")

        response = await dispatcher.generate_response(
            judge_id,
            prompt,
            system_prompt=prompts.panel_judge_system,
            max_tokens=JUDGE_MAX_TOKENS,
        )
        result = parser.parse(response, debate, allow_draw=False)
        if not result.winner or not result.loser:
            raise IndecisiveJudgeError(judge_id, judge_name)
        verdicts.append(Judgment(judge_model_id=judge_id, response=response, result=result))

    final = aggregate_votes(verdicts, debate, dispatcher)
    final.rating_update = ratings.update_ratings(final.winner.model_id, final.loser.model_id)
    logger.info(
        "Panel verdict for %s: %s (%.0f%%)", debate_id, final.winner.model_id, final.majority_percentage
    )

    debate.panel_judgment = PanelJudgment(judges=verdicts, final_result=final)
    store.save_debate(debate)
    return final


def record_user_judgment(store: DebateStore, debate: Debate, winner_index: int, reason: str = "") -> UserJudgment:
    """Store a human prediction of the winner. Never touches ratings."""
    if winner_index not in (0, 1):
        raise ValueError("winner_index must be 0 or 1")
    debate.user_judgment = UserJudgment(winner=debate.participants[winner_index], reason=reason.strip())
    store.save_debate(debate)
    return debate.user_judgment

"""JSON document store for debates, ELO ratings and debate topics.

One JSON document per entity, always rewritten whole. Writes go through a
temp file and os.replace so readers never observe a half-written document.
"""

import json
import logging
import os
import tempfile
from dataclasses import asdict
from pathlib import Path

from debate_club.models import (
    Debate,
    DebateFormat,
    DebateSummary,
    DrawUpdate,
    HistoryEntry,
    Judgment,
    JudgeVote,
    JudgmentResult,
    PanelJudgment,
    PanelResult,
    Participant,
    RatingChange,
    RatingUpdate,
    RoundSpec,
    TopicCategory,
    UserJudgment,
)

logger = logging.getLogger(__name__)

DEFAULT_TOPICS: list[TopicCategory] = [
    TopicCategory(
        category="Technology",
        topics=[
            "Artificial intelligence will ultimately benefit humanity more than harm it",
            "Social media has a net negative impact on society",
            "Cryptocurrencies should replace traditional banking systems",
            "Governments should regulate big tech companies more strictly",
            "Universal basic income is necessary in an AI-automated future",
        ],
    ),
    TopicCategory(
        category="Ethics",
        topics=[
            "The ends justify the means in ethical decision making",
            "Capital punishment is never morally justified",
            "There are universal moral principles that apply across all cultures",
            "Individual privacy should be prioritized over national security",
            "Wealthy nations have an ethical obligation to accept refugees",
        ],
    ),
    TopicCategory(
        category="Education",
        topics=[
            "Standardized testing should be eliminated from education systems",
            "Liberal arts education is more valuable than technical education",
            "Higher education should be free for all citizens",
            "Homeschooling provides better education outcomes than public schooling",
            "Technology in classrooms enhances the learning experience",
        ],
    ),
]


# --- record <-> dict -------------------------------------------------------

def _participant(raw: dict | None) -> Participant | None:
    if raw is None:
        return None
    return Participant(model_id=raw["model_id"], position=raw["position"], display_name=raw["display_name"])


def _change(raw: dict) -> RatingChange:
    return RatingChange(
        model_id=raw["model_id"],
        old_rating=int(raw["old_rating"]),
        new_rating=int(raw["new_rating"]),
        change=int(raw["change"]),
    )


def _rating_update(raw: dict | None) -> RatingUpdate | DrawUpdate | None:
    if raw is None:
        return None
    if "winner" in raw:
        return RatingUpdate(winner=_change(raw["winner"]), loser=_change(raw["loser"]))
    return DrawUpdate(model1=_change(raw["model1"]), model2=_change(raw["model2"]))


def _result(raw: dict) -> JudgmentResult:
    return JudgmentResult(
        raw=raw["raw"],
        is_draw=bool(raw["is_draw"]),
        winner=_participant(raw.get("winner")),
        loser=_participant(raw.get("loser")),
        rating_update=_rating_update(raw.get("rating_update")),
    )


def _format(raw: dict) -> DebateFormat:
    return DebateFormat(
        key=raw["key"],
        name=raw["name"],
        description=raw.get("description", ""),
        rounds=tuple(RoundSpec(**r) for r in raw["rounds"]),
        style=raw.get("style"),
    )


def _panel_judgment(raw: dict) -> PanelJudgment:
    final = raw["final_result"]
    update = _rating_update(final.get("rating_update"))
    return PanelJudgment(
        judges=[
            Judgment(judge_model_id=j["judge_model_id"], response=j["response"], result=_result(j["result"]))
            for j in raw["judges"]
        ],
        final_result=PanelResult(
            vote_count={k: int(v) for k, v in final["vote_count"].items()},
            majority_percentage=float(final["majority_percentage"]),
            judge_votes=[JudgeVote(**v) for v in final["judge_votes"]],
            winner=_participant(final["winner"]),
            loser=_participant(final["loser"]),
            rating_update=update if isinstance(update, RatingUpdate) else None,
        ),
    )


def debate_to_dict(debate: Debate) -> dict:
    return asdict(debate)


def debate_from_dict(raw: dict) -> Debate:
    judgment = raw.get("judgment")
    panel = raw.get("panel_judgment")
    user = raw.get("user_judgment")
    return Debate(
        id=str(raw["id"]),
        topic=raw["topic"],
        format=_format(raw["format"]),
        participants=[_participant(p) for p in raw.get("participants", [])],
        history=[HistoryEntry(**h) for h in raw.get("history", [])],
        current_round=int(raw.get("current_round", 0)),
        completed=bool(raw.get("completed", False)),
        judgment=(
            Judgment(
                judge_model_id=judgment["judge_model_id"],
                response=judgment["response"],
                result=_result(judgment["result"]),
            )
            if judgment
            else None
        ),
        panel_judgment=_panel_judgment(panel) if panel else None,
        user_judgment=UserJudgment(winner=_participant(user["winner"]), reason=user.get("reason", "")) if user else None,
    )


# --- store -----------------------------------------------------------------

def _write_json_atomic(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _read_json(path: Path) -> object:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


class DebateStore:
    """File-backed store: <data_dir>/debates/<id>.json, elo-ratings.json, debate-topics.json."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)
        self.debates_dir = self.data_dir / "debates"
        self.elo_file = self.data_dir / "elo-ratings.json"
        self.topics_file = self.data_dir / "debate-topics.json"
        self.debates_dir.mkdir(parents=True, exist_ok=True)

    def _debate_path(self, debate_id: str) -> Path:
        # ids are millisecond timestamps; anything else could escape debates_dir
        if not debate_id.isdigit():
            raise ValueError(f"Invalid debate id: {debate_id!r}")
        return self.debates_dir / f"{debate_id}.json"

    def save_debate(self, debate: Debate) -> Path:
        path = self._debate_path(debate.id)
        _write_json_atomic(path, debate_to_dict(debate))
        logger.debug("Debate %s saved to %s", debate.id, path)
        return path

    def load_debate(self, debate_id: str) -> Debate | None:
        path = self._debate_path(debate_id)
        if not path.exists():
            return None
        return debate_from_dict(_read_json(path))

    def list_debates(self) -> list[DebateSummary]:
        summaries: list[DebateSummary] = []
        for path in sorted(self.debates_dir.glob("*.json")):
            debate = debate_from_dict(_read_json(path))
            summaries.append(
                DebateSummary(
                    id=debate.id,
                    topic=debate.topic,
                    format=debate.format.name,
                    participants=debate.participants,
                    completed=debate.completed,
                )
            )
        return summaries

    def get_elo_ratings(self) -> dict[str, int]:
        if not self.elo_file.exists():
            return {}
        return {k: int(v) for k, v in _read_json(self.elo_file).items()}

    def save_elo_ratings(self, ratings: dict[str, int]) -> dict[str, int]:
        _write_json_atomic(self.elo_file, ratings)
        return ratings

    def initialize_debate_topics(self) -> list[TopicCategory]:
        """Return topic categories, seeding the defaults on first use."""
        if not self.topics_file.exists():
            _write_json_atomic(self.topics_file, [asdict(c) for c in DEFAULT_TOPICS])
            logger.info("Seeded default debate topics at %s", self.topics_file)
        return [TopicCategory(category=c["category"], topics=list(c["topics"])) for c in _read_json(self.topics_file)]

"""Pure dataclasses for the debate club pipeline. No logic, no deps."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RoundSpec:
    type: str              # "opening", "rebuttal", "counter-rebuttal", "closing", ...
    name: str              # display name, e.g. "Opening Statement"
    tokens: int            # per-turn token budget


@dataclass(frozen=True)
class DebateFormat:
    key: str               # registry key, e.g. "STANDARD"
    name: str
    description: str
    rounds: tuple[RoundSpec, ...]
    style: str | None = None


@dataclass(frozen=True)
class Participant:
    model_id: str
    position: str          # "For", "Against", "Pro", "Con", ...
    display_name: str


@dataclass
class HistoryEntry:
    round_index: int
    round_name: str
    model_id: str
    position: str
    prompt: str
    response: str
    failed: bool = False   # True for placeholder entries after a turn failure


@dataclass
class RatingChange:
    model_id: str
    old_rating: int
    new_rating: int
    change: int


@dataclass
class RatingUpdate:
    winner: RatingChange
    loser: RatingChange


@dataclass
class DrawUpdate:
    model1: RatingChange
    model2: RatingChange


@dataclass
class JudgmentResult:
    raw: str
    is_draw: bool
    winner: Participant | None = None
    loser: Participant | None = None
    rating_update: RatingUpdate | DrawUpdate | None = None

    @property
    def inconclusive(self) -> bool:
        return not self.is_draw and self.winner is None


@dataclass
class Judgment:
    judge_model_id: str
    response: str
    result: JudgmentResult


@dataclass
class JudgeVote:
    judge_model_id: str
    judge_name: str
    selected_winner: str           # display name of the chosen participant
    selected_winner_position: str


@dataclass
class PanelResult:
    vote_count: dict[str, int]     # model_id -> votes
    majority_percentage: float
    judge_votes: list[JudgeVote]
    winner: Participant
    loser: Participant
    rating_update: RatingUpdate | None = None


@dataclass
class PanelJudgment:
    judges: list[Judgment]
    final_result: PanelResult


@dataclass
class UserJudgment:
    winner: Participant
    reason: str = ""


@dataclass
class Debate:
    id: str                        # millisecond timestamp
    topic: str
    format: DebateFormat
    participants: list[Participant] = field(default_factory=list)
    history: list[HistoryEntry] = field(default_factory=list)
    current_round: int = 0
    completed: bool = False
    judgment: Judgment | None = None
    panel_judgment: PanelJudgment | None = None
    user_judgment: UserJudgment | None = None


@dataclass
class DebateSummary:
    id: str
    topic: str
    format: str
    participants: list[Participant]
    completed: bool


@dataclass
class TopicCategory:
    category: str
    topics: list[str] = field(default_factory=list)

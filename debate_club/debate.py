"""Debate orchestration: sequential turns, prompt construction, transcript."""

import logging
import threading
import time
from collections.abc import Callable

from config.config_loader import PromptsConfig
from debate_club.dispatch import ModelDispatcher
from debate_club.formats import get_format
from debate_club.models import Debate, HistoryEntry, Participant
from debate_club.providers.base import ProviderError, StreamingNotSupported
from debate_club.storage import DebateStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]
StreamCallback = Callable[[str], None]

_id_lock = threading.Lock()
_last_id = 0


def _next_debate_id() -> str:
    """Millisecond timestamp, bumped past the previous id when two land in the same millisecond."""
    global _last_id
    with _id_lock:
        _last_id = max(time.time_ns() // 1_000_000, _last_id + 1)
        return str(_last_id)


def create_debate(topic: str, format_key: str) -> Debate:
    """Start a pending debate. Raises UnknownFormatError for an unknown key."""
    if not topic.strip():
        raise ValueError("Debate topic cannot be empty")
    return Debate(id=_next_debate_id(), topic=topic.strip(), format=get_format(format_key))


def add_participant(debate: Debate, dispatcher: ModelDispatcher, model_id: str, position: str) -> Debate:
    """Bind a debater model to a position. Participants are fixed once added."""
    if len(debate.participants) >= 2:
        raise ValueError("Debate already has 2 participants")
    info = dispatcher.get_model_info(model_id)
    if info is None:
        raise ValueError(f"Model {model_id} not found in configuration")
    if not info.debater:
        raise ValueError(f"Model {model_id} is not a valid debater")
    if any(p.model_id == model_id for p in debate.participants):
        raise ValueError(f"Model {model_id} is already participating")
    debate.participants.append(Participant(model_id=model_id, position=position, display_name=info.display_name))
    return debate


def build_turn_prompt(debate: Debate, participant_idx: int, round_idx: int, prompts: PromptsConfig) -> str:
    """Topic and position, every prior round (own then opponent), round instruction."""
    participant = debate.participants[participant_idx]
    opponent = debate.participants[1 - participant_idx]
    round_spec = debate.format.rounds[round_idx]

    parts = [f"DEBATE TOPIC: {debate.topic}", f"Your position: {participant.position}"]

    if round_idx > 0:
        parts.append("Previous rounds:")
        for i in range(round_idx):
            entries = [h for h in debate.history if h.round_index == i]
            parts.append(f"=== {debate.format.rounds[i].name} ===")
            own = next((h for h in entries if h.model_id == participant.model_id), None)
            if own:
                parts.append(f"Your statement:\n{own.response}")
            theirs = next((h for h in entries if h.model_id == opponent.model_id), None)
            if theirs:
                parts.append(f"Opponent's statement:\n{theirs.response}")

    instructions = prompts.round_instructions
    template = instructions.get(round_spec.type, instructions["default"])
    parts.append(f"=== {round_spec.name} ===")
    parts.append(template.format(topic=debate.topic, position=participant.position))
    return "\n\n".join(parts)


def build_system_prompt(debate: Debate, participant_idx: int, round_idx: int, prompts: PromptsConfig) -> str:
    participant = debate.participants[participant_idx]
    base = prompts.system.format(
        topic=debate.topic,
        position=participant.position,
        round_name=debate.format.rounds[round_idx].name,
    )
    directive = prompts.styles.get(debate.format.style or "", "")
    return f"{base} {directive}" if directive else base


async def _take_turn(
    dispatcher: ModelDispatcher,
    model_id: str,
    prompt: str,
    system_prompt: str,
    max_tokens: int,
    on_stream: StreamCallback | None,
) -> str:
    if on_stream is None:
        return await dispatcher.generate_response(model_id, prompt, system_prompt, max_tokens)
    try:
        return await dispatcher.stream_response(model_id, prompt, on_stream, system_prompt, max_tokens)
    except StreamingNotSupported:
        response = await dispatcher.generate_response(model_id, prompt, system_prompt, max_tokens)
        on_stream(response)
        return response


async def run_debate(
    debate: Debate,
    dispatcher: ModelDispatcher,
    store: DebateStore,
    prompts: PromptsConfig,
    on_progress: ProgressCallback | None = None,
    on_stream: StreamCallback | None = None,
) -> list[HistoryEntry]:
    """Run every round of the debate in order and persist the result.

    A failed turn is recorded as an error placeholder and the debate
    continues.

    Args:
        debate: A pending debate with exactly 2 participants.
        dispatcher: Model dispatch layer.
        store: Where the completed debate is saved.
        prompts: Round instructions, system frame and style directives.
        on_progress: Called before each turn and after each round.
        on_stream: Called with a speaker header, then response chunks (or
            the full response once when the provider cannot stream).

    Returns:
        The debate history.

    Raises:
        ValueError: If the debate is completed or lacks 2 participants.
    """
    if len(debate.participants) != 2:
        raise ValueError("Debate requires exactly 2 participants")
    if debate.completed:
        raise ValueError(f"Debate {debate.id} is already completed")

    total_rounds = len(debate.format.rounds)
    logger.info("Starting debate %s: %s (%d rounds)", debate.id, debate.format.name, total_rounds)

    for round_idx, round_spec in enumerate(debate.format.rounds):
        debate.current_round = round_idx

        for participant_idx, participant in enumerate(debate.participants):
            prompt = build_turn_prompt(debate, participant_idx, round_idx, prompts)
            system_prompt = build_system_prompt(debate, participant_idx, round_idx, prompts)

            if on_progress:
                on_progress(f"{round_spec.name} - {participant.display_name} ({participant.position})")
            if on_stream:
                on_stream(f"\n--- {participant.display_name} ({participant.position}) - {round_spec.name} ---\n\n")

            failed = False
            try:
                response = await _take_turn(
                    dispatcher, participant.model_id, prompt, system_prompt, round_spec.tokens, on_stream
                )
            except ProviderError as exc:
                logger.warning(
                    "Turn failed in %s for %s: %s", round_spec.name, participant.model_id, exc
                )
                response = f"Error generating response: {exc}"
                failed = True
                if on_stream:
                    on_stream(f"\nError: {exc}\n")

            debate.history.append(
                HistoryEntry(
                    round_index=round_idx,
                    round_name=round_spec.name,
                    model_id=participant.model_id,
                    position=participant.position,
                    prompt=prompt,
                    response=response,
                    failed=failed,
                )
            )

        if on_progress:
            on_progress(f"Completed round {round_idx + 1} of {total_rounds}")

    debate.completed = True
    store.save_debate(debate)
    logger.info("Debate %s completed with %d turns", debate.id, len(debate.history))
    return debate.history

"""Shared pytest fixtures."""

from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import ModelInfo, PromptsConfig, RetryConfig
from debate_club.dispatch import ModelDispatcher
from debate_club.elo import EloRatings
from debate_club.formats import get_format
from debate_club.models import Debate, HistoryEntry, Participant
from debate_club.providers.base import AIProvider, ProviderError
from debate_club.storage import DebateStore


class MockProvider(AIProvider):
    """Test double AIProvider.

    generate is an AsyncMock; set return_value or side_effect per test.
    stream yields stream_chunks, then raises stream_error if one is set.
    """

    def __init__(
        self,
        provider_name: str = "mock",
        response_content: str = "Mock response",
        streaming: bool = False,
    ) -> None:
        self._name = provider_name
        self.supports_streaming = streaming
        self.stream_chunks: list[str] = ["Mock ", "streamed ", "response"]
        self.stream_error: ProviderError | None = None
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(return_value=response_content)  # type: ignore[assignment]

    def name(self) -> str:
        return self._name

    async def generate(self, api_model: str, prompt: str, system_prompt: str | None, max_tokens: int) -> str:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return "Mock response"

    async def stream(self, api_model: str, prompt: str, system_prompt: str | None, max_tokens: int) -> AsyncIterator[str]:
        for chunk in self.stream_chunks:
            yield chunk
        if self.stream_error is not None:
            raise self.stream_error


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        system="You are debating '{topic}' as {position} in the {round_name}.",
        round_instructions={
            "opening": "Present your opening statement arguing {position} on {topic}.",
            "closing": "Deliver your closing statement for {position}.",
            "default": "Continue the debate as {position}.",
        },
        judge_system="You are an impartial debate judge.",
        panel_judge_system="You are one judge on a panel. You must pick a winner.",
        styles={"socratic": "Use Socratic questioning."},
    )


@pytest.fixture
def sample_models() -> dict[str, ModelInfo]:
    return {
        "model-a": ModelInfo("model-a", "mock", "mock-a-1", "Model A", 800),
        "model-b": ModelInfo("model-b", "mock", "mock-b-1", "Model B", 800),
        "judge-1": ModelInfo("judge-1", "mock", "mock-j-1", "Judge One", 3000, debater=False),
        "judge-2": ModelInfo("judge-2", "mock", "mock-j-2", "Judge Two", 3000, debater=False),
        "judge-3": ModelInfo("judge-3", "mock", "mock-j-3", "Judge Three", 3000, debater=False),
        "debater-only": ModelInfo("debater-only", "mock", "mock-d-1", "Debater Only", 800, judge=False),
        "orphan": ModelInfo("orphan", "missing", "orphan-1", "Orphan", 800),
    }


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def dispatcher(sample_models, mock_provider) -> ModelDispatcher:
    return ModelDispatcher(sample_models, {"mock": mock_provider}, RetryConfig(max_retries=3, base_delay_sec=0))


@pytest.fixture
def store(tmp_path: Path) -> DebateStore:
    return DebateStore(tmp_path / "data")


@pytest.fixture
def ratings(store: DebateStore) -> EloRatings:
    return EloRatings(store)


@pytest.fixture
def participants() -> list[Participant]:
    return [
        Participant(model_id="model-a", position="Pro", display_name="Model A"),
        Participant(model_id="model-b", position="Con", display_name="Model B"),
    ]


@pytest.fixture
def completed_debate(store: DebateStore, participants) -> Debate:
    fmt = get_format("SHORT")
    debate = Debate(id="1718000000000", topic="Cats are better than dogs", format=fmt, participants=list(participants))
    for round_idx, round_spec in enumerate(fmt.rounds):
        for p in participants:
            debate.history.append(
                HistoryEntry(
                    round_index=round_idx,
                    round_name=round_spec.name,
                    model_id=p.model_id,
                    position=p.position,
                    prompt="prompt",
                    response=f"{p.display_name} argues in {round_spec.name}.",
                )
            )
    debate.current_round = len(fmt.rounds) - 1
    debate.completed = True
    store.save_debate(debate)
    return debate

"""Tests for debate_club/debate.py."""

import pytest

from debate_club.debate import (
    add_participant,
    build_system_prompt,
    build_turn_prompt,
    create_debate,
    run_debate,
)
from debate_club.dispatch import ModelDispatcher, ModelNotConfigured
from debate_club.formats import UnknownFormatError
from debate_club.models import HistoryEntry, Participant
from debate_club.providers.base import ProviderAuthError, ProviderServerError
from tests.conftest import MockProvider


@pytest.fixture
def ready_debate(dispatcher):
    debate = create_debate("Cats are better than dogs", "STANDARD")
    add_participant(debate, dispatcher, "model-a", "Pro")
    add_participant(debate, dispatcher, "model-b", "Con")
    return debate


def test_create_debate_defaults():
    debate = create_debate("  Remote work beats the office  ", "standard")
    assert debate.topic == "Remote work beats the office"
    assert debate.format.key == "STANDARD"
    assert debate.id.isdigit()
    assert debate.participants == []
    assert debate.history == []
    assert debate.completed is False


def test_debates_created_in_same_millisecond_get_distinct_ids(monkeypatch):
    monkeypatch.setattr("debate_club.debate.time.time_ns", lambda: 1_718_000_000_000_000_000)
    first = create_debate("Topic", "SHORT")
    second = create_debate("Topic", "SHORT")
    assert first.id != second.id
    assert int(second.id) > int(first.id)


def test_create_debate_unknown_format():
    with pytest.raises(UnknownFormatError):
        create_debate("Topic", "NOPE")


def test_create_debate_empty_topic():
    with pytest.raises(ValueError, match="empty"):
        create_debate("   ", "STANDARD")


def test_add_participant_uses_display_name(dispatcher):
    debate = create_debate("Topic", "SHORT")
    add_participant(debate, dispatcher, "model-a", "For")
    assert debate.participants[0].display_name == "Model A"
    assert debate.participants[0].position == "For"


def test_add_participant_rejects_third(ready_debate, dispatcher):
    with pytest.raises(ValueError, match="already has 2"):
        add_participant(ready_debate, dispatcher, "debater-only", "Neutral")


def test_add_participant_rejects_unknown_model(dispatcher):
    debate = create_debate("Topic", "SHORT")
    with pytest.raises(ValueError, match="not found"):
        add_participant(debate, dispatcher, "ghost", "For")


def test_add_participant_rejects_non_debater(dispatcher):
    debate = create_debate("Topic", "SHORT")
    with pytest.raises(ValueError, match="not a valid debater"):
        add_participant(debate, dispatcher, "judge-1", "For")


def test_add_participant_rejects_duplicate_model(dispatcher):
    debate = create_debate("Topic", "SHORT")
    add_participant(debate, dispatcher, "model-a", "For")
    with pytest.raises(ValueError, match="already participating"):
        add_participant(debate, dispatcher, "model-a", "Against")


async def test_run_debate_history_shape(ready_debate, dispatcher, store, sample_prompts_config):
    history = await run_debate(ready_debate, dispatcher, store, sample_prompts_config)

    rounds = ready_debate.format.rounds
    assert len(history) == 2 * len(rounds)
    for i, entry in enumerate(history):
        assert entry.round_index == i // 2
        assert entry.round_name == rounds[i // 2].name
        assert entry.model_id == ("model-a" if i % 2 == 0 else "model-b")
        assert entry.position == ("Pro" if i % 2 == 0 else "Con")
        assert entry.failed is False
    assert ready_debate.completed is True


async def test_run_debate_persists_completed_record(ready_debate, dispatcher, store, sample_prompts_config):
    await run_debate(ready_debate, dispatcher, store, sample_prompts_config)
    loaded = store.load_debate(ready_debate.id)
    assert loaded is not None
    assert loaded.completed is True
    assert len(loaded.history) == 8


async def test_run_debate_passes_round_token_budget(ready_debate, dispatcher, store, sample_prompts_config, mock_provider):
    await run_debate(ready_debate, dispatcher, store, sample_prompts_config)
    budgets = [call.args[3] for call in mock_provider.generate.await_args_list]
    assert budgets == [2000, 2000, 1500, 1500, 1500, 1500, 1500, 1500]


async def test_run_debate_records_placeholder_on_failure(ready_debate, dispatcher, store, sample_prompts_config, mock_provider):
    responses = ["Turn text"] * 8
    responses[1] = ProviderAuthError("mock", "bad key")
    mock_provider.generate.side_effect = responses

    history = await run_debate(ready_debate, dispatcher, store, sample_prompts_config)

    assert len(history) == 8
    assert history[1].failed is True
    assert history[1].response.startswith("Error generating response:")
    assert "bad key" in history[1].response
    assert all(not h.failed for i, h in enumerate(history) if i != 1)
    assert ready_debate.completed is True


async def test_run_debate_placeholder_after_retries_exhausted(ready_debate, dispatcher, store, sample_prompts_config, mock_provider):
    responses: list = [ProviderServerError("mock", "down")] * 4 + ["Turn text"] * 7
    mock_provider.generate.side_effect = responses

    history = await run_debate(ready_debate, dispatcher, store, sample_prompts_config)

    assert history[0].failed is True
    assert mock_provider.generate.await_count == 11


async def test_run_debate_config_error_is_fatal(ready_debate, sample_models, store, sample_prompts_config):
    dispatcher = ModelDispatcher(sample_models, {"mock": MockProvider()})
    ready_debate.participants[1] = Participant(model_id="ghost", position="Con", display_name="Ghost")
    with pytest.raises(ModelNotConfigured):
        await run_debate(ready_debate, dispatcher, store, sample_prompts_config)
    assert ready_debate.completed is False


async def test_run_debate_requires_two_participants(dispatcher, store, sample_prompts_config):
    debate = create_debate("Topic", "SHORT")
    add_participant(debate, dispatcher, "model-a", "Pro")
    with pytest.raises(ValueError, match="exactly 2"):
        await run_debate(debate, dispatcher, store, sample_prompts_config)


async def test_run_debate_rejects_completed(ready_debate, dispatcher, store, sample_prompts_config):
    await run_debate(ready_debate, dispatcher, store, sample_prompts_config)
    with pytest.raises(ValueError, match="already completed"):
        await run_debate(ready_debate, dispatcher, store, sample_prompts_config)


async def test_run_debate_progress_messages(ready_debate, dispatcher, store, sample_prompts_config):
    messages: list[str] = []
    await run_debate(ready_debate, dispatcher, store, sample_prompts_config, on_progress=messages.append)

    assert messages[0] == "Opening Statement - Model A (Pro)"
    assert messages[1] == "Opening Statement - Model B (Con)"
    assert messages[2] == "Completed round 1 of 4"
    assert messages[-1] == "Completed round 4 of 4"


async def test_run_debate_streams_when_supported(sample_models, store, sample_prompts_config):
    provider = MockProvider(streaming=True)
    dispatcher = ModelDispatcher(sample_models, {"mock": provider})
    debate = create_debate("Topic", "SHORT")
    add_participant(debate, dispatcher, "model-a", "Pro")
    add_participant(debate, dispatcher, "model-b", "Con")

    chunks: list[str] = []
    history = await run_debate(debate, dispatcher, store, sample_prompts_config, on_stream=chunks.append)

    assert all(h.response == "Mock streamed response" for h in history)
    assert chunks[0].strip().startswith("--- Model A (Pro) - Opening Statement ---")
    assert "streamed " in chunks
    provider.generate.assert_not_awaited()


async def test_run_debate_stream_falls_back_for_non_streaming_provider(ready_debate, dispatcher, store, sample_prompts_config, mock_provider):
    chunks: list[str] = []
    history = await run_debate(ready_debate, dispatcher, store, sample_prompts_config, on_stream=chunks.append)

    assert all(h.response == "Mock response" for h in history)
    assert chunks.count("Mock response") == 8


def test_turn_prompt_first_round(ready_debate, sample_prompts_config):
    prompt = build_turn_prompt(ready_debate, 0, 0, sample_prompts_config)
    assert "DEBATE TOPIC: Cats are better than dogs" in prompt
    assert "Your position: Pro" in prompt
    assert "Previous rounds" not in prompt
    assert "Present your opening statement arguing Pro on Cats are better than dogs." in prompt


def test_turn_prompt_includes_prior_rounds_own_then_opponent(ready_debate, sample_prompts_config):
    ready_debate.history = [
        HistoryEntry(0, "Opening Statement", "model-a", "Pro", "p", "Cats purr."),
        HistoryEntry(0, "Opening Statement", "model-b", "Con", "p", "Dogs fetch."),
    ]
    prompt = build_turn_prompt(ready_debate, 1, 1, sample_prompts_config)

    assert "=== Opening Statement ===" in prompt
    own = prompt.index("Your statement:\nDogs fetch.")
    theirs = prompt.index("Opponent's statement:\nCats purr.")
    assert own < theirs
    assert prompt.rstrip().endswith("Continue the debate as Con.")


def test_turn_prompt_omits_missing_prior_entries(ready_debate, sample_prompts_config):
    ready_debate.history = [HistoryEntry(0, "Opening Statement", "model-a", "Pro", "p", "Cats purr.")]
    prompt = build_turn_prompt(ready_debate, 0, 1, sample_prompts_config)
    assert "Your statement:\nCats purr." in prompt
    assert "Opponent's statement" not in prompt


def test_system_prompt_fills_placeholders(ready_debate, sample_prompts_config):
    system = build_system_prompt(ready_debate, 1, 3, sample_prompts_config)
    assert system == "You are debating 'Cats are better than dogs' as Con in the Closing Statement."


def test_system_prompt_appends_style_directive(dispatcher, sample_prompts_config):
    debate = create_debate("Is virtue knowledge?", "SOCRATIC")
    add_participant(debate, dispatcher, "model-a", "Pro")
    add_participant(debate, dispatcher, "model-b", "Con")
    assert build_system_prompt(debate, 0, 0, sample_prompts_config).endswith("Use Socratic questioning.")


def test_system_prompt_unknown_style_adds_nothing(dispatcher, sample_prompts_config):
    debate = create_debate("Rhymes matter", "RAP_BATTLE")
    add_participant(debate, dispatcher, "model-a", "Pro")
    add_participant(debate, dispatcher, "model-b", "Con")
    system = build_system_prompt(debate, 0, 0, sample_prompts_config)
    assert system == "You are debating 'Rhymes matter' as Pro in the Opening Verse."

"""Unit tests for debate_club/healthcheck.py — no real API calls."""

from unittest.mock import AsyncMock

from config.config_loader import RetryConfig
from debate_club.dispatch import ModelDispatcher
from debate_club.healthcheck import run_health_checks
from debate_club.providers.base import ProviderAuthError, ProviderServerError

from tests.conftest import MockProvider


def _dispatcher(sample_models, **providers: MockProvider) -> ModelDispatcher:
    models = dict(sample_models)
    models["model-a"].provider = "alpha"
    models["model-b"].provider = "beta"
    return ModelDispatcher(models, providers, RetryConfig(base_delay_sec=0))


async def test_all_models_pass(sample_models):
    dispatcher = _dispatcher(sample_models, alpha=MockProvider("alpha", "OK"), beta=MockProvider("beta", "OK"))

    results = await run_health_checks(dispatcher, ["model-a", "model-b"])

    assert results == {"model-a": (True, ""), "model-b": (True, "")}


async def test_one_model_fails(sample_models):
    """A provider that raises returns ok=False with the error message."""
    beta = MockProvider("beta")
    beta.generate = AsyncMock(side_effect=ProviderAuthError("beta", "403 Forbidden"))
    dispatcher = _dispatcher(sample_models, alpha=MockProvider("alpha", "OK"), beta=beta)

    results = await run_health_checks(dispatcher, ["model-a", "model-b"])

    assert results["model-a"] == (True, "")
    ok, err = results["model-b"]
    assert ok is False
    assert "403" in err


async def test_ping_is_not_retried(sample_models):
    alpha = MockProvider("alpha")
    alpha.generate = AsyncMock(side_effect=ProviderServerError("alpha", "503 unavailable"))
    dispatcher = _dispatcher(sample_models, alpha=alpha, beta=MockProvider("beta"))

    results = await run_health_checks(dispatcher, ["model-a"])

    assert results["model-a"][0] is False
    assert alpha.generate.await_count == 1


async def test_ping_uses_small_budget(sample_models):
    alpha = MockProvider("alpha", "OK")
    dispatcher = _dispatcher(sample_models, alpha=alpha, beta=MockProvider("beta"))

    await run_health_checks(dispatcher, ["model-a"])

    api_model, _prompt, system_prompt, max_tokens = alpha.generate.await_args.args
    assert api_model == "mock-a-1"
    assert system_prompt is None
    assert max_tokens == 10


async def test_model_without_provider_fails(sample_models):
    dispatcher = _dispatcher(sample_models, alpha=MockProvider("alpha"))

    results = await run_health_checks(dispatcher, ["model-b", "orphan"])

    assert results["model-b"][0] is False
    assert results["orphan"][0] is False


async def test_unknown_model_fails(sample_models):
    dispatcher = _dispatcher(sample_models, alpha=MockProvider("alpha"))
    results = await run_health_checks(dispatcher, ["ghost"])
    ok, err = results["ghost"]
    assert ok is False
    assert err


async def test_empty_model_list(sample_models):
    dispatcher = _dispatcher(sample_models)
    assert await run_health_checks(dispatcher, []) == {}

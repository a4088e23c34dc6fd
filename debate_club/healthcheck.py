"""Provider health checks — ping each API before starting a debate."""

import asyncio
import logging

from debate_club.dispatch import ModelDispatcher

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_PING_MAX_TOKENS = 10
_TIMEOUT_SEC = 15.0


async def _check_one(dispatcher: ModelDispatcher, model_id: str) -> tuple[str, bool, str]:
    """Ping a single model's provider without retries. Returns (model_id, ok, error_message)."""
    info = dispatcher.get_model_info(model_id)
    if info is None:
        return model_id, False, f"Model {model_id} not found in configuration"
    provider = dispatcher.providers.get(info.provider)
    if provider is None:
        return model_id, False, f"Provider {info.provider} not available (missing API key?)"
    try:
        await asyncio.wait_for(
            provider.generate(info.api_model, _PING_PROMPT, None, _PING_MAX_TOKENS),
            timeout=_TIMEOUT_SEC,
        )
        return model_id, True, ""
    except Exception as exc:
        return model_id, False, str(exc) or type(exc).__name__


async def run_health_checks(
    dispatcher: ModelDispatcher,
    model_ids: list[str],
) -> dict[str, tuple[bool, str]]:
    """Ping the provider behind each model in parallel.

    Returns:
        Dict mapping model id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(dispatcher, m) for m in model_ids))
    return {model_id: (ok, err) for model_id, ok, err in results}

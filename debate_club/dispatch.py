"""Model dispatch: resolve logical model ids to providers, retry with backoff."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable

from config.config_loader import AppConfig, ModelInfo, ProviderConfig, RetryConfig
from debate_club.providers.anthropic import AnthropicProvider
from debate_club.providers.base import AIProvider, ProviderError, StreamingNotSupported
from debate_club.providers.gemini import GeminiProvider
from debate_club.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

_DEFAULT_MAX_TOKENS = 1000

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


class ModelNotConfigured(Exception):
    """The model id is not in the registry."""

    def __init__(self, model_id: str) -> None:
        self.model_id = model_id
        super().__init__(f"Model {model_id} not found in configuration")


class ProviderNotImplemented(Exception):
    """The model's provider has no client (unknown SDK or missing API key)."""

    def __init__(self, provider_name: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"Provider {provider_name} not implemented")


def build_providers(
    providers: dict[str, ProviderConfig],
    available: set[str],
) -> dict[str, AIProvider]:
    """Instantiate a client for every available provider. Returns dict keyed by name."""
    clients: dict[str, AIProvider] = {}
    for name in sorted(available):
        cfg = providers[name]
        if cfg.sdk not in PROVIDER_CLASSES:
            logger.warning("Provider '%s' uses unknown sdk '%s', skipping", name, cfg.sdk)
            continue
        try:
            clients[name] = PROVIDER_CLASSES[cfg.sdk](cfg)
        except ProviderError as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return clients


def backoff_delay(retry_number: int, base_delay_sec: float) -> float:
    """Delay before retry N (1-based): base × 2^N with ±50% jitter."""
    return base_delay_sec * (2 ** retry_number) * random.uniform(0.5, 1.5)


class ModelDispatcher:
    """Uniform generate/stream surface over every configured backend."""

    def __init__(
        self,
        models: dict[str, ModelInfo],
        providers: dict[str, AIProvider],
        retry: RetryConfig | None = None,
    ) -> None:
        self._models = models
        self._providers = providers
        self._retry = retry or RetryConfig()

    @classmethod
    def from_config(cls, config: AppConfig) -> "ModelDispatcher":
        providers = build_providers(config.providers, config.available_providers)
        return cls(config.models, providers, config.retry)

    @property
    def providers(self) -> dict[str, AIProvider]:
        return self._providers

    def get_model_info(self, model_id: str) -> ModelInfo | None:
        return self._models.get(model_id)

    def get_debater_models(self) -> list[str]:
        return [model_id for model_id, info in self._models.items() if info.debater]

    def get_judge_models(self) -> list[str]:
        return [model_id for model_id, info in self._models.items() if info.judge]

    def display_name(self, model_id: str) -> str:
        info = self._models.get(model_id)
        return info.display_name if info else model_id

    def _resolve(self, model_id: str) -> tuple[ModelInfo, AIProvider]:
        info = self._models.get(model_id)
        if info is None:
            raise ModelNotConfigured(model_id)
        client = self._providers.get(info.provider)
        if client is None:
            raise ProviderNotImplemented(info.provider)
        return info, client

    def supports_streaming(self, model_id: str) -> bool:
        _, client = self._resolve(model_id)
        return client.supports_streaming

    async def _with_retry(self, call: Callable[[], Awaitable[str]], label: str) -> str:
        """Run call, retrying retryable ProviderErrors up to max_retries times."""
        retry_number = 0
        while True:
            try:
                return await call()
            except ProviderError as exc:
                if not exc.retryable or retry_number >= self._retry.max_retries:
                    raise
                retry_number += 1
                delay = backoff_delay(retry_number, self._retry.base_delay_sec)
                logger.warning(
                    "%s failed (%s), retry %d/%d in %.1fs",
                    label, exc, retry_number, self._retry.max_retries, delay,
                )
                await asyncio.sleep(delay)

    async def generate_response(
        self,
        model_id: str,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Generate a full response for a logical model id.

        Raises:
            ModelNotConfigured: Unknown model id.
            ProviderNotImplemented: No client for the model's provider.
            ProviderError: Normalized provider failure after retries.
        """
        info, client = self._resolve(model_id)
        system = system_prompt or info.system_prompt or None
        tokens = max_tokens or info.max_tokens or _DEFAULT_MAX_TOKENS
        logger.debug("Dispatching %s via %s (%s)", model_id, client.name(), info.api_model)
        return await self._with_retry(
            lambda: client.generate(info.api_model, prompt, system, tokens),
            label=model_id,
        )

    async def stream_response(
        self,
        model_id: str,
        prompt: str,
        on_chunk: Callable[[str], None],
        system_prompt: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Stream a response chunk by chunk, returning the complete text.

        A retryable failure mid-stream falls back to a full-response call; only
        the part of that response not already delivered is passed to on_chunk.

        Raises:
            StreamingNotSupported: The provider cannot stream.
        """
        info, client = self._resolve(model_id)
        if not client.supports_streaming:
            raise StreamingNotSupported(client.name(), f"Streaming is not supported for {model_id}")

        system = system_prompt or info.system_prompt or None
        tokens = max_tokens or info.max_tokens or _DEFAULT_MAX_TOKENS
        delivered: list[str] = []
        try:
            async for chunk in client.stream(info.api_model, prompt, system, tokens):
                delivered.append(chunk)
                on_chunk(chunk)
            return "".join(delivered)
        except ProviderError as exc:
            if not exc.retryable:
                raise
            logger.warning("Stream for %s interrupted (%s), falling back to full response", model_id, exc)

        partial = "".join(delivered)
        full = await self.generate_response(model_id, prompt, system_prompt, max_tokens)
        if full.startswith(partial):
            remainder = full[len(partial):]
        else:
            remainder = ("\n\n" if partial else "") + full
        if remainder:
            on_chunk(remainder)
        return full

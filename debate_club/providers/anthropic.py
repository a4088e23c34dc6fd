"""Anthropic Claude provider using anthropic SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator

import httpx
import anthropic as anthropic_sdk

from config.config_loader import ProviderConfig
from debate_club.providers.base import (
    AIProvider,
    ProviderAuthError,
    ProviderError,
    ProviderServerError,
    classify_status,
)

logger = logging.getLogger(__name__)


def _to_provider_error(provider_name: str, exc: Exception) -> ProviderError:
    if isinstance(exc, anthropic_sdk.APIStatusError):
        return classify_status(provider_name, exc.status_code, exc.message)
    if isinstance(exc, anthropic_sdk.APIConnectionError):
        return ProviderServerError(provider_name, f"Connection failed: {exc}")
    if isinstance(exc, httpx.TransportError):
        return ProviderServerError(provider_name, f"Connection lost: {exc}")
    return ProviderError(provider_name, f"API call failed: {exc}")


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK."""

    supports_streaming = True

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderAuthError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def _request(self, api_model: str, prompt: str, system_prompt: str | None, max_tokens: int) -> dict:
        params = {
            "model": api_model,
            "max_tokens": max_tokens,
            "temperature": 0.7,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            params["system"] = system_prompt
        return params

    async def generate(
        self,
        api_model: str,
        prompt: str,
        system_prompt: str | None,
        max_tokens: int,
    ) -> str:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(**self._request(api_model, prompt, system_prompt, max_tokens)),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderServerError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise _to_provider_error(self._config.name, exc) from exc

        latency = time.monotonic() - start

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise ProviderError(self._config.name, "No text blocks in response")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens

        logger.info("Anthropic %s: %.2fs, %s tokens", api_model, latency, token_count)
        return "\n".join(text_blocks)

    async def stream(
        self,
        api_model: str,
        prompt: str,
        system_prompt: str | None,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        try:
            async with self._client.messages.stream(
                **self._request(api_model, prompt, system_prompt, max_tokens)
            ) as stream:
                async for text in stream.text_stream:
                    yield text
        except ProviderError:
            raise
        except Exception as exc:
            raise _to_provider_error(self._config.name, exc) from exc

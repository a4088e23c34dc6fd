"""OpenAI provider using openai SDK with native async.

Also serves OpenAI-compatible backends (Groq, xAI) when the provider config
carries a base_url.
"""

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator

import httpx
import openai
from openai import AsyncOpenAI

from config.config_loader import ProviderConfig
from debate_club.providers.base import (
    AIProvider,
    ProviderAuthError,
    ProviderError,
    ProviderServerError,
    classify_status,
)

logger = logging.getLogger(__name__)

# Reasoning models reject max_tokens and want max_completion_tokens instead
_USES_COMPLETION_TOKENS = ("o1", "o3-mini", "o4-mini")


def _to_provider_error(provider_name: str, exc: Exception) -> ProviderError:
    if isinstance(exc, openai.APIStatusError):
        return classify_status(provider_name, exc.status_code, exc.message)
    if isinstance(exc, openai.APIConnectionError):
        return ProviderServerError(provider_name, f"Connection failed: {exc}")
    if isinstance(exc, httpx.TransportError):
        return ProviderServerError(provider_name, f"Connection lost: {exc}")
    return ProviderError(provider_name, f"API call failed: {exc}")


class OpenAIProvider(AIProvider):
    """OpenAI (or OpenAI-compatible) provider via openai SDK."""

    supports_streaming = True

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderAuthError(config.name, f"Missing API key: {config.api_key_env}")
        if config.base_url:
            self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)
        else:
            self._client = AsyncOpenAI(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def _request(self, api_model: str, prompt: str, system_prompt: str | None, max_tokens: int) -> dict:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        params: dict = {"model": api_model, "messages": messages}
        if api_model in _USES_COMPLETION_TOKENS:
            params["max_completion_tokens"] = max_tokens
        else:
            params["max_tokens"] = max_tokens
            params["temperature"] = 0.7
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
                self._client.chat.completions.create(**self._request(api_model, prompt, system_prompt, max_tokens)),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderServerError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise _to_provider_error(self._config.name, exc) from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info("%s %s: %.2fs, %s tokens", self._config.name, api_model, latency, token_count)
        return choice.message.content

    async def stream(
        self,
        api_model: str,
        prompt: str,
        system_prompt: str | None,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        try:
            response = await self._client.chat.completions.create(
                **self._request(api_model, prompt, system_prompt, max_tokens),
                stream=True,
            )
            async for chunk in response:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except ProviderError:
            raise
        except Exception as exc:
            raise _to_provider_error(self._config.name, exc) from exc

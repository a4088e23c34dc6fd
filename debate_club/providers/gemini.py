"""Gemini provider using google-genai SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
import httpx

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
    if isinstance(exc, genai_errors.APIError):
        return classify_status(provider_name, exc.code, exc.message or str(exc))
    if isinstance(exc, httpx.TransportError):
        return ProviderServerError(provider_name, f"Connection lost: {exc}")
    return ProviderError(provider_name, f"API call failed: {exc}")


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    supports_streaming = True

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderAuthError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def _generation_config(self, system_prompt: str | None, max_tokens: int) -> genai_types.GenerateContentConfig:
        return genai_types.GenerateContentConfig(
            max_output_tokens=max_tokens,
            system_instruction=system_prompt or None,
            temperature=0.7,
        )

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
                self._client.aio.models.generate_content(
                    model=api_model,
                    contents=prompt,
                    config=self._generation_config(system_prompt, max_tokens),
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderServerError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise _to_provider_error(self._config.name, exc) from exc

        latency = time.monotonic() - start

        if not response.text:
            raise ProviderError(self._config.name, "Empty response text")

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        logger.info("Gemini %s: %.2fs, %s tokens", api_model, latency, token_count)
        return response.text

    async def stream(
        self,
        api_model: str,
        prompt: str,
        system_prompt: str | None,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        try:
            response = await self._client.aio.models.generate_content_stream(
                model=api_model,
                contents=prompt,
                config=self._generation_config(system_prompt, max_tokens),
            )
            async for chunk in response:
                if chunk.text:
                    yield chunk.text
        except ProviderError:
            raise
        except Exception as exc:
            raise _to_provider_error(self._config.name, exc) from exc

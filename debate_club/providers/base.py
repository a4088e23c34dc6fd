"""Abstract base and normalized error taxonomy for all AI model providers."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator


class ProviderError(Exception):
    """Raised when a provider call fails."""

    retryable = False

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class ProviderAuthError(ProviderError):
    """Credentials rejected (401/403). Never retried."""


class ProviderRateLimited(ProviderError):
    """Provider throttled the request (429)."""

    retryable = True


class ProviderServerError(ProviderError):
    """5xx, in-stream error event, connection loss or timeout."""

    retryable = True


class ModelUnavailable(ProviderError):
    """The provider does not serve the requested model (404)."""


class StreamingNotSupported(ProviderError):
    """The provider cannot stream; callers should request a full response."""


def classify_status(provider_name: str, status: int | None, message: str) -> ProviderError:
    """Map an HTTP status from any SDK onto the normalized error categories."""
    if status in (401, 403):
        return ProviderAuthError(provider_name, f"Authentication failed ({status}): {message}")
    if status == 404:
        return ModelUnavailable(provider_name, f"Model not available: {message}")
    if status == 429:
        return ProviderRateLimited(provider_name, f"Rate limit exceeded: {message}")
    if status is None or status >= 500:
        return ProviderServerError(provider_name, f"Server error ({status}): {message}")
    if status < 400:
        # error event inside an already-accepted (2xx) stream, e.g. overloaded
        return ProviderServerError(provider_name, f"Stream error ({status}): {message}")
    return ProviderError(provider_name, f"API call failed ({status}): {message}")


class AIProvider(ABC):
    """Abstract base for all AI model providers.

    One instance serves every model routed to its backend; the concrete API
    model string is passed per call.
    """

    supports_streaming: bool = False

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'anthropic', 'groq')."""
        ...

    @abstractmethod
    async def generate(
        self,
        api_model: str,
        prompt: str,
        system_prompt: str | None,
        max_tokens: int,
    ) -> str:
        """Generate a full response for the given prompt.

        Args:
            api_model: Backend model identifier.
            prompt: The user prompt text to send.
            system_prompt: Optional system instruction.
            max_tokens: Output token budget.

        Returns:
            The response text.

        Raises:
            ProviderError: One of the normalized subclasses on failure.
        """
        ...

    async def stream(
        self,
        api_model: str,
        prompt: str,
        system_prompt: str | None,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        """Yield response text chunks. Only valid when supports_streaming is set."""
        raise StreamingNotSupported(self.name(), "Streaming is not supported")
        yield  # pragma: no cover

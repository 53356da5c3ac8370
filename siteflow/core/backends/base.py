"""Abstract base class for remote text generation bridges."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class GenerateOptions:
    """Per-request generation options.

    Attributes:
        max_tokens: Maximum tokens to generate
        temperature: Sampling temperature (0.0 = deterministic)
        model: Override for the bridge's configured model
    """

    max_tokens: int = 256
    temperature: float = 0.7
    model: str | None = None


@dataclass
class BridgeStatus:
    available: bool
    error: str | None = None


class GenerationBridge(ABC):
    """Remote text generation capability.

    The assistant only ever sees this interface. Transport, credentials and
    retry policy are the implementation's business.

    Lifecycle:
    1. Create bridge with endpoint/model/credentials
    2. Call generate() as often as needed
    3. Call close() to release the HTTP client (must be idempotent)
    """

    @property
    @abstractmethod
    def provider(self) -> str:
        """Short provider identifier (openai, google, generic)."""
        ...

    @abstractmethod
    async def generate(self, prompt: str, options: GenerateOptions | None = None) -> str:
        """Generate a completion for ``prompt``.

        Returns:
            The generated text, stripped

        Raises:
            MissingCredentialsError: If no API key can be resolved
            RemoteAPIError: If the provider answers with an error status
            RemoteTimeoutError: If the request times out
            RemoteConnectionError: If the provider cannot be reached
        """
        ...

    @abstractmethod
    async def status(self) -> BridgeStatus:
        """Probe whether the provider is configured and reachable.

        Never raises; problems are reported in ``BridgeStatus.error``.
        """
        ...

    async def close(self) -> None:
        """Release resources. Safe to call multiple times."""
        return None


__all__ = ["BridgeStatus", "GenerateOptions", "GenerationBridge"]

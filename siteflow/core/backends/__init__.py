"""Remote generation backends for siteflow.

This package provides adapters for remote text generation providers:
- OpenAICompatibleBackend: OpenAI chat completions (and compatible servers)
- GoogleGenerativeBackend: Google Generative Language API (Gemini)
- GenericHTTPBackend: Any endpoint accepting {"prompt", "options"}

Usage:
    from siteflow.config import RemoteConfig
    from siteflow.core.backends import CredentialResolver, create_backend

    backend = create_backend(RemoteConfig(enabled=True, provider="openai"),
                             CredentialResolver(explicit_key=key))
    text = await backend.generate(prompt)
    await backend.close()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import BridgeStatus, GenerateOptions, GenerationBridge
from .credentials import CredentialResolver

if TYPE_CHECKING:
    from ...config import RemoteConfig
    from ..retry import RetryManager


# Exceptions
class BackendError(Exception):
    """Base exception for backend errors."""

    pass


class GenerationError(BackendError):
    """Error during text generation."""

    pass


class MissingCredentialsError(BackendError):
    """No API key could be resolved for the provider."""

    pass


class RemoteAPIError(GenerationError):
    """Provider answered with a non-success HTTP status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteTimeoutError(GenerationError):
    """Request to the provider timed out."""

    pass


class RemoteConnectionError(GenerationError):
    """Provider could not be reached."""

    pass


def create_backend(
    remote: "RemoteConfig",
    credentials: CredentialResolver | None = None,
    retry: "RetryManager | None" = None,
) -> GenerationBridge:
    """Create appropriate backend from RemoteConfig.

    Uses lazy imports so that only the selected adapter is loaded.

    Args:
        remote: Remote provider settings
        credentials: Key resolver. Defaults to the config's explicit key and
            nothing else.
        retry: Shared RetryManager, or None for the provider default

    Returns:
        Configured GenerationBridge instance.

    Raises:
        BackendError: If the provider is unknown, or generic without an endpoint.
    """
    if credentials is None:
        credentials = CredentialResolver(explicit_key=remote.api_key, account=remote.account)

    kwargs = {
        "model": remote.model,
        "credentials": credentials,
        "retry": retry,
        "max_retries": remote.max_retries,
        "initial_delay": remote.initial_delay,
        "max_delay": remote.max_delay,
        "timeout": remote.timeout,
        "probe_timeout": remote.probe_timeout,
    }

    provider = (remote.provider or "").lower()
    endpoint = remote.endpoint

    if provider == "openai" or (endpoint and "openai.com" in endpoint):
        from .openai import OpenAICompatibleBackend

        return OpenAICompatibleBackend(endpoint=endpoint, **kwargs)

    elif provider == "google":
        from .google import GoogleGenerativeBackend

        return GoogleGenerativeBackend(endpoint=endpoint, **kwargs)

    elif provider == "generic":
        from .generic import GenericHTTPBackend

        if not endpoint:
            raise BackendError("No remote endpoint configured")
        return GenericHTTPBackend(endpoint=endpoint, **kwargs)

    else:
        raise BackendError(f"Unknown remote provider: {remote.provider}")


__all__ = [
    # Base class
    "GenerationBridge",
    "GenerateOptions",
    "BridgeStatus",
    "CredentialResolver",
    # Backends (lazy imported)
    "OpenAICompatibleBackend",
    "GoogleGenerativeBackend",
    "GenericHTTPBackend",
    # Factory
    "create_backend",
    # Exceptions
    "BackendError",
    "GenerationError",
    "MissingCredentialsError",
    "RemoteAPIError",
    "RemoteTimeoutError",
    "RemoteConnectionError",
]


def __getattr__(name: str):
    """Lazy import backends to avoid loading unused adapters."""
    if name == "OpenAICompatibleBackend":
        from .openai import OpenAICompatibleBackend
        return OpenAICompatibleBackend
    if name == "GoogleGenerativeBackend":
        from .google import GoogleGenerativeBackend
        return GoogleGenerativeBackend
    if name == "GenericHTTPBackend":
        from .generic import GenericHTTPBackend
        return GenericHTTPBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

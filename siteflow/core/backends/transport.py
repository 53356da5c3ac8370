"""Shared httpx plumbing for remote generation backends."""

from __future__ import annotations

import json
import logging
from abc import abstractmethod
from typing import Any

import httpx

from . import (
    MissingCredentialsError,
    RemoteAPIError,
    RemoteConnectionError,
    RemoteTimeoutError,
)
from ..retry import RetryManager
from .base import BridgeStatus, GenerateOptions, GenerationBridge
from .credentials import CredentialResolver

logger = logging.getLogger(__name__)

MAX_ERROR_DETAIL = 100


def error_detail(response: httpx.Response) -> str:
    """Short description of a provider error body.

    Prefers ``error.message`` / ``error`` from a JSON body and falls back to
    the first characters of the raw text.
    """
    detail = f"HTTP {response.status_code}"
    text = response.text
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        if text:
            detail += f": {text[:MAX_ERROR_DETAIL]}"
        return detail

    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, str):
        detail += f": {error[:MAX_ERROR_DETAIL]}"
    elif isinstance(error, dict) and error.get("message"):
        detail += f": {str(error['message'])[:MAX_ERROR_DETAIL]}"
    return detail


class HTTPGenerationBackend(GenerationBridge):
    """GenerationBridge over a JSON HTTP API.

    Subclasses describe the request and how to read the reply; this class
    owns the client, credentials, retries and error mapping.

    Attributes:
        _endpoint: Provider URL (subclass default when None)
        _model: Configured model name
        _credentials: API key resolver
        _retry: RetryManager used for generation requests
        _client: httpx.AsyncClient, created on first use
    """

    requires_key = True

    def __init__(
        self,
        endpoint: str | None = None,
        model: str | None = None,
        credentials: CredentialResolver | None = None,
        retry: RetryManager | None = None,
        client: httpx.AsyncClient | None = None,
        max_retries: int = 2,
        initial_delay: float = 1.0,
        max_delay: float = 10.0,
        timeout: float = 60.0,
        probe_timeout: float = 7.0,
    ) -> None:
        self._endpoint = endpoint.rstrip("/") if endpoint else None
        self._model = model
        self._credentials = credentials or CredentialResolver()
        self._retry = retry or RetryManager(max_retries, initial_delay, max_delay)
        self._client = client
        self._owns_client = client is None
        self._max_retries = max_retries
        self._initial_delay = initial_delay
        self._max_delay = max_delay
        self._timeout = timeout
        self._probe_timeout = probe_timeout

    @property
    def model(self) -> str | None:
        return self._model

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client. Idempotent."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _api_key(self) -> str | None:
        key = await self._credentials.resolve()
        if not key and self.requires_key:
            raise MissingCredentialsError(
                f"No API key configured for the {self.provider} provider"
            )
        return key

    # ------------------------------------------------------------------
    # Provider hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _build_request(
        self, prompt: str, options: GenerateOptions, api_key: str | None
    ) -> dict[str, Any]:
        """Keyword arguments for ``client.request`` (url, json, headers, params)."""
        ...

    @abstractmethod
    def _extract_text(self, data: Any) -> str:
        """Pull the generated text out of a decoded reply."""
        ...

    @abstractmethod
    def _probe_request(self, api_key: str | None) -> dict[str, Any]:
        """Keyword arguments for the status probe GET."""
        ...

    # ------------------------------------------------------------------
    # GenerationBridge
    # ------------------------------------------------------------------

    async def generate(self, prompt: str, options: GenerateOptions | None = None) -> str:
        options = options or GenerateOptions()
        api_key = await self._api_key()
        request = self._build_request(prompt, options, api_key)
        url = request.pop("url")

        try:
            response = await self._retry.fetch_with_retry(
                self._get_client(),
                "POST",
                url,
                max_retries=self._max_retries,
                initial_delay=self._initial_delay,
                max_delay=self._max_delay,
                timeout=self._timeout,
                **request,
            )
        except httpx.TimeoutException as e:
            raise RemoteTimeoutError(f"Timeout waiting for {self.provider} provider") from e
        except httpx.HTTPError as e:
            raise RemoteConnectionError(
                f"Cannot connect to {self.provider} provider: {e}"
            ) from e

        if not response.is_success:
            raise RemoteAPIError(
                response.status_code,
                f"Remote API error: {response.status_code} - {error_detail(response)}",
            )

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError):
            return response.text.strip()

        return (self._extract_text(data) or "").strip()

    async def status(self) -> BridgeStatus:
        try:
            api_key = await self._api_key()
        except MissingCredentialsError as e:
            return BridgeStatus(available=False, error=str(e))

        request = self._probe_request(api_key)
        url = request.pop("url")
        try:
            response = await self._get_client().get(url, timeout=self._probe_timeout, **request)
        except httpx.TimeoutException:
            return BridgeStatus(available=False, error="Timed out contacting provider")
        except httpx.HTTPError as e:
            return BridgeStatus(available=False, error=f"Cannot reach provider: {e}")

        if response.is_success:
            return BridgeStatus(available=True)
        return BridgeStatus(available=False, error=error_detail(response))


__all__ = ["HTTPGenerationBackend", "error_detail"]

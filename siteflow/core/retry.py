"""Retry with exponential backoff for remote generation requests.

Retries rate limits (429), request timeouts (408), server errors (5xx) and
transient network failures. A server-provided Retry-After header takes
precedence over the computed backoff.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 1.0  # seconds
DEFAULT_MAX_DELAY = 30.0  # seconds
JITTER_RATIO = 0.2
RATE_LIMIT_COOLDOWN = 60.0  # seconds

TRANSIENT_ERROR_PATTERNS = ("timeout", "timed out", "econnrefused", "etimedout")


@dataclass
class RetryState:
    """Advisory per-key retry bookkeeping."""

    retry_count: int = 0
    last_error: Any = None
    reset_time: float = 0.0  # time.monotonic() deadline


class RetryManager:
    """Exponential backoff around httpx requests.

    Attributes:
        max_retries: Retries after the first attempt
        initial_delay: Base backoff delay in seconds
        max_delay: Upper bound on computed backoff in seconds
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
    ) -> None:
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self._state: dict[str, RetryState] = {}

    def get_backoff_delay(
        self,
        attempt: int,
        initial_delay: float | None = None,
        max_delay: float | None = None,
    ) -> float:
        """Backoff for ``attempt`` (0-indexed) with +/-20% jitter.

        Never below ``initial_delay`` and never above ``max_delay``.
        """
        initial = self.initial_delay if initial_delay is None else initial_delay
        ceiling = self.max_delay if max_delay is None else max_delay

        delay = initial * (2**attempt)
        jitter = delay * JITTER_RATIO * (random.random() * 2 - 1)
        return min(ceiling, max(initial, delay + jitter))

    @staticmethod
    def should_retry(status_code: int | None, error: BaseException | None = None) -> bool:
        """Whether a failed request is worth repeating."""
        if status_code is not None and (
            status_code in (408, 429) or 500 <= status_code < 600
        ):
            return True

        if error is not None:
            if isinstance(error, (httpx.TimeoutException, httpx.ConnectError)):
                return True
            message = str(error).lower()
            return any(pattern in message for pattern in TRANSIENT_ERROR_PATTERNS)

        return False

    @staticmethod
    def get_retry_after(response: httpx.Response) -> float | None:
        """Seconds requested by the Retry-After header, if any.

        Accepts both delta-seconds and HTTP-date forms. Past dates yield 0.
        """
        value = response.headers.get("retry-after")
        if not value:
            return None

        value = value.strip()
        if value.isdigit():
            return float(value)

        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())

    async def fetch_with_retry(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        max_retries: int | None = None,
        initial_delay: float | None = None,
        max_delay: float | None = None,
        **request_kwargs: Any,
    ) -> httpx.Response:
        """Issue a request, retrying transient failures.

        Args:
            client: httpx client used for every attempt
            method: HTTP method
            url: Request URL
            max_retries: Override for ``self.max_retries``
            initial_delay: Override for ``self.initial_delay``
            max_delay: Override for ``self.max_delay``
            **request_kwargs: Passed through to ``client.request``

        Returns:
            The first successful or non-retryable response, or the last
            retryable one once retries are exhausted.

        Raises:
            httpx.HTTPError: The last network error once retries are
                exhausted, or immediately if it is not retryable
        """
        retries = self.max_retries if max_retries is None else max_retries
        initial = self.initial_delay if initial_delay is None else initial_delay
        ceiling = self.max_delay if max_delay is None else max_delay

        attempt = 0
        while True:
            try:
                response = await client.request(method, url, **request_kwargs)
            except httpx.HTTPError as e:
                if not self.should_retry(None, e) or attempt >= retries:
                    raise
                delay = self.get_backoff_delay(attempt, initial, ceiling)
                logger.warning(
                    f"Network error on {method} {url}: {e}. "
                    f"Retrying in {delay:.1f}s (attempt {attempt + 1}/{retries})"
                )
            else:
                if response.is_success or not self.should_retry(response.status_code):
                    return response
                if attempt >= retries:
                    return response

                delay = self.get_retry_after(response)
                if delay is None:
                    delay = self.get_backoff_delay(attempt, initial, ceiling)
                logger.warning(
                    f"HTTP {response.status_code} on {method} {url}. "
                    f"Retrying in {delay:.1f}s (attempt {attempt + 1}/{retries})"
                )

            await asyncio.sleep(delay)
            attempt += 1

    # ------------------------------------------------------------------
    # Advisory state
    # ------------------------------------------------------------------

    def record_error(self, key: str, status_code: int | None, error: Any = None) -> RetryState:
        """Count an error against ``key``; a 429 starts a cool-down."""
        state = self._state.setdefault(key, RetryState())
        state.last_error = error
        state.retry_count += 1
        if status_code == 429:
            state.reset_time = time.monotonic() + RATE_LIMIT_COOLDOWN
        return state

    def get_retry_state(self, key: str) -> RetryState | None:
        return self._state.get(key)

    def is_backoff_active(self, key: str) -> bool:
        state = self._state.get(key)
        return state is not None and state.reset_time > time.monotonic()

    def clear_retry_state(self, key: str) -> None:
        self._state.pop(key, None)

    def clear_all_retry_state(self) -> None:
        self._state.clear()


__all__ = ["RetryManager", "RetryState"]

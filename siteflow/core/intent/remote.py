"""Remote intent extraction with silent fallback.

The extractor asks a GenerationBridge for a JSON intent. The first failure
of any kind (transport, auth, rate limit, malformed output) disables it for
the rest of the session and notifies the host exactly once; callers then
use the rule-based recognizer.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

import httpx

from ..backends import (
    GenerateOptions,
    GenerationBridge,
    MissingCredentialsError,
    RemoteAPIError,
    RemoteTimeoutError,
)
from .prompts import MAX_HINT_ASSETS, build_intent_extraction_prompt
from .taxonomy import Intent
from .validation import parse_model_json, validate_intent_payload

if TYPE_CHECKING:
    from ..catalog import CatalogSnapshot

logger = logging.getLogger(__name__)

# Low temperature for consistent extraction
EXTRACTION_OPTIONS = GenerateOptions(max_tokens=256, temperature=0.1)


class RemoteFailureKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    TIMED_OUT = "timed_out"
    GENERIC = "generic"


FAILURE_MESSAGES: dict[RemoteFailureKind, str] = {
    RemoteFailureKind.RATE_LIMITED: (
        "The AI service is receiving too many requests. "
        "Using built-in command recognition for now."
    ),
    RemoteFailureKind.UNAUTHORIZED: (
        "The AI service rejected the configured API key. "
        "Check your API key; using built-in command recognition for now."
    ),
    RemoteFailureKind.TIMED_OUT: (
        "The AI service did not respond in time. "
        "Using built-in command recognition for now."
    ),
    RemoteFailureKind.GENERIC: (
        "The AI service is not available. Using built-in command recognition for now."
    ),
}


@dataclass(frozen=True)
class RemoteFailure:
    """User-safe description of a remote failure (no provider body)."""

    kind: RemoteFailureKind
    message: str


def classify_remote_error(error: BaseException) -> RemoteFailureKind:
    """Map an exception from the remote path to a failure kind."""
    if isinstance(error, RemoteAPIError):
        if error.status_code == 429:
            return RemoteFailureKind.RATE_LIMITED
        if error.status_code in (401, 403):
            return RemoteFailureKind.UNAUTHORIZED
        if error.status_code == 408:
            return RemoteFailureKind.TIMED_OUT
        return RemoteFailureKind.GENERIC
    if isinstance(error, MissingCredentialsError):
        return RemoteFailureKind.UNAUTHORIZED
    if isinstance(error, (RemoteTimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return RemoteFailureKind.TIMED_OUT
    return RemoteFailureKind.GENERIC


class RemoteIntentExtractor:
    """Session-scoped remote extractor with a one-way failure latch.

    Attributes:
        bridge: Generation bridge, or None when remote extraction is off
        failed: Set after the first failure; never cleared automatically
        notified: Set once the host has been told about a failure
        last_failure: Most recent failure, if any
    """

    def __init__(
        self,
        bridge: GenerationBridge | None,
        on_failure: Callable[[RemoteFailure], None] | None = None,
        max_hint_assets: int = MAX_HINT_ASSETS,
    ) -> None:
        self.bridge = bridge
        self.on_failure = on_failure
        self.max_hint_assets = max_hint_assets
        self.failed = False
        self.notified = False
        self.last_failure: RemoteFailure | None = None

    @property
    def is_active(self) -> bool:
        return self.bridge is not None and not self.failed

    async def extract(self, text: str, catalog: "CatalogSnapshot") -> Intent | None:
        """Ask the remote model for an intent.

        Returns:
            The validated Intent (possibly unknown), or None when the
            extractor is inactive or this call failed
        """
        if not self.is_active:
            return None
        assert self.bridge is not None

        prompt = build_intent_extraction_prompt(
            text,
            sites=[site.name for site in catalog.sites],
            assets=[asset.name for asset in catalog.assets],
            max_assets=self.max_hint_assets,
        )

        try:
            reply = await self.bridge.generate(prompt, EXTRACTION_OPTIONS)
            intent = validate_intent_payload(parse_model_json(reply))
        except Exception as e:
            self._record_failure(e)
            return None

        logger.debug(f"Remote extraction returned {intent.action.value}")
        return intent

    def reset(self) -> None:
        """Re-enable the extractor (after the host fixes its configuration).

        The notification latch stays set.
        """
        self.failed = False

    def _record_failure(self, error: BaseException) -> None:
        kind = classify_remote_error(error)
        failure = RemoteFailure(kind=kind, message=FAILURE_MESSAGES[kind])
        self.failed = True
        self.last_failure = failure
        logger.warning(f"Remote extraction disabled ({kind.value}): {error}")

        if self.notified:
            return
        self.notified = True
        if self.on_failure is not None:
            try:
                self.on_failure(failure)
            except Exception as e:
                logger.warning(f"Remote failure callback raised: {e}")


__all__ = [
    "FAILURE_MESSAGES",
    "RemoteFailure",
    "RemoteFailureKind",
    "RemoteIntentExtractor",
    "classify_remote_error",
]

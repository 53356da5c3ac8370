"""API key resolution for remote generation bridges."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

SERVICE_NAME = "siteflow-ai"
DEFAULT_ACCOUNT = "remote-api-key"

MaybeAwaitable = Union[Optional[str], Awaitable[Optional[str]]]
SecureStoreLookup = Callable[[str, str], MaybeAwaitable]
SettingsLookup = Callable[[], MaybeAwaitable]


async def _call(lookup: Callable[..., Any], *args: Any) -> Optional[str]:
    value = lookup(*args)
    if inspect.isawaitable(value):
        value = await value
    return value or None


class CredentialResolver:
    """Resolve the remote API key from the first source that has one.

    Order:
        1. Explicit key (config or environment)
        2. Secure store lookup keyed by (service, account)
        3. Organisation settings fallback

    A failing secure store is skipped rather than treated as an error.
    Lookups may be plain functions or coroutines.
    """

    def __init__(
        self,
        explicit_key: str | None = None,
        secure_store_lookup: SecureStoreLookup | None = None,
        settings_lookup: SettingsLookup | None = None,
        account: str = DEFAULT_ACCOUNT,
        service: str = SERVICE_NAME,
    ) -> None:
        self.explicit_key = explicit_key
        self.secure_store_lookup = secure_store_lookup
        self.settings_lookup = settings_lookup
        self.account = account
        self.service = service

    async def resolve(self) -> str | None:
        """Return the API key, or None if no source has one."""
        if self.explicit_key:
            return self.explicit_key

        if self.secure_store_lookup is not None:
            try:
                key = await _call(self.secure_store_lookup, self.service, self.account)
            except Exception as e:
                logger.debug(f"Secure store lookup failed for {self.service}: {e}")
                key = None
            if key:
                return key

        if self.settings_lookup is not None:
            try:
                return await _call(self.settings_lookup)
            except Exception as e:
                logger.debug(f"Settings lookup failed: {e}")

        return None


__all__ = ["CredentialResolver", "DEFAULT_ACCOUNT", "SERVICE_NAME"]

"""Generic JSON endpoint backend for siteflow.

POSTs ``{"prompt": ..., "options": {...}}`` and reads ``text`` or ``output``
from the reply. An API key is optional.
"""

from __future__ import annotations

import json
from typing import Any

from .base import GenerateOptions
from .transport import HTTPGenerationBackend


class GenericHTTPBackend(HTTPGenerationBackend):
    requires_key = False

    @property
    def provider(self) -> str:
        return "generic"

    def _headers(self, api_key: str | None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def _build_request(
        self, prompt: str, options: GenerateOptions, api_key: str | None
    ) -> dict[str, Any]:
        payload = {
            "prompt": prompt,
            "options": {
                "maxTokens": options.max_tokens,
                "temperature": options.temperature,
                "model": options.model or self._model,
            },
        }
        return {"url": self._endpoint, "json": payload, "headers": self._headers(api_key)}

    def _extract_text(self, data: Any) -> str:
        if isinstance(data, dict):
            text = data.get("text") or data.get("output")
            if isinstance(text, str):
                return text
        return json.dumps(data)

    def _probe_request(self, api_key: str | None) -> dict[str, Any]:
        return {"url": self._endpoint, "headers": self._headers(api_key)}


__all__ = ["GenericHTTPBackend"]

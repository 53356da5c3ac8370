"""Google Generative Language (Gemini) backend for siteflow."""

from __future__ import annotations

from typing import Any

from .base import GenerateOptions
from .transport import HTTPGenerationBackend

DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1"
DEFAULT_MODEL = "gemini-1.5-flash"


class GoogleGenerativeBackend(HTTPGenerationBackend):
    """generateContent backend. The API key travels as the ``key`` query param."""

    @property
    def provider(self) -> str:
        return "google"

    @property
    def api_base(self) -> str:
        return self._endpoint or DEFAULT_API_BASE

    def _model_name(self, options: GenerateOptions | None = None) -> str:
        if options is not None and options.model:
            return options.model
        return self._model or DEFAULT_MODEL

    def _build_request(
        self, prompt: str, options: GenerateOptions, api_key: str | None
    ) -> dict[str, Any]:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": options.temperature,
                "maxOutputTokens": options.max_tokens,
            },
        }
        return {
            "url": f"{self.api_base}/models/{self._model_name(options)}:generateContent",
            "json": payload,
            "params": {"key": api_key},
            "headers": {"Content-Type": "application/json"},
        }

    def _extract_text(self, data: Any) -> str:
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return ""

    def _probe_request(self, api_key: str | None) -> dict[str, Any]:
        return {
            "url": f"{self.api_base}/models/{self._model_name()}",
            "params": {"key": api_key},
        }


__all__ = ["GoogleGenerativeBackend"]

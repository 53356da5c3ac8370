"""OpenAI-compatible HTTP backend for siteflow.

Talks to the /v1/chat/completions API of OpenAI or any server exposing the
same schema.
"""

from __future__ import annotations

from typing import Any

from .base import GenerateOptions
from .transport import HTTPGenerationBackend

DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4"


class OpenAICompatibleBackend(HTTPGenerationBackend):
    """Chat completion backend with Bearer authentication.

    Example:
        backend = OpenAICompatibleBackend(model="gpt-4o-mini",
                                          credentials=CredentialResolver(explicit_key=key))
        text = await backend.generate("Extract the intent from ...")
        await backend.close()
    """

    @property
    def provider(self) -> str:
        return "openai"

    @property
    def endpoint(self) -> str:
        return self._endpoint or DEFAULT_ENDPOINT

    def _headers(self, api_key: str | None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def _build_request(
        self, prompt: str, options: GenerateOptions, api_key: str | None
    ) -> dict[str, Any]:
        payload = {
            "model": options.model or self._model or DEFAULT_MODEL,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        return {"url": self.endpoint, "json": payload, "headers": self._headers(api_key)}

    def _extract_text(self, data: Any) -> str:
        # Chat format first, then legacy completions, then {"output": {"text"}}
        if not isinstance(data, dict):
            return ""
        choices = data.get("choices") or []
        if choices:
            message = choices[0].get("message") or {}
            return message.get("content") or choices[0].get("text") or ""
        output = data.get("output")
        if isinstance(output, dict):
            return output.get("text") or ""
        return ""

    def _probe_request(self, api_key: str | None) -> dict[str, Any]:
        url = self.endpoint
        if url.endswith("/chat/completions"):
            url = url[: -len("/chat/completions")] + "/models"
        return {"url": url, "headers": self._headers(api_key)}


__all__ = ["OpenAICompatibleBackend"]

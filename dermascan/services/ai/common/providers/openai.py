"""OpenAI vision provider."""

from __future__ import annotations

import logging
import time

import httpx

from dermascan.services.ai.analysis.errors import (
    AnalysisError,
    AuthError,
    MalformedResponseError,
    NetworkError,
    RateLimitError,
    ValidationError,
)

from .base import BaseProvider, ProviderResult

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o"


def classify_status(status_code: int, detail: str = "") -> AnalysisError:
    """Map an HTTP error status onto the analysis error taxonomy."""
    suffix = f": {detail}" if detail else ""
    if status_code in (401, 403):
        return AuthError(f"API key rejected ({status_code}){suffix}", status_code=status_code)
    if status_code == 429:
        return RateLimitError(f"Rate limit reached{suffix}", status_code=status_code)
    if 400 <= status_code < 500:
        return ValidationError(
            f"Request rejected ({status_code}), image possibly too large or corrupt{suffix}",
            status_code=status_code,
        )
    return NetworkError(f"Service error {status_code}{suffix}", status_code=status_code)


def _error_detail(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return ""
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or "")
    return ""


class OpenAIProvider(BaseProvider):
    name = "openai"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    def _client(self, timeout_seconds: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout_seconds, transport=self._transport)

    async def generate(
        self,
        prompt: str,
        *,
        image_b64: str,
        model: str = "",
        temperature: float = 0.3,
        max_tokens: int = 1500,
        timeout_seconds: float = 30.0,
    ) -> ProviderResult:
        model = model or DEFAULT_MODEL
        t0 = time.monotonic()

        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": f"data:image/jpeg;base64,{image_b64}",
                            "detail": "high",
                        },
                    },
                ],
            }
        ]

        try:
            async with self._client(timeout_seconds) as client:
                resp = await client.post(
                    f"{self._base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "model": model,
                        "max_tokens": max_tokens,
                        "temperature": temperature,
                        "messages": messages,
                    },
                )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Request timed out after {timeout_seconds}s") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Transport error: {exc}") from exc

        if resp.status_code >= 400:
            raise classify_status(resp.status_code, _error_detail(resp))

        try:
            data = resp.json()
            text = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise MalformedResponseError("Unexpected response envelope") from exc

        if not isinstance(text, str):
            raise MalformedResponseError("Response content is not text")

        elapsed = (time.monotonic() - t0) * 1000
        usage = data.get("usage") or {}

        return ProviderResult(
            raw_text=text,
            model=model,
            provider=self.name,
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            latency_ms=round(elapsed, 2),
        )

    async def probe(self, *, timeout_seconds: float = 5.0) -> bool:
        """``GET /models``. Returns ``False`` when unreachable, raises ``AuthError`` on 401/403."""
        try:
            async with self._client(timeout_seconds) as client:
                resp = await client.get(
                    f"{self._base_url}/models",
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
        except httpx.HTTPError as exc:
            logger.warning("OpenAI probe failed: %s", exc)
            return False

        if resp.status_code in (401, 403):
            raise classify_status(resp.status_code, _error_detail(resp))
        if resp.status_code >= 500:
            logger.warning("OpenAI probe returned %s", resp.status_code)
            return False
        return True

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

import httpx

from .errors import GenerationError

logger = logging.getLogger(__name__)

_GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
_OPENAI_API_BASE = "https://api.openai.com/v1"
_ANTHROPIC_API_BASE = "https://api.anthropic.com/v1"

_PROVIDER_ALIASES = {
    "gemini": "gemini",
    "google": "gemini",
    "openai": "openai",
    "anthropic": "anthropic",
    "claude": "anthropic",
}


class TextGenerationGateway(Protocol):
    def generate(self, prompt: str) -> str: ...


@dataclass(frozen=True)
class ProviderConfig:
    provider: str
    base_url: str
    api_key: str
    model: str


def provider_candidates(env: Mapping[str, str]) -> list[ProviderConfig]:
    candidates: list[ProviderConfig] = []

    gemini_api_key = (env.get("GOOGLE_GEMINI_API_KEY") or "").strip()
    if gemini_api_key:
        candidates.append(
            ProviderConfig(
                provider="gemini",
                base_url=(env.get("GEMINI_API_BASE_URL") or _GEMINI_API_BASE).rstrip("/"),
                api_key=gemini_api_key,
                model=(env.get("GEMINI_MODEL") or "gemini-1.5-flash").strip(),
            )
        )

    openai_api_key = (env.get("OPENAI_API_KEY") or "").strip()
    if openai_api_key:
        candidates.append(
            ProviderConfig(
                provider="openai",
                base_url=(env.get("OPENAI_API_BASE_URL") or _OPENAI_API_BASE).rstrip("/"),
                api_key=openai_api_key,
                model=(env.get("OPENAI_MODEL") or "gpt-4o-mini").strip(),
            )
        )

    anthropic_api_key = (env.get("ANTHROPIC_API_KEY") or "").strip()
    if anthropic_api_key:
        candidates.append(
            ProviderConfig(
                provider="anthropic",
                base_url=(env.get("ANTHROPIC_API_BASE_URL") or _ANTHROPIC_API_BASE).rstrip("/"),
                api_key=anthropic_api_key,
                model=(env.get("ANTHROPIC_MODEL") or "claude-3-5-sonnet-latest").strip(),
            )
        )
    return candidates


def select_provider(preference: str, candidates: list[ProviderConfig]) -> ProviderConfig | None:
    if not candidates:
        return None
    canonical = _PROVIDER_ALIASES.get((preference or "").strip().lower())
    if canonical:
        for candidate in candidates:
            if candidate.provider == canonical:
                return candidate
    return candidates[0]


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    reasons: list[Any] = []
    if isinstance(payload, dict):
        error = payload.get("error")
        reasons = [error.get("message") if isinstance(error, dict) else error, payload.get("message")]
    for reason in reasons:
        if isinstance(reason, str) and reason.strip():
            return f"HTTP {response.status_code}: {reason.strip()}"
    body = response.text.strip()
    return f"HTTP {response.status_code}: {body[:200]}" if body else f"HTTP {response.status_code}"


def _first_object(items: Any) -> dict[str, Any]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def _text_fields(items: Any) -> list[str]:
    if not isinstance(items, list):
        return []
    return [item["text"] for item in items if isinstance(item, dict) and isinstance(item.get("text"), str)]


# Each provider nests its reply differently; all three reduce to a list of {"text": ...} parts.
def _gemini_text(body: dict[str, Any]) -> str:
    content = _first_object(body.get("candidates")).get("content")
    return "".join(_text_fields(content.get("parts") if isinstance(content, dict) else None))


def _openai_text(body: dict[str, Any]) -> str:
    message = _first_object(body.get("choices")).get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, str):
        return content
    return "\n".join(_text_fields(content))


def _anthropic_text(body: dict[str, Any]) -> str:
    content = body.get("content")
    if not isinstance(content, list):
        return ""
    blocks = [item for item in content if isinstance(item, dict) and item.get("type") == "text"]
    return "\n".join(part.strip() for part in _text_fields(blocks) if part.strip())


class HttpTextGenerationGateway:
    def __init__(
        self,
        provider: ProviderConfig | None,
        *,
        timeout_seconds: float = 25.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.provider = provider
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout_seconds, connect=min(8.0, self.timeout_seconds)),
            transport=self._transport,
        )

    def _post(self, url: str, *, headers: dict[str, str], payload: dict[str, Any]) -> dict[str, Any]:
        with self._client() as client:
            response = client.post(url, headers=headers, json=payload)
        if response.status_code >= 400:
            raise GenerationError(_error_detail(response))
        body = response.json()
        if not isinstance(body, dict):
            raise GenerationError("Provider returned a non-object body.")
        return body

    def _gemini(self, provider: ProviderConfig, prompt: str) -> str:
        body = self._post(
            f"{provider.base_url}/models/{provider.model}:generateContent",
            headers={"x-goog-api-key": provider.api_key, "Content-Type": "application/json"},
            payload={"contents": [{"role": "user", "parts": [{"text": prompt}]}]},
        )
        return _gemini_text(body)

    def _openai(self, provider: ProviderConfig, prompt: str) -> str:
        body = self._post(
            f"{provider.base_url}/chat/completions",
            headers={"Authorization": f"Bearer {provider.api_key}", "Content-Type": "application/json"},
            payload={
                "model": provider.model,
                "temperature": 0.35,
                "messages": [{"role": "user", "content": prompt}],
            },
        )
        return _openai_text(body)

    def _anthropic(self, provider: ProviderConfig, prompt: str) -> str:
        body = self._post(
            f"{provider.base_url}/messages",
            headers={
                "x-api-key": provider.api_key,
                "anthropic-version": "2023-06-01",
                "Content-Type": "application/json",
            },
            payload={
                "model": provider.model,
                "max_tokens": 1024,
                "temperature": 0.35,
                "messages": [{"role": "user", "content": prompt}],
            },
        )
        return _anthropic_text(body)

    def generate(self, prompt: str) -> str:
        provider = self.provider
        if provider is None:
            raise GenerationError("No text-generation provider is configured.")
        handlers = {"gemini": self._gemini, "openai": self._openai, "anthropic": self._anthropic}
        handler = handlers.get(provider.provider)
        if handler is None:
            raise GenerationError(f"Unsupported provider: {provider.provider}")
        try:
            text = handler(provider, prompt)
        except httpx.TimeoutException as exc:
            raise GenerationError(f"{provider.provider} timed out after {self.timeout_seconds}s") from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"Failed to reach {provider.provider}: {exc}") from exc
        except ValueError as exc:
            raise GenerationError(f"{provider.provider} returned invalid JSON.") from exc
        text = (text or "").strip()
        if not text:
            raise GenerationError(f"{provider.provider} returned an empty response.")
        logger.info("text generation provider used (%s)", provider.provider)
        return text

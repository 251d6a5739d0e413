from __future__ import annotations

import asyncio
from typing import Any

import httpx

from .errors import ConfigMissing, UpstreamTransient
from .settings import settings

_client: httpx.AsyncClient | None = None
_client_lock = asyncio.Lock()


class OpenAIUnavailable(UpstreamTransient):
    provider = "openai"


def _headers() -> dict[str, str]:
    if not settings.OPENAI_API_KEY:
        raise ConfigMissing("OPENAI_API_KEY not configured")
    return {
        "Authorization": f"Bearer {settings.OPENAI_API_KEY}",
        "Content-Type": "application/json",
    }


async def _get_client() -> httpx.AsyncClient:
    global _client
    if _client is None:
        async with _client_lock:
            if _client is None:
                timeout = httpx.Timeout(
                    settings.OPENAI_TIMEOUT_SECONDS,
                    connect=settings.OPENAI_CONNECT_TIMEOUT_SECONDS,
                )
                base_url = settings.OPENAI_API_BASE.rstrip("/") or "https://api.openai.com/v1"
                _client = httpx.AsyncClient(base_url=base_url, timeout=timeout)
    return _client


async def post_json(
    path: str, payload: dict[str, Any], *, timeout: float | None = None
) -> dict[str, Any]:
    headers = _headers()
    client = await _get_client()
    try:
        response = await client.post(path, json=payload, headers=headers, timeout=timeout)
    except httpx.HTTPError as exc:
        raise OpenAIUnavailable(f"Request failed: {exc}") from exc
    if response.status_code >= 400:
        raise OpenAIUnavailable(
            f"OpenAI error {response.status_code}: {response.text[:200]}",
            status=response.status_code,
        )
    try:
        return response.json()
    except ValueError as exc:
        raise OpenAIUnavailable("Invalid JSON from OpenAI") from exc


async def chat_completion(
    system_prompt: str,
    user_prompt: str,
    *,
    temperature: float = 0.0,
    max_tokens: int = 200,
    model: str | None = None,
) -> str:
    """Return the stripped text of the first choice ("" when the model sent nothing)."""
    payload = {
        "model": model or settings.CONCIERGE_CHAT_MODEL,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "temperature": temperature,
        "max_tokens": max_tokens,
        "top_p": 1.0,
    }
    data = await post_json("/chat/completions", payload, timeout=settings.OPENAI_TIMEOUT_SECONDS)
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise OpenAIUnavailable("Malformed chat completion payload") from exc
    return (content or "").strip()


async def close_async_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None

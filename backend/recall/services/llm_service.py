"""
AI text-generation capability.

Providers:
  google      Gemini generateContent (system prompt prepended to the user prompt)
  perplexity  OpenAI-style chat completions, default model sonar-pro
  ollama      local http://localhost:11434/api/chat with JSON mode

Usage:
    text = await generate_text(user_prompt, system_prompt, "perplexity")

Returns raw model text; parsing is the validator's job. No retry happens here.
Every transport, HTTP or configuration failure is raised as LLMUnavailableError.
"""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from recall.config import settings
from recall.models.content import Provider

logger = logging.getLogger(__name__)

GOOGLE_URL = "https://generativelanguage.googleapis.com/v1/models/{model}:generateContent"
PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"

DEFAULT_MODELS = {
    Provider.GOOGLE: "gemini-2.0-flash",
    Provider.PERPLEXITY: "sonar-pro",
}

# (user_prompt, system_prompt, provider, model) -> raw text
AICapability = Callable[[str, str, str, str | None], Awaitable[str]]


class LLMUnavailableError(Exception):
    """Raised when the provider is unreachable, misconfigured, or answers with an error."""


@asynccontextmanager
async def _client_scope(client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=settings.generation_timeout) as owned:
        yield owned


def _json_body(res: httpx.Response, source: str) -> dict[str, Any]:
    try:
        data = res.json()
    except ValueError as e:
        raise LLMUnavailableError(f"{source} returned a non-JSON body") from e
    if not isinstance(data, dict):
        raise LLMUnavailableError(f"{source} returned an unexpected body")
    return data


def _error_detail(res: httpx.Response) -> str:
    try:
        return res.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return res.reason_phrase or str(res.status_code)


async def _generate_google(
    client: httpx.AsyncClient, user_prompt: str, system_prompt: str, model: str | None
) -> str:
    if not settings.google_api_key:
        raise LLMUnavailableError("Google Gemini API key is not configured")
    model = model or DEFAULT_MODELS[Provider.GOOGLE]
    prompt = f"{system_prompt}\n\n{user_prompt}" if system_prompt else user_prompt
    res = await client.post(
        GOOGLE_URL.format(model=model),
        params={"key": settings.google_api_key},
        json={
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": settings.temperature,
                "maxOutputTokens": settings.max_output_tokens,
            },
        },
    )
    if res.status_code != 200:
        raise LLMUnavailableError(f"Gemini {model} failed: {_error_detail(res)}")
    data = _json_body(res, f"Gemini {model}")
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise LLMUnavailableError(f"Gemini {model} returned no text") from e


async def _generate_perplexity(
    client: httpx.AsyncClient, user_prompt: str, system_prompt: str, model: str | None
) -> str:
    if not settings.perplexity_api_key:
        raise LLMUnavailableError("Perplexity API key is not configured")
    model = model or DEFAULT_MODELS[Provider.PERPLEXITY]
    res = await client.post(
        PERPLEXITY_URL,
        headers={"Authorization": f"Bearer {settings.perplexity_api_key}"},
        json={
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": settings.max_output_tokens,
            "temperature": settings.temperature,
            "stream": False,
        },
    )
    if res.status_code != 200:
        raise LLMUnavailableError(f"Perplexity API error: {_error_detail(res)}")
    choices = _json_body(res, "Perplexity").get("choices") or []
    if not choices:
        return ""
    try:
        return choices[0]["message"]["content"] or ""
    except (KeyError, IndexError, TypeError) as e:
        raise LLMUnavailableError(f"Perplexity {model} returned no text") from e


async def _resolve_ollama_model(client: httpx.AsyncClient) -> str | None:
    """Return the first model Ollama reports as installed, or None."""
    try:
        res = await client.get(f"{settings.ollama_url}/api/tags", timeout=1.5)
        if res.status_code != 200:
            return None
        models = _json_body(res, "Ollama").get("models") or []
        return models[0]["name"] if models else None
    except (httpx.HTTPError, LLMUnavailableError, KeyError, IndexError, TypeError):
        return None


async def _generate_ollama(
    client: httpx.AsyncClient, user_prompt: str, system_prompt: str, model: str | None
) -> str:
    model = model or await _resolve_ollama_model(client)
    if not model:
        raise LLMUnavailableError("No Ollama model available")
    res = await client.post(
        f"{settings.ollama_url}/api/chat",
        json={
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "format": "json",
            "stream": False,
            "options": {"num_predict": settings.max_output_tokens},
        },
    )
    if res.status_code != 200:
        raise LLMUnavailableError(f"Ollama {model} failed: {_error_detail(res)}")
    data = _json_body(res, f"Ollama {model}")
    try:
        return data["message"]["content"]
    except (KeyError, TypeError) as e:
        raise LLMUnavailableError(f"Ollama {model} returned no text") from e


_PROVIDERS = {
    Provider.GOOGLE: _generate_google,
    Provider.PERPLEXITY: _generate_perplexity,
    Provider.OLLAMA: _generate_ollama,
}


async def generate_text(
    user_prompt: str,
    system_prompt: str,
    provider: str,
    model: str | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Send one prompt to `provider` and return the raw text it produced."""
    try:
        handler = _PROVIDERS[Provider(provider)]
    except ValueError as e:
        raise LLMUnavailableError(f"Unknown AI provider: {provider!r}") from e

    try:
        async with _client_scope(client) as http:
            return await handler(http, user_prompt, system_prompt, model)
    except httpx.HTTPError as e:
        logger.warning("%s request failed: %s", provider, e)
        raise LLMUnavailableError(f"{provider} request failed: {e}") from e

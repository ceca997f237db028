"""Async client for the OpenRouter-compatible chat-completion endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from vivica.config import settings
from vivica.errors import RemoteRequestError

logger = logging.getLogger(__name__)


def _headers() -> dict[str, str]:
    headers = {
        "Authorization": f"Bearer {settings.openrouter_api_key.strip()}",
        "Content-Type": "application/json",
    }
    if settings.app_referer:
        headers["HTTP-Referer"] = settings.app_referer
    if settings.app_title:
        headers["X-Title"] = settings.app_title
    return headers


def _extract_content(data: Any) -> str | None:
    """Pull ``choices[0].message.content`` out of a response body."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    return content if isinstance(content, str) and content else None


async def complete_chat(
    messages: list[dict[str, str]],
    *,
    model: str,
    temperature: float,
) -> str:
    """Single-shot chat completion. Returns the assistant text.

    Raises:
        RemoteRequestError: no API key, transport failure or timeout,
            non-2xx status, or a response without content.
    """
    if not settings.has_api_key():
        raise RemoteRequestError("OpenRouter API key not found. Please set it in Settings.")

    body = {"model": model, "messages": messages, "temperature": temperature}

    try:
        async with httpx.AsyncClient(timeout=settings.request_timeout_seconds) as client:
            resp = await client.post(settings.chat_api_url, headers=_headers(), json=body)
    except httpx.TimeoutException as exc:
        raise RemoteRequestError(
            f"Request timed out after {settings.request_timeout_seconds:g}s"
        ) from exc
    except httpx.HTTPError as exc:
        raise RemoteRequestError(f"Request failed: {exc}") from exc

    if not resp.is_success:
        raise RemoteRequestError(
            f"API request failed: {resp.status_code} {resp.reason_phrase}".rstrip()
        )

    try:
        data = resp.json()
    except ValueError as exc:
        raise RemoteRequestError("API returned a non-JSON response") from exc

    content = _extract_content(data)
    if content is None:
        raise RemoteRequestError("No response content received from API")

    logger.debug("Completion from %s: %d chars", model, len(content))
    return content

import asyncio
import logging
import time
from typing import Any, Callable

import httpx

from transgate.exceptions import (
    BackendAuthError,
    BackendError,
    BackendTimeoutError,
    EmptyModelOutputError,
)
from transgate.middleware.metrics import AUTH_FALLBACK, BACKEND_DURATION, BACKEND_FAILURES
from transgate.services.translation_config import TranslationConfig

logger = logging.getLogger("transgate")

# Tried in order; only an auth rejection on the first moves on to the next
AUTH_MODES = ("authorization", "x-api-key")
AUTH_FAILURE_STATUSES = {401, 403}


def endpoint_url(config: TranslationConfig) -> str:
    if config.endpoint == "chat_completions":
        return f"{config.base_url}/chat/completions"
    return f"{config.base_url}/responses"


def build_request_body(config: TranslationConfig, prompt: str) -> dict:
    """One user message, shaped for the configured completion endpoint."""
    if config.endpoint == "chat_completions":
        return {
            "model": config.model,
            "stream": False,
            "messages": [{"role": "user", "content": prompt}],
        }
    return {
        "model": config.model,
        "stream": False,
        "input": [
            {
                "type": "message",
                "role": "user",
                "content": [{"type": "input_text", "text": prompt}],
            }
        ],
    }


def auth_headers(mode: str, api_key: str) -> dict[str, str]:
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if mode == "authorization":
        headers["Authorization"] = f"Bearer {api_key}"
    else:
        headers["x-api-key"] = api_key
    return headers


def _error_detail(payload: Any, raw_text: str) -> str:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if payload.get("message"):
            return str(payload["message"])
    return raw_text.strip()[:300] or "unknown error"


# Response text extractors, one per known upstream shape


def text_from_output_text(payload: dict) -> str:
    value = payload.get("output_text")
    if isinstance(value, str):
        return value.strip()
    return ""


def text_from_output_items(payload: dict) -> str:
    output = payload.get("output")
    if not isinstance(output, list):
        return ""
    parts = []
    for item in output:
        content = item.get("content") if isinstance(item, dict) else None
        if not isinstance(content, list):
            continue
        for part in content:
            text = part.get("text") if isinstance(part, dict) else None
            if isinstance(text, str) and text.strip():
                parts.append(text)
    return "\n".join(parts).strip()


def text_from_choices(payload: dict) -> str:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "\n".join(p for p in parts if p).strip()
    return ""


TEXT_EXTRACTORS: tuple[Callable[[dict], str], ...] = (
    text_from_output_text,
    text_from_output_items,
    text_from_choices,
)


def extract_response_text(payload: Any) -> str:
    """Text of the first known response shape that yields any."""
    if not isinstance(payload, dict):
        return ""
    for extractor in TEXT_EXTRACTORS:
        text = extractor(payload)
        if text:
            return text
    return ""


class AIBackendClient:
    """Client for the OpenAI-compatible completion API behind the "ai" engine."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def complete(self, config: TranslationConfig, prompt: str) -> dict:
        """Send one prompt and return the decoded response payload.

        The whole exchange, including the x-api-key retry, shares a single
        deadline of ``config.request_timeout_s``.

        Raises:
            BackendError: empty API key, non-auth HTTP error or network error.
            BackendAuthError: both authentication schemes were rejected.
            BackendTimeoutError: the deadline expired.
        """
        if not config.api_key:
            raise BackendError("AI backend API key is empty")

        start = time.perf_counter()
        try:
            return await asyncio.wait_for(
                self._request_with_auth_fallback(config, prompt),
                timeout=config.request_timeout_s,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            BACKEND_FAILURES.labels(backend="ai", reason="timeout").inc()
            raise BackendTimeoutError(
                f"AI backend timed out after {config.request_timeout_ms}ms"
            ) from None
        except BackendError as e:
            reason = "auth" if isinstance(e, BackendAuthError) else "http"
            BACKEND_FAILURES.labels(backend="ai", reason=reason).inc()
            raise
        finally:
            BACKEND_DURATION.labels(backend="ai").observe(time.perf_counter() - start)

    async def complete_text(self, config: TranslationConfig, prompt: str) -> str:
        payload = await self.complete(config, prompt)
        text = extract_response_text(payload)
        if not text:
            raise EmptyModelOutputError("empty model output")
        return text

    async def _request_with_auth_fallback(self, config: TranslationConfig, prompt: str) -> dict:
        url = endpoint_url(config)
        body = build_request_body(config, prompt)
        last_error: BackendError | None = None

        for mode in AUTH_MODES:
            try:
                res = await self.client.post(
                    url,
                    json=body,
                    headers=auth_headers(mode, config.api_key),
                    timeout=config.request_timeout_s,
                )
            except httpx.TimeoutException:
                raise
            except httpx.HTTPError as e:
                raise BackendError(f"AI backend request failed: {e}") from e

            raw_text = res.text
            try:
                payload = res.json()
            except ValueError:
                payload = None

            if res.is_success:
                return payload if isinstance(payload, dict) else {"output_text": raw_text or ""}

            message = (
                f"AI backend request failed: HTTP {res.status_code} - "
                f"{_error_detail(payload, raw_text)}"
            )
            if res.status_code in AUTH_FAILURE_STATUSES:
                last_error = BackendAuthError(message, status_code=res.status_code)
                if mode == AUTH_MODES[0]:
                    logger.warning("AI backend rejected the Authorization header, retrying with x-api-key")
                    AUTH_FALLBACK.inc()
                    continue
                raise last_error

            raise BackendError(message, status_code=res.status_code)

        raise last_error or BackendError("AI backend request failed")

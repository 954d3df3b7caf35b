"""Centralized OpenAI text-completion client.

All LLM calls go through ``CompletionClient.complete()``.
This ensures:
  - Model, temperature, timeout, token limit and retry count are read
    from env.
  - JSON output is requested via ``response_format`` when asked for.
  - Transient failures (transport errors, timeouts, 429, 5xx) are
    retried with exponential backoff; everything else fails fast.
  - The response is returned UNPARSED: interpreting the text is the
    caller's job, so a malformed answer is never retried here.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..http_client import RetryConfig, Timeouts, backoff_delay, get_timeout, is_retryable_error

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants, read from environment with defaults
# ---------------------------------------------------------------------------
_OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"

_sleep = asyncio.sleep


def _env_float(key: str, default: float) -> float:
    try:
        return float(os.getenv(key, str(default)))
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


def get_openai_key() -> str:
    """Read OPENAI_API_KEY from the environment. Raises EnvironmentError if missing."""
    key = os.getenv("OPENAI_API_KEY", "").strip()
    if not key:
        logger.warning("OpenAI API key missing (OPENAI_API_KEY)")
        raise EnvironmentError("OPENAI_API_KEY environment variable not set")
    return key


def get_openai_model() -> str:
    """Read OPENAI_MODEL from the environment (default: gpt-4.1)."""
    return os.getenv("OPENAI_MODEL", "gpt-4.1").strip()


def _get_temperature() -> float:
    return _env_float("OPENAI_TEMPERATURE", 0.2)


def _get_timeout() -> float:
    return _env_float("OPENAI_REQUEST_TIMEOUT", Timeouts.OPENAI_COMPLETION)


def _get_default_max_tokens() -> int:
    return _env_int("OPENAI_MAX_COMPLETION_TOKENS", 1500)


def _get_max_retries() -> int:
    return max(0, _env_int("OPENAI_MAX_RETRIES", RetryConfig.MAX_RETRIES))


# ---------------------------------------------------------------------------
# Errors & response types
# ---------------------------------------------------------------------------
class CompletionError(RuntimeError):
    """The completion service could not be reached or rejected the call."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class CompletionUsage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class CompletionResponse:
    """Raw completion. ``text`` is ``None`` when the model returned no text part."""

    text: Optional[str]
    usage: Optional[CompletionUsage]
    model: str
    content_type: str = "text"


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------
def extract_json_object(text: str) -> Dict[str, Any]:
    """Parse the first balanced ``{...}`` object found in *text*.

    Prose and markdown fences around the object are ignored. Braces inside
    JSON strings do not count towards the balance.

    Raises ValueError if no complete object is found or it does not parse.
    """
    start = text.find("{")
    if start == -1:
        raise ValueError("LLM did not return a JSON object — no '{' found")

    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                try:
                    parsed = json.loads(text[start : idx + 1])
                except json.JSONDecodeError as exc:
                    raise ValueError(f"First JSON object does not parse: {exc}") from exc
                if not isinstance(parsed, dict):
                    raise ValueError("First JSON value is not an object")
                return parsed

    raise ValueError("LLM did not return a complete JSON object — unbalanced braces")


def missing_required_keys(parsed: dict, required_keys: List[str]) -> List[str]:
    return [k for k in required_keys if k not in parsed]


def build_payload(
    *,
    model: str,
    messages: List[Dict[str, str]],
    max_completion_tokens: int,
    temperature: float,
    json_mode: bool,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "model": model,
        "messages": messages,
        "max_tokens": max_completion_tokens,
        "temperature": temperature,
    }
    if json_mode:
        payload["response_format"] = {"type": "json_object"}
    return payload


def _parse_completion(data: Dict[str, Any], model: str) -> CompletionResponse:
    usage_raw = data.get("usage") or {}
    usage = None
    if usage_raw:
        usage = CompletionUsage(
            input_tokens=int(usage_raw.get("prompt_tokens", 0) or 0),
            output_tokens=int(usage_raw.get("completion_tokens", 0) or 0),
        )

    choices = data.get("choices") or []
    message = (choices[0].get("message") if choices else None) or {}
    content = message.get("content")
    resolved_model = data.get("model") or model

    if isinstance(content, str):
        return CompletionResponse(text=content, usage=usage, model=resolved_model)

    content_type = "refusal" if message.get("refusal") else type(content).__name__
    return CompletionResponse(text=None, usage=usage, model=resolved_model, content_type=content_type)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------
class CompletionClient:
    """Async OpenAI chat-completions client with transient-only retries.

    Pass ``http_client`` to reuse a connection pool (or to inject a mock
    transport in tests); otherwise a client is opened per call.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: Optional[int] = None,
    ) -> None:
        self._api_key = api_key
        self.model = model or get_openai_model()
        self._http_client = http_client
        self.max_retries = _get_max_retries() if max_retries is None else max_retries

    async def _post(self, headers: Dict[str, str], payload: Dict[str, Any]) -> httpx.Response:
        timeout = get_timeout(_get_timeout())
        if self._http_client is not None:
            return await self._http_client.post(
                _OPENAI_API_URL, headers=headers, json=payload, timeout=timeout
            )
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.post(_OPENAI_API_URL, headers=headers, json=payload)

    async def complete(
        self,
        messages: List[Dict[str, str]],
        *,
        max_completion_tokens: int = 0,
        json_mode: bool = True,
    ) -> CompletionResponse:
        """Send *messages* and return the raw completion.

        Raises
        ------
        EnvironmentError
            If no API key is configured.
        CompletionError
            On a non-retryable HTTP status, or when retries are exhausted.
        """
        api_key = self._api_key or get_openai_key()
        if max_completion_tokens <= 0:
            max_completion_tokens = _get_default_max_tokens()

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        payload = build_payload(
            model=self.model,
            messages=messages,
            max_completion_tokens=max_completion_tokens,
            temperature=_get_temperature(),
            json_mode=json_mode,
        )

        attempts = self.max_retries + 1
        last_error: Optional[CompletionError] = None

        for attempt in range(attempts):
            t0 = time.perf_counter()
            logger.info("Calling %s (attempt %d/%d)", self.model, attempt + 1, attempts)
            try:
                response = await self._post(headers, payload)
            except httpx.TransportError as exc:
                last_error = CompletionError(f"OpenAI transport error: {exc!r}")
                logger.warning("OpenAI transport error on attempt %d: %s", attempt + 1, exc)
            else:
                duration = time.perf_counter() - t0
                logger.info("OpenAI HTTP %s (%.1fs)", response.status_code, duration)

                if response.status_code == 200:
                    completion = _parse_completion(response.json(), self.model)
                    if completion.usage:
                        logger.info(
                            "OpenAI tokens used: prompt=%d, completion=%d",
                            completion.usage.input_tokens,
                            completion.usage.output_tokens,
                        )
                    return completion

                body = response.text[:400]
                last_error = CompletionError(
                    f"OpenAI returned HTTP {response.status_code}: {body}",
                    status_code=response.status_code,
                )
                if not is_retryable_error(response.status_code):
                    logger.error("OpenAI non-retryable error %s: %s", response.status_code, body)
                    raise last_error
                logger.warning("OpenAI retryable error %s", response.status_code)

            if attempt < attempts - 1:
                await _sleep(backoff_delay(attempt))

        assert last_error is not None
        logger.error("OpenAI call failed after %d attempts", attempts)
        raise last_error

"""Resilient chat-completion client.

Every model interaction in the pipeline goes through ``ChatClient.ask``: a
single prompt sent alongside a fixed system role, retried on server-side
failures with exponential backoff and jitter.
"""
from __future__ import annotations

import asyncio
import random
import time
from typing import Any, Awaitable, Callable

import httpx

from deep_research.config import RunConfig
from deep_research.errors import ParseFailure, RequestFailure, TransientFailure
from deep_research.services import logger as log_service
from deep_research.services.prompt_store import render_prompt

NO_RESPONSE = "No response."
MAX_ATTEMPTS = 3
BASE_BACKOFF_MS = 1000
MAX_JITTER_MS = 500

CONTEXT_LENGTH_MARKERS = ("context length", "context_length_exceeded")
CONTEXT_LENGTH_GUIDANCE = (
    "Suggestion: shorten your prompt or switch to a larger-context model (set OPENAI_MODEL). "
    "If you're summarizing a long URL, consider chunking the content or truncating the article before sending."
)

Sleeper = Callable[[float], Awaitable[Any]]


def backoff_seconds(attempt: int, rng: random.Random | None = None) -> float:
    """Delay before retrying after ``attempt`` (1-based) failed."""
    jitter_ms = (rng or random).uniform(0, MAX_JITTER_MS)
    return (BASE_BACKOFF_MS * (2 ** (attempt - 1)) + jitter_ms) / 1000.0


def extract_completion_text(body: Any) -> str | None:
    """Return the first completion's content, or None when ``body`` is not a completion."""
    if not isinstance(body, dict) or not isinstance(body.get("choices"), list):
        return None
    choices = body["choices"]
    if not choices:
        return NO_RESPONSE
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) else NO_RESPONSE


def extract_error_envelope(body: Any) -> tuple[str, str] | None:
    """Return ``(type, message)`` for an ``{"error": {...}}`` body with a non-blank message."""
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if not isinstance(error, dict):
        return None
    message = error.get("message")
    if not isinstance(message, str) or not message.strip():
        return None
    err_type = error.get("type")
    code = error.get("code")
    kind = err_type if isinstance(err_type, str) else (code if isinstance(code, str) else "")
    return kind, message


def is_context_length_error(message: str, kind: str = "") -> bool:
    lowered = f"{kind} {message}".lower()
    return any(marker in lowered for marker in CONTEXT_LENGTH_MARKERS)


class ChatClient:
    """Two-message chat-completion wrapper with retry on transient failures."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Sleeper | None = None,
        rng: random.Random | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.endpoint = base_url.rstrip("/") + "/chat/completions"
        self.timeout = timeout
        self.max_attempts = max(int(max_attempts), 1)
        self._http_client = http_client
        self._owns_client = http_client is None
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config: RunConfig, **kwargs: Any) -> "ChatClient":
        return cls(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            timeout=config.request_timeout_seconds,
            **kwargs,
        )

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": render_prompt("system.research_assistant")},
                {"role": "user", "content": prompt},
            ],
        }

    async def ask(self, prompt: str, *, caller: str = "ask") -> str:
        """Send ``prompt`` and return the model's reply text.

        Raises:
            RequestFailure: the request failed for good. ``__cause__`` holds the
                last underlying error when attempts were exhausted.
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = self._payload(prompt)
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            t0 = time.monotonic()
            try:
                response = await self.http_client.post(self.endpoint, json=payload, headers=headers)
            except httpx.TransportError as exc:
                last_error = exc
                self._log_attempt(caller, attempt, t0, error=f"transport error: {exc}")
                if await self._backoff(attempt):
                    continue
                break

            if response.status_code >= 500:
                last_error = TransientFailure(f"HTTP {response.status_code}: server error")
                self._log_attempt(caller, attempt, t0, error=str(last_error))
                if await self._backoff(attempt):
                    continue
                break

            raw = response.text
            try:
                body = response.json()
            except ValueError:
                body = None

            text = extract_completion_text(body)
            if text is not None:
                self._log_attempt(caller, attempt, t0, usage=body.get("usage"))
                return text

            envelope = extract_error_envelope(body)
            if envelope is not None:
                kind, message = envelope
                if "server" in kind.lower():
                    last_error = TransientFailure(f"API error ({kind}): {message}")
                    self._log_attempt(caller, attempt, t0, error=str(last_error))
                    if await self._backoff(attempt):
                        continue
                    break

                self._log_attempt(caller, attempt, t0, error=message)
                if is_context_length_error(message, kind):
                    raise RequestFailure(f"API error: {message}. {CONTEXT_LENGTH_GUIDANCE}")
                raise RequestFailure(f"API error: {message}")

            last_error = ParseFailure(
                f"Failed to parse chat completion response (HTTP {response.status_code}). Raw body: {raw[:500]}",
                raw_body=raw,
            )
            self._log_attempt(caller, attempt, t0, error="unparseable response body")
            if await self._backoff(attempt):
                continue

        raise RequestFailure(
            f"Model request failed after {self.max_attempts} attempts: {last_error}"
        ) from last_error

    async def _backoff(self, attempt: int) -> bool:
        """Sleep before the next attempt; False when no attempts remain."""
        if attempt >= self.max_attempts:
            return False
        await self._sleep(backoff_seconds(attempt, self._rng))
        return True

    def _log_attempt(
        self,
        caller: str,
        attempt: int,
        started: float,
        *,
        usage: Any = None,
        error: str | None = None,
    ) -> None:
        usage = usage if isinstance(usage, dict) else {}
        log_service.log_llm_call(
            model=self.model,
            caller=caller,
            attempt=attempt,
            input_tokens=int(usage.get("prompt_tokens") or 0),
            output_tokens=int(usage.get("completion_tokens") or 0),
            duration_ms=int((time.monotonic() - started) * 1000),
            status="error" if error else "success",
            error=error,
        )

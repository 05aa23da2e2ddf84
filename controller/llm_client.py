from __future__ import annotations

import asyncio
import re
import time
from typing import Any, Callable

import openai

AFFORDABLE_PATTERNS = (
    re.compile(r"can only afford\s+(\d+)", re.I),
    re.compile(r"afford\s+(\d+)", re.I),
)


class ModelQuotaExceeded(Exception):
    """The model provider rejected the call for credits/capacity (HTTP 402)."""

    def __init__(self, message: str, *, affordable_tokens: int | None = None, model: str | None = None):
        super().__init__(message)
        self.affordable_tokens = affordable_tokens
        self.model = model


class ModelUnavailable(Exception):
    """Unrecoverable model call failure."""


def extract_affordable_tokens(message: str | None) -> int | None:
    # "You requested up to 200 tokens, but can only afford 189."
    text = message or ""
    for pattern in AFFORDABLE_PATTERNS:
        m = pattern.search(text)
        if m:
            return int(m.group(1))
    return None


def _error_message(err: Exception) -> str:
    body = getattr(err, "body", None)
    if isinstance(body, dict):
        inner = body.get("error") if isinstance(body.get("error"), dict) else body
        msg = inner.get("message") if isinstance(inner, dict) else None
        if msg:
            return str(msg)
    return str(getattr(err, "message", None) or err)


class ModelThrottle:
    """One model call in flight, with at least `spacing_seconds` between call starts."""

    def __init__(
        self,
        spacing_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        self.spacing_seconds = max(0.0, float(spacing_seconds))
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_start: float | None = None

    async def __aenter__(self) -> "ModelThrottle":
        await self._lock.acquire()
        try:
            if self._last_start is not None:
                wait = self.spacing_seconds - (self._clock() - self._last_start)
                if wait > 0:
                    await self._sleep(wait)
            self._last_start = self._clock()
        except BaseException:
            self._lock.release()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._lock.release()


class ChatModelClient:
    """
    Thin async wrapper around an OpenAI-compatible chat completions client.

    `complete` returns generated text (possibly empty). Credit/capacity errors
    raise ModelQuotaExceeded so the caller can retry with a smaller ceiling;
    any other failure raises ModelUnavailable. It never retries by itself.
    """

    def __init__(self, client: Any, *, throttle: ModelThrottle, temperature: float = 0.8) -> None:
        self.client = client
        self.throttle = throttle
        self.temperature = float(temperature)

    async def complete(self, messages: list[dict], *, model: str, max_tokens: int) -> str:
        async with self.throttle:
            try:
                resp = await asyncio.to_thread(
                    self.client.chat.completions.create,
                    model=model,
                    messages=messages,
                    temperature=self.temperature,
                    max_tokens=int(max_tokens),
                )
            except openai.APIStatusError as e:
                message = _error_message(e)
                if e.status_code == 402:
                    raise ModelQuotaExceeded(
                        message,
                        affordable_tokens=extract_affordable_tokens(message),
                        model=model,
                    ) from e
                raise ModelUnavailable(f"status={e.status_code} {message}") from e
            except Exception as e:
                raise ModelUnavailable(str(e)) from e

        try:
            text = resp.choices[0].message.content or ""
        except (AttributeError, IndexError, TypeError):
            text = ""
        return text.strip()


def build_openai_client(*, api_key: str, base_url: str, timeout_seconds: float) -> openai.OpenAI:
    return openai.OpenAI(api_key=api_key, base_url=base_url, timeout=timeout_seconds)

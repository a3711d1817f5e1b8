"""
AI text-generation client.

Uses the OpenAI-compatible SDK against the configured endpoint. Every call
goes through ``with_retry``: transient failures (HTTP 503 / 429, an
"overloaded" message, or a timeout) are retried with exponential backoff,
anything else propagates immediately.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

import openai
from openai import AsyncOpenAI

from docflow.settings import settings

logger = logging.getLogger("docflow.ai_client")

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 503})
OVERLOADED_MARKER = "overloaded"


def is_transient_error(exc: BaseException) -> bool:
    """True when the error signals a temporary service condition."""
    if isinstance(exc, openai.APITimeoutError):
        return True
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if status in TRANSIENT_STATUS_CODES:
        return True
    return OVERLOADED_MARKER in str(exc).lower()


async def with_retry(
    call: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``call()`` up to ``max_attempts`` times.

    After a transient failure on attempt ``k`` (1-based) the wait is
    ``2**k * base_delay`` seconds. Non-transient errors and the error from
    the final attempt are re-raised unchanged.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            return await call()
        except Exception as exc:
            logger.warning("AI attempt %d/%d failed: %s", attempt, max_attempts, exc)
            if attempt >= max_attempts or not is_transient_error(exc):
                raise
            delay = (2 ** attempt) * base_delay
            logger.info("Waiting %.2fs before retry", delay)
            await sleep(delay)
    raise RuntimeError("unreachable")


class AIClient:
    """Async wrapper around the chat-completions API."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        max_attempts: int | None = None,
        base_delay: float | None = None,
    ) -> None:
        self._client = AsyncOpenAI(
            base_url=base_url or settings.ai_base_url,
            api_key=api_key or settings.ai_api_key,
            timeout=settings.ai_timeout,
            max_retries=0,  # retries happen in with_retry
        )
        self._model = model or settings.ai_model
        self._max_attempts = max_attempts or settings.ai_max_retries
        self._base_delay = settings.ai_retry_delay_base if base_delay is None else base_delay

    @property
    def model(self) -> str:
        return self._model

    async def generate(self, prompt: str, *, json_mode: bool = False) -> str:
        """Send a single-turn prompt and return the model's text."""
        messages = [{"role": "user", "content": prompt}]
        return await with_retry(
            lambda: self._call(messages, json_mode=json_mode),
            max_attempts=self._max_attempts,
            base_delay=self._base_delay,
        )

    async def _call(self, messages: list[dict], *, json_mode: bool) -> str:
        """Make the chat completion request and return raw text."""
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=messages,
            max_tokens=settings.ai_max_tokens,
            temperature=settings.ai_temperature,
            **kwargs,
        )
        content = response.choices[0].message.content or ""
        logger.debug("AI raw response (first 500 chars): %s", content[:500])
        return content

    async def aclose(self) -> None:
        await self._client.close()

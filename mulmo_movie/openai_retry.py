"""
mulmo_movie/openai_retry.py
============================
Shared OpenAI API retry utility: mulmo-movie

Wraps any awaitable OpenAI SDK call so that transient failures (429
rate-limit, 5xx server errors, timeouts, dropped connections) are retried
with bounded exponential back-off plus jitter.

Usage in any stage client::

    from mulmo_movie.openai_retry import call_with_retry, chat_completions_with_retry

    response = await chat_completions_with_retry(
        client,
        model="gpt-4o-mini",
        messages=[...],
    )

    audio = await call_with_retry(client.audio.speech.create, model="tts-1", ...)

This module does NOT:
    - Create or manage OpenAI client instances
    - Interpret or validate responses
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable

from openai import APIConnectionError, APIStatusError, RateLimitError

logger = logging.getLogger("mulmo_movie.openai_retry")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MAX_RETRIES: int = 4          # total attempts = MAX_RETRIES + 1 (initial)
BASE_DELAY: float = 1.0       # seconds: first back-off delay
MAX_DELAY: float = 30.0       # cap so we don't wait forever
BACKOFF_FACTOR: float = 2.0   # exponential multiplier
JITTER_RATIO: float = 0.25    # +/- fraction of the delay added at random

# HTTP status codes worth retrying on
_RETRYABLE_STATUS_CODES: set[int] = {408, 409, 429, 500, 502, 503, 504}

_sleep = asyncio.sleep


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_retryable(exc: BaseException) -> bool:
    """Return True if the exception is a transient OpenAI error."""
    # APITimeoutError is a subclass of APIConnectionError
    if isinstance(exc, (RateLimitError, APIConnectionError)):
        return True

    if isinstance(exc, APIStatusError):
        return exc.status_code in _RETRYABLE_STATUS_CODES

    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status in _RETRYABLE_STATUS_CODES

    return False


def _jittered(delay: float) -> float:
    spread = delay * JITTER_RATIO
    return max(0.0, delay + random.uniform(-spread, spread))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def call_with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    **kwargs: Any,
) -> Any:
    """
    Await ``fn(*args, **kwargs)`` with automatic retry.

    Retries up to ``MAX_RETRIES`` times on transient errors using
    exponential back-off with jitter. Non-retryable errors are re-raised
    immediately.

    Returns:
        Whatever ``fn`` returns.

    Raises:
        The last exception if all retries are exhausted.
    """
    delay = BASE_DELAY

    for attempt in range(MAX_RETRIES + 1):
        try:
            return await fn(*args, **kwargs)
        except Exception as exc:
            if not _is_retryable(exc):
                logger.warning(
                    "OpenAI call failed with non-retryable error: %s", exc,
                )
                raise

            if attempt >= MAX_RETRIES:
                logger.error(
                    "OpenAI call failed after %d attempts: %s",
                    MAX_RETRIES + 1,
                    exc,
                )
                raise

            wait = _jittered(delay)
            logger.warning(
                "OpenAI call failed (attempt %d/%d): %s: retrying in %.1fs",
                attempt + 1,
                MAX_RETRIES + 1,
                exc,
                wait,
            )
            await _sleep(wait)
            delay = min(delay * BACKOFF_FACTOR, MAX_DELAY)

    raise RuntimeError("unreachable")  # pragma: no cover


async def chat_completions_with_retry(client: Any, **kwargs: Any) -> Any:
    """Call ``client.chat.completions.create(**kwargs)`` with automatic retry."""
    return await call_with_retry(client.chat.completions.create, **kwargs)

"""Retry helper for idempotent outbound HTTP reads."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

_RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryConfig:
    attempts: int = 3
    backoff_seconds: float = 1.0
    retry_statuses: frozenset[int] = _RETRYABLE_STATUSES


def _is_transient(exc: httpx.HTTPError, config: RetryConfig) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in config.retry_statuses
    return isinstance(exc, httpx.TransportError)


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """
    Await ``func`` until it returns a successful response.

    Transport errors and the statuses in ``retry_statuses`` are retried with a
    linear backoff; any other error status is raised on the first attempt.
    """
    config = retry_config or RetryConfig()
    attempts = max(config.attempts, 1)

    for attempt in range(1, attempts + 1):
        try:
            response = await func(*args, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPError as exc:
            if attempt == attempts or not _is_transient(exc, config):
                raise
            logger.info("Request failed (attempt %s/%s): %s", attempt, attempts, exc)
            await asyncio.sleep(config.backoff_seconds * attempt)

    raise RuntimeError("unreachable")  # pragma: no cover


__all__ = ["RetryConfig", "request_with_retry"]

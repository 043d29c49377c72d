# src/remote/retry.py — v2
"""Retry policy with exponential backoff for remote service calls.

Transient failures (timeouts, connection errors, 5xx, 429) are retried;
anything else, and RemoteServiceError raised by the call itself, is not.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from rfgbuild.core.errors import RemoteServiceError

logger = logging.getLogger(__name__)


class RemoteRetryExhausted(RemoteServiceError):
    """All retries exhausted for a remote call."""

    def __init__(self, operation: str, error_type: str, attempts: int, last_error: Exception):
        self.operation = operation
        self.error_type = error_type
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Remote call '{operation}' failed after {attempts} attempts ({error_type}): {last_error}"
        )


@dataclass(frozen=True)
class RetryConfig:
    """Retry configuration for a specific error type."""

    max_retries: int
    base_delay_s: float
    backoff_factor: float = 2.0
    jitter: bool = True


DEFAULT_RETRY_CONFIGS: dict[str, RetryConfig] = {
    "rate_limit": RetryConfig(max_retries=2, base_delay_s=2.0),
    "timeout": RetryConfig(max_retries=2, base_delay_s=1.0, backoff_factor=1.0),
    "network": RetryConfig(max_retries=2, base_delay_s=1.0),
    "server_error": RetryConfig(max_retries=2, base_delay_s=2.0),
}


def build_retry_configs(max_retries: int, base_delay_s: float) -> dict[str, RetryConfig]:
    """Uniform retry budget for every transient error type."""
    return {
        name: RetryConfig(
            max_retries=max_retries,
            base_delay_s=base_delay_s,
            backoff_factor=config.backoff_factor,
            jitter=config.jitter,
        )
        for name, config in DEFAULT_RETRY_CONFIGS.items()
    }


def classify_error(error: Exception) -> str:
    """Classify an exception into a retry error type."""
    if isinstance(error, httpx.TimeoutException):
        return "timeout"
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 429:
            return "rate_limit"
        if status >= 500:
            return "server_error"
        return "client_error"
    if isinstance(error, httpx.TransportError):
        return "network"

    msg = str(error).lower()
    if "timeout" in type(error).__name__.lower() or "timed out" in msg:
        return "timeout"
    return "unknown"


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay for a given attempt (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    operation: str = "request",
    retry_configs: dict[str, RetryConfig] | None = None,
    **kwargs: Any,
) -> Any:
    """Execute an async function with retry logic.

    Raises:
        RemoteServiceError: Raised by ``fn`` itself, passed through untouched.
        RemoteRetryExhausted: If the error is not transient or retries ran out.
    """
    configs = DEFAULT_RETRY_CONFIGS if retry_configs is None else retry_configs
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except RemoteServiceError:
            raise
        except Exception as e:
            error_type = classify_error(e)
            attempts += 1
            config = configs.get(error_type)

            if config is None or attempts > config.max_retries:
                raise RemoteRetryExhausted(operation, error_type, attempts, e) from e

            delay = _compute_delay(config, attempts - 1)
            logger.warning(
                "Remote call '%s' failed with %s (attempt %d/%d), retrying in %.1fs",
                operation, error_type, attempts, config.max_retries, delay,
            )
            await asyncio.sleep(delay)

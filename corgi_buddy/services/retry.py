# corgi_buddy/services/retry.py
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

from corgi_buddy.services.error_classifier import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryConfig:
    initial_delay_ms: int = 2000
    multiplier: float = 2.0
    max_attempts: int = 3
    jitter_percentage: float = 10.0

    @classmethod
    def from_settings(cls, settings) -> "RetryConfig":
        return cls(
            initial_delay_ms=settings.retry_initial_delay_ms,
            multiplier=settings.retry_multiplier,
            max_attempts=settings.retry_max_attempts,
            jitter_percentage=settings.retry_jitter_percentage,
        )


@dataclass
class RetryResult(Generic[T]):
    success: bool
    result: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0
    delays: List[float] = field(default_factory=list)  # ms actually waited


def compute_delay(attempt: int, config: RetryConfig, rng: Callable[[], float] = random.random) -> float:
    """
    Delay in ms after the 0-indexed `attempt`.

    base * multiplier**attempt, perturbed uniformly by +/- jitter/2 percent.
    """
    base = config.initial_delay_ms * (config.multiplier ** attempt)
    half_span = base * (config.jitter_percentage / 100.0) / 2.0
    jitter = (rng() * 2.0 - 1.0) * half_span
    return max(0.0, base + jitter)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    *,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    sleep: Sleep = asyncio.sleep,
    label: str = "operation",
) -> RetryResult[T]:
    """
    Run `operation` until it succeeds, hits a non-retryable error, or
    exhausts `max_attempts`. Never raises for operation failures; the
    outcome is reported in the returned RetryResult.
    """
    config = config or RetryConfig()
    delays: List[float] = []
    last_error: Optional[BaseException] = None

    for attempt in range(config.max_attempts):
        try:
            result = await operation()
            if attempt:
                logger.info("[retry] %s succeeded on attempt %d", label, attempt + 1)
            return RetryResult(success=True, result=result, attempts=attempt + 1, delays=delays)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            last_error = exc

            if not should_retry(exc):
                logger.warning("[retry] %s failed with non-retryable error: %s", label, exc)
                return RetryResult(success=False, error=exc, attempts=attempt + 1, delays=delays)

            if attempt + 1 >= config.max_attempts:
                break

            delay = compute_delay(attempt, config)
            delays.append(delay)
            logger.warning(
                "[retry] %s attempt %d/%d failed (%s); retrying in %.0fms",
                label,
                attempt + 1,
                config.max_attempts,
                exc,
                delay,
            )
            await sleep(delay / 1000.0)

    logger.error("[retry] %s exhausted %d attempts: %s", label, config.max_attempts, last_error)
    return RetryResult(success=False, error=last_error, attempts=config.max_attempts, delays=delays)

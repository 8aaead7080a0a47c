# corgi_buddy/services/error_classifier.py
"""
Retryable-vs-fatal classification for chain broadcast failures.

Explicit error types decide first; free-form messages from the relay fall
back to pattern matching. Anything unrecognised is treated as fatal so an
unknown failure never triggers a duplicate broadcast.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass

import aiohttp

from corgi_buddy.core.errors import ChainError, ServiceError

logger = logging.getLogger(__name__)

RETRYABLE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"timeout|timed out",
        r"ECONNREFUSED|ECONNRESET|connection (refused|reset)",
        r"network",
        r"connection",
        r"rate.?limit|too many requests|\b429\b",
        r"temporarily unavailable|service unavailable|\b50[234]\b",
        r"overloaded",
    )
]

NON_RETRYABLE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"invalid (address|amount|parameter)",
        r"insufficient (balance|funds)",
        r"contract error",
        r"already processed",
        r"duplicate transaction",
    )
]


@dataclass(frozen=True)
class Classification:
    retryable: bool
    reason: str


def classify_error(error: BaseException) -> Classification:
    if isinstance(error, ChainError):
        return Classification(error.retryable, error.code)

    if isinstance(error, ServiceError):
        return Classification(False, error.code)

    if isinstance(error, (asyncio.TimeoutError, aiohttp.ServerTimeoutError)):
        return Classification(True, "timeout")

    if isinstance(error, aiohttp.ClientResponseError):
        return Classification(error.status == 429 or error.status >= 500, f"http_{error.status}")

    if isinstance(error, aiohttp.ClientError):
        return Classification(True, "network")

    message = str(error)
    for pattern in NON_RETRYABLE_PATTERNS:
        if pattern.search(message):
            return Classification(False, pattern.pattern)
    for pattern in RETRYABLE_PATTERNS:
        if pattern.search(message):
            return Classification(True, pattern.pattern)

    logger.debug("[retry] unclassified error %s: %s", type(error).__name__, message[:200])
    return Classification(False, "unknown")


def is_retryable(error: BaseException) -> bool:
    return classify_error(error).retryable

# corgi_buddy/services/chain_client.py
"""
Chain client boundary.

Signing and broadcasting happen in a separate relay service that holds the
bank wallet keys; this module only speaks its HTTP API:

    POST {base}/transfers            {"to", "amount", "memo"} -> {"hash"}
    GET  {base}/transfers/{hash}     -> {"status": pending|confirmed|failed}

The relay deduplicates on `memo`, so re-broadcasting the same logical
transfer after an ambiguous failure returns the original hash.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import aiohttp

from corgi_buddy.core.errors import (
    ChainConfigurationError,
    ChainError,
    ChainRejectedError,
    ChainTimeoutError,
)
from corgi_buddy.models.enums import ChainTransferStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BroadcastResult:
    hash: str


class ChainClient(Protocol):
    async def send_transaction(self, to_address: str, amount: int, memo: str) -> BroadcastResult:
        ...

    async def get_transaction_status(self, tx_hash: str) -> ChainTransferStatus:
        ...


class HttpChainClient:
    def __init__(self, base_url: Optional[str], *, api_key: Optional[str] = None, timeout_seconds: int = 30):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    # ─────────────────────────────────────────────
    # Internal helpers
    # ─────────────────────────────────────────────

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _url(self, path: str) -> str:
        if not self.base_url:
            raise ChainConfigurationError("Chain relay URL is not configured")
        return f"{self.base_url}{path}"

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = self._url(path)
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, url, json=payload, headers=self._headers()) as response:
                    try:
                        data = await response.json(content_type=None)
                    except ValueError:
                        data = None
                    if not isinstance(data, dict):
                        data = {}

                    if response.status == 429 or response.status >= 500:
                        raise ChainError(
                            f"Relay unavailable ({response.status}): {data.get('error') or response.reason}",
                            retryable=True,
                            status=response.status,
                        )
                    if response.status >= 400:
                        raise ChainRejectedError(
                            f"Relay rejected request ({response.status}): {data.get('error') or response.reason}",
                            status=response.status,
                        )
                    return data
        except asyncio.TimeoutError as exc:
            raise ChainTimeoutError(f"Relay request timed out: {method} {path}") from exc
        except aiohttp.ClientError as exc:
            raise ChainError(f"Relay network error: {exc}", retryable=True) from exc

    # ─────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────

    async def send_transaction(self, to_address: str, amount: int, memo: str) -> BroadcastResult:
        data = await self._request(
            "POST",
            "/transfers",
            {"to": to_address, "amount": str(int(amount)), "memo": memo},
        )
        tx_hash = data.get("hash")
        if not tx_hash:
            # broadcast outcome unknown; the memo lets a retry dedupe
            raise ChainError("Relay response missing transaction hash", retryable=True)
        logger.info("[chain] broadcast memo=%s hash=%s", memo, tx_hash)
        return BroadcastResult(hash=str(tx_hash))

    async def get_transaction_status(self, tx_hash: str) -> ChainTransferStatus:
        data = await self._request("GET", f"/transfers/{tx_hash}")
        raw = str(data.get("status") or "").lower()
        try:
            return ChainTransferStatus(raw)
        except ValueError:
            logger.warning("[chain] unknown status %r for %s; treating as pending", raw, tx_hash)
            return ChainTransferStatus.pending

# corgi_buddy/schemas/wallet.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class WalletConnectIn(BaseModel):
    walletAddress: str = Field(..., min_length=1, max_length=128)


class WalletStatusOut(BaseModel):
    connected: bool
    address: Optional[str] = None
    updatedAt: Optional[str] = None


class WalletConnectOut(WalletStatusOut):
    success: bool = True
    pendingRewardsProcessed: int = 0
    pendingRewardsFailed: int = 0

# corgi_buddy/schemas/bank.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from corgi_buddy.models.bank_wallet import BankWallet
from corgi_buddy.schemas.common import iso


class BankStatusOut(BaseModel):
    walletAddress: str
    currentBalance: int  # base units
    totalDistributed: int  # base units
    lastTransactionHash: Optional[str] = None
    updatedAt: Optional[str] = None

    @classmethod
    def from_model(cls, bank: BankWallet) -> "BankStatusOut":
        return cls(
            walletAddress=bank.wallet_address,
            currentBalance=bank.current_balance,
            totalDistributed=bank.total_distributed,
            lastTransactionHash=bank.last_transaction_hash,
            updatedAt=iso(bank.updated_at),
        )

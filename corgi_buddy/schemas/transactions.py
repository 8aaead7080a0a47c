# corgi_buddy/schemas/transactions.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from corgi_buddy.models.transaction import Transaction
from corgi_buddy.schemas.common import iso


class TransactionConfirmIn(BaseModel):
    transactionHash: str
    success: bool = True


class TransactionOut(BaseModel):
    id: int
    transactionHash: Optional[str] = None
    fromWallet: str
    toWallet: str
    amount: int  # base units
    transactionType: str
    relatedEntityId: Optional[int] = None
    relatedEntityType: Optional[str] = None
    status: str
    createdAt: Optional[str] = None
    completedAt: Optional[str] = None

    @classmethod
    def from_model(cls, tx: Transaction) -> "TransactionOut":
        return cls(
            id=tx.id,
            transactionHash=tx.transaction_hash,
            fromWallet=tx.from_wallet,
            toWallet=tx.to_wallet,
            amount=tx.amount,
            transactionType=tx.transaction_type,
            relatedEntityId=tx.related_entity_id,
            relatedEntityType=tx.related_entity_type,
            status=tx.status,
            createdAt=iso(tx.created_at),
            completedAt=iso(tx.completed_at),
        )


class TransactionListOut(BaseModel):
    transactions: List[TransactionOut]

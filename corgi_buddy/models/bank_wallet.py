# corgi_buddy/models/bank_wallet.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from corgi_buddy.db.base import Base
from corgi_buddy.models._common import utcnow

BANK_WALLET_ID = 1


class BankWallet(Base):
    """
    Singleton mirror of the distributing wallet. Balances in base units.
    """

    __tablename__ = "bank_wallet"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False, default=BANK_WALLET_ID)

    wallet_address: Mapped[str] = mapped_column(String(128), nullable=False)
    current_balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_distributed: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    last_transaction_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint(f"id = {BANK_WALLET_ID}", name="singleton"),
        CheckConstraint("current_balance >= 0", name="balance_non_negative"),
        CheckConstraint("total_distributed >= 0", name="distributed_non_negative"),
    )

# corgi_buddy/models/transaction.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from corgi_buddy.db.base import Base
from corgi_buddy.models._common import utcnow
from corgi_buddy.models.enums import RelatedEntityType, TransactionStatus, TransactionType, values


class Transaction(Base):
    """
    One on-chain transfer attempt.

    Rows are never deleted. A failed row stays as the audit trail of the
    attempt; a new attempt for the same entity is a new row.
    """

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    transaction_hash: Mapped[Optional[str]] = mapped_column(String(128), unique=True, nullable=True)

    from_wallet: Mapped[str] = mapped_column(String(128), nullable=False)
    to_wallet: Mapped[str] = mapped_column(String(128), nullable=False)

    # token base units
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # reward recipient or purchaser
    user_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    transaction_type: Mapped[str] = mapped_column(String(16), nullable=False)
    related_entity_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    related_entity_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=TransactionStatus.pending.value)

    # transfer comment, stable per logical transfer
    memo: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    broadcast_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        CheckConstraint("from_wallet != to_wallet", name="distinct_wallets"),
        CheckConstraint("amount > 0", name="amount_positive"),
        CheckConstraint(f"transaction_type IN ({values(TransactionType)})", name="transaction_type"),
        CheckConstraint(f"status IN ({values(TransactionStatus)})", name="status"),
        CheckConstraint(
            f"related_entity_type IS NULL OR related_entity_type IN ({values(RelatedEntityType)})",
            name="related_entity_type",
        ),
        CheckConstraint("retry_count >= 0", name="retry_count_non_negative"),
        # the idempotency claim: at most one live attempt per entity
        Index(
            "uq_transactions_active_entity",
            "related_entity_id",
            "related_entity_type",
            unique=True,
            sqlite_where=text("status != 'failed'"),
            postgresql_where=text("status != 'failed'"),
        ),
        Index("ix_transactions_status_created", "status", "created_at"),
        Index("ix_transactions_user", "user_id"),
        Index("ix_transactions_from_wallet", "from_wallet"),
        Index("ix_transactions_to_wallet", "to_wallet"),
    )

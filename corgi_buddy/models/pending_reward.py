# corgi_buddy/models/pending_reward.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from corgi_buddy.db.base import Base
from corgi_buddy.models._common import utcnow
from corgi_buddy.models.enums import PendingRewardStatus, values


class PendingReward(Base):
    """
    Reward owed to a user who had no wallet when the sighting was confirmed.
    """

    __tablename__ = "pending_rewards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    sighting_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("corgi_sightings.id", ondelete="CASCADE"), nullable=False
    )

    # token base units
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=PendingRewardStatus.pending.value)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    transaction_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("transactions.id", ondelete="RESTRICT"), nullable=True
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        CheckConstraint(f"status IN ({values(PendingRewardStatus)})", name="status"),
        CheckConstraint("status != 'pending' OR transaction_id IS NULL", name="pending_has_no_transaction"),
        CheckConstraint("status != 'processed' OR transaction_id IS NOT NULL", name="processed_has_transaction"),
        Index(
            "uq_pending_rewards_pending_sighting",
            "sighting_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
        Index("ix_pending_rewards_user_status", "user_id", "status"),
    )

# corgi_buddy/models/buddy_pair.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from corgi_buddy.db.base import Base
from corgi_buddy.models._common import utcnow
from corgi_buddy.models.enums import BuddyPairStatus, values


class BuddyPair(Base):
    """
    Unordered pair of users, stored canonically with user1_id < user2_id.
    """

    __tablename__ = "buddy_pairs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user1_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user2_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    initiated_by: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=BuddyPairStatus.pending.value)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_buddy_pairs_users"),
        CheckConstraint("user1_id < user2_id", name="ordered_users"),
        CheckConstraint(f"status IN ({values(BuddyPairStatus)})", name="status"),
        CheckConstraint("initiated_by = user1_id OR initiated_by = user2_id", name="initiator_in_pair"),
        Index("ix_buddy_pairs_user1_status", "user1_id", "status"),
        Index("ix_buddy_pairs_user2_status", "user2_id", "status"),
    )

    def other(self, user_id: int) -> int:
        return self.user2_id if self.user1_id == user_id else self.user1_id

    def includes(self, user_id: int) -> bool:
        return user_id in (self.user1_id, self.user2_id)

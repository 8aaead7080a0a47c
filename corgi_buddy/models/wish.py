# corgi_buddy/models/wish.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from corgi_buddy.db.base import Base
from corgi_buddy.models._common import utcnow
from corgi_buddy.models.enums import WishStatus, values


class Wish(Base):
    __tablename__ = "wishes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    creator_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    buddy_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)
    # coins, two decimals
    proposed_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=WishStatus.pending.value)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    purchased_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    purchased_by: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        CheckConstraint("length(description) BETWEEN 1 AND 500", name="description_length"),
        CheckConstraint("proposed_amount > 0 AND proposed_amount <= 1000", name="proposed_amount_range"),
        CheckConstraint(f"status IN ({values(WishStatus)})", name="status"),
        Index("ix_wishes_status", "status"),
        Index("ix_wishes_creator", "creator_id"),
        Index("ix_wishes_buddy_status", "buddy_id", "status"),
    )

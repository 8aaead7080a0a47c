# corgi_buddy/models/corgi_sighting.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from corgi_buddy.db.base import Base
from corgi_buddy.models._common import utcnow
from corgi_buddy.models.enums import SightingStatus, values


class CorgiSighting(Base):
    __tablename__ = "corgi_sightings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    reporter_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    buddy_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    corgi_count: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=SightingStatus.pending.value)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("corgi_count BETWEEN 1 AND 100", name="corgi_count_range"),
        CheckConstraint(f"status IN ({values(SightingStatus)})", name="status"),
        CheckConstraint("reporter_id != buddy_id", name="distinct_users"),
        # one pending sighting per reporter
        Index(
            "uq_corgi_sightings_reporter_pending",
            "reporter_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
        Index("ix_corgi_sightings_buddy_status", "buddy_id", "status"),
        Index("ix_corgi_sightings_reporter_created", "reporter_id", "created_at"),
    )

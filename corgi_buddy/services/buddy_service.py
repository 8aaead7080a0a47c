# corgi_buddy/services/buddy_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from corgi_buddy.core.errors import (
    BuddyPairNotFoundError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UserNotFoundError,
    ValidationError,
)
from corgi_buddy.models._common import utcnow
from corgi_buddy.models.buddy_pair import BuddyPair
from corgi_buddy.models.enums import BuddyPairStatus
from corgi_buddy.models.user import User
from corgi_buddy.services.user_service import UserService

logger = logging.getLogger(__name__)

NO_BUDDY = "no_buddy"
OPEN_STATUSES = (BuddyPairStatus.pending.value, BuddyPairStatus.active.value)


@dataclass
class BuddyStatus:
    status: str  # no_buddy | pending | active
    pair: Optional[BuddyPair] = None
    buddy: Optional[User] = None
    is_initiator: bool = False


def canonical(a: int, b: int):
    return (a, b) if a < b else (b, a)


class BuddyService:
    def __init__(self, users: UserService):
        self.users = users

    # ─────────────────────────────────────────────
    # Internal helpers
    # ─────────────────────────────────────────────

    def _open_pair_for(self, db: Session, user_id: int) -> Optional[BuddyPair]:
        return db.execute(
            select(BuddyPair)
            .where(
                or_(BuddyPair.user1_id == user_id, BuddyPair.user2_id == user_id),
                BuddyPair.status.in_(OPEN_STATUSES),
            )
            .order_by(BuddyPair.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _get_pair(self, db: Session, pair_id: int) -> BuddyPair:
        pair = db.get(BuddyPair, pair_id)
        if not pair:
            raise BuddyPairNotFoundError("Buddy pair not found")
        return pair

    def _resolve_pending(self, db: Session, pair: BuddyPair, status: BuddyPairStatus, **values) -> BuddyPair:
        res = db.execute(
            update(BuddyPair)
            .where(BuddyPair.id == pair.id, BuddyPair.status == BuddyPairStatus.pending.value)
            .values(status=status.value, **values)
        )
        if res.rowcount != 1:
            db.rollback()
            raise InvalidStateError("Buddy pair is not in pending status")
        db.commit()
        db.refresh(pair)
        return pair

    # ─────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────

    def active_buddy_id(self, db: Session, user_id: int) -> Optional[int]:
        pair = self._open_pair_for(db, user_id)
        if not pair or pair.status != BuddyPairStatus.active.value:
            return None
        return pair.other(user_id)

    def request(
        self,
        db: Session,
        *,
        requester_id: int,
        target_user_id: Optional[int] = None,
        username: Optional[str] = None,
    ) -> BuddyPair:
        if target_user_id is None and not username:
            raise ValidationError("targetUserId or username is required")

        if target_user_id is not None:
            target = self.users.find(db, target_user_id)
            if not target:
                raise UserNotFoundError(target_user_id)
        else:
            target = self.users.find_by_username(db, username)
            if not target:
                raise NotFoundError(f"No user with username {username}", code="USER_NOT_FOUND")

        if target.id == requester_id:
            raise ValidationError("Cannot send a buddy request to yourself")

        if self._open_pair_for(db, requester_id):
            raise ConflictError("User already has an active or pending buddy relationship")
        if self._open_pair_for(db, target.id):
            raise ConflictError("Target user already has an active or pending buddy relationship")

        user1_id, user2_id = canonical(requester_id, target.id)
        pair = db.execute(
            select(BuddyPair).where(BuddyPair.user1_id == user1_id, BuddyPair.user2_id == user2_id)
        ).scalar_one_or_none()

        if pair:
            # dissolved earlier; the pair is unique so it is reopened
            pair.status = BuddyPairStatus.pending.value
            pair.initiated_by = requester_id
            pair.created_at = utcnow()
            pair.confirmed_at = None
        else:
            pair = BuddyPair(
                user1_id=user1_id,
                user2_id=user2_id,
                initiated_by=requester_id,
                status=BuddyPairStatus.pending.value,
            )
            db.add(pair)

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Buddy relationship already exists between these users")

        db.refresh(pair)
        logger.info("[buddy] request pair=%s from=%s to=%s", pair.id, requester_id, target.id)
        return pair

    def accept(self, db: Session, *, user_id: int, pair_id: int) -> BuddyPair:
        pair = self._get_pair(db, pair_id)
        if not pair.includes(user_id):
            raise ForbiddenError("User is not part of this buddy pair")
        if pair.status != BuddyPairStatus.pending.value:
            raise InvalidStateError("Buddy pair is not in pending status")
        if pair.initiated_by == user_id:
            raise ForbiddenError("Cannot confirm your own buddy request")

        pair = self._resolve_pending(db, pair, BuddyPairStatus.active, confirmed_at=utcnow())
        logger.info("[buddy] pair=%s active", pair.id)
        return pair

    def reject(self, db: Session, *, user_id: int, pair_id: int) -> BuddyPair:
        pair = self._get_pair(db, pair_id)
        if not pair.includes(user_id):
            raise ForbiddenError("User is not part of this buddy pair")
        if pair.status != BuddyPairStatus.pending.value:
            raise InvalidStateError("Buddy pair is not in pending status")
        if pair.initiated_by == user_id:
            raise ForbiddenError("Use cancel to withdraw your own request")

        pair = self._resolve_pending(db, pair, BuddyPairStatus.dissolved)
        logger.info("[buddy] pair=%s rejected by user=%s", pair.id, user_id)
        return pair

    def cancel(self, db: Session, *, user_id: int, pair_id: Optional[int] = None) -> BuddyPair:
        """Withdraw a pending request. Only its initiator may do so; the row is deleted."""
        if pair_id is not None:
            pair = self._get_pair(db, pair_id)
        else:
            pair = self._open_pair_for(db, user_id)
            if not pair:
                raise BuddyPairNotFoundError("No pending buddy request to cancel")

        if not pair.includes(user_id):
            raise ForbiddenError("User is not part of this buddy pair")
        if pair.status != BuddyPairStatus.pending.value:
            raise InvalidStateError("Only pending buddy requests can be cancelled")
        if pair.initiated_by != user_id:
            raise ForbiddenError("Only the initiator can cancel a buddy request")

        res = db.execute(
            delete(BuddyPair).where(BuddyPair.id == pair.id, BuddyPair.status == BuddyPairStatus.pending.value)
        )
        if res.rowcount != 1:
            db.rollback()
            raise InvalidStateError("Only pending buddy requests can be cancelled")
        db.commit()
        logger.info("[buddy] pair=%s cancelled by user=%s", pair.id, user_id)
        return pair

    def dissolve(self, db: Session, *, user_id: int) -> BuddyPair:
        pair = self._open_pair_for(db, user_id)
        if not pair or pair.status != BuddyPairStatus.active.value:
            raise BuddyPairNotFoundError("No active buddy relationship")

        pair.status = BuddyPairStatus.dissolved.value
        db.commit()
        db.refresh(pair)
        logger.info("[buddy] pair=%s dissolved by user=%s", pair.id, user_id)
        return pair

    def status(self, db: Session, *, user_id: int) -> BuddyStatus:
        pair = self._open_pair_for(db, user_id)
        if not pair:
            return BuddyStatus(status=NO_BUDDY)
        return BuddyStatus(
            status=pair.status,
            pair=pair,
            buddy=self.users.find(db, pair.other(user_id)),
            is_initiator=pair.initiated_by == user_id,
        )

# corgi_buddy/services/user_service.py
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from corgi_buddy.core.errors import UserNotFoundError, ValidationError
from corgi_buddy.models.user import User

logger = logging.getLogger(__name__)


def clean_username(username: Optional[str]) -> Optional[str]:
    if not username:
        return None
    cleaned = username.strip().lstrip("@").strip()
    return cleaned or None


class UserService:
    def find(self, db: Session, user_id: int) -> Optional[User]:
        return db.get(User, user_id)

    def get(self, db: Session, user_id: int) -> User:
        user = self.find(db, user_id)
        if not user:
            raise UserNotFoundError(user_id)
        return user

    def find_by_username(self, db: Session, username: str) -> Optional[User]:
        cleaned = clean_username(username)
        if not cleaned:
            return None
        return db.execute(select(User).where(User.telegram_username == cleaned)).scalar_one_or_none()

    def search(self, db: Session, *, query: str, exclude_user_id: Optional[int] = None, limit: int = 10) -> List[User]:
        cleaned = clean_username(query)
        if not cleaned or len(cleaned) < 2:
            raise ValidationError("Username query must be at least 2 characters")

        pattern = "%" + cleaned.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        stmt = (
            select(User)
            .where(User.telegram_username.ilike(pattern, escape="\\"))
            .order_by(User.telegram_username.asc())
            .limit(limit)
        )
        if exclude_user_id is not None:
            stmt = stmt.where(User.id != exclude_user_id)
        return list(db.execute(stmt).scalars().all())

    def get_or_create(self, db: Session, *, user_id: int, first_name: str, username: Optional[str] = None) -> User:
        """
        Find-or-create from authenticated claims, refreshing the profile
        fields the token carries.
        """
        username = clean_username(username)
        first_name = (first_name or "").strip()[:64] or "Unknown"

        user = self.find(db, user_id)
        if user:
            changed = False
            if user.first_name != first_name:
                user.first_name = first_name
                changed = True
            if username and user.telegram_username != username:
                user.telegram_username = username
                changed = True
            if changed:
                try:
                    db.commit()
                except IntegrityError:
                    # username now held by another account; keep the old one
                    db.rollback()
                    logger.warning("[users] username %s already taken; not updating user=%s", username, user_id)
                    user = self.get(db, user_id)
            return user

        user = User(id=user_id, first_name=first_name, telegram_username=username)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            existing = self.find(db, user_id)
            if existing:
                return existing
            # username collision with another account
            user = User(id=user_id, first_name=first_name, telegram_username=None)
            db.add(user)
            db.commit()
        logger.info("[users] created user=%s", user_id)
        return user

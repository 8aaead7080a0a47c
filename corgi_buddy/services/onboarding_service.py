# corgi_buddy/services/onboarding_service.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from sqlalchemy.orm import Session

from corgi_buddy.models.enums import BuddyPairStatus
from corgi_buddy.models.user import User
from corgi_buddy.services.buddy_service import BuddyService, BuddyStatus
from corgi_buddy.services.user_service import UserService


class OnboardingStep(str, Enum):
    welcome = "welcome"
    buddy = "buddy"
    complete = "complete"


@dataclass(frozen=True)
class OnboardingState:
    wallet_connected: bool
    buddy_confirmed: bool
    current_step: OnboardingStep


def derive_onboarding_state(user: User, buddy_status: BuddyStatus) -> OnboardingState:
    wallet_connected = bool(user.ton_wallet_address)
    buddy_confirmed = buddy_status.status == BuddyPairStatus.active.value

    if not wallet_connected:
        step = OnboardingStep.welcome
    elif not buddy_confirmed:
        step = OnboardingStep.buddy
    else:
        step = OnboardingStep.complete

    return OnboardingState(wallet_connected=wallet_connected, buddy_confirmed=buddy_confirmed, current_step=step)


class OnboardingService:
    def __init__(self, *, users: UserService, buddies: BuddyService):
        self.users = users
        self.buddies = buddies

    def status(self, db: Session, *, user_id: int):
        user = self.users.get(db, user_id)
        buddy_status = self.buddies.status(db, user_id=user_id)
        return user, buddy_status, derive_onboarding_state(user, buddy_status)

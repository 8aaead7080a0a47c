# corgi_buddy/schemas/onboarding.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from corgi_buddy.schemas.buddy import BuddyStatusOut


class OnboardingStateOut(BaseModel):
    wallet_connected: bool
    buddy_confirmed: bool
    current_step: str


class OnboardingWalletOut(BaseModel):
    address: str


class OnboardingStatusOut(BaseModel):
    success: bool = True
    onboarding: OnboardingStateOut
    wallet: Optional[OnboardingWalletOut] = None
    buddy: Optional[BuddyStatusOut] = None

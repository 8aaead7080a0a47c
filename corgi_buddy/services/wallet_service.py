# corgi_buddy/services/wallet_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from corgi_buddy.core.errors import ValidationError
from corgi_buddy.core.ton import is_valid_ton_address, normalize_address
from corgi_buddy.models._common import utcnow
from corgi_buddy.models.user import User
from corgi_buddy.services.bank_service import BankService
from corgi_buddy.services.settlement_service import PendingRewardBatch, SettlementService
from corgi_buddy.services.user_service import UserService

logger = logging.getLogger(__name__)


@dataclass
class WalletConnectResult:
    user: User
    pending_rewards: PendingRewardBatch
    revoked_from: Optional[int] = None


class WalletService:
    def __init__(self, *, users: UserService, bank: BankService, settlement: SettlementService):
        self.users = users
        self.bank = bank
        self.settlement = settlement

    async def connect(self, db: Session, *, user_id: int, address: str) -> WalletConnectResult:
        """
        Attach a wallet, revoking it from any previous holder in the same
        commit, then convert the user's pending rewards into transfers.
        """
        address = normalize_address(address)
        if not is_valid_ton_address(address):
            raise ValidationError("Invalid TON wallet address format", code="INVALID_ADDRESS")

        bank = self.bank.find(db)
        if bank and bank.wallet_address == address:
            raise ValidationError("The bank wallet cannot be connected to a user", code="INVALID_ADDRESS")

        user = self.users.get(db, user_id)

        previous_holder = db.execute(
            select(User.id).where(User.ton_wallet_address == address, User.id != user_id)
        ).scalar_one_or_none()

        # order matters: free the address before claiming it
        db.execute(
            update(User)
            .where(User.ton_wallet_address == address, User.id != user_id)
            .values(ton_wallet_address=None, updated_at=utcnow())
        )
        db.execute(
            update(User).where(User.id == user_id).values(ton_wallet_address=address, updated_at=utcnow())
        )
        db.commit()
        db.refresh(user)

        if previous_holder is not None:
            logger.info("[wallet] address moved from user=%s to user=%s", previous_holder, user_id)

        batch = await self.settlement.process_pending_rewards_for_user(db, user_id=user_id)
        db.refresh(user)
        return WalletConnectResult(user=user, pending_rewards=batch, revoked_from=previous_holder)

    def disconnect(self, db: Session, *, user_id: int) -> User:
        user = self.users.get(db, user_id)
        user.ton_wallet_address = None
        db.commit()
        db.refresh(user)
        return user

    def status(self, db: Session, *, user_id: int) -> User:
        return self.users.get(db, user_id)

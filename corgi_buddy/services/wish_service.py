# corgi_buddy/services/wish_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from corgi_buddy.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NoActiveBuddyError,
    ValidationError,
    WalletNotConnectedError,
    WishNotFoundError,
)
from corgi_buddy.core.ton import build_ton_transfer, coins_to_base_units
from corgi_buddy.models._common import utcnow
from corgi_buddy.models.enums import RelatedEntityType, TransactionStatus, TransactionType, WishStatus
from corgi_buddy.models.transaction import Transaction
from corgi_buddy.models.user import User
from corgi_buddy.models.wish import Wish
from corgi_buddy.services.buddy_service import BuddyService
from corgi_buddy.services.settlement_service import ACTIVE_TX_STATUSES, purchase_memo

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 500
MAX_PROPOSED_AMOUNT = Decimal("1000")
AMOUNT_QUANTUM = Decimal("0.01")


@dataclass
class PurchaseIntent:
    transaction: Transaction
    ton_transaction: Dict[str, str]


def validate_description(description) -> str:
    if not isinstance(description, str) or not description.strip():
        raise ValidationError("Description is required")
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters")
    return description


def validate_amount(amount) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError("proposedAmount must be a number")
    if not value.is_finite() or value <= 0:
        raise ValidationError("proposedAmount must be greater than 0")
    if value > MAX_PROPOSED_AMOUNT:
        raise ValidationError(f"proposedAmount must be at most {MAX_PROPOSED_AMOUNT}")
    if value != value.quantize(AMOUNT_QUANTUM):
        raise ValidationError("proposedAmount must have at most two decimal places")
    return value.quantize(AMOUNT_QUANTUM)


class WishService:
    def __init__(self, *, buddies: BuddyService, jetton_decimals: int = 9):
        self.buddies = buddies
        self.jetton_decimals = jetton_decimals

    def get(self, db: Session, wish_id: int) -> Wish:
        wish = db.get(Wish, wish_id)
        if not wish:
            raise WishNotFoundError(wish_id)
        return wish

    def create(self, db: Session, *, creator_id: int, description: str, proposed_amount) -> Wish:
        description = validate_description(description)
        amount = validate_amount(proposed_amount)

        buddy_id = self.buddies.active_buddy_id(db, creator_id)
        if buddy_id is None:
            raise NoActiveBuddyError("You need an active buddy to create wishes")

        wish = Wish(
            creator_id=creator_id,
            buddy_id=buddy_id,
            description=description,
            proposed_amount=amount,
            status=WishStatus.pending.value,
        )
        db.add(wish)
        db.commit()
        db.refresh(wish)
        logger.info("[wishes] created id=%s creator=%s amount=%s", wish.id, creator_id, amount)
        return wish

    def respond(self, db: Session, *, wish_id: int, user_id: int, accepted: bool) -> Wish:
        wish = self.get(db, wish_id)
        if wish.creator_id == user_id:
            raise ConflictError("Cannot respond to your own wish")
        if wish.buddy_id != user_id:
            raise ForbiddenError("User is not authorized to respond to this wish")
        if wish.status != WishStatus.pending.value:
            if wish.status == WishStatus.purchased.value:
                raise InvalidStateError("Wish has already been purchased and cannot be modified")
            raise InvalidStateError("Wish has already been responded to")

        values = {"status": (WishStatus.accepted if accepted else WishStatus.rejected).value}
        if accepted:
            values["accepted_at"] = utcnow()

        res = db.execute(
            update(Wish).where(Wish.id == wish_id, Wish.status == WishStatus.pending.value).values(**values)
        )
        if res.rowcount != 1:
            db.rollback()
            raise InvalidStateError("Wish has already been responded to")
        db.commit()
        db.refresh(wish)
        return wish

    def list_for_user(self, db: Session, *, user_id: int) -> List[Wish]:
        return list(
            db.execute(
                select(Wish).where(Wish.creator_id == user_id).order_by(Wish.created_at.desc(), Wish.id.desc())
            ).scalars().all()
        )

    def pending_for_buddy(self, db: Session, *, user_id: int) -> List[Wish]:
        return list(
            db.execute(
                select(Wish)
                .where(Wish.buddy_id == user_id, Wish.status == WishStatus.pending.value)
                .order_by(Wish.created_at.asc())
            ).scalars().all()
        )

    def marketplace(self, db: Session, *, limit: int = 50, offset: int = 0) -> List[Wish]:
        return list(
            db.execute(
                select(Wish)
                .where(Wish.status == WishStatus.accepted.value)
                .order_by(Wish.accepted_at.desc(), Wish.id.desc())
                .limit(limit)
                .offset(offset)
            ).scalars().all()
        )

    def purchase(self, db: Session, *, wish_id: int, purchaser_id: int) -> PurchaseIntent:
        """
        Create the pending purchase transfer and return the parameters the
        client signs. The wish stays accepted until the transfer is
        confirmed.
        """
        wish = self.get(db, wish_id)
        if wish.status != WishStatus.accepted.value:
            if wish.status == WishStatus.pending.value:
                raise InvalidStateError("Wish must be accepted before it can be purchased")
            if wish.status == WishStatus.rejected.value:
                raise InvalidStateError("Cannot purchase a rejected wish")
            raise InvalidStateError("Wish has already been purchased")
        if wish.creator_id == purchaser_id:
            raise ConflictError("Cannot purchase your own wish")
        if wish.buddy_id == purchaser_id:
            raise ConflictError("Cannot purchase a wish you approved")

        purchaser = db.get(User, purchaser_id)
        creator = db.get(User, wish.creator_id)
        if not purchaser or not purchaser.ton_wallet_address:
            raise WalletNotConnectedError("Connect a wallet before purchasing")
        if not creator or not creator.ton_wallet_address:
            raise WalletNotConnectedError("The wish creator has not connected a wallet")
        if purchaser.ton_wallet_address == creator.ton_wallet_address:
            raise ValidationError("Purchaser and creator wallets must differ")

        existing = db.execute(
            select(Transaction).where(
                Transaction.related_entity_id == wish_id,
                Transaction.related_entity_type == RelatedEntityType.wish.value,
                Transaction.status.in_(ACTIVE_TX_STATUSES),
            )
        ).scalar_one_or_none()
        if existing:
            if existing.status == TransactionStatus.pending.value and existing.user_id == purchaser_id:
                return PurchaseIntent(
                    transaction=existing,
                    ton_transaction=build_ton_transfer(existing.to_wallet, existing.amount, existing.memo or ""),
                )
            raise ConflictError("A purchase for this wish is already in progress", code="PURCHASE_IN_PROGRESS")

        amount = coins_to_base_units(wish.proposed_amount, self.jetton_decimals)
        memo = purchase_memo(wish_id, purchaser_id)
        tx = Transaction(
            from_wallet=purchaser.ton_wallet_address,
            to_wallet=creator.ton_wallet_address,
            amount=amount,
            user_id=purchaser_id,
            transaction_type=TransactionType.purchase.value,
            related_entity_id=wish_id,
            related_entity_type=RelatedEntityType.wish.value,
            status=TransactionStatus.pending.value,
            memo=memo,
        )
        db.add(tx)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("A purchase for this wish is already in progress", code="PURCHASE_IN_PROGRESS")

        db.refresh(tx)
        logger.info("[wishes] purchase tx=%s wish=%s buyer=%s amount=%s", tx.id, wish_id, purchaser_id, amount)
        return PurchaseIntent(transaction=tx, ton_transaction=build_ton_transfer(tx.to_wallet, amount, memo))

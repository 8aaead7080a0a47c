# corgi_buddy/services/sighting_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from corgi_buddy.core.errors import (
    AlreadyRespondedError,
    ConflictError,
    ForbiddenError,
    NoActiveBuddyError,
    ServiceError,
    SightingNotFoundError,
)
from corgi_buddy.models._common import utcnow
from corgi_buddy.models.corgi_sighting import CorgiSighting
from corgi_buddy.models.enums import RelatedEntityType, SightingStatus, TransactionStatus, TransactionType
from corgi_buddy.models.transaction import Transaction
from corgi_buddy.services.buddy_service import BuddyService
from corgi_buddy.services.reward_calculator import RewardCalculator
from corgi_buddy.services.settlement_service import SettlementOutcome, SettlementService, SettlementStatus

logger = logging.getLogger(__name__)


@dataclass
class SightingResponse:
    sighting: CorgiSighting
    outcome: Optional[SettlementOutcome] = None
    settlement_error: Optional[ServiceError] = None
    reward_coins: Optional[int] = None


class SightingService:
    def __init__(self, *, buddies: BuddyService, settlement: SettlementService, calculator: RewardCalculator):
        self.buddies = buddies
        self.settlement = settlement
        self.calculator = calculator

    def get(self, db: Session, sighting_id: int) -> CorgiSighting:
        sighting = db.get(CorgiSighting, sighting_id)
        if not sighting:
            raise SightingNotFoundError(sighting_id)
        return sighting

    def report(self, db: Session, *, reporter_id: int, corgi_count: int) -> CorgiSighting:
        self.calculator.validate_count(corgi_count)

        buddy_id = self.buddies.active_buddy_id(db, reporter_id)
        if buddy_id is None:
            raise NoActiveBuddyError("You need an active buddy to report corgi sightings")

        pending = db.execute(
            select(CorgiSighting.id).where(
                CorgiSighting.reporter_id == reporter_id,
                CorgiSighting.status == SightingStatus.pending.value,
            )
        ).first()
        if pending:
            raise ConflictError("You already have a sighting awaiting confirmation")

        sighting = CorgiSighting(
            reporter_id=reporter_id,
            buddy_id=buddy_id,
            corgi_count=corgi_count,
            status=SightingStatus.pending.value,
        )
        db.add(sighting)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("You already have a sighting awaiting confirmation")

        db.refresh(sighting)
        logger.info("[sightings] reported id=%s reporter=%s count=%s", sighting.id, reporter_id, corgi_count)
        return sighting

    def pending_confirmations(self, db: Session, *, buddy_id: int) -> List[CorgiSighting]:
        return list(
            db.execute(
                select(CorgiSighting)
                .where(
                    CorgiSighting.buddy_id == buddy_id,
                    CorgiSighting.status == SightingStatus.pending.value,
                )
                .order_by(CorgiSighting.created_at.asc())
            ).scalars().all()
        )

    def history(self, db: Session, *, reporter_id: int, limit: int = 50) -> List[CorgiSighting]:
        return list(
            db.execute(
                select(CorgiSighting)
                .where(CorgiSighting.reporter_id == reporter_id)
                .order_by(CorgiSighting.created_at.desc(), CorgiSighting.id.desc())
                .limit(limit)
            ).scalars().all()
        )

    def total_rewards(self, db: Session, *, reporter_id: int) -> int:
        """Base units of completed reward transfers for the reporter's sightings."""
        sighting_ids = select(CorgiSighting.id).where(CorgiSighting.reporter_id == reporter_id)
        total = db.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.transaction_type == TransactionType.reward.value,
                Transaction.status == TransactionStatus.completed.value,
                Transaction.related_entity_type == RelatedEntityType.corgi_sighting.value,
                Transaction.related_entity_id.in_(sighting_ids),
            )
        ).scalar_one()
        return int(total)

    async def respond(self, db: Session, *, sighting_id: int, user_id: int, confirmed: bool) -> SightingResponse:
        """
        One-shot confirm/deny by the named buddy.

        A confirmation is kept even when settlement fails; the error is
        reported on the response and the sweep retries later.
        """
        sighting = self.get(db, sighting_id)
        if sighting.buddy_id != user_id:
            raise ForbiddenError("Only the named buddy can respond to this sighting")
        if sighting.status != SightingStatus.pending.value:
            raise AlreadyRespondedError("Sighting has already been responded to")

        new_status = SightingStatus.confirmed if confirmed else SightingStatus.denied
        res = db.execute(
            update(CorgiSighting)
            .where(CorgiSighting.id == sighting_id, CorgiSighting.status == SightingStatus.pending.value)
            .values(status=new_status.value, responded_at=utcnow())
        )
        if res.rowcount != 1:
            db.rollback()
            raise AlreadyRespondedError("Sighting has already been responded to")

        if not confirmed:
            db.commit()
            db.refresh(sighting)
            logger.info("[sightings] id=%s denied by user=%s", sighting_id, user_id)
            return SightingResponse(sighting=sighting)

        try:
            # commits the confirmation together with the claim
            outcome = await self.settlement.settle_reward(db, sighting_id=sighting_id, reporter_id=sighting.reporter_id)
        except ServiceError as exc:
            db.commit()
            db.refresh(sighting)
            logger.error("[sightings] id=%s confirmed but settlement failed: %s %s", sighting_id, exc.code, exc.message)
            return SightingResponse(sighting=sighting, settlement_error=exc)

        db.refresh(sighting)
        reward_coins = None
        if outcome.status == SettlementStatus.COMPLETED:
            reward_coins = self.calculator.to_coins(outcome.amount)

        logger.info("[sightings] id=%s confirmed settlement=%s", sighting_id, outcome.status.value)
        return SightingResponse(sighting=sighting, outcome=outcome, reward_coins=reward_coins)

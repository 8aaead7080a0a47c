# corgi_buddy/services/reconciliation_service.py
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import Callable, List, Optional

from sqlalchemy import and_, exists, select
from sqlalchemy.orm import Session

from corgi_buddy.core.errors import ChainError, ServiceError
from corgi_buddy.models._common import utcnow
from corgi_buddy.models.corgi_sighting import CorgiSighting
from corgi_buddy.models.enums import (
    ChainTransferStatus,
    PendingRewardStatus,
    RelatedEntityType,
    SightingStatus,
    TransactionStatus,
    TransactionType,
)
from corgi_buddy.models.pending_reward import PendingReward
from corgi_buddy.models.transaction import Transaction
from corgi_buddy.models.user import User
from corgi_buddy.services.chain_client import ChainClient
from corgi_buddy.services.settlement_service import ACTIVE_TX_STATUSES, SettlementService, SettlementStatus

logger = logging.getLogger(__name__)

StopCheck = Callable[[], bool]


@dataclass
class SweepReport:
    transactions_completed: int = 0
    transactions_failed: int = 0
    transactions_unresolved: int = 0
    rewards_processed: int = 0
    rewards_failed: int = 0
    sightings_settled: int = 0
    sightings_failed: int = 0
    permanently_failed_sightings: List[int] = field(default_factory=list)
    errors: int = 0
    interrupted: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class _Interrupted(Exception):
    pass


class ReconciliationService:
    """
    Re-walks unresolved settlement state.

    Safe to run repeatedly and alongside request handlers: every state
    change goes through the same conditional updates and claims the
    request path uses.
    """

    def __init__(
        self,
        *,
        settlement: SettlementService,
        chain: ChainClient,
        stale_after_seconds: int = 300,
        purchase_expiry_seconds: int = 3600,
        max_settlement_attempts: int = 5,
    ):
        self.settlement = settlement
        self.chain = chain
        self.stale_after = timedelta(seconds=stale_after_seconds)
        self.purchase_expiry = timedelta(seconds=purchase_expiry_seconds)
        self.max_settlement_attempts = max_settlement_attempts

    # ─────────────────────────────────────────────
    # Internal helpers
    # ─────────────────────────────────────────────

    @staticmethod
    def _checkpoint(should_stop: Optional[StopCheck]) -> None:
        if should_stop is not None and should_stop():
            raise _Interrupted()

    async def _resolve_stale_transactions(self, db: Session, report: SweepReport, should_stop: Optional[StopCheck]) -> None:
        now = utcnow()
        rows = db.execute(
            select(Transaction.id, Transaction.transaction_hash, Transaction.transaction_type)
            .where(
                Transaction.status == TransactionStatus.pending.value,
                Transaction.created_at < now - self.stale_after,
            )
            .order_by(Transaction.id.asc())
        ).all()
        # end the read so no lock is held while the relay is awaited
        db.commit()

        purchase_cutoff = now - self.purchase_expiry

        for tx_id, tx_hash, tx_type in rows:
            self._checkpoint(should_stop)

            if tx_hash:
                # never await the relay inside a store transaction
                db.commit()
                try:
                    status = await self.chain.get_transaction_status(tx_hash)
                except ChainError as exc:
                    db.rollback()
                    report.errors += 1
                    logger.warning("[sweep] status lookup failed tx=%s: %s", tx_id, exc.message)
                    continue

                if status == ChainTransferStatus.confirmed:
                    if self.settlement.complete_transaction(db, tx_id):
                        report.transactions_completed += 1
                elif status == ChainTransferStatus.failed:
                    if self.settlement.fail_transaction(db, tx_id, reason="chain_failed", error="chain reported transfer failed"):
                        report.transactions_failed += 1
                else:
                    report.transactions_unresolved += 1
                db.commit()
                continue

            if tx_type == TransactionType.reward.value:
                # claimed but never recorded a hash: the broadcast outcome is unknown.
                # a later attempt reuses the memo so the relay can dedupe it.
                if self.settlement.fail_transaction(db, tx_id, reason="broadcast_unknown", error="no hash recorded before staleness threshold"):
                    report.transactions_failed += 1
                db.commit()
                continue

            expired = db.execute(
                select(Transaction.id).where(Transaction.id == tx_id, Transaction.created_at < purchase_cutoff)
            ).scalar_one_or_none()
            if expired is not None:
                if self.settlement.fail_transaction(db, tx_id, reason="purchase_expired", error="purchase was never confirmed by the client"):
                    report.transactions_failed += 1
            else:
                report.transactions_unresolved += 1
            db.commit()

    async def _process_pending_rewards(self, db: Session, report: SweepReport, should_stop: Optional[StopCheck]) -> None:
        rewards = db.execute(
            select(PendingReward.id, PendingReward.sighting_id)
            .join(User, User.id == PendingReward.user_id)
            .where(
                PendingReward.status == PendingRewardStatus.pending.value,
                User.ton_wallet_address.is_not(None),
            )
            .order_by(PendingReward.user_id.asc(), PendingReward.created_at.asc(), PendingReward.id.asc())
        ).all()
        db.commit()

        for reward_id, sighting_id in rewards:
            self._checkpoint(should_stop)

            attempts = self.settlement.failed_attempts(
                db, entity_id=sighting_id, entity_type=RelatedEntityType.corgi_sighting
            )
            db.commit()
            if attempts >= self.max_settlement_attempts:
                # stays pending for an operator to cancel or retry by hand
                report.permanently_failed_sightings.append(sighting_id)
                continue

            try:
                outcome = await self.settlement.settle_pending_reward(db, reward_id=reward_id)
            except ServiceError as exc:
                db.rollback()
                report.rewards_failed += 1
                logger.warning("[sweep] pending reward=%s not processed: %s", reward_id, exc.message)
                continue

            if outcome.status == SettlementStatus.COMPLETED:
                report.rewards_processed += 1

    async def _settle_orphaned_sightings(self, db: Session, report: SweepReport, should_stop: Optional[StopCheck]) -> None:
        has_active_tx = exists().where(
            and_(
                Transaction.related_entity_id == CorgiSighting.id,
                Transaction.related_entity_type == RelatedEntityType.corgi_sighting.value,
                Transaction.status.in_(ACTIVE_TX_STATUSES),
            )
        )
        # any reward row, cancelled included: a cancelled reward is not re-issued
        has_reward = exists().where(PendingReward.sighting_id == CorgiSighting.id)

        rows = db.execute(
            select(CorgiSighting.id, CorgiSighting.reporter_id)
            .where(
                CorgiSighting.status == SightingStatus.confirmed.value,
                ~has_active_tx,
                ~has_reward,
            )
            .order_by(CorgiSighting.id.asc())
        ).all()
        db.commit()

        for sighting_id, reporter_id in rows:
            self._checkpoint(should_stop)

            attempts = self.settlement.failed_attempts(
                db, entity_id=sighting_id, entity_type=RelatedEntityType.corgi_sighting
            )
            db.commit()
            if attempts >= self.max_settlement_attempts:
                report.permanently_failed_sightings.append(sighting_id)
                continue

            try:
                outcome = await self.settlement.settle_reward(db, sighting_id=sighting_id, reporter_id=reporter_id)
            except ServiceError as exc:
                db.rollback()
                report.sightings_failed += 1
                logger.warning("[sweep] sighting=%s settlement failed: %s", sighting_id, exc.message)
                continue

            if outcome.status in (SettlementStatus.COMPLETED, SettlementStatus.BROADCAST, SettlementStatus.PENDING_REWARD):
                report.sightings_settled += 1

    # ─────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────

    async def run_sweep(self, db: Session, *, should_stop: Optional[StopCheck] = None) -> SweepReport:
        report = SweepReport()
        try:
            await self._resolve_stale_transactions(db, report, should_stop)
            await self._process_pending_rewards(db, report, should_stop)
            await self._settle_orphaned_sightings(db, report, should_stop)
        except _Interrupted:
            report.interrupted = True
            logger.info("[sweep] interrupted")

        if report.permanently_failed_sightings:
            logger.error(
                "[sweep] sightings exceeded %d settlement attempts: %s",
                self.max_settlement_attempts,
                report.permanently_failed_sightings,
            )

        logger.info("[sweep] finished %s", report.to_dict())
        return report

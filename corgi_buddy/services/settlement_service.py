# corgi_buddy/services/settlement_service.py
"""
Reward settlement engine.

Every transfer goes through the same two phases:

1. claim (synchronous, one commit): idempotency checks plus insertion of a
   pending Transaction row. The partial unique index on
   (related_entity_id, related_entity_type) WHERE status != 'failed' is the
   claim; losing the race raises IntegrityError inside a savepoint and the
   caller gets an "in progress" outcome.

2. broadcast (async): the chain call runs under the retry controller with
   no store transaction open. The hash is committed first, then completion
   (conditional on status = 'pending') and the bank mirror update commit
   together.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from corgi_buddy.core.errors import (
    ForbiddenError,
    InsufficientBankFundsError,
    InvalidStateError,
    NotFoundError,
    ServiceError,
    SettlementFailedError,
    SightingNotFoundError,
    ValidationError,
    WalletNotConnectedError,
)
from corgi_buddy.models._common import utcnow
from corgi_buddy.models.corgi_sighting import CorgiSighting
from corgi_buddy.models.enums import (
    PendingRewardStatus,
    RelatedEntityType,
    SightingStatus,
    TransactionStatus,
    TransactionType,
    WishStatus,
)
from corgi_buddy.models.pending_reward import PendingReward
from corgi_buddy.models.transaction import Transaction
from corgi_buddy.models.user import User
from corgi_buddy.models.wish import Wish
from corgi_buddy.services.bank_service import BankService
from corgi_buddy.services.chain_client import ChainClient
from corgi_buddy.services.error_classifier import classify_error
from corgi_buddy.services.retry import RetryConfig, Sleep, retry_with_backoff
from corgi_buddy.services.reward_calculator import RewardCalculator

logger = logging.getLogger(__name__)

ACTIVE_TX_STATUSES = (TransactionStatus.pending.value, TransactionStatus.completed.value)


class SettlementStatus(str, Enum):
    COMPLETED = "completed"
    BROADCAST = "broadcast"  # hash recorded, awaiting chain confirmation
    PENDING_REWARD = "pending_reward"
    ALREADY_SETTLED = "already_settled"
    IN_PROGRESS = "in_progress"


@dataclass
class SettlementOutcome:
    status: SettlementStatus
    amount: int = 0
    transaction: Optional[Transaction] = None
    pending_reward: Optional[PendingReward] = None
    attempts: int = 0

    @property
    def settled(self) -> bool:
        return self.status == SettlementStatus.COMPLETED


@dataclass
class PendingRewardBatch:
    processed: List[SettlementOutcome] = field(default_factory=list)
    failed: List[Tuple[int, ServiceError]] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return sum(1 for o in self.processed if o.status == SettlementStatus.COMPLETED)


def reward_memo(sighting_id: int) -> str:
    return f"corgi-reward:sighting:{sighting_id}"


def purchase_memo(wish_id: int, purchaser_id: int) -> str:
    return f"corgi-wish:{wish_id}:buyer:{purchaser_id}"


class SettlementService:
    def __init__(
        self,
        *,
        chain: ChainClient,
        bank: BankService,
        calculator: RewardCalculator,
        retry_config: Optional[RetryConfig] = None,
        settle_on_broadcast: bool = True,
        sleep: Optional[Sleep] = None,
    ):
        self.chain = chain
        self.bank = bank
        self.calculator = calculator
        self.retry_config = retry_config or RetryConfig()
        self.settle_on_broadcast = settle_on_broadcast
        self.sleep = sleep

    # ─────────────────────────────────────────────
    # Internal helpers
    # ─────────────────────────────────────────────

    def _active_transaction(self, db: Session, *, entity_id: int, entity_type: RelatedEntityType) -> Optional[Transaction]:
        return db.execute(
            select(Transaction)
            .where(
                Transaction.related_entity_id == entity_id,
                Transaction.related_entity_type == entity_type.value,
                Transaction.status.in_(ACTIVE_TX_STATUSES),
            )
            .limit(1)
        ).scalar_one_or_none()

    def _live_pending_reward(self, db: Session, *, sighting_id: int) -> Optional[PendingReward]:
        return db.execute(
            select(PendingReward)
            .where(
                PendingReward.sighting_id == sighting_id,
                PendingReward.status.in_((PendingRewardStatus.pending.value, PendingRewardStatus.processed.value)),
            )
            .order_by(PendingReward.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _existing_outcome(self, tx: Transaction, amount: int) -> SettlementOutcome:
        status = (
            SettlementStatus.ALREADY_SETTLED
            if tx.status == TransactionStatus.completed.value
            else SettlementStatus.IN_PROGRESS
        )
        return SettlementOutcome(status=status, amount=amount, transaction=tx)

    def _insert_claimed(self, db: Session, row) -> bool:
        """Insert inside a savepoint; False when a unique index rejects it."""
        try:
            with db.begin_nested():
                db.add(row)
                db.flush()
        except IntegrityError as exc:
            logger.info("[settlement] claim lost to concurrent attempt: %s", exc.orig)
            return False
        return True

    def _bank_address_for(self, db: Session, *, amount: int, to_wallet: str) -> str:
        bank = self.bank.get_status(db)
        if bank.wallet_address == to_wallet:
            raise ValidationError("Recipient wallet cannot be the bank wallet")
        if bank.current_balance < amount:
            logger.error(
                "[settlement] bank balance %s insufficient for %s",
                bank.current_balance,
                amount,
            )
            raise InsufficientBankFundsError("Bank wallet balance is insufficient for this reward")
        return bank.wallet_address

    def _claim_reward_transaction(
        self,
        db: Session,
        *,
        sighting_id: int,
        user_id: int,
        to_wallet: str,
        amount: int,
    ) -> Optional[Transaction]:
        from_wallet = self._bank_address_for(db, amount=amount, to_wallet=to_wallet)
        tx = Transaction(
            from_wallet=from_wallet,
            to_wallet=to_wallet,
            amount=amount,
            user_id=user_id,
            transaction_type=TransactionType.reward.value,
            related_entity_id=sighting_id,
            related_entity_type=RelatedEntityType.corgi_sighting.value,
            status=TransactionStatus.pending.value,
            memo=reward_memo(sighting_id),
        )
        if not self._insert_claimed(db, tx):
            return None
        return tx

    def _mark_failed(self, db: Session, tx_id: int, *, error: Optional[BaseException], reason: str, retry_count: int) -> bool:
        res = db.execute(
            update(Transaction)
            .where(Transaction.id == tx_id, Transaction.status == TransactionStatus.pending.value)
            .values(
                status=TransactionStatus.failed.value,
                last_error=str(error)[:1000] if error else None,
                failure_reason=reason[:64],
                retry_count=retry_count,
                completed_at=utcnow(),
            )
        )
        return res.rowcount == 1

    async def _broadcast(self, db: Session, tx: Transaction) -> SettlementOutcome:
        tx_id, to_wallet, amount, memo = tx.id, tx.to_wallet, tx.amount, tx.memo

        kwargs = {"label": f"transfer tx={tx_id}"}
        if self.sleep is not None:
            kwargs["sleep"] = self.sleep
        result = await retry_with_backoff(
            lambda: self.chain.send_transaction(to_wallet, amount, memo),
            self.retry_config,
            **kwargs,
        )
        retries = max(result.attempts - 1, 0)

        if not result.success:
            classification = classify_error(result.error)
            self._mark_failed(db, tx_id, error=result.error, reason=classification.reason, retry_count=retries)
            db.commit()
            logger.error(
                "[settlement] tx=%s failed after %d attempt(s): %s",
                tx_id,
                result.attempts,
                result.error,
            )
            raise SettlementFailedError(
                f"Blockchain transfer failed after {result.attempts} attempt(s): {result.error}",
                transaction_id=tx_id,
                attempts=result.attempts,
                retryable=classification.retryable,
            )

        tx_hash = result.result.hash

        # commit 1: the hash, so a crash after this point is recoverable by the sweep
        try:
            with db.begin_nested():
                recorded = db.execute(
                    update(Transaction)
                    .where(Transaction.id == tx_id, Transaction.status == TransactionStatus.pending.value)
                    .values(transaction_hash=tx_hash, broadcast_at=utcnow(), retry_count=retries)
                ).rowcount
        except IntegrityError:
            self._mark_failed(
                db,
                tx_id,
                error=RuntimeError(f"hash {tx_hash} already recorded on another transaction"),
                reason="duplicate_hash",
                retry_count=retries,
            )
            db.commit()
            raise SettlementFailedError(
                "Blockchain transfer returned a hash already recorded for another transaction",
                transaction_id=tx_id,
                attempts=result.attempts,
                retryable=False,
            )
        db.commit()

        if recorded != 1:
            db.refresh(tx)
            logger.error("[settlement] tx=%s resolved concurrently as %s before hash %s was recorded", tx_id, tx.status, tx_hash)
            return self._existing_outcome(tx, amount)

        if not self.settle_on_broadcast:
            db.refresh(tx)
            logger.info("[settlement] tx=%s broadcast hash=%s awaiting confirmation", tx_id, tx_hash)
            return SettlementOutcome(status=SettlementStatus.BROADCAST, amount=amount, transaction=tx, attempts=result.attempts)

        # commit 2: completion + bank mirror + linked pending reward
        completed = self.complete_transaction(db, tx_id)
        db.commit()
        db.refresh(tx)

        if not completed:
            return self._existing_outcome(tx, amount)

        logger.info("[settlement] tx=%s completed hash=%s amount=%s", tx_id, tx_hash, amount)
        return SettlementOutcome(status=SettlementStatus.COMPLETED, amount=amount, transaction=tx, attempts=result.attempts)

    # ─────────────────────────────────────────────
    # Completion (shared with confirm endpoint and sweep)
    # ─────────────────────────────────────────────

    def complete_transaction(self, db: Session, tx_id: int, *, tx_hash: Optional[str] = None) -> bool:
        """
        pending -> completed plus every side effect that must commit with it.

        Returns False when the row was no longer pending. Does not commit.
        """
        now = utcnow()
        values = {"status": TransactionStatus.completed.value, "completed_at": now}
        if tx_hash:
            values["transaction_hash"] = tx_hash

        res = db.execute(
            update(Transaction)
            .where(Transaction.id == tx_id, Transaction.status == TransactionStatus.pending.value)
            .values(**values)
        )
        if res.rowcount != 1:
            return False

        tx = db.get(Transaction, tx_id)
        db.refresh(tx)

        if tx.transaction_type == TransactionType.reward.value:
            self.bank.record_distribution(db, amount=tx.amount, tx_hash=tx.transaction_hash)
            if tx.related_entity_type == RelatedEntityType.corgi_sighting.value:
                db.execute(
                    update(PendingReward)
                    .where(
                        PendingReward.sighting_id == tx.related_entity_id,
                        PendingReward.status == PendingRewardStatus.pending.value,
                    )
                    .values(
                        status=PendingRewardStatus.processed.value,
                        processed_at=now,
                        transaction_id=tx_id,
                    )
                )
        elif tx.transaction_type == TransactionType.purchase.value and tx.related_entity_id is not None:
            marked = db.execute(
                update(Wish)
                .where(Wish.id == tx.related_entity_id, Wish.status == WishStatus.accepted.value)
                .values(status=WishStatus.purchased.value, purchased_at=now, purchased_by=tx.user_id)
            ).rowcount
            if marked != 1:
                logger.warning("[settlement] purchase tx=%s completed but wish=%s was not accepted", tx_id, tx.related_entity_id)

        return True

    def fail_transaction(self, db: Session, tx_id: int, *, reason: str, error: Optional[str] = None) -> bool:
        """pending -> failed. Does not commit."""
        tx = db.get(Transaction, tx_id)
        retry_count = tx.retry_count if tx else 0
        return self._mark_failed(
            db,
            tx_id,
            error=RuntimeError(error) if error else None,
            reason=reason,
            retry_count=retry_count,
        )

    # ─────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────

    async def settle_reward(self, db: Session, *, sighting_id: int, reporter_id: int) -> SettlementOutcome:
        """
        Settle the reward of a confirmed sighting exactly once.

        Commits the session in every non-raising path of the claim phase,
        including changes the caller staged before calling (the sighting
        status update), so a reward never exists without its confirmation.
        """
        sighting = db.get(CorgiSighting, sighting_id)
        if not sighting:
            raise SightingNotFoundError(sighting_id)
        if sighting.status != SightingStatus.confirmed.value:
            raise InvalidStateError("Sighting is not confirmed")
        if sighting.reporter_id != reporter_id:
            raise ForbiddenError("Reporter does not match sighting")

        amount = self.calculator.calculate(sighting.corgi_count)

        existing = self._active_transaction(db, entity_id=sighting_id, entity_type=RelatedEntityType.corgi_sighting)
        if existing:
            db.commit()
            return self._existing_outcome(existing, amount)

        reward = self._live_pending_reward(db, sighting_id=sighting_id)
        if reward:
            db.commit()
            status = (
                SettlementStatus.PENDING_REWARD
                if reward.status == PendingRewardStatus.pending.value
                else SettlementStatus.ALREADY_SETTLED
            )
            return SettlementOutcome(status=status, amount=reward.amount, pending_reward=reward)

        user = db.get(User, reporter_id)
        wallet = user.ton_wallet_address if user else None

        if not wallet:
            reward = PendingReward(
                user_id=reporter_id,
                sighting_id=sighting_id,
                amount=amount,
                status=PendingRewardStatus.pending.value,
            )
            inserted = self._insert_claimed(db, reward)
            db.commit()
            if not inserted:
                return SettlementOutcome(status=SettlementStatus.IN_PROGRESS, amount=amount)
            logger.info("[settlement] sighting=%s reward %s held pending (no wallet)", sighting_id, amount)
            return SettlementOutcome(status=SettlementStatus.PENDING_REWARD, amount=amount, pending_reward=reward)

        try:
            tx = self._claim_reward_transaction(
                db,
                sighting_id=sighting_id,
                user_id=reporter_id,
                to_wallet=wallet,
                amount=amount,
            )
        except ServiceError:
            db.commit()
            raise
        db.commit()

        if tx is None:
            return SettlementOutcome(status=SettlementStatus.IN_PROGRESS, amount=amount)

        logger.info("[settlement] sighting=%s claimed tx=%s amount=%s", sighting_id, tx.id, amount)
        return await self._broadcast(db, tx)

    async def settle_pending_reward(self, db: Session, *, reward_id: int) -> SettlementOutcome:
        reward = db.get(PendingReward, reward_id)
        if not reward or reward.status != PendingRewardStatus.pending.value:
            return SettlementOutcome(status=SettlementStatus.ALREADY_SETTLED, amount=reward.amount if reward else 0, pending_reward=reward)

        user = db.get(User, reward.user_id)
        wallet = user.ton_wallet_address if user else None
        if not wallet:
            raise WalletNotConnectedError("Connect a wallet to receive pending rewards")

        existing = self._active_transaction(db, entity_id=reward.sighting_id, entity_type=RelatedEntityType.corgi_sighting)
        if existing:
            if existing.status == TransactionStatus.completed.value:
                # completed elsewhere without linking; link it now
                reward.status = PendingRewardStatus.processed.value
                reward.processed_at = utcnow()
                reward.transaction_id = existing.id
            db.commit()
            return self._existing_outcome(existing, reward.amount)

        tx = self._claim_reward_transaction(
            db,
            sighting_id=reward.sighting_id,
            user_id=reward.user_id,
            to_wallet=wallet,
            amount=reward.amount,
        )
        db.commit()
        if tx is None:
            return SettlementOutcome(status=SettlementStatus.IN_PROGRESS, amount=reward.amount, pending_reward=reward)

        outcome = await self._broadcast(db, tx)
        db.refresh(reward)
        outcome.pending_reward = reward
        return outcome

    async def process_pending_rewards_for_user(self, db: Session, *, user_id: int) -> PendingRewardBatch:
        """
        Convert every pending reward of the user into a transfer.

        Rewards are independent: one failure is recorded and the loop moves
        on; a failed reward stays pending for the next attempt.
        """
        reward_ids = db.execute(
            select(PendingReward.id)
            .where(PendingReward.user_id == user_id, PendingReward.status == PendingRewardStatus.pending.value)
            .order_by(PendingReward.created_at.asc(), PendingReward.id.asc())
        ).scalars().all()

        batch = PendingRewardBatch()
        for reward_id in reward_ids:
            try:
                outcome = await self.settle_pending_reward(db, reward_id=reward_id)
            except ServiceError as exc:
                db.rollback()
                logger.warning("[settlement] pending reward=%s not processed: %s", reward_id, exc.message)
                batch.failed.append((reward_id, exc))
                continue
            batch.processed.append(outcome)

        if reward_ids:
            logger.info(
                "[settlement] user=%s pending rewards: %d completed, %d failed, %d total",
                user_id,
                batch.processed_count,
                len(batch.failed),
                len(reward_ids),
            )
        return batch

    def list_pending_rewards(self, db: Session, *, status: Optional[str] = None, limit: int = 100) -> List[PendingReward]:
        stmt = select(PendingReward)
        if status is not None:
            try:
                status = PendingRewardStatus(status).value
            except ValueError:
                raise ValidationError("status must be one of pending, processed, cancelled")
            stmt = stmt.where(PendingReward.status == status)
        stmt = stmt.order_by(PendingReward.created_at.desc(), PendingReward.id.desc()).limit(limit)
        return list(db.execute(stmt).scalars().all())

    def cancel_pending_reward(self, db: Session, *, reward_id: int) -> PendingReward:
        """Operator write-off of a reward that will never be paid."""
        reward = db.get(PendingReward, reward_id)
        if not reward:
            raise NotFoundError(f"Pending reward {reward_id} not found", code="PENDING_REWARD_NOT_FOUND")

        res = db.execute(
            update(PendingReward)
            .where(PendingReward.id == reward_id, PendingReward.status == PendingRewardStatus.pending.value)
            .values(status=PendingRewardStatus.cancelled.value, processed_at=utcnow())
        )
        if res.rowcount != 1:
            db.rollback()
            raise InvalidStateError(f"Pending reward is already {reward.status}")
        db.commit()
        db.refresh(reward)
        logger.warning("[settlement] pending reward=%s cancelled (sighting=%s)", reward_id, reward.sighting_id)
        return reward

    def failed_attempts(self, db: Session, *, entity_id: int, entity_type: RelatedEntityType) -> int:
        return db.execute(
            select(func.count(Transaction.id)).where(
                Transaction.related_entity_id == entity_id,
                Transaction.related_entity_type == entity_type.value,
                Transaction.status == TransactionStatus.failed.value,
            )
        ).scalar_one()

    def reward_coins(self, amount: int) -> int:
        return self.calculator.to_coins(amount)

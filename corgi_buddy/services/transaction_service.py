# corgi_buddy/services/transaction_service.py
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from corgi_buddy.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    TransactionNotFoundError,
    ValidationError,
)
from corgi_buddy.models.enums import TransactionStatus, TransactionType
from corgi_buddy.models.transaction import Transaction
from corgi_buddy.models.user import User
from corgi_buddy.services.settlement_service import SettlementService

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


class TransactionService:
    def __init__(self, *, settlement: SettlementService):
        self.settlement = settlement

    def get(self, db: Session, tx_id: int) -> Transaction:
        tx = db.get(Transaction, tx_id)
        if not tx:
            raise TransactionNotFoundError(tx_id)
        return tx

    @staticmethod
    def is_party(tx: Transaction, user: User) -> bool:
        if tx.user_id == user.id:
            return True
        wallet = user.ton_wallet_address
        return bool(wallet) and wallet in (tx.from_wallet, tx.to_wallet)

    def list_for_user(
        self,
        db: Session,
        *,
        user: User,
        transaction_type: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
    ) -> List[Transaction]:
        if limit < 1 or limit > MAX_LIMIT:
            raise ValidationError(f"limit must be a number between 1 and {MAX_LIMIT}")
        if transaction_type is not None:
            try:
                transaction_type = TransactionType(transaction_type).value
            except ValueError:
                raise ValidationError('type must be either "reward" or "purchase"')

        clauses = [Transaction.user_id == user.id]
        if user.ton_wallet_address:
            clauses += [
                Transaction.from_wallet == user.ton_wallet_address,
                Transaction.to_wallet == user.ton_wallet_address,
            ]

        stmt = select(Transaction).where(or_(*clauses))
        if transaction_type:
            stmt = stmt.where(Transaction.transaction_type == transaction_type)
        stmt = stmt.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit)
        return list(db.execute(stmt).scalars().all())

    def confirm(self, db: Session, *, tx_id: int, user: User, tx_hash: str, success: bool = True) -> Transaction:
        """
        Client-side confirmation of a transfer the client signed itself.

        Reward transfers are signed by the bank and resolved by the
        settlement engine, so only purchases are accepted here.
        """
        tx_hash = (tx_hash or "").strip()
        if not tx_hash:
            raise ValidationError("transactionHash cannot be empty")

        tx = self.get(db, tx_id)
        if not self.is_party(tx, user):
            raise ForbiddenError("You are not a party to this transaction")
        if tx.transaction_type != TransactionType.purchase.value:
            raise ForbiddenError("Reward transfers are confirmed by the settlement engine")
        if tx.status != TransactionStatus.pending.value:
            raise InvalidStateError(f"Transaction is already {tx.status}")

        if success:
            try:
                with db.begin_nested():
                    completed = self.settlement.complete_transaction(db, tx_id, tx_hash=tx_hash)
            except IntegrityError:
                db.rollback()
                raise ConflictError("Transaction hash is already recorded", code="DUPLICATE_TRANSACTION_HASH")
        else:
            completed = self.settlement.fail_transaction(
                db, tx_id, reason="client_reported_failure", error=f"client reported failure for {tx_hash}"
            )

        if not completed:
            db.rollback()
            raise InvalidStateError("Transaction is no longer pending")

        db.commit()
        db.refresh(tx)
        logger.info("[transactions] tx=%s confirmed by user=%s status=%s", tx_id, user.id, tx.status)
        return tx

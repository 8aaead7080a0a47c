# corgi_buddy/services/bank_service.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from corgi_buddy.core.errors import BankWalletNotFoundError, ValidationError
from corgi_buddy.core.ton import is_valid_ton_address, normalize_address
from corgi_buddy.models._common import utcnow
from corgi_buddy.models.bank_wallet import BANK_WALLET_ID, BankWallet

logger = logging.getLogger(__name__)


class BankService:
    """
    Mirror of the distributing wallet.

    The row is only mutated through SQL-side arithmetic inside the
    settlement completion commit; nothing here commits on its own except
    `initialize`.
    """

    def find(self, db: Session) -> Optional[BankWallet]:
        return db.execute(select(BankWallet).where(BankWallet.id == BANK_WALLET_ID)).scalar_one_or_none()

    def get_status(self, db: Session) -> BankWallet:
        wallet = self.find(db)
        if not wallet:
            raise BankWalletNotFoundError()
        return wallet

    def has_sufficient_balance(self, db: Session, amount: int) -> bool:
        wallet = self.get_status(db)
        return wallet.current_balance >= amount

    def initialize(self, db: Session, *, wallet_address: str, current_balance: int) -> BankWallet:
        address = normalize_address(wallet_address)
        if not is_valid_ton_address(address):
            raise ValidationError("Invalid bank wallet address")
        if current_balance < 0:
            raise ValidationError("Bank balance cannot be negative")

        wallet = self.find(db)
        if wallet:
            wallet.wallet_address = address
            wallet.current_balance = current_balance
        else:
            wallet = BankWallet(
                id=BANK_WALLET_ID,
                wallet_address=address,
                current_balance=current_balance,
                total_distributed=0,
            )
            db.add(wallet)

        db.commit()
        db.refresh(wallet)
        logger.info("[bank] initialized address=%s balance=%s", address, current_balance)
        return wallet

    def record_distribution(self, db: Session, *, amount: int, tx_hash: Optional[str]) -> None:
        """
        Debit the mirror and credit cumulative distribution in one UPDATE.

        Called after the transfer is already on chain, so the balance is
        clamped at zero rather than rejected; a clamp means the mirror
        drifted and is logged.
        """
        wallet = self.get_status(db)
        if wallet.current_balance < amount:
            logger.error(
                "[bank] mirror balance %s below distributed amount %s; clamping to zero",
                wallet.current_balance,
                amount,
            )

        db.execute(
            update(BankWallet)
            .where(BankWallet.id == BANK_WALLET_ID)
            .values(
                current_balance=case(
                    (BankWallet.current_balance >= amount, BankWallet.current_balance - amount),
                    else_=0,
                ),
                total_distributed=BankWallet.total_distributed + amount,
                last_transaction_hash=tx_hash,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        db.expire(wallet)

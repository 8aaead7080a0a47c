import asyncio

import pytest
from sqlalchemy import select

from corgi_buddy.core.errors import (
    ChainError,
    ChainRejectedError,
    InsufficientBankFundsError,
    InvalidStateError,
    SettlementFailedError,
)
from corgi_buddy.models.bank_wallet import BankWallet
from corgi_buddy.models.enums import (
    PendingRewardStatus,
    RelatedEntityType,
    SightingStatus,
    TransactionStatus,
    TransactionType,
)
from corgi_buddy.models.pending_reward import PendingReward
from corgi_buddy.models.transaction import Transaction
from corgi_buddy.services.settlement_service import SettlementStatus, reward_memo
from corgi_buddy.tests.factories import BANK_ADDRESS, UNIT, make_bank, make_buddies, make_user, wallet
from corgi_buddy.tests.services.helpers import confirmed_sighting, transactions_for

REPORTER = 101
BUDDY = 202


@pytest.fixture
def pair(db):
    make_bank(db, balance_coins=1000)
    make_user(db, REPORTER)
    make_user(db, BUDDY)
    make_buddies(db, REPORTER, BUDDY)


def bank(db) -> BankWallet:
    db.expire_all()
    return db.get(BankWallet, 1)


async def test_reward_to_connected_wallet_completes(db, container, chain, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY, count=5)

    outcome = await container.settlement.settle_reward(db, sighting_id=sighting.id, reporter_id=REPORTER)

    assert outcome.status == SettlementStatus.COMPLETED
    assert outcome.amount == 5 * UNIT
    assert chain.sent == [(wallet(REPORTER), 5 * UNIT, reward_memo(sighting.id))]

    (tx,) = transactions_for(db, sighting.id)
    assert tx.status == TransactionStatus.completed.value
    assert tx.transaction_type == TransactionType.reward.value
    assert tx.related_entity_type == RelatedEntityType.corgi_sighting.value
    assert tx.transaction_hash == "hash-1"
    assert tx.from_wallet == BANK_ADDRESS
    assert tx.to_wallet == wallet(REPORTER)
    assert tx.user_id == REPORTER
    assert tx.completed_at is not None

    b = bank(db)
    assert b.current_balance == 995 * UNIT
    assert b.total_distributed == 5 * UNIT
    assert b.last_transaction_hash == "hash-1"


async def test_second_settlement_is_a_no_op(db, container, chain, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY, count=3)

    first = await container.settlement.settle_reward(db, sighting_id=sighting.id, reporter_id=REPORTER)
    second = await container.settlement.settle_reward(db, sighting_id=sighting.id, reporter_id=REPORTER)

    assert first.status == SettlementStatus.COMPLETED
    assert second.status == SettlementStatus.ALREADY_SETTLED
    assert len(chain.sent) == 1
    assert len(transactions_for(db, sighting.id)) == 1
    assert bank(db).total_distributed == 3 * UNIT


async def test_concurrent_settlements_broadcast_once(db, container, session_factory, chain, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY, count=4)

    s1, s2 = session_factory(), session_factory()
    try:
        results = await asyncio.gather(
            container.settlement.settle_reward(s1, sighting_id=sighting.id, reporter_id=REPORTER),
            container.settlement.settle_reward(s2, sighting_id=sighting.id, reporter_id=REPORTER),
        )
    finally:
        s1.close()
        s2.close()

    statuses = {r.status for r in results}
    assert SettlementStatus.COMPLETED in statuses
    assert statuses <= {SettlementStatus.COMPLETED, SettlementStatus.IN_PROGRESS, SettlementStatus.ALREADY_SETTLED}
    assert len(chain.sent) == 1

    txs = transactions_for(db, sighting.id)
    assert [t.status for t in txs] == [TransactionStatus.completed.value]
    assert bank(db).total_distributed == 4 * UNIT


async def test_active_claim_blocks_a_second_row(db, container, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY)

    def attempt():
        return Transaction(
            from_wallet=BANK_ADDRESS,
            to_wallet=wallet(REPORTER),
            amount=UNIT,
            user_id=REPORTER,
            transaction_type=TransactionType.reward.value,
            related_entity_id=sighting.id,
            related_entity_type=RelatedEntityType.corgi_sighting.value,
            status=TransactionStatus.pending.value,
        )

    assert container.settlement._insert_claimed(db, attempt()) is True
    assert container.settlement._insert_claimed(db, attempt()) is False
    db.commit()

    assert len(transactions_for(db, sighting.id)) == 1


async def test_reward_without_wallet_is_held_pending(db, container, chain, pair):
    make_user(db, 303, with_wallet=False)
    make_user(db, 404)
    sighting = confirmed_sighting(db, 303, 404, count=7)

    outcome = await container.settlement.settle_reward(db, sighting_id=sighting.id, reporter_id=303)
    again = await container.settlement.settle_reward(db, sighting_id=sighting.id, reporter_id=303)

    assert outcome.status == SettlementStatus.PENDING_REWARD
    assert again.status == SettlementStatus.PENDING_REWARD
    assert chain.sent == []
    assert transactions_for(db, sighting.id) == []

    rewards = db.execute(select(PendingReward).where(PendingReward.sighting_id == sighting.id)).scalars().all()
    assert len(rewards) == 1
    assert rewards[0].amount == 7 * UNIT
    assert rewards[0].status == PendingRewardStatus.pending.value
    assert rewards[0].transaction_id is None


async def test_exhausted_retries_mark_the_attempt_failed(db, container, chain, sleep, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY, count=2)
    chain.failures = [ChainError("503 service unavailable", status=503) for _ in range(3)]

    with pytest.raises(SettlementFailedError) as exc:
        await container.settlement.settle_reward(db, sighting_id=sighting.id, reporter_id=REPORTER)

    assert exc.value.attempts == 3
    assert exc.value.retryable is True
    assert chain.calls == 3
    assert len(sleep.seconds) == 2
    assert sleep.seconds[0] == pytest.approx(0.1, rel=0.06)
    assert sleep.seconds[1] == pytest.approx(0.2, rel=0.06)

    (tx,) = transactions_for(db, sighting.id)
    assert tx.status == TransactionStatus.failed.value
    assert tx.retry_count == 2
    assert tx.failure_reason == "BLOCKCHAIN_ERROR"
    assert "503" in tx.last_error
    assert bank(db).total_distributed == 0

    # a later attempt is a new row with the same memo
    outcome = await container.settlement.settle_reward(db, sighting_id=sighting.id, reporter_id=REPORTER)
    assert outcome.status == SettlementStatus.COMPLETED

    failed, completed = transactions_for(db, sighting.id)
    assert failed.status == TransactionStatus.failed.value
    assert completed.status == TransactionStatus.completed.value
    assert failed.memo == completed.memo == reward_memo(sighting.id)
    assert container.settlement.failed_attempts(
        db, entity_id=sighting.id, entity_type=RelatedEntityType.corgi_sighting
    ) == 1
    assert bank(db).total_distributed == 2 * UNIT


async def test_rejected_transfer_is_not_retried(db, container, chain, sleep, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY)
    chain.failures = [ChainRejectedError("invalid address", status=400)]

    with pytest.raises(SettlementFailedError) as exc:
        await container.settlement.settle_reward(db, sighting_id=sighting.id, reporter_id=REPORTER)

    assert exc.value.retryable is False
    assert chain.calls == 1
    assert sleep.seconds == []


async def test_insufficient_bank_balance_creates_no_transfer(db, container, chain, pair):
    b = bank(db)
    b.current_balance = 2 * UNIT
    db.commit()
    sighting = confirmed_sighting(db, REPORTER, BUDDY, count=5)

    with pytest.raises(InsufficientBankFundsError):
        await container.settlement.settle_reward(db, sighting_id=sighting.id, reporter_id=REPORTER)

    assert chain.calls == 0
    assert transactions_for(db, sighting.id) == []
    assert bank(db).current_balance == 2 * UNIT


async def test_unconfirmed_sighting_is_refused(db, container, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY)
    sighting.status = SightingStatus.denied.value
    db.commit()

    with pytest.raises(InvalidStateError):
        await container.settlement.settle_reward(db, sighting_id=sighting.id, reporter_id=REPORTER)


async def test_completion_is_applied_once(db, container, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY, count=5)
    await container.settlement.settle_reward(db, sighting_id=sighting.id, reporter_id=REPORTER)
    (tx,) = transactions_for(db, sighting.id)

    assert container.settlement.complete_transaction(db, tx.id) is False
    db.commit()
    assert bank(db).total_distributed == 5 * UNIT


async def test_pending_rewards_are_processed_independently(db, container, chain, pair):
    make_user(db, 303, with_wallet=False)
    make_user(db, 404)
    s1 = confirmed_sighting(db, 303, 404, count=1)
    s2 = confirmed_sighting(db, 303, 404, count=2)
    await container.settlement.settle_reward(db, sighting_id=s1.id, reporter_id=303)
    await container.settlement.settle_reward(db, sighting_id=s2.id, reporter_id=303)

    user = container.users.get(db, 303)
    user.ton_wallet_address = wallet(303)
    db.commit()

    chain.failures = [ChainRejectedError("invalid amount")]
    batch = await container.settlement.process_pending_rewards_for_user(db, user_id=303)

    assert batch.processed_count == 1
    assert len(batch.failed) == 1

    db.expire_all()
    statuses = {
        r.sighting_id: r.status for r in db.execute(select(PendingReward)).scalars().all()
    }
    assert statuses == {s1.id: PendingRewardStatus.pending.value, s2.id: PendingRewardStatus.processed.value}

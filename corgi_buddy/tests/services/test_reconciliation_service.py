import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError

from corgi_buddy.core.container import build_container
from corgi_buddy.core.errors import ChainRejectedError
from corgi_buddy.models.bank_wallet import BankWallet
from corgi_buddy.models.enums import (
    ChainTransferStatus,
    PendingRewardStatus,
    RelatedEntityType,
    TransactionStatus,
    TransactionType,
)
from corgi_buddy.models.pending_reward import PendingReward
from corgi_buddy.models.transaction import Transaction
from corgi_buddy.models.user import User
from corgi_buddy.services.settlement_service import SettlementStatus, reward_memo
from corgi_buddy.tests.factories import BANK_ADDRESS, UNIT, make_bank, make_buddies, make_user, wallet
from corgi_buddy.tests.fakes import FakeChainClient
from corgi_buddy.tests.services.helpers import backdate_transaction, confirmed_sighting, transactions_for

REPORTER = 11
BUDDY = 22


@pytest.fixture
def pair(db):
    make_bank(db, balance_coins=1000)
    make_user(db, REPORTER)
    make_user(db, BUDDY)
    make_buddies(db, REPORTER, BUDDY)


def pending_reward_tx(db, sighting_id: int, *, tx_hash=None) -> Transaction:
    tx = Transaction(
        from_wallet=BANK_ADDRESS,
        to_wallet=wallet(REPORTER),
        amount=5 * UNIT,
        user_id=REPORTER,
        transaction_type=TransactionType.reward.value,
        related_entity_id=sighting_id,
        related_entity_type=RelatedEntityType.corgi_sighting.value,
        status=TransactionStatus.pending.value,
        transaction_hash=tx_hash,
        memo=reward_memo(sighting_id),
    )
    db.add(tx)
    db.commit()
    return tx


async def test_broadcast_transfer_is_completed_once_confirmed(db, settings, session_factory, chain, sleep, notifications, pair):
    container = build_container(
        settings.model_copy(update={"settle_on_broadcast": False}),
        session_factory=session_factory,
        chain=chain,
        notifications=notifications,
        sleep=sleep,
    )
    sighting = confirmed_sighting(db, REPORTER, BUDDY, count=5)

    outcome = await container.settlement.settle_reward(db, sighting_id=sighting.id, reporter_id=REPORTER)
    assert outcome.status == SettlementStatus.BROADCAST

    (tx,) = transactions_for(db, sighting.id)
    assert tx.status == TransactionStatus.pending.value
    assert tx.transaction_hash == "hash-1"
    backdate_transaction(db, tx.id)

    # still pending on chain
    report = await container.reconciliation.run_sweep(db)
    assert report.transactions_unresolved == 1
    assert transactions_for(db, sighting.id)[0].status == TransactionStatus.pending.value

    chain.statuses["hash-1"] = ChainTransferStatus.confirmed
    report = await container.reconciliation.run_sweep(db)

    assert report.transactions_completed == 1
    (tx,) = transactions_for(db, sighting.id)
    assert tx.status == TransactionStatus.completed.value
    assert db.get(BankWallet, 1).total_distributed == 5 * UNIT
    assert len(chain.sent) == 1


async def test_chain_failure_is_recorded_and_resettled(db, container, chain, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY)
    tx = pending_reward_tx(db, sighting.id, tx_hash="lost-hash")
    backdate_transaction(db, tx.id)
    chain.statuses["lost-hash"] = ChainTransferStatus.failed

    report = await container.reconciliation.run_sweep(db)

    assert report.transactions_failed == 1
    assert report.sightings_settled == 1
    failed, completed = transactions_for(db, sighting.id)
    assert failed.failure_reason == "chain_failed"
    assert completed.status == TransactionStatus.completed.value


async def test_claim_without_hash_is_failed_then_retried(db, container, chain, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY)
    tx = pending_reward_tx(db, sighting.id)
    backdate_transaction(db, tx.id)

    report = await container.reconciliation.run_sweep(db)

    assert report.transactions_failed == 1
    assert report.sightings_settled == 1
    failed, completed = transactions_for(db, sighting.id)
    assert failed.status == TransactionStatus.failed.value
    assert failed.failure_reason == "broadcast_unknown"
    assert completed.status == TransactionStatus.completed.value
    # same memo so the relay can recognise a re-broadcast
    assert chain.sent[0][2] == failed.memo


async def test_fresh_pending_transfer_is_left_alone(db, container, chain, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY)
    pending_reward_tx(db, sighting.id)

    report = await container.reconciliation.run_sweep(db)

    assert report.transactions_failed == 0
    assert report.sightings_settled == 0
    assert chain.calls == 0


async def test_unconfirmed_purchase_expires(db, container, pair):
    tx = Transaction(
        from_wallet=wallet(REPORTER),
        to_wallet=wallet(BUDDY),
        amount=10 * UNIT,
        user_id=REPORTER,
        transaction_type=TransactionType.purchase.value,
        related_entity_id=999,
        related_entity_type=RelatedEntityType.wish.value,
        status=TransactionStatus.pending.value,
    )
    db.add(tx)
    db.commit()
    backdate_transaction(db, tx.id, hours=2)

    report = await container.reconciliation.run_sweep(db)

    assert report.transactions_failed == 1
    db.expire_all()
    tx = db.get(Transaction, tx.id)
    assert tx.status == TransactionStatus.failed.value
    assert tx.failure_reason == "purchase_expired"


async def test_orphaned_confirmed_sighting_is_settled(db, container, chain, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY, count=9)

    report = await container.reconciliation.run_sweep(db)

    assert report.sightings_settled == 1
    (tx,) = transactions_for(db, sighting.id)
    assert tx.status == TransactionStatus.completed.value
    assert tx.amount == 9 * UNIT

    # nothing left on the next pass
    report = await container.reconciliation.run_sweep(db)
    assert report.sightings_settled == 0
    assert len(chain.sent) == 1


async def test_pending_rewards_of_users_with_wallets_are_processed(db, container, chain, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY, count=3)
    db.add(
        PendingReward(
            user_id=REPORTER,
            sighting_id=sighting.id,
            amount=3 * UNIT,
            status=PendingRewardStatus.pending.value,
        )
    )
    db.commit()

    report = await container.reconciliation.run_sweep(db)

    assert report.rewards_processed == 1
    db.expire_all()
    reward = db.execute(select(PendingReward)).scalar_one()
    assert reward.status == PendingRewardStatus.processed.value
    assert reward.transaction_id is not None


async def test_sightings_over_the_attempt_limit_are_reported_not_retried(db, container, chain, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY)
    for _ in range(container.settings.max_settlement_attempts):
        tx = pending_reward_tx(db, sighting.id)
        tx.status = TransactionStatus.failed.value
        db.commit()

    report = await container.reconciliation.run_sweep(db)

    assert report.permanently_failed_sightings == [sighting.id]
    assert report.sightings_settled == 0
    assert chain.calls == 0


async def test_sweep_stops_between_items(db, container, chain, pair):
    confirmed_sighting(db, REPORTER, BUDDY)

    report = await container.reconciliation.run_sweep(db, should_stop=lambda: True)

    assert report.interrupted is True
    assert chain.calls == 0


class WritingChainClient(FakeChainClient):
    """Commits a write from another session while the status lookup is in flight."""

    def __init__(self, session_factory):
        super().__init__()
        self.session_factory = session_factory
        self.writes = []

    async def get_transaction_status(self, tx_hash):
        other = self.session_factory()
        try:
            other.execute(update(User).where(User.id == BUDDY).values(first_name="renamed"))
            other.commit()
            self.writes.append("ok")
        except OperationalError as exc:
            other.rollback()
            self.writes.append(str(exc.orig))
        finally:
            other.close()
        return await super().get_transaction_status(tx_hash)


async def test_status_lookup_does_not_block_concurrent_writers(db, settings, session_factory, notifications, sleep, pair):
    chain = WritingChainClient(session_factory)
    container = build_container(settings, session_factory=session_factory, chain=chain, notifications=notifications, sleep=sleep)
    sighting = confirmed_sighting(db, REPORTER, BUDDY)
    first = pending_reward_tx(db, sighting.id, tx_hash="slow-hash")
    backdate_transaction(db, first.id)
    other_sighting = confirmed_sighting(db, REPORTER, BUDDY)
    second = pending_reward_tx(db, other_sighting.id, tx_hash="slower-hash")
    backdate_transaction(db, second.id)
    chain.statuses["slow-hash"] = ChainTransferStatus.confirmed

    report = await container.reconciliation.run_sweep(db)

    assert chain.writes == ["ok", "ok"]
    assert report.transactions_completed == 1
    assert report.transactions_unresolved == 1


async def test_pending_reward_stops_after_the_attempt_limit(db, container, chain, pair):
    sighting = confirmed_sighting(db, REPORTER, BUDDY, count=3)
    db.add(
        PendingReward(
            user_id=REPORTER,
            sighting_id=sighting.id,
            amount=3 * UNIT,
            status=PendingRewardStatus.pending.value,
        )
    )
    db.commit()
    limit = container.settings.max_settlement_attempts

    reports = []
    for _ in range(limit + 3):
        chain.failures = [ChainRejectedError("invalid address")]
        reports.append(await container.reconciliation.run_sweep(db))

    assert chain.calls == limit
    assert [r.rewards_failed for r in reports[:limit]] == [1] * limit
    assert all(r.permanently_failed_sightings == [sighting.id] for r in reports[limit:])
    assert len(transactions_for(db, sighting.id)) == limit
    db.expire_all()
    reward = db.execute(select(PendingReward)).scalar_one()
    assert reward.status == PendingRewardStatus.pending.value

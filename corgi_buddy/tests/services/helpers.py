from datetime import timedelta

from sqlalchemy import select, update

from corgi_buddy.models._common import utcnow
from corgi_buddy.models.corgi_sighting import CorgiSighting
from corgi_buddy.models.enums import SightingStatus
from corgi_buddy.models.transaction import Transaction


def confirmed_sighting(db, reporter_id: int, buddy_id: int, count: int = 5) -> CorgiSighting:
    sighting = CorgiSighting(
        reporter_id=reporter_id,
        buddy_id=buddy_id,
        corgi_count=count,
        status=SightingStatus.confirmed.value,
        responded_at=utcnow(),
    )
    db.add(sighting)
    db.commit()
    return sighting


def transactions_for(db, entity_id: int):
    db.expire_all()
    return list(
        db.execute(
            select(Transaction).where(Transaction.related_entity_id == entity_id).order_by(Transaction.id)
        ).scalars().all()
    )


def backdate_transaction(db, tx_id: int, *, hours: int = 2) -> None:
    db.execute(
        update(Transaction).where(Transaction.id == tx_id).values(created_at=utcnow() - timedelta(hours=hours))
    )
    db.commit()

# corgi_buddy/models/enums.py
from __future__ import annotations
from enum import Enum


class BuddyPairStatus(str, Enum):
    pending = "pending"
    active = "active"
    dissolved = "dissolved"


class SightingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    denied = "denied"


class WishStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    purchased = "purchased"


class TransactionType(str, Enum):
    reward = "reward"
    purchase = "purchase"


class TransactionStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


class RelatedEntityType(str, Enum):
    corgi_sighting = "corgi_sighting"
    wish = "wish"


class PendingRewardStatus(str, Enum):
    pending = "pending"
    processed = "processed"
    cancelled = "cancelled"


class ChainTransferStatus(str, Enum):
    # as reported by the chain relay
    pending = "pending"
    confirmed = "confirmed"
    failed = "failed"


def values(enum_cls) -> str:
    """SQL literal list for CHECK constraints, e.g. "'a', 'b'"."""
    return ", ".join(f"'{m.value}'" for m in enum_cls)

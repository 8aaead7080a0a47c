from typing import Optional

from corgi_buddy.core.security import create_access_token
from corgi_buddy.core.ton import coins_to_base_units
from corgi_buddy.models._common import utcnow
from corgi_buddy.models.bank_wallet import BankWallet
from corgi_buddy.models.buddy_pair import BuddyPair
from corgi_buddy.models.enums import BuddyPairStatus
from corgi_buddy.models.user import User

BANK_ADDRESS = "UQ" + "B" * 46
UNIT = 10 ** 9


def wallet(n: int) -> str:
    return f"EQ{'A' * 40}{n:06d}"


def make_user(db, user_id: int, *, first_name: str = None, username: Optional[str] = None, with_wallet: bool = True) -> User:
    user = User(
        id=user_id,
        first_name=first_name or f"user{user_id}",
        telegram_username=username,
        ton_wallet_address=wallet(user_id) if with_wallet else None,
    )
    db.add(user)
    db.commit()
    return user


def make_buddies(db, a: int, b: int) -> BuddyPair:
    user1_id, user2_id = (a, b) if a < b else (b, a)
    pair = BuddyPair(
        user1_id=user1_id,
        user2_id=user2_id,
        initiated_by=a,
        status=BuddyPairStatus.active.value,
        confirmed_at=utcnow(),
    )
    db.add(pair)
    db.commit()
    return pair


def make_bank(db, *, balance_coins: int = 1000) -> BankWallet:
    bank = BankWallet(
        wallet_address=BANK_ADDRESS,
        current_balance=coins_to_base_units(balance_coins, 9),
        total_distributed=0,
    )
    db.add(bank)
    db.commit()
    return bank


def auth_headers(user_id: int, first_name: str = None, username: Optional[str] = None) -> dict:
    token = create_access_token(user_id, first_name=first_name or f"user{user_id}", username=username)
    return {"Authorization": f"Bearer {token}"}

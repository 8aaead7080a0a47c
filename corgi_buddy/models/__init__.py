from corgi_buddy.models.user import User  # noqa: F401
from corgi_buddy.models.buddy_pair import BuddyPair  # noqa: F401
from corgi_buddy.models.corgi_sighting import CorgiSighting  # noqa: F401
from corgi_buddy.models.wish import Wish  # noqa: F401
from corgi_buddy.models.transaction import Transaction  # noqa: F401
from corgi_buddy.models.pending_reward import PendingReward  # noqa: F401
from corgi_buddy.models.bank_wallet import BankWallet  # noqa: F401

# corgi_buddy/core/container.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from corgi_buddy.core.config import Settings
from corgi_buddy.services.bank_service import BankService
from corgi_buddy.services.buddy_service import BuddyService
from corgi_buddy.services.chain_client import ChainClient, HttpChainClient
from corgi_buddy.services.notification_service import NotificationService
from corgi_buddy.services.onboarding_service import OnboardingService
from corgi_buddy.services.reconciliation_service import ReconciliationService
from corgi_buddy.services.retry import RetryConfig, Sleep
from corgi_buddy.services.reward_calculator import RewardCalculator
from corgi_buddy.services.settlement_service import SettlementService
from corgi_buddy.services.sighting_service import SightingService
from corgi_buddy.services.transaction_service import TransactionService
from corgi_buddy.services.user_service import UserService
from corgi_buddy.services.wallet_service import WalletService
from corgi_buddy.services.wish_service import WishService


@dataclass
class ServiceContainer:
    settings: Settings
    session_factory: Callable[[], Session]
    chain: ChainClient
    notifications: NotificationService
    calculator: RewardCalculator
    bank: BankService
    users: UserService
    buddies: BuddyService
    settlement: SettlementService
    sightings: SightingService
    wishes: WishService
    wallets: WalletService
    transactions: TransactionService
    onboarding: OnboardingService
    reconciliation: ReconciliationService


def build_container(
    settings: Settings,
    *,
    session_factory: Callable[[], Session],
    chain: Optional[ChainClient] = None,
    notifications: Optional[NotificationService] = None,
    sleep: Optional[Sleep] = None,
) -> ServiceContainer:
    """
    Wire every service once. Collaborators with external I/O can be
    swapped (tests pass a fake chain client and a no-op sleep).
    """
    chain = chain or HttpChainClient(
        settings.chain_api_url,
        api_key=settings.chain_api_key,
        timeout_seconds=settings.chain_timeout_seconds,
    )
    notifications = notifications or NotificationService(
        settings.telegram_bot_token,
        api_url=settings.telegram_api_url,
    )

    calculator = RewardCalculator(
        jetton_decimals=settings.jetton_decimals,
        reward_per_corgi=settings.reward_per_corgi,
        max_reward_coins=settings.max_reward_coins,
    )
    bank = BankService()
    users = UserService()
    buddies = BuddyService(users)
    settlement = SettlementService(
        chain=chain,
        bank=bank,
        calculator=calculator,
        retry_config=RetryConfig.from_settings(settings),
        settle_on_broadcast=settings.settle_on_broadcast,
        sleep=sleep,
    )

    return ServiceContainer(
        settings=settings,
        session_factory=session_factory,
        chain=chain,
        notifications=notifications,
        calculator=calculator,
        bank=bank,
        users=users,
        buddies=buddies,
        settlement=settlement,
        sightings=SightingService(buddies=buddies, settlement=settlement, calculator=calculator),
        wishes=WishService(buddies=buddies, jetton_decimals=settings.jetton_decimals),
        wallets=WalletService(users=users, bank=bank, settlement=settlement),
        transactions=TransactionService(settlement=settlement),
        onboarding=OnboardingService(users=users, buddies=buddies),
        reconciliation=ReconciliationService(
            settlement=settlement,
            chain=chain,
            stale_after_seconds=settings.stale_transaction_seconds,
            purchase_expiry_seconds=settings.purchase_expiry_seconds,
            max_settlement_attempts=settings.max_settlement_attempts,
        ),
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container

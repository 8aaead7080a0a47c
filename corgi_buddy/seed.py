from corgi_buddy.core.config import get_settings
from corgi_buddy.core.logging import configure_logging
from corgi_buddy.core.ton import coins_to_base_units
from corgi_buddy.db.session import SessionLocal
from corgi_buddy.services.bank_service import BankService


def seed():
    """Create (or reset) the bank wallet mirror from settings."""
    settings = get_settings()
    configure_logging(settings)
    if not settings.bank_wallet_address:
        raise SystemExit("BANK_WALLET_ADDRESS is not set")

    db = SessionLocal()
    try:
        wallet = BankService().initialize(
            db,
            wallet_address=settings.bank_wallet_address,
            current_balance=coins_to_base_units(settings.bank_initial_balance_coins, settings.jetton_decimals),
        )
        print(f"Bank wallet {wallet.wallet_address} balance={wallet.current_balance}")
    finally:
        db.close()


if __name__ == "__main__":
    seed()

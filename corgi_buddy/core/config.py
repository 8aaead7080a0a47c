from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Corgi Buddy"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api"
    request_id_header: str = "X-Request-Id"

    # ─────────── DATABASE ───────────
    database_url: str = "sqlite:///./corgi_buddy.db"

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours

    # ─────────── REWARDS ───────────
    jetton_decimals: int = 9
    reward_per_corgi: int = 1  # coins per corgi
    max_reward_coins: int = 100

    # ─────────── RETRY ───────────
    retry_initial_delay_ms: int = 2000
    retry_multiplier: float = 2.0
    retry_max_attempts: int = 3
    retry_jitter_percentage: float = 10.0

    # ─────────── CHAIN RELAY ───────────
    chain_api_url: Optional[str] = None
    chain_api_key: Optional[str] = None
    chain_timeout_seconds: int = 30
    settle_on_broadcast: bool = True

    # ─────────── RECONCILIATION ───────────
    reconciliation_enabled: bool = False
    reconciliation_interval_seconds: int = 300
    stale_transaction_seconds: int = 300
    purchase_expiry_seconds: int = 3600
    max_settlement_attempts: int = 5

    # ─────────── BANK ───────────
    bank_wallet_address: Optional[str] = None
    bank_initial_balance_coins: int = 0

    # ─────────── TELEGRAM ───────────
    telegram_bot_token: Optional[str] = None
    telegram_api_url: str = "https://api.telegram.org"
    telegram_webhook_secret: Optional[str] = None

    # ─────────── ADMIN ───────────
    admin_api_key: Optional[str] = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

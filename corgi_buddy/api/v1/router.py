from fastapi import APIRouter

from corgi_buddy.api.v1.health import router as health_router

from corgi_buddy.api.v1.onboarding import router as onboarding_router
from corgi_buddy.api.v1.wallet import router as wallet_router
from corgi_buddy.api.v1.buddy import router as buddy_router

from corgi_buddy.api.v1.corgi import router as corgi_router
from corgi_buddy.api.v1.wishes import router as wishes_router
from corgi_buddy.api.v1.marketplace import router as marketplace_router
from corgi_buddy.api.v1.transactions import router as transactions_router
from corgi_buddy.api.v1.bank import router as bank_router

from corgi_buddy.api.v1.telegram import router as telegram_router
from corgi_buddy.api.v1.admin.settlement import router as admin_settlement_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])

# ------------------------------------------------------------------
# ACCOUNT
# ------------------------------------------------------------------
v1_router.include_router(onboarding_router)
v1_router.include_router(wallet_router)
v1_router.include_router(buddy_router)

# ------------------------------------------------------------------
# REWARDS / MARKETPLACE
# ------------------------------------------------------------------
v1_router.include_router(corgi_router)
v1_router.include_router(wishes_router)
v1_router.include_router(marketplace_router)
v1_router.include_router(transactions_router)
v1_router.include_router(bank_router)

# ------------------------------------------------------------------
# BOT / OPERATOR
# ------------------------------------------------------------------
v1_router.include_router(telegram_router)
v1_router.include_router(admin_settlement_router)

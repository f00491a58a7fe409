"""
API Routes
"""
from fastapi import APIRouter

from app.api.routes.signup import router as signup_router
from app.api.routes.profile import router as profile_router
from app.api.routes.wallet import router as wallet_router
from app.api.routes.transactions import router as transactions_router
from app.api.routes.payments import router as payments_router
from app.api.routes.cards import router as cards_router
from app.api.routes.catalog import router as catalog_router

router = APIRouter()

router.include_router(signup_router, prefix="/signup", tags=["Account"])
router.include_router(profile_router, prefix="/profile", tags=["Account"])
router.include_router(wallet_router, prefix="/wallet", tags=["Wallet"])
router.include_router(transactions_router, prefix="/transactions", tags=["Transactions"])
router.include_router(payments_router, prefix="/payments", tags=["Payments"])
router.include_router(cards_router, prefix="/cards", tags=["Cards"])
router.include_router(catalog_router, prefix="/catalog", tags=["Catalog"])

"""
Domain Services
"""
from app.domain.services.wallet_service import WalletService
from app.domain.services.payment_service import PaymentService, PaymentResult
from app.domain.services.account_service import AccountService

__all__ = [
    "WalletService",
    "PaymentService",
    "PaymentResult",
    "AccountService",
]
